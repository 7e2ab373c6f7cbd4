"""
Symbol catalog, validation and exchange suffix mapping.
"""

import re
from typing import Dict, List

INDIAN_SYMBOLS: List[str] = [
    "RELIANCE", "TCS", "INFY", "HDFCBANK", "ICICIBANK",
    "HINDUNILVR", "BAJFINANCE", "KOTAKBANK", "LT", "ASIANPAINT",
    "MARUTI", "SBIN", "NESTLEIND", "WIPRO", "HCLTECH",
    "AXISBANK", "TITAN", "SUNPHARMA", "TECHM", "ULTRACEMCO",
]

US_SYMBOLS: List[str] = [
    "AAPL", "MSFT", "GOOGL", "AMZN", "TSLA",
    "META", "NVDA", "NFLX", "CRM", "ADBE",
]

COMPANY_NAMES: Dict[str, str] = {
    "RELIANCE": "Reliance Industries Ltd",
    "TCS": "Tata Consultancy Services",
    "INFY": "Infosys Limited",
    "HDFCBANK": "HDFC Bank Limited",
    "ICICIBANK": "ICICI Bank Limited",
    "HINDUNILVR": "Hindustan Unilever Ltd",
    "BAJFINANCE": "Bajaj Finance Limited",
    "KOTAKBANK": "Kotak Mahindra Bank",
    "LT": "Larsen & Toubro Ltd",
    "ASIANPAINT": "Asian Paints Limited",
    "MARUTI": "Maruti Suzuki India Ltd",
    "SBIN": "State Bank of India",
    "NESTLEIND": "Nestle India Limited",
    "WIPRO": "Wipro Limited",
    "HCLTECH": "HCL Technologies Ltd",
    "AXISBANK": "Axis Bank Limited",
    "TITAN": "Titan Company Limited",
    "SUNPHARMA": "Sun Pharmaceutical Industries",
    "TECHM": "Tech Mahindra Limited",
    "ULTRACEMCO": "UltraTech Cement Limited",
    "AAPL": "Apple Inc.",
    "MSFT": "Microsoft Corporation",
    "GOOGL": "Alphabet Inc.",
    "AMZN": "Amazon.com Inc.",
    "TSLA": "Tesla Inc.",
    "META": "Meta Platforms Inc.",
    "NVDA": "NVIDIA Corporation",
    "NFLX": "Netflix Inc.",
    "CRM": "Salesforce Inc.",
    "ADBE": "Adobe Inc.",
}

_SYMBOL_RE = re.compile(r"^[A-Z0-9&\-]{1,15}$")
_UNSAFE_CHARS_RE = re.compile(r"[<>\"'`;{}]")


def validate_symbol(symbol: str) -> str:
    """Validate and normalize symbol."""
    if not symbol or not isinstance(symbol, str):
        raise ValueError("Symbol must be a non-empty string")

    normalized = symbol.upper().strip()
    if not _SYMBOL_RE.match(normalized):
        raise ValueError(f"Invalid symbol: {symbol!r}")
    return normalized


def normalize_symbols(symbols: List[str]) -> List[str]:
    """Validate, upper-case and de-duplicate symbols, keeping first-seen order."""
    seen: Dict[str, None] = {}
    for symbol in symbols:
        seen.setdefault(validate_symbol(symbol), None)
    return list(seen)


def sanitize_query(query: str) -> str:
    """Strip markup characters and surrounding whitespace from free text."""
    return _UNSAFE_CHARS_RE.sub("", query or "").strip()


def company_name(symbol: str) -> str:
    return COMPANY_NAMES.get(symbol.upper(), symbol.upper())


def is_indian_symbol(symbol: str) -> bool:
    return symbol.upper() in INDIAN_SYMBOLS


def add_exchange_suffix(symbol: str, suffix: str) -> str:
    """Map a plain NSE/BSE symbol to a provider symbol; other symbols pass through."""
    if suffix and is_indian_symbol(symbol):
        return f"{symbol}{suffix}"
    return symbol


def strip_exchange_suffix(symbol: str) -> str:
    """Drop a trailing exchange suffix such as ``.NS`` or ``.BSE``."""
    base, dot, _ = symbol.upper().partition(".")
    return base if dot else symbol.upper()


def search_catalog(query: str, limit: int = 10) -> List[str]:
    """Match known symbols by exact symbol or company name substring."""
    needle = query.upper()
    if not needle:
        return []

    matches = [
        symbol
        for symbol in INDIAN_SYMBOLS + US_SYMBOLS
        if symbol == needle or needle in company_name(symbol).upper()
    ]
    return matches[:limit]
