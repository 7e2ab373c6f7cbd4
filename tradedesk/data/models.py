"""
Data models for normalized market data records and provider failures.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")

# Tolerance allowed between a quote's change_percent and change / previous_close.
CHANGE_PERCENT_TOLERANCE = 0.01


class ProviderId(str, Enum):
    """Upstream market data providers."""

    YAHOO = "yahoo"
    ALPHA_VANTAGE = "alpha_vantage"
    FINNHUB = "finnhub"
    NEWS_API = "news_api"
    SIMULATED = "simulated"


class FailureKind(str, Enum):
    """Classification of a provider failure."""

    AUTH = "auth"
    TIMEOUT = "timeout"
    MALFORMED = "malformed"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    UNSUPPORTED = "unsupported"
    CIRCUIT_OPEN = "circuit_open"


class Sentiment(str, Enum):
    """Keyword-derived news sentiment."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class MarketStatus(str, Enum):
    """Exchange session state."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    PRE_MARKET = "PRE_MARKET"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class Quote:
    """Normalized snapshot of a tradable instrument."""

    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
    open: float
    high: float
    low: float
    previous_close: float
    volume: int
    source: ProviderId
    last_updated: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        """Validate quote data."""
        symbol = (self.symbol or "").upper().strip()
        if not symbol:
            raise ValueError("Symbol cannot be empty")
        object.__setattr__(self, "symbol", symbol)
        object.__setattr__(self, "source", ProviderId(self.source))

        if self.price < 0:
            raise ValueError(f"Price cannot be negative for {symbol}")
        if self.previous_close < 0:
            raise ValueError(f"Previous close cannot be negative for {symbol}")
        if self.volume < 0:
            raise ValueError("Volume cannot be negative")
        if self.previous_close > 0:
            expected = self.change / self.previous_close * 100
            if abs(self.change_percent - expected) >= CHANGE_PERCENT_TOLERANCE:
                raise ValueError(
                    f"change_percent {self.change_percent} inconsistent with "
                    f"change/previous_close ({expected:.4f}) for {symbol}"
                )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "change": self.change,
            "change_percent": self.change_percent,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "previous_close": self.previous_close,
            "volume": self.volume,
            "source": self.source.value,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quote":
        return cls(
            symbol=data["symbol"],
            name=data["name"],
            price=float(data["price"]),
            change=float(data["change"]),
            change_percent=float(data["change_percent"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            previous_close=float(data["previous_close"]),
            volume=int(data["volume"]),
            source=ProviderId(data["source"]),
            last_updated=_parse_datetime(data["last_updated"]),
        )


@dataclass(frozen=True)
class ChartPoint:
    """OHLCV bar keyed by epoch milliseconds."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    def __post_init__(self):
        """Validate price data."""
        if self.high < max(self.open, self.close):
            raise ValueError("High price must be >= max(open, close)")
        if self.low > min(self.open, self.close):
            raise ValueError("Low price must be <= min(open, close)")
        if self.volume < 0:
            raise ValueError("Volume cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChartPoint":
        return cls(
            timestamp=int(data["timestamp"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=int(data.get("volume", 0)),
        )


@dataclass(frozen=True)
class NewsItem:
    """News article with derived sentiment."""

    title: str
    description: str
    url: str
    source: str
    published_at: datetime
    sentiment: Sentiment = Sentiment.NEUTRAL
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "source": self.source,
            "published_at": self.published_at.isoformat(),
            "sentiment": Sentiment(self.sentiment).value,
            "image_url": self.image_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewsItem":
        return cls(
            title=data["title"],
            description=data["description"],
            url=data["url"],
            source=data["source"],
            published_at=_parse_datetime(data["published_at"]),
            sentiment=Sentiment(data.get("sentiment", Sentiment.NEUTRAL)),
            image_url=data.get("image_url"),
        )


@dataclass(frozen=True)
class SymbolMatch:
    """Symbol search hit returned by a provider."""

    symbol: str
    name: str
    type: Optional[str] = None
    region: Optional[str] = None
    currency: Optional[str] = None
    match_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "type": self.type,
            "region": self.region,
            "currency": self.currency,
            "match_score": self.match_score,
        }


@dataclass
class MarketStatusReport:
    """Result of classifying the exchange session at a point in time."""

    status: MarketStatus
    message: str
    current_time: datetime
    market_open: str
    market_close: str
    timezone: str
    next_action: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "current_time": self.current_time.isoformat(),
            "market_open": self.market_open,
            "market_close": self.market_close,
            "timezone": self.timezone,
            "next_action": self.next_action.isoformat(),
        }


@dataclass
class ProviderFailure:
    """Record of a provider failing to satisfy some requested items."""

    provider: str
    kind: FailureKind
    message: str
    symbols: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "kind": self.kind.value,
            "message": self.message,
            "symbols": list(self.symbols),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderFailure":
        return cls(
            provider=data["provider"],
            kind=FailureKind(data["kind"]),
            message=data.get("message", ""),
            symbols=list(data.get("symbols", [])),
        )


@dataclass
class BatchResult(Generic[T]):
    """Normalized items from one provider call plus per-item failures."""

    items: List[T] = field(default_factory=list)
    failures: List[ProviderFailure] = field(default_factory=list)


class MarketDataError(Exception):
    """Base exception for the market data gateway."""

    pass


class ProviderError(MarketDataError):
    """A provider could not satisfy a request."""

    kind = FailureKind.UNAVAILABLE

    def __init__(self, provider: str, message: str, symbols: Optional[List[str]] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = str(getattr(provider, "value", provider))
        self.message = message
        self.symbols = list(symbols or [])

    def to_failure(self, symbols: Optional[List[str]] = None) -> ProviderFailure:
        """Convert to a failure record covering ``symbols`` (or the error's own)."""
        return ProviderFailure(
            provider=self.provider,
            kind=self.kind,
            message=self.message,
            symbols=list(symbols if symbols is not None else self.symbols),
        )


class ProviderAuthError(ProviderError):
    """Missing or rejected credentials."""

    kind = FailureKind.AUTH


class ProviderTimeout(ProviderError):
    """Upstream call exceeded its deadline."""

    kind = FailureKind.TIMEOUT


class ProviderMalformedResponse(ProviderError):
    """Response lacked the minimum required fields."""

    kind = FailureKind.MALFORMED


class ProviderRateLimited(ProviderError):
    """Upstream rejected the call for quota reasons."""

    kind = FailureKind.RATE_LIMITED


class ProviderUnavailable(ProviderError):
    """Connection failure or unexpected upstream status."""

    kind = FailureKind.UNAVAILABLE


class ProviderUnsupported(ProviderError):
    """Provider does not offer the requested data kind."""

    kind = FailureKind.UNSUPPORTED


class TotalFailure(MarketDataError):
    """Every configured provider failed for a request."""

    def __init__(self, request: str, errors: List[ProviderFailure]):
        providers = ", ".join(sorted({e.provider for e in errors})) or "none"
        super().__init__(f"All providers failed for {request} (tried: {providers})")
        self.request = request
        self.errors = list(errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "total_failure",
            "request": self.request,
            "errors": [e.to_dict() for e in self.errors],
        }


class RequestSuperseded(MarketDataError):
    """A newer request for the same logical key made this result stale."""

    def __init__(self, key: str, sequence: int, latest: int):
        super().__init__(f"Request {sequence} for {key} superseded by {latest}")
        self.key = key
        self.sequence = sequence
        self.latest = latest


PROVIDER_ERRORS = {
    cls.kind: cls
    for cls in (
        ProviderAuthError,
        ProviderTimeout,
        ProviderMalformedResponse,
        ProviderRateLimited,
        ProviderUnavailable,
        ProviderUnsupported,
    )
}
