"""
Alpha Vantage adapter implementation.

Provides quotes, intraday/daily charts and symbol search from the Alpha
Vantage query API. The free tier allows 5 calls per minute, so batches are
kept small and the rate limiter does the pacing.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..data.models import (
    ChartPoint,
    ProviderAuthError,
    ProviderId,
    ProviderMalformedResponse,
    ProviderRateLimited,
    ProviderUnsupported,
    Quote,
    SymbolMatch,
)
from ..data.symbols import add_exchange_suffix, strip_exchange_suffix
from .base import HttpProviderAdapter, build_quote, build_series, to_float

logger = logging.getLogger(__name__)


def _is_key_rejection(message: Any) -> bool:
    lowered = str(message).lower()
    mentions_key = "apikey" in lowered or "api key" in lowered
    return mentions_key and ("invalid" in lowered or "missing" in lowered)


class AlphaVantageAdapter(HttpProviderAdapter):
    """Alpha Vantage market data adapter."""

    provider_id = ProviderId.ALPHA_VANTAGE
    max_batch_size = 5

    BASE_URL = "https://www.alphavantage.co/query"

    # BSE listing suffix
    EXCHANGE_SUFFIX = ".BSE"

    INTRADAY_INTERVALS = {
        "1m": "1min",
        "5m": "5min",
        "15m": "15min",
        "30m": "30min",
        "60m": "60min",
        "1h": "60min",
    }

    RANGE_DAYS = {
        "1d": 1,
        "5d": 5,
        "1mo": 30,
        "3mo": 90,
        "6mo": 182,
        "1y": 365,
        "2y": 730,
        "5y": 1826,
    }

    def to_provider_symbol(self, symbol: str) -> str:
        return add_exchange_suffix(symbol, self.EXCHANGE_SUFFIX)

    def _check_payload(self, data: Any, symbols: Optional[List[str]] = None) -> Dict[str, Any]:
        """Reject quota notes, error messages and non-object bodies."""
        if not isinstance(data, dict):
            raise ProviderMalformedResponse(self.provider_id, "Response is not a JSON object", symbols)

        note = data.get("Note") or data.get("Information")
        if note:
            if _is_key_rejection(note):
                raise ProviderAuthError(self.provider_id, str(note), symbols)
            raise ProviderRateLimited(self.provider_id, "Alpha Vantage rate limit exceeded", symbols)

        if "Error Message" in data:
            if _is_key_rejection(data["Error Message"]):
                raise ProviderAuthError(self.provider_id, str(data["Error Message"]), symbols)
            raise ProviderMalformedResponse(
                self.provider_id, f"Alpha Vantage error: {data['Error Message']}", symbols
            )
        return data

    async def _query(self, params: Dict[str, Any], symbols: Optional[List[str]] = None) -> Dict[str, Any]:
        api_key = self._require_key(symbols)
        data = await self._get_json(self.BASE_URL, params={**params, "apikey": api_key})
        return self._check_payload(data, symbols)

    async def _fetch_quote(self, symbol: str) -> Quote:
        """Fetch GLOBAL_QUOTE for one symbol."""
        data = await self._query(
            {"function": "GLOBAL_QUOTE", "symbol": self.to_provider_symbol(symbol)}, [symbol]
        )

        quote = data.get("Global Quote")
        if not quote or not quote.get("01. symbol"):
            raise ProviderMalformedResponse(self.provider_id, f"No quote data for {symbol}", [symbol])

        try:
            return build_quote(
                self.provider_id,
                symbol,
                price=quote.get("05. price"),
                previous_close=quote.get("08. previous close"),
                open_=quote.get("02. open"),
                high=quote.get("03. high"),
                low=quote.get("04. low"),
                volume=quote.get("06. volume"),
            )
        except AttributeError as e:
            raise ProviderMalformedResponse(self.provider_id, f"Error parsing quote for {symbol}: {e}", [symbol])

    async def fetch_chart(self, symbol: str, interval: str, range_: str) -> List[ChartPoint]:
        """Fetch intraday or daily bars and trim them to the requested range."""
        if interval in self.INTRADAY_INTERVALS:
            av_interval = self.INTRADAY_INTERVALS[interval]
            params = {
                "function": "TIME_SERIES_INTRADAY",
                "symbol": self.to_provider_symbol(symbol),
                "interval": av_interval,
                "outputsize": "full" if range_ != "1d" else "compact",
            }
            series_key = f"Time Series ({av_interval})"
        elif interval == "1d":
            params = {
                "function": "TIME_SERIES_DAILY",
                "symbol": self.to_provider_symbol(symbol),
                "outputsize": "full" if self.RANGE_DAYS.get(range_, 0) > 100 else "compact",
            }
            series_key = "Time Series (Daily)"
        else:
            raise ProviderUnsupported(self.provider_id, f"Unsupported interval: {interval}", [symbol])

        if range_ not in self.RANGE_DAYS:
            raise ProviderUnsupported(self.provider_id, f"Unsupported range: {range_}", [symbol])

        data = await self._query(params, [symbol])
        time_series = data.get(series_key)
        if not isinstance(time_series, dict) or not time_series:
            raise ProviderMalformedResponse(self.provider_id, f"No time series data for {symbol}", [symbol])

        tz = self._series_timezone(data.get("Meta Data") or {})
        parsed = []
        for stamp, values in time_series.items():
            try:
                moment = datetime.fromisoformat(stamp).replace(tzinfo=tz)
            except ValueError:
                logger.warning(f"Skipping bar with bad timestamp {stamp!r} for {symbol}")
                continue
            if not isinstance(values, dict):
                continue
            parsed.append((moment, values))

        if not parsed:
            raise ProviderMalformedResponse(self.provider_id, f"No time series data for {symbol}", [symbol])

        latest = max(moment for moment, _ in parsed)
        cutoff = latest - timedelta(days=self.RANGE_DAYS[range_])
        bars = (
            (
                int(moment.timestamp() * 1000),
                values.get("1. open"),
                values.get("2. high"),
                values.get("3. low"),
                values.get("4. close"),
                values.get("5. volume", values.get("6. volume")),
            )
            for moment, values in parsed
            if moment >= cutoff
        )
        return build_series(self.provider_id, symbol, bars)

    @staticmethod
    def _series_timezone(meta: Dict[str, Any]) -> ZoneInfo:
        name = next((v for k, v in meta.items() if k.endswith("Time Zone")), "US/Eastern")
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            return ZoneInfo("America/New_York")

    async def search(self, query: str) -> List[SymbolMatch]:
        """SYMBOL_SEARCH with exchange suffixes stripped from results."""
        data = await self._query({"function": "SYMBOL_SEARCH", "keywords": query})
        best_matches = data.get("bestMatches")
        if not isinstance(best_matches, list):
            raise ProviderMalformedResponse(self.provider_id, "Search response missing bestMatches")

        matches: Dict[str, SymbolMatch] = {}
        for match in best_matches:
            raw_symbol = match.get("1. symbol") if isinstance(match, dict) else None
            if not raw_symbol:
                continue
            symbol = strip_exchange_suffix(raw_symbol)
            score = match.get("9. matchScore")
            matches.setdefault(
                symbol,
                SymbolMatch(
                    symbol=symbol,
                    name=match.get("2. name", symbol),
                    type=match.get("3. type"),
                    region=match.get("4. region"),
                    currency=match.get("8. currency"),
                    match_score=to_float(score),
                ),
            )
        return list(matches.values())
