"""
Abstract base classes for market data provider adapters.

Adapters are the only code that knows provider URL shapes, auth and response
schemas. Everything they return is a normalized record from
``tradedesk.data.models``; everything they raise is a ``ProviderError``.
"""

import asyncio
import json
import logging
import math
from abc import ABC
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import aiohttp

from ..data.models import (
    PROVIDER_ERRORS,
    BatchResult,
    ChartPoint,
    NewsItem,
    ProviderAuthError,
    ProviderError,
    ProviderFailure,
    ProviderId,
    ProviderMalformedResponse,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
    ProviderUnsupported,
    Quote,
    SymbolMatch,
)
from ..data.sentiment import analyze_sentiment
from ..data.symbols import company_name, strip_exchange_suffix

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/json",
}

# Placeholder NewsAPI substitutes for articles pulled by the publisher
REMOVED_PLACEHOLDER = "[Removed]"

# (timestamp_ms, open, high, low, close, volume)
RawBar = Tuple[Any, Any, Any, Any, Any, Any]


def to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _positive(value: Any) -> Optional[float]:
    number = to_float(value)
    return number if number is not None and number > 0 else None


def build_quote(
    provider: ProviderId,
    symbol: str,
    price: Any,
    previous_close: Any,
    open_: Any = None,
    high: Any = None,
    low: Any = None,
    volume: Any = 0,
    name: Optional[str] = None,
) -> Quote:
    """
    Normalize raw provider fields into a Quote.

    Change and change percent are derived from price and previous close so
    the two always agree. A missing or non-positive price or previous close
    is a malformed response; a missing day range collapses to the last price.

    Raises:
        ProviderMalformedResponse: Required fields are missing
    """
    plain_symbol = strip_exchange_suffix(symbol)
    current = _positive(price)
    if current is None:
        raise ProviderMalformedResponse(provider, f"No current price for {plain_symbol}", [plain_symbol])

    reference = _positive(previous_close)
    if reference is None:
        raise ProviderMalformedResponse(provider, f"No previous close for {plain_symbol}", [plain_symbol])

    current = round(current, 2)
    reference = round(reference, 2)
    change = round(current - reference, 2)
    volume_value = to_float(volume)

    return Quote(
        symbol=plain_symbol,
        name=name or company_name(plain_symbol),
        price=current,
        change=change,
        change_percent=round(change / reference * 100, 2),
        open=round(_positive(open_) or current, 2),
        high=round(_positive(high) or current, 2),
        low=round(_positive(low) or current, 2),
        previous_close=reference,
        volume=int(volume_value) if volume_value and volume_value > 0 else 0,
        source=provider,
        last_updated=datetime.now(timezone.utc),
    )


def build_series(provider: ProviderId, symbol: str, bars: Iterable[RawBar]) -> List[ChartPoint]:
    """
    Normalize raw bars into a strictly increasing chart series.

    Bars with missing prices or impossible OHLC relations are skipped.

    Raises:
        ProviderMalformedResponse: No valid bar remains
    """
    points: Dict[int, ChartPoint] = {}
    skipped = 0
    for timestamp, open_, high, low, close, volume in bars:
        values = [_positive(v) for v in (open_, high, low, close)]
        if timestamp is None or any(v is None for v in values):
            skipped += 1
            continue
        volume_value = to_float(volume)
        try:
            point = ChartPoint(
                timestamp=int(timestamp),
                open=values[0],
                high=values[1],
                low=values[2],
                close=values[3],
                volume=int(volume_value) if volume_value and volume_value > 0 else 0,
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping invalid bar for {symbol} at {timestamp}: {e}")
            skipped += 1
            continue
        points[point.timestamp] = point

    if not points:
        raise ProviderMalformedResponse(provider, f"No valid OHLC points for {symbol}", [symbol])

    if skipped:
        logger.debug(f"{provider.value}: skipped {skipped} bars for {symbol}")
    return [points[ts] for ts in sorted(points)]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings (with or without ``Z``) or epoch seconds."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def build_news_item(
    title: Any,
    description: Any,
    url: Any,
    source: Any,
    published_at: Any,
    image_url: Optional[str] = None,
) -> Optional[NewsItem]:
    """Normalize one article; returns None when title or description is missing or removed."""
    if not title or not description:
        return None
    if REMOVED_PLACEHOLDER in str(title) or REMOVED_PLACEHOLDER in str(description):
        return None
    published = parse_timestamp(published_at)
    if published is None:
        return None

    return NewsItem(
        title=str(title).strip(),
        description=str(description).strip(),
        url=str(url or ""),
        source=str(source or "Unknown"),
        published_at=published,
        sentiment=analyze_sentiment(f"{title} {description}"),
        image_url=image_url or None,
    )


def aggregate_error(provider: ProviderId, failures: Sequence[ProviderFailure], symbols: List[str]) -> ProviderError:
    """Collapse per-symbol failures into one provider-level error."""
    kinds = {f.kind for f in failures}
    error_cls = PROVIDER_ERRORS[kinds.pop()] if len(kinds) == 1 else ProviderUnavailable
    messages = list(dict.fromkeys(f.message for f in failures))
    message = "; ".join(messages[:3]) or "No data returned"
    return error_cls(provider, message, symbols)


class ProviderAdapter(ABC):
    """Abstract base class for market data provider adapters."""

    provider_id: ProviderId
    # Symbols per fetch_quotes call; None means no limit.
    max_batch_size: Optional[int] = None

    def __init__(self, timeout: float = 10.0, max_concurrent: int = 5):
        """
        Initialize adapter.

        Args:
            timeout: Per-request timeout in seconds
            max_concurrent: Maximum concurrent upstream calls per batch
        """
        self.timeout = timeout
        self.max_concurrent = max_concurrent
        self._running = False

    @property
    def name(self) -> str:
        return self.provider_id.value

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    def is_configured(self) -> bool:
        """Whether credentials needed by this provider are present."""
        return True

    def request_cost(self, symbols: Sequence[str]) -> int:
        """Rate-limiter slots consumed by one ``fetch_quotes(symbols)`` call."""
        return max(1, len(symbols))

    async def fetch_quotes(self, symbols: List[str]) -> BatchResult[Quote]:
        """
        Fetch quotes, isolating per-symbol failures.

        Returns:
            BatchResult with one Quote per satisfied symbol and one failure
            per unsatisfied symbol

        Raises:
            ProviderError: No symbol could be satisfied
        """
        if not symbols:
            return BatchResult()

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def fetch_one(symbol: str) -> Quote:
            async with semaphore:
                return await self._fetch_quote(symbol)

        outcomes = await asyncio.gather(
            *(fetch_one(symbol) for symbol in symbols), return_exceptions=True
        )
        return self._collect(symbols, outcomes)

    def _collect(self, symbols: List[str], outcomes: Sequence[Any]) -> BatchResult[Quote]:
        result: BatchResult[Quote] = BatchResult()
        for symbol, outcome in zip(symbols, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, ProviderError):
                result.failures.append(outcome.to_failure([symbol]))
            elif isinstance(outcome, BaseException):
                logger.error(f"{self.name} failed for {symbol}: {outcome}")
                result.failures.append(
                    ProviderFailure(self.name, ProviderUnavailable.kind, str(outcome), [symbol])
                )
            else:
                result.items.append(outcome)
        return self.finalize_batch(symbols, result)

    def finalize_batch(self, symbols: List[str], result: BatchResult[Quote]) -> BatchResult[Quote]:
        """Flag requested symbols missing from the response; raise if nothing came back."""
        returned = {quote.symbol for quote in result.items}
        failed = {s for f in result.failures for s in f.symbols}
        for symbol in symbols:
            if symbol not in returned and symbol not in failed:
                result.failures.append(
                    ProviderMalformedResponse(self.provider_id, f"No quote returned for {symbol}").to_failure([symbol])
                )

        if not result.items:
            raise aggregate_error(self.provider_id, result.failures, list(symbols))

        for failure in result.failures:
            logger.warning(f"{self.name} could not quote {failure.symbols}: {failure.message}")
        return result

    async def _fetch_quote(self, symbol: str) -> Quote:
        raise ProviderUnsupported(self.provider_id, "Quotes not supported", [symbol])

    async def fetch_chart(self, symbol: str, interval: str, range_: str) -> List[ChartPoint]:
        raise ProviderUnsupported(self.provider_id, "Charts not supported", [symbol])

    async def fetch_news(self, query: str, symbol: Optional[str] = None) -> List[NewsItem]:
        raise ProviderUnsupported(self.provider_id, "News not supported")

    async def search(self, query: str) -> List[SymbolMatch]:
        raise ProviderUnsupported(self.provider_id, "Symbol search not supported")

    def get_health_status(self) -> Dict[str, Any]:
        return {
            "provider": self.name,
            "configured": self.is_configured(),
            "running": self._running,
        }


class HttpProviderAdapter(ProviderAdapter):
    """Adapter backed by a JSON-over-HTTP API via aiohttp."""

    BASE_URL = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        max_concurrent: int = 5,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize HTTP adapter.

        Args:
            api_key: Provider API key
            timeout: Per-request timeout in seconds
            max_concurrent: Maximum concurrent upstream calls per batch
            session: Shared client session; one is created on start if omitted
        """
        super().__init__(timeout=timeout, max_concurrent=max_concurrent)
        self.api_key = api_key
        self._session = session
        self._owns_session = session is None

    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != "demo"

    def _require_key(self, symbols: Optional[List[str]] = None) -> str:
        if not self.is_configured():
            raise ProviderAuthError(self.provider_id, "API key not configured", symbols)
        return self.api_key

    async def start(self) -> None:
        await super().start()
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=DEFAULT_HEADERS,
            )
            self._owns_session = True
            logger.info(f"Started {self.name} adapter")

    async def stop(self) -> None:
        await super().stop()
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a JSON document, mapping transport outcomes to provider errors.

        Raises:
            ProviderAuthError: HTTP 401/403
            ProviderRateLimited: HTTP 429
            ProviderUnavailable: Other HTTP errors or connection failures
            ProviderTimeout: Request exceeded the timeout
            ProviderMalformedResponse: Body is not JSON
        """
        if self._session is None:
            await self.start()

        try:
            async with self._session.get(
                url, params=params, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status in (401, 403):
                    raise ProviderAuthError(self.provider_id, f"Rejected credentials (HTTP {response.status})")
                if response.status == 429:
                    raise ProviderRateLimited(self.provider_id, "Upstream quota exceeded (HTTP 429)")
                if response.status >= 400:
                    raise ProviderUnavailable(self.provider_id, f"{self.name} API error: {response.status}")
                try:
                    return await response.json(content_type=None)
                except (aiohttp.ContentTypeError, json.JSONDecodeError, ValueError) as e:
                    raise ProviderMalformedResponse(self.provider_id, f"Invalid JSON: {e}")
        except asyncio.TimeoutError:
            raise ProviderTimeout(self.provider_id, f"Request timed out after {self.timeout}s")
        except aiohttp.ClientError as e:
            raise ProviderUnavailable(self.provider_id, f"Request failed: {e}")
