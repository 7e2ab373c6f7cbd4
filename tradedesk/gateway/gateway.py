"""
Market data gateway.

The single entry point the dashboard uses for quotes, charts, news, symbol
search and market status. Every read goes cache first, then through the
fallback orchestrator, and fresh results are written back with the TTL of
their kind.
"""

import asyncio
import itertools
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..api.config import Settings
from ..data.cache import CacheStore, chart_key, news_key, quotes_key, search_key
from ..data.models import (
    ChartPoint,
    MarketStatusReport,
    NewsItem,
    ProviderFailure,
    Quote,
    RequestSuperseded,
    TotalFailure,
)
from ..data.rate_limiter import RateLimiterRegistry
from ..data.symbols import (
    company_name,
    normalize_symbols,
    sanitize_query,
    search_catalog,
    validate_symbol,
)
from ..providers.base import ProviderAdapter
from .market_status import get_market_status
from .orchestrator import FallbackOrchestrator

logger = logging.getLogger(__name__)

_PERIOD_RE = re.compile(r"^[0-9]{0,3}[a-z]{1,3}$")

SEARCH_CATALOG_LIMIT = 10
SEARCH_PROVIDER_LIMIT = 5


@dataclass
class QuoteResponse:
    """Quotes for a batch plus the failures met while resolving it."""

    data: List[Quote] = field(default_factory=list)
    errors: List[ProviderFailure] = field(default_factory=list)
    cached: bool = False
    stale: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [q.to_dict() for q in self.data],
            "errors": [e.to_dict() for e in self.errors],
            "cached": self.cached,
            "stale": self.stale,
        }


class RequestSequencer:
    """
    Monotonic sequence numbers per logical request key.

    A caller takes a number with ``begin`` before suspending and calls
    ``check`` before returning; if a newer request for the same key began in
    the meantime the older caller gets ``RequestSuperseded``.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: Dict[str, int] = {}

    def begin(self, key: str) -> int:
        sequence = next(self._counter)
        self._latest[key] = sequence
        return sequence

    def latest(self, key: str) -> Optional[int]:
        return self._latest.get(key)

    def is_latest(self, key: str, sequence: int) -> bool:
        return self._latest.get(key) == sequence

    def check(self, key: str, sequence: int) -> None:
        if not self.is_latest(key, sequence):
            raise RequestSuperseded(key, sequence, self._latest[key])


class MarketDataGateway:
    """Cache-first, multi-provider access to market data."""

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter],
        cache: Optional[CacheStore] = None,
        rate_limiters: Optional[RateLimiterRegistry] = None,
        settings: Optional[Settings] = None,
        orchestrator: Optional[FallbackOrchestrator] = None,
    ):
        """
        Initialize gateway.

        Args:
            adapters: Registry of provider id -> adapter
            cache: Cache store (an in-memory store is created if omitted)
            rate_limiters: Per-provider rate limiters (built from settings if omitted)
            settings: Application settings
            orchestrator: Fallback orchestrator (built from the above if omitted)
        """
        self.settings = settings or Settings()
        self.adapters = dict(adapters)
        self.cache = cache if cache is not None else CacheStore(
            persist_probability=self.settings.cache_persist_probability
        )
        self.rate_limiters = rate_limiters or RateLimiterRegistry(self.settings.rate_limits)
        self.orchestrator = orchestrator or FallbackOrchestrator(
            self.adapters,
            self.rate_limiters,
            failure_threshold=self.settings.market_data_failure_threshold,
            circuit_breaker_timeout=self.settings.market_data_circuit_breaker_timeout,
        )
        self.sequencer = RequestSequencer()
        self.stale_fallback = self.settings.stale_fallback

        self._running = False
        self._sweep_task: Optional[asyncio.Task] = None

    # Lifecycle

    async def start(self) -> None:
        """Start adapters and the periodic cache sweep."""
        if self._running:
            return

        for name, adapter in self.adapters.items():
            try:
                await adapter.start()
            except Exception as e:
                logger.error(f"Failed to start {name} adapter: {e}")

        self._sweep_task = asyncio.create_task(self._sweep_loop())
        self._running = True
        logger.info(f"Market data gateway started with providers: {', '.join(self.adapters)}")

    async def stop(self) -> None:
        """Cancel the sweep task, flush the cache and stop adapters."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.cache.sweep)

        for name, adapter in self.adapters.items():
            try:
                await adapter.stop()
            except Exception as e:
                logger.error(f"Failed to stop {name} adapter: {e}")

        self._running = False
        logger.info("Market data gateway stopped")

    async def __aenter__(self) -> "MarketDataGateway":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _sweep_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.settings.cache_sweep_interval)
            try:
                removed = await loop.run_in_executor(None, self.cache.sweep)
                if removed:
                    logger.info(f"Cache sweep removed {removed} expired entries")
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}")

    # Helpers

    def _stale_or_raise(self, key: str, request: str, errors: List[ProviderFailure]) -> Any:
        """Return an expired payload when stale fallback is on, else raise TotalFailure."""
        logger.error(f"All providers failed for {request}: {[e.to_dict() for e in errors]}")
        if self.stale_fallback:
            stale = self.cache.get_stale(key)
            if stale is not None:
                logger.warning(f"Serving stale cache entry {key} for {request}")
                return stale
        raise TotalFailure(request, errors)

    # Quotes

    async def get_quotes(self, symbols: List[str]) -> QuoteResponse:
        """
        Get quotes for a batch of symbols.

        Args:
            symbols: Requested symbols; validated, upper-cased and de-duplicated

        Returns:
            QuoteResponse in request order with failures for unresolved symbols

        Raises:
            ValueError: A symbol is malformed
            TotalFailure: No provider returned any quote
        """
        if not symbols:
            return QuoteResponse()

        requested = normalize_symbols(symbols)
        key = quotes_key(requested)

        cached = self.cache.get(key)
        if cached is not None:
            response = self._quotes_from_cache(cached)
            response.cached = True
            return response

        resolution = await self.orchestrator.resolve(
            requested,
            self.settings.quote_providers,
            lambda adapter, batch: adapter.fetch_quotes(batch),
            lambda quote: quote.symbol,
        )

        if not resolution.results:
            stale = self._quotes_from_cache(
                self._stale_or_raise(key, f"quotes {','.join(requested)}", resolution.errors)
            )
            return QuoteResponse(data=stale.data, errors=resolution.errors, cached=True, stale=True)

        by_symbol = {quote.symbol: quote for quote in resolution.results}
        quotes = [by_symbol[s] for s in requested if s in by_symbol]
        # Unresolved symbols keep their failures so cache hits still report them
        unresolved = {s for s in requested if s not in by_symbol}
        missing = [e for e in resolution.errors if unresolved.intersection(e.symbols)]
        self.cache.set(
            key,
            {"quotes": [q.to_dict() for q in quotes], "errors": [e.to_dict() for e in missing]},
            ttl=self.settings.quote_cache_ttl,
        )
        return QuoteResponse(data=quotes, errors=resolution.errors)

    @staticmethod
    def _quotes_from_cache(payload: Dict[str, Any]) -> QuoteResponse:
        return QuoteResponse(
            data=[Quote.from_dict(q) for q in payload.get("quotes", [])],
            errors=[ProviderFailure.from_dict(e) for e in payload.get("errors", [])],
        )

    # Charts

    async def get_chart(
        self,
        symbol: str,
        interval: str = "1d",
        range_: str = "1mo",
        panel: Optional[str] = None,
    ) -> List[ChartPoint]:
        """
        Get an OHLCV series.

        Args:
            symbol: Instrument symbol
            interval: Bar interval, e.g. ``5m`` or ``1d``
            range_: Lookback range, e.g. ``1d`` or ``1mo``
            panel: Caller's chart panel id. A newer request for the same panel
                supersedes an older one; without it only an identical
                symbol/interval/range request does.

        Raises:
            ValueError: Symbol, interval or range is malformed
            TotalFailure: No provider returned a series
            RequestSuperseded: A newer request for the same chart started
        """
        symbol = validate_symbol(symbol)
        for value in (interval, range_):
            if not isinstance(value, str) or not _PERIOD_RE.match(value):
                raise ValueError(f"Invalid chart period: {value!r}")

        logical = f"chart:{panel}" if panel else f"chart:{symbol}:{interval}:{range_}"
        sequence = self.sequencer.begin(logical)

        key = chart_key(symbol, interval, range_)
        cached = self.cache.get(key)
        if cached is not None:
            return [ChartPoint.from_dict(p) for p in cached]

        resolution = await self.orchestrator.resolve_single(
            f"chart {symbol} {interval}/{range_}",
            self.settings.chart_providers,
            lambda adapter: adapter.fetch_chart(symbol, interval, range_),
        )

        if resolution.results:
            points = resolution.results
            self.cache.set(key, [p.to_dict() for p in points], ttl=self.settings.chart_cache_ttl)
        else:
            stale = self._stale_or_raise(key, f"chart {symbol}", resolution.errors)
            points = [ChartPoint.from_dict(p) for p in stale]

        self.sequencer.check(logical, sequence)
        return points

    # News

    async def get_news(self, symbol: str, display_name: Optional[str] = None) -> List[NewsItem]:
        """
        Get recent news for a symbol, newest provider ordering preserved.

        Raises:
            ValueError: Symbol is malformed
            TotalFailure: Every provider failed
        """
        symbol = validate_symbol(symbol)
        key = news_key(symbol)

        cached = self.cache.get(key)
        if cached is not None:
            return [NewsItem.from_dict(n) for n in cached]

        name = sanitize_query(display_name or company_name(symbol))
        query = f'{symbol} OR "{name}"' if name and name.upper() != symbol else symbol

        resolution = await self.orchestrator.resolve_single(
            f"news {symbol}",
            self.settings.news_providers,
            lambda adapter: adapter.fetch_news(query, symbol=symbol),
        )

        if resolution.results:
            items = resolution.results[: self.settings.news_page_size]
            self.cache.set(key, [n.to_dict() for n in items], ttl=self.settings.news_cache_ttl)
            return items

        if resolution.answered_empty:
            return []

        stale = self._stale_or_raise(key, f"news {symbol}", resolution.errors)
        return [NewsItem.from_dict(n) for n in stale]

    # Search

    async def search_symbols(self, query: str) -> List[Quote]:
        """
        Search symbols and quote the matches.

        The local catalog is consulted first; provider search is the fallback.

        Raises:
            TotalFailure: Provider search or quoting failed everywhere
            RequestSuperseded: A newer search started while this one was in flight
        """
        cleaned = sanitize_query(query)
        if not cleaned:
            return []

        sequence = self.sequencer.begin("search")
        key = search_key(cleaned)

        symbols = self.cache.get(key)
        if symbols is None:
            symbols = await self._find_symbols(cleaned, key)
            if symbols:
                self.cache.set(key, symbols, ttl=self.settings.search_cache_ttl)

        quotes: List[Quote] = []
        if symbols:
            quotes = (await self.get_quotes(symbols)).data

        self.sequencer.check("search", sequence)
        return quotes

    async def _find_symbols(self, cleaned: str, key: str) -> List[str]:
        local = search_catalog(cleaned, limit=SEARCH_CATALOG_LIMIT)
        if local:
            return local

        resolution = await self.orchestrator.resolve_single(
            f"search {cleaned}",
            self.settings.search_providers,
            lambda adapter: adapter.search(cleaned),
        )

        if resolution.results:
            found: List[str] = []
            for match in resolution.results:
                try:
                    found.append(validate_symbol(match.symbol))
                except ValueError:
                    logger.debug(f"Ignoring unsupported search symbol {match.symbol!r}")
            return list(dict.fromkeys(found))[:SEARCH_PROVIDER_LIMIT]

        if resolution.answered_empty:
            return []

        return self._stale_or_raise(key, f"search {cleaned}", resolution.errors)

    # Market status

    def get_market_status(self, now: Optional[datetime] = None) -> MarketStatusReport:
        """Classify the exchange session at ``now`` (defaults to the current time)."""
        return get_market_status(
            now,
            tz_name=self.settings.exchange_timezone,
            market_open=self.settings.market_open_time,
            market_close=self.settings.market_close_time,
        )

    # Health

    def get_health_status(self) -> Dict[str, Any]:
        circuits = self.orchestrator.get_health_status()
        providers = {
            name: {**adapter.get_health_status(), **circuits.get(name, {})}
            for name, adapter in self.adapters.items()
        }
        return {
            "running": self._running,
            "providers": providers,
            "overall_healthy": any(
                p.get("healthy", False) and p.get("configured", False) for p in providers.values()
            ),
            "rate_limits": self.rate_limiters.get_stats(),
            "cache": self.cache.get_stats(),
            "stale_fallback": self.stale_fallback,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
