"""Shared fixtures and fakes for TradeDesk tests."""

from typing import Dict, List, Optional, Union

import pytest

from tradedesk.api.config import Settings
from tradedesk.data.cache import CacheStore, MemorySnapshotStore
from tradedesk.data.models import ProviderError, ProviderId, ProviderMalformedResponse, Quote
from tradedesk.data.rate_limiter import RateLimiterRegistry
from tradedesk.gateway.gateway import MarketDataGateway
from tradedesk.gateway.orchestrator import FallbackOrchestrator
from tradedesk.providers.base import ProviderAdapter, build_quote


class FakeClock:
    """Manually advanced clock with a matching sleep coroutine."""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_quote(symbol: str, price: float = 101.0, previous_close: float = 100.0,
               source: Union[ProviderId, str] = ProviderId.YAHOO) -> Quote:
    return build_quote(ProviderId(source), symbol, price=price, previous_close=previous_close, volume=1000)


Behavior = Union[float, ProviderError, Exception]


class FakeAdapter(ProviderAdapter):
    """
    Adapter whose answers are scripted per symbol.

    ``quotes`` maps symbol -> price or exception; symbols not listed fail as
    malformed. ``raise_batch`` makes every call raise a provider-level error.
    """

    def __init__(
        self,
        provider_id: ProviderId = ProviderId.YAHOO,
        quotes: Optional[Dict[str, Behavior]] = None,
        raise_batch: Optional[Exception] = None,
        chart=None,
        news=None,
        matches=None,
        configured: bool = True,
        max_batch_size: Optional[int] = None,
    ):
        super().__init__()
        self.provider_id = provider_id
        self.quotes = quotes or {}
        self.raise_batch = raise_batch
        self.chart = chart
        self.news = news
        self.matches = matches
        self.configured = configured
        self.max_batch_size = max_batch_size
        self.calls: List[tuple] = []

    def is_configured(self) -> bool:
        return self.configured

    async def fetch_quotes(self, symbols):
        self.calls.append(("quotes", list(symbols)))
        if self.raise_batch is not None:
            raise self.raise_batch
        return await super().fetch_quotes(symbols)

    async def _fetch_quote(self, symbol: str) -> Quote:
        behavior = self.quotes.get(symbol)
        if behavior is None:
            raise ProviderMalformedResponse(self.provider_id, f"No data for {symbol}", [symbol])
        if isinstance(behavior, Exception):
            raise behavior
        return make_quote(symbol, price=behavior, source=self.provider_id)

    async def fetch_chart(self, symbol, interval, range_):
        self.calls.append(("chart", symbol, interval, range_))
        if isinstance(self.chart, Exception):
            raise self.chart
        if self.chart is None:
            return await super().fetch_chart(symbol, interval, range_)
        return self.chart

    async def fetch_news(self, query, symbol=None):
        self.calls.append(("news", query, symbol))
        if isinstance(self.news, Exception):
            raise self.news
        if self.news is None:
            return await super().fetch_news(query, symbol)
        return self.news

    async def search(self, query):
        self.calls.append(("search", query))
        if isinstance(self.matches, Exception):
            raise self.matches
        if self.matches is None:
            return await super().search(query)
        return self.matches


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        quote_providers=["yahoo", "alpha_vantage"],
        chart_providers=["yahoo", "alpha_vantage"],
        news_providers=["news_api", "finnhub"],
        search_providers=["alpha_vantage"],
        cache_backend="memory",
        cache_sweep_interval=3600,
    )


@pytest.fixture
def make_gateway(settings, clock):
    """Build a gateway over fake adapters with an injected clock."""

    def _make(adapters: Dict[str, ProviderAdapter], **overrides) -> MarketDataGateway:
        gateway_settings = settings.model_copy(update=overrides) if overrides else settings
        cache = CacheStore(
            snapshot_store=MemorySnapshotStore(),
            persist_probability=0.0,
            clock=clock,
        )
        limiters = RateLimiterRegistry(gateway_settings.rate_limits, clock=clock, sleep=clock.sleep)
        orchestrator = FallbackOrchestrator(
            adapters,
            limiters,
            failure_threshold=gateway_settings.market_data_failure_threshold,
            circuit_breaker_timeout=gateway_settings.market_data_circuit_breaker_timeout,
            clock=clock,
        )
        return MarketDataGateway(
            adapters, cache=cache, rate_limiters=limiters, settings=gateway_settings, orchestrator=orchestrator
        )

    return _make
