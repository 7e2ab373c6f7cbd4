"""
Adapter factory.

Builds the provider registry the gateway resolves priority lists against.
"""

import logging
from typing import Dict, Optional

import aiohttp

from ..api.config import Settings
from ..data.models import ProviderId
from .alpha_vantage import AlphaVantageAdapter
from .base import ProviderAdapter
from .finnhub import FinnhubAdapter
from .news_api import NewsApiAdapter
from .simulated import SimulatedAdapter
from .yahoo_finance import YahooFinanceAdapter

logger = logging.getLogger(__name__)


def create_adapter(
    provider: ProviderId,
    settings: Settings,
    session: Optional[aiohttp.ClientSession] = None,
) -> ProviderAdapter:
    """
    Create one provider adapter from settings.

    Args:
        provider: Provider to create
        settings: Application settings (API keys, timeouts)
        session: Optional shared HTTP session for aiohttp-backed adapters

    Returns:
        ProviderAdapter instance
    """
    common = {
        "timeout": settings.market_data_timeout,
        "max_concurrent": settings.max_concurrent_requests,
    }

    if provider == ProviderId.YAHOO:
        return YahooFinanceAdapter(**common)

    elif provider == ProviderId.ALPHA_VANTAGE:
        return AlphaVantageAdapter(api_key=settings.alpha_vantage_api_key, session=session, **common)

    elif provider == ProviderId.FINNHUB:
        return FinnhubAdapter(api_key=settings.finnhub_api_key, session=session, **common)

    elif provider == ProviderId.NEWS_API:
        return NewsApiAdapter(
            api_key=settings.news_api_key,
            page_size=max(10, settings.news_page_size),
            session=session,
            **common,
        )

    elif provider == ProviderId.SIMULATED:
        return SimulatedAdapter(**common)

    raise ValueError(f"Unknown provider: {provider}")


def create_adapters(
    settings: Settings, session: Optional[aiohttp.ClientSession] = None
) -> Dict[str, ProviderAdapter]:
    """
    Create adapters for every provider named in a priority list.

    Unknown names are logged and skipped; the orchestrator records them as
    unavailable when they come up in a priority list.

    Returns:
        Registry of provider id -> adapter
    """
    wanted = (
        settings.quote_providers
        + settings.chart_providers
        + settings.news_providers
        + settings.search_providers
    )

    adapters: Dict[str, ProviderAdapter] = {}
    for name in dict.fromkeys(wanted):
        try:
            provider = ProviderId(name)
        except ValueError:
            logger.warning(f"Unknown market data provider '{name}', skipping")
            continue

        adapter = create_adapter(provider, settings, session=session)
        if not adapter.is_configured():
            logger.warning(f"{provider.value} API key not configured")
        adapters[provider.value] = adapter

    logger.info(f"Created market data adapters: {', '.join(adapters) or 'none'}")
    return adapters
