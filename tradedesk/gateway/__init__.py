"""
Market data gateway: cache-first fallback across upstream providers.
"""

from typing import List

from .orchestrator import FallbackOrchestrator, ProviderHealth, Resolution
from .market_status import get_market_status
from .gateway import MarketDataGateway, QuoteResponse, RequestSequencer

__all__: List[str] = [
    "FallbackOrchestrator",
    "ProviderHealth",
    "Resolution",
    "get_market_status",
    "MarketDataGateway",
    "QuoteResponse",
    "RequestSequencer",
]
