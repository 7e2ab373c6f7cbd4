"""
Normalized market data records, caching and rate limiting for TradeDesk.
"""

from typing import List

# Data models
from .models import (
    Quote, ChartPoint, NewsItem, SymbolMatch, MarketStatusReport,
    ProviderId, FailureKind, Sentiment, MarketStatus,
    ProviderFailure, BatchResult,
    MarketDataError, ProviderError, ProviderAuthError, ProviderTimeout,
    ProviderMalformedResponse, ProviderRateLimited, ProviderUnavailable,
    ProviderUnsupported, TotalFailure, RequestSuperseded,
)

# Caching system
from .cache import (
    CacheStore, CacheEntry, SnapshotStore, MemorySnapshotStore,
    FileSnapshotStore, RedisSnapshotStore,
    quotes_key, chart_key, news_key, search_key,
)

# Rate limiting
from .rate_limiter import RateLimiter, RateLimiterRegistry

__all__: List[str] = [
    # Models
    "Quote", "ChartPoint", "NewsItem", "SymbolMatch", "MarketStatusReport",
    "ProviderId", "FailureKind", "Sentiment", "MarketStatus",
    "ProviderFailure", "BatchResult",
    "MarketDataError", "ProviderError", "ProviderAuthError", "ProviderTimeout",
    "ProviderMalformedResponse", "ProviderRateLimited", "ProviderUnavailable",
    "ProviderUnsupported", "TotalFailure", "RequestSuperseded",

    # Cache
    "CacheStore", "CacheEntry", "SnapshotStore", "MemorySnapshotStore",
    "FileSnapshotStore", "RedisSnapshotStore",
    "quotes_key", "chart_key", "news_key", "search_key",

    # Rate limiting
    "RateLimiter", "RateLimiterRegistry",
]
