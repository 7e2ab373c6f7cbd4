"""
Upstream market data provider adapters.
"""

from .base import ProviderAdapter, HttpProviderAdapter, build_quote, build_series, build_news_item
from .yahoo_finance import YahooFinanceAdapter
from .alpha_vantage import AlphaVantageAdapter
from .finnhub import FinnhubAdapter
from .news_api import NewsApiAdapter
from .simulated import SimulatedAdapter
from .factory import create_adapter, create_adapters

__all__ = [
    "ProviderAdapter",
    "HttpProviderAdapter",
    "build_quote",
    "build_series",
    "build_news_item",
    "YahooFinanceAdapter",
    "AlphaVantageAdapter",
    "FinnhubAdapter",
    "NewsApiAdapter",
    "SimulatedAdapter",
    "create_adapter",
    "create_adapters",
]
