"""
TradeDesk - Market Data Gateway

Aggregation, caching and fallback layer over rate-limited upstream market
data providers for the TradeDesk trading dashboard.
"""

__version__ = "0.1.0"
__author__ = "TradeDesk Team"

from typing import List

__all__: List[str] = []
