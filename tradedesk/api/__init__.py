"""
TradeDesk API module.

Configuration and the optional FastAPI surface over the market data gateway.
"""

from typing import List

__all__: List[str] = []
