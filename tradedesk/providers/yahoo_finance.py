"""
Yahoo Finance adapter implementation.
"""

import asyncio
import logging
from typing import Any, Callable, List

import yfinance as yf

from ..data.models import (
    ChartPoint,
    ProviderError,
    ProviderId,
    ProviderMalformedResponse,
    ProviderTimeout,
    ProviderUnavailable,
    ProviderUnsupported,
    Quote,
)
from ..data.symbols import add_exchange_suffix
from .base import ProviderAdapter, build_quote, build_series

logger = logging.getLogger(__name__)


class YahooFinanceAdapter(ProviderAdapter):
    """Quotes and charts from Yahoo Finance via yfinance."""

    provider_id = ProviderId.YAHOO
    max_batch_size = 20

    # NSE listing suffix
    EXCHANGE_SUFFIX = ".NS"

    VALID_INTERVALS = {"1m", "2m", "5m", "15m", "30m", "60m", "90m", "1h", "1d", "5d", "1wk", "1mo", "3mo"}
    VALID_RANGES = {"1d", "5d", "1mo", "3mo", "6mo", "1y", "2y", "5y", "10y", "ytd", "max"}

    def to_provider_symbol(self, symbol: str) -> str:
        return add_exchange_suffix(symbol, self.EXCHANGE_SUFFIX)

    async def _run(self, func: Callable[[], Any], symbol: str) -> Any:
        """Run a blocking yfinance call in the thread pool under the request timeout."""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, func), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ProviderTimeout(self.provider_id, f"Request timed out after {self.timeout}s", [symbol])
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderUnavailable(self.provider_id, f"Yahoo Finance request failed: {e}", [symbol])

    async def _fetch_quote(self, symbol: str) -> Quote:
        """Get the latest daily bar and previous close."""
        ticker = yf.Ticker(self.to_provider_symbol(symbol))
        hist = await self._run(lambda: ticker.history(period="5d", interval="1d"), symbol)

        if hist is None or hist.empty or len(hist) < 2:
            raise ProviderMalformedResponse(self.provider_id, f"No price data found for {symbol}", [symbol])

        latest = hist.iloc[-1]
        previous = hist.iloc[-2]
        return build_quote(
            self.provider_id,
            symbol,
            price=latest.get("Close"),
            previous_close=previous.get("Close"),
            open_=latest.get("Open"),
            high=latest.get("High"),
            low=latest.get("Low"),
            volume=latest.get("Volume", 0),
        )

    async def fetch_chart(self, symbol: str, interval: str, range_: str) -> List[ChartPoint]:
        """Get historical bars for (interval, range)."""
        if interval not in self.VALID_INTERVALS:
            raise ProviderUnsupported(self.provider_id, f"Unsupported interval: {interval}", [symbol])
        if range_ not in self.VALID_RANGES:
            raise ProviderUnsupported(self.provider_id, f"Unsupported range: {range_}", [symbol])

        ticker = yf.Ticker(self.to_provider_symbol(symbol))
        hist = await self._run(
            lambda: ticker.history(period=range_, interval=interval, auto_adjust=True, prepost=False),
            symbol,
        )

        if hist is None or hist.empty:
            raise ProviderMalformedResponse(self.provider_id, f"No chart data found for {symbol}", [symbol])

        bars = (
            (
                int(timestamp.timestamp() * 1000),
                row.get("Open"),
                row.get("High"),
                row.get("Low"),
                row.get("Close"),
                row.get("Volume", 0),
            )
            for timestamp, row in hist.iterrows()
        )
        return build_series(self.provider_id, symbol, bars)
