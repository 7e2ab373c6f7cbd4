"""
Simulated market data provider for development and testing.

Prices follow geometric Brownian motion from a per-symbol base price. Every
record it returns carries ``ProviderId.SIMULATED`` so simulated data can never
be mistaken for a real quote, and it is only consulted when listed in a
priority list.
"""

import asyncio
import logging
import math
import random
import time
from typing import Callable, Dict, List, Optional

from ..data.models import ChartPoint, ProviderId, ProviderUnsupported, Quote
from .base import ProviderAdapter, build_quote, build_series

logger = logging.getLogger(__name__)

INTERVAL_MS = {
    "1m": 60_000,
    "5m": 300_000,
    "15m": 900_000,
    "30m": 1_800_000,
    "60m": 3_600_000,
    "1h": 3_600_000,
    "1d": 86_400_000,
    "1wk": 604_800_000,
}

RANGE_MS = {
    "1d": 86_400_000,
    "5d": 5 * 86_400_000,
    "1mo": 30 * 86_400_000,
    "3mo": 90 * 86_400_000,
    "6mo": 182 * 86_400_000,
    "1y": 365 * 86_400_000,
}

MAX_POINTS = 500


class SimulatedAdapter(ProviderAdapter):
    """Random-walk quotes and charts, labelled as simulated."""

    provider_id = ProviderId.SIMULATED

    def __init__(
        self,
        base_prices: Optional[Dict[str, float]] = None,
        volatility: float = 0.02,
        drift: float = 0.0001,
        seed: Optional[int] = None,
        latency: float = 0.0,
        clock: Callable[[], float] = time.time,
        **kwargs,
    ):
        """
        Initialize simulated provider.

        Args:
            base_prices: Starting prices by symbol (random in [50, 500] otherwise)
            volatility: Daily volatility of the walk
            drift: Daily drift of the walk
            seed: Seed for a reproducible walk
            latency: Artificial delay per call in seconds
            clock: Wall clock in epoch seconds, used to anchor chart series
        """
        super().__init__(**kwargs)
        self.base_prices = {k.upper(): v for k, v in (base_prices or {}).items()}
        self.current_prices = dict(self.base_prices)
        self._volatility = volatility
        self._drift = drift
        self._latency = latency
        self._rng = random.Random(seed)
        self._clock = clock

        logger.info("Initialized simulated market data provider")

    def _step(self, last_price: float, dt: float = 1 / 252) -> float:
        shock = self._rng.gauss(0, 1)
        exponent = self._drift * dt + self._volatility * math.sqrt(dt) * shock
        return max(1.0, min(last_price * math.exp(exponent), 10000.0))

    def _price_for(self, symbol: str) -> float:
        if symbol not in self.current_prices:
            self.current_prices[symbol] = self._rng.uniform(50, 500)
        return self.current_prices[symbol]

    async def _fetch_quote(self, symbol: str) -> Quote:
        if self._latency:
            await asyncio.sleep(self._latency)

        previous = self._price_for(symbol)
        price = self._step(previous)
        self.current_prices[symbol] = price

        # Intraday range spans both closes plus a little noise
        spread = abs(price - previous) + price * 0.002 * self._rng.random()
        return build_quote(
            self.provider_id,
            symbol,
            price=price,
            previous_close=previous,
            open_=previous,
            high=max(price, previous) + spread / 2,
            low=max(0.01, min(price, previous) - spread / 2),
            volume=self._rng.randint(100_000, 1_000_000),
        )

    async def fetch_chart(self, symbol: str, interval: str, range_: str) -> List[ChartPoint]:
        if interval not in INTERVAL_MS:
            raise ProviderUnsupported(self.provider_id, f"Unsupported interval: {interval}", [symbol])
        if range_ not in RANGE_MS:
            raise ProviderUnsupported(self.provider_id, f"Unsupported range: {range_}", [symbol])

        step_ms = INTERVAL_MS[interval]
        count = max(1, min(MAX_POINTS, RANGE_MS[range_] // step_ms))
        dt = step_ms / 86_400_000 / 252

        # Walk backwards from the current price so the series ends at it
        end_ms = int(self._clock() * 1000) // step_ms * step_ms
        closes = [self._price_for(symbol)]
        for _ in range(count - 1):
            closes.append(self._step(closes[-1], dt))
        closes.reverse()

        bars = []
        previous_close = closes[0]
        for index, close in enumerate(closes):
            open_ = previous_close
            wiggle = abs(close - open_) * 0.5 + close * 0.001
            bars.append(
                (
                    end_ms - (count - 1 - index) * step_ms,
                    open_,
                    max(open_, close) + wiggle,
                    max(0.01, min(open_, close) - wiggle),
                    close,
                    self._rng.randint(10_000, 500_000),
                )
            )
            previous_close = close
        return build_series(self.provider_id, symbol, bars)

    def get_health_status(self) -> Dict[str, object]:
        status = super().get_health_status()
        status["simulated"] = True
        status["symbols_tracked"] = len(self.current_prices)
        return status
