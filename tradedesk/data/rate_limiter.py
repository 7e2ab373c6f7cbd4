"""
Sliding-window rate limiting for upstream providers.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RateLimiter:
    """
    Sliding-window call gate.

    At most ``max_calls`` grants fall inside any trailing ``window_seconds``.
    Callers over quota are suspended until the oldest grant leaves the window,
    then the window is re-evaluated. ``acquire`` never raises for quota reasons.
    """

    def __init__(
        self,
        max_calls: int,
        window_seconds: float,
        name: str = "",
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        """
        Initialize rate limiter.

        Args:
            max_calls: Maximum grants per window
            window_seconds: Window length in seconds
            name: Provider name used in log messages
            clock: Monotonic time source
            sleep: Coroutine used to suspend callers
        """
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._calls: Deque[float] = deque()
        # Created on first acquire so it belongs to the running loop
        self._lock: Optional[asyncio.Lock] = None
        self.total_wait_seconds = 0.0

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    async def acquire(self) -> float:
        """
        Wait for a call slot and record the grant.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)

                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    self.total_wait_seconds += waited
                    return waited

                wait_time = self._calls[0] + self.window_seconds - now
                logger.info(
                    f"Rate limit reached for {self.name or 'provider'}, "
                    f"waiting {wait_time:.2f} seconds"
                )
                await self._sleep(max(wait_time, 0.0))
                waited += max(wait_time, 0.0)

    def available(self) -> int:
        """Number of slots free right now."""
        self._evict(self._clock())
        return self.max_calls - len(self._calls)

    def get_stats(self) -> Dict[str, float]:
        return {
            "max_calls": self.max_calls,
            "window_seconds": self.window_seconds,
            "available": self.available(),
            "total_wait_seconds": round(self.total_wait_seconds, 3),
        }


class RateLimiterRegistry:
    """One rate limiter per provider; unknown providers are not throttled."""

    def __init__(
        self,
        limits: Optional[Mapping[str, Sequence[float]]] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        """
        Initialize registry.

        Args:
            limits: Provider id -> (max_calls, window_seconds)
            clock: Time source shared by all limiters
            sleep: Suspension coroutine shared by all limiters
        """
        self._clock = clock
        self._sleep = sleep
        self._limiters: Dict[str, RateLimiter] = {}
        for provider, (max_calls, window_seconds) in (limits or {}).items():
            self.configure(provider, int(max_calls), float(window_seconds))

    def configure(self, provider: str, max_calls: int, window_seconds: float) -> RateLimiter:
        key = str(getattr(provider, "value", provider))
        limiter = RateLimiter(
            max_calls, window_seconds, name=key, clock=self._clock, sleep=self._sleep
        )
        self._limiters[key] = limiter
        return limiter

    def get(self, provider: str) -> Optional[RateLimiter]:
        return self._limiters.get(str(getattr(provider, "value", provider)))

    async def acquire(self, provider: str) -> float:
        limiter = self.get(provider)
        if limiter is None:
            return 0.0
        return await limiter.acquire()

    def get_stats(self) -> Dict[str, Dict[str, float]]:
        return {name: limiter.get_stats() for name, limiter in self._limiters.items()}
