"""
Fallback orchestration across market data providers.

Providers are tried strictly in priority order. Each attempt waits for a
rate-limiter slot, then asks the adapter for whatever is still missing.
Provider-level failures move the request on to the next provider; nothing
is retried against the same provider within one resolution.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
)

from ..data.models import (
    BatchResult,
    FailureKind,
    ProviderAuthError,
    ProviderError,
    ProviderFailure,
    ProviderUnavailable,
)
from ..data.rate_limiter import RateLimiterRegistry
from ..providers.base import ProviderAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")

BatchFetch = Callable[[ProviderAdapter, List[str]], Awaitable[BatchResult[T]]]
SingleFetch = Callable[[ProviderAdapter], Awaitable[List[T]]]

# Failures that say nothing about provider health
_NEUTRAL_KINDS = {FailureKind.UNSUPPORTED}


class ProviderHealth:
    """Per-provider counters and circuit breaker."""

    def __init__(
        self,
        provider: str,
        failure_threshold: int = 5,
        circuit_breaker_timeout: float = 900,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.failure_threshold = failure_threshold
        self.circuit_breaker_timeout = circuit_breaker_timeout
        self._clock = clock

        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.failure_count = 0
        self.circuit_open_time: Optional[float] = None
        self.last_successful_request: Optional[datetime] = None
        self.last_error: Optional[str] = None

    def is_circuit_open(self) -> bool:
        """Check if circuit breaker is open."""
        if self.circuit_open_time is None:
            return False

        if self._clock() - self.circuit_open_time >= self.circuit_breaker_timeout:
            # Circuit breaker timeout expired, reset
            self.circuit_open_time = None
            self.failure_count = 0
            logger.info(f"{self.provider} circuit breaker reset after timeout")
            return False

        return True

    def record_success(self) -> None:
        self.successful_requests += 1
        self.last_successful_request = datetime.now()
        self.failure_count = 0
        if self.circuit_open_time is not None:
            self.circuit_open_time = None
            logger.info(f"{self.provider} circuit breaker closed after successful request")

    def record_failure(self, message: str = "") -> None:
        self.failed_requests += 1
        self.failure_count += 1
        self.last_error = message or self.last_error
        if self.circuit_open_time is None and self.failure_count >= self.failure_threshold:
            self.circuit_open_time = self._clock()
            logger.warning(
                f"{self.provider} circuit breaker opened after {self.failure_count} consecutive failures"
            )

    def get_health_status(self) -> Dict[str, Any]:
        success_rate = (
            self.successful_requests / self.total_requests if self.total_requests else 1.0
        )
        circuit_open = self.is_circuit_open()
        return {
            "provider": self.provider,
            "healthy": not circuit_open and success_rate >= 0.5,
            "circuit_open": circuit_open,
            "consecutive_failures": self.failure_count,
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": success_rate,
            "last_successful_request": (
                self.last_successful_request.isoformat() if self.last_successful_request else None
            ),
            "last_error": self.last_error,
        }


@dataclass
class Resolution(Generic[T]):
    """Outcome of resolving a request across providers."""

    results: List[T] = field(default_factory=list)
    errors: List[ProviderFailure] = field(default_factory=list)
    providers_tried: List[str] = field(default_factory=list)
    # Provider that answered successfully but had nothing to return
    answered_empty: bool = False

    @property
    def total_failure(self) -> bool:
        return not self.results and not self.answered_empty


class FallbackOrchestrator:
    """Try providers in order until every requested item is satisfied."""

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter],
        rate_limiters: Optional[RateLimiterRegistry] = None,
        failure_threshold: int = 5,
        circuit_breaker_timeout: float = 900,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize orchestrator.

        Args:
            adapters: Registry of provider id -> adapter
            rate_limiters: Per-provider rate limiters (None disables throttling)
            failure_threshold: Consecutive failures before a circuit opens
            circuit_breaker_timeout: Seconds before an open circuit closes
            clock: Monotonic time source for circuit timing
        """
        self.adapters = dict(adapters)
        self.rate_limiters = rate_limiters or RateLimiterRegistry()
        self.failure_threshold = failure_threshold
        self.circuit_breaker_timeout = circuit_breaker_timeout
        self._clock = clock
        self._health: Dict[str, ProviderHealth] = {}

    def health(self, provider: str) -> ProviderHealth:
        if provider not in self._health:
            self._health[provider] = ProviderHealth(
                provider,
                failure_threshold=self.failure_threshold,
                circuit_breaker_timeout=self.circuit_breaker_timeout,
                clock=self._clock,
            )
        return self._health[provider]

    def _available(
        self, provider: str, covering: List[str], errors: List[ProviderFailure]
    ) -> Optional[ProviderAdapter]:
        """Return the adapter if it may be called now, else record why not."""
        adapter = self.adapters.get(provider)
        if adapter is None:
            errors.append(
                ProviderFailure(provider, FailureKind.UNAVAILABLE, "Provider not registered", list(covering))
            )
            return None

        if self.health(provider).is_circuit_open():
            logger.warning(f"{provider} circuit breaker is open, skipping request")
            errors.append(
                ProviderFailure(provider, FailureKind.CIRCUIT_OPEN, "Circuit breaker open", list(covering))
            )
            return None

        if not adapter.is_configured():
            errors.append(
                ProviderAuthError(provider, "API key not configured").to_failure(list(covering))
            )
            return None

        return adapter

    async def _call(self, provider: str, cost: int, thunk: Callable[[], Awaitable[Any]]) -> Any:
        """Acquire ``cost`` rate-limit slots, run ``thunk`` and update health."""
        for _ in range(max(1, cost)):
            await self.rate_limiters.acquire(provider)

        health = self.health(provider)
        health.total_requests += 1
        try:
            result = await thunk()
        except ProviderError as e:
            if e.kind not in _NEUTRAL_KINDS:
                health.record_failure(e.message)
            logger.warning(f"{provider} failed ({e.kind.value}): {e.message}")
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            health.record_failure(str(e))
            logger.error(f"{provider} raised unexpected {type(e).__name__}: {e}")
            raise ProviderUnavailable(provider, f"Unexpected error: {e}") from e

        health.record_success()
        return result

    async def resolve(
        self,
        items: Sequence[str],
        providers: Sequence[str],
        fetch: BatchFetch,
        key_of: Callable[[T], str],
    ) -> Resolution[T]:
        """
        Resolve a batch of items across providers.

        Args:
            items: Requested keys (e.g. symbols), de-duplicated in order
            providers: Provider ids in priority order
            fetch: Calls one adapter for a list of still-missing items
            key_of: Maps a returned record back to its requested key

        Returns:
            Resolution with the merged results, every recorded failure, and
            the providers actually called
        """
        remaining = list(dict.fromkeys(items))
        resolution: Resolution[T] = Resolution()

        for provider in dict.fromkeys(providers):
            if not remaining:
                break

            adapter = self._available(provider, remaining, resolution.errors)
            if adapter is None:
                continue
            resolution.providers_tried.append(provider)

            size = adapter.max_batch_size or len(remaining)
            batches = [remaining[i:i + size] for i in range(0, len(remaining), size)]
            for batch in batches:
                try:
                    result = await self._call(
                        provider, adapter.request_cost(batch), lambda: fetch(adapter, batch)
                    )
                except ProviderError as e:
                    resolution.errors.append(e.to_failure(list(remaining)))
                    break

                wanted = set(batch)
                for record in result.items:
                    key = key_of(record)
                    if key in wanted and key in remaining:
                        resolution.results.append(record)
                        remaining.remove(key)
                resolution.errors.extend(result.failures)

        if remaining:
            logger.debug(f"Unresolved after {resolution.providers_tried}: {remaining}")
        return resolution

    async def resolve_single(
        self,
        label: str,
        providers: Sequence[str],
        fetch: SingleFetch,
    ) -> Resolution[T]:
        """
        Resolve a single request (chart, news, search) across providers.

        The first provider returning a non-empty list wins. A provider that
        answers with an empty list does not stop the search but marks the
        resolution as ``answered_empty``.
        """
        resolution: Resolution[T] = Resolution()

        for provider in dict.fromkeys(providers):
            adapter = self._available(provider, [label], resolution.errors)
            if adapter is None:
                continue
            resolution.providers_tried.append(provider)

            try:
                records = await self._call(provider, 1, lambda: fetch(adapter))
            except ProviderError as e:
                resolution.errors.append(e.to_failure([label]))
                continue

            if records:
                resolution.results = list(records)
                return resolution
            resolution.answered_empty = True

        return resolution

    def get_health_status(self) -> Dict[str, Dict[str, Any]]:
        return {provider: self.health(provider).get_health_status() for provider in self.adapters}
