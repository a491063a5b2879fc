"""
Fault-tolerance helpers shared by the service and the portal client.

``db_circuit_breaker`` guards every repository call.  After
``CB_FAILURE_THRESHOLD`` consecutive connection failures it opens and
requests get a 503 without touching the database; once
``CB_RECOVERY_TIMEOUT`` has passed a single trial call is let through and
its outcome closes or re-opens the circuit::

    CLOSED ──(threshold failures)──▶ OPEN ──(timeout)──▶ HALF_OPEN
      ▲                                                     │
      └──────────────────(trial succeeds)───────────────────┘

``retry_with_backoff`` is used by the portal client for idempotent reads
(pending list, current rate).  Submissions and review actions are never
retried automatically.
"""

import asyncio
import functools
import logging
import random
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, Optional, Tuple, Type

from investor_portal.core.config import settings

logger = logging.getLogger(__name__)

CONNECTION_ERRORS: Tuple[Type[Exception], ...] = (ConnectionError, OSError, TimeoutError)


# ────────────────────────────────────────────────────────────────────────────
# Circuit Breaker
# ────────────────────────────────────────────────────────────────────────────


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """A call was refused because the circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{name}' is open; retry after {retry_after:.1f}s"
        )


class CircuitBreaker:
    """
    Async circuit breaker.

    Only ``expected_exceptions`` count as failures.  Anything else (an
    ``IntegrityError``, a domain exception) passes through untouched, so a
    burst of bad input can never take the database offline for everyone.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = CONNECTION_ERRORS,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._success_count = 0

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self.seconds_until_retry() == 0:
            self._state = CircuitState.HALF_OPEN
            logger.info("Circuit '%s' half-open; allowing a trial call", self.name)
        return self._state

    def seconds_until_retry(self) -> float:
        """Remaining OPEN time; 0 when a trial call may be attempted."""
        if self._state != CircuitState.OPEN:
            return 0.0
        remaining = self.recovery_timeout - (time.monotonic() - self._last_failure_time)
        return max(remaining, 0.0)

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0

    def _on_success(self) -> None:
        if self._state is not CircuitState.CLOSED:
            logger.info("Circuit '%s' closed after %d failures", self.name, self._failure_count)
        self._success_count += 1
        self.reset()

    def _on_failure(self, exc: Exception) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        # A failed trial call re-opens immediately.
        if self._state is CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                "Circuit '%s' opened after %d consecutive failures (last: %s: %s)",
                self.name,
                self._failure_count,
                type(exc).__name__,
                exc,
            )
        else:
            logger.warning(
                "Circuit '%s' failure %d/%d: %s",
                self.name,
                self._failure_count,
                self.failure_threshold,
                exc,
            )

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Await ``func(*args, **kwargs)``, or raise :class:`CircuitBreakerError` while open."""
        if self.state is CircuitState.OPEN:
            raise CircuitBreakerError(self.name, self.seconds_until_retry())

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions as exc:
            self._on_failure(exc)
            raise
        self._on_success()
        return result

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "retry_after_s": round(self.seconds_until_retry(), 1),
        }


db_circuit_breaker = CircuitBreaker(
    name="database",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
)


# ────────────────────────────────────────────────────────────────────────────
# Retry with Exponential Backoff
# ────────────────────────────────────────────────────────────────────────────


def backoff_delays(
    retries: int, base_delay: float, max_delay: float, jitter: bool = True
) -> Iterator[float]:
    """Sleep durations before each retry: doubling, capped, plus up to 50% jitter."""
    delay = base_delay
    for _ in range(retries):
        capped = min(delay, max_delay)
        yield capped + (random.uniform(0, capped / 2) if jitter else 0.0)
        delay *= 2


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = CONNECTION_ERRORS,
) -> Callable:
    """
    Decorator: retry an async function on ``retryable_exceptions``.

    ``max_retries`` counts retries after the first attempt; other exceptions
    propagate at once.  Example::

        fetch = retry_with_backoff(max_retries=2,
                                   retryable_exceptions=(httpx.TransportError,))(fetch)
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delays = backoff_delays(max_retries, base_delay, max_delay, jitter)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    delay: Optional[float] = next(delays, None)
                    if delay is None:
                        logger.error(
                            "%s failed after %d attempts: %s: %s",
                            func.__qualname__,
                            attempt,
                            type(exc).__name__,
                            exc,
                        )
                        raise
                    logger.warning(
                        "%s attempt %d failed (%s: %s); retrying in %.2fs",
                        func.__qualname__,
                        attempt,
                        type(exc).__name__,
                        exc,
                        delay,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
