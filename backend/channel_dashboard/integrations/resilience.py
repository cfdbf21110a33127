"""Resilience helpers for Google API calls.

One circuit breaker per upstream API, shared by every connected channel, and
exponential-backoff retries for throttling, 5xx and transport failures.

Client errors (4xx other than 429) belong to a single channel's credential or
permissions, so they neither trip a breaker nor get retried.
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_upstream_fault(exc: BaseException) -> bool:
    """True when ``exc`` says the API itself is unhealthy rather than one caller."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.TransportError, asyncio.TimeoutError))


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when a circuit breaker is open and blocking requests."""


class CircuitBreaker:
    """Stops calling an upstream API that keeps failing.

    ``failure_threshold`` consecutive upstream faults open the circuit for
    ``open_timeout`` seconds; the first call after that is a trial which
    closes it again on success and reopens it on failure.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        open_timeout: float = 30.0,
        counts_as_failure: Callable[[BaseException], bool] = is_upstream_fault,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.open_timeout = open_timeout
        self.counts_as_failure = counts_as_failure

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: float = 0

    def _should_allow(self) -> bool:
        if self.state != CircuitState.OPEN:
            return True
        if time.time() - self.last_failure_time < self.open_timeout:
            return False
        self.state = CircuitState.HALF_OPEN
        logger.info("Circuit %s: OPEN → HALF_OPEN", self.name)
        return True

    def record_success(self):
        if self.state == CircuitState.HALF_OPEN:
            logger.info("Circuit %s: HALF_OPEN → CLOSED", self.name)
        self.state = CircuitState.CLOSED
        self.failure_count = 0

    def record_failure(self):
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.OPEN
            logger.warning("Circuit %s: HALF_OPEN → OPEN", self.name)
        elif self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            logger.warning(
                "Circuit %s: CLOSED → OPEN (failures=%d)",
                self.name, self.failure_count,
            )

    async def call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        if not self._should_allow():
            raise CircuitOpenError(f"Circuit '{self.name}' is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            if self.counts_as_failure(exc):
                self.record_failure()
            else:
                # The API answered; a HALF_OPEN trial has succeeded
                self.record_success()
            raise
        self.record_success()
        return result

    def reset(self):
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time = 0


async def retry_with_backoff(
    func: Callable[..., Any],
    *args: Any,
    max_retries: int = 3,
    backoff_base: float = 1.0,
    backoff_factor: float = 2.0,
    **kwargs: Any,
) -> Any:
    """Execute func, retrying upstream faults.

    Delay: backoff_base * (backoff_factor ** attempt) → 1s, 2s, 4s by default.
    """
    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            if not is_upstream_fault(exc):
                raise
            if attempt >= max_retries:
                logger.error("Max retries (%d) exceeded: %s", max_retries, exc)
                raise

            delay = backoff_base * (backoff_factor ** attempt)
            logger.warning(
                "Retry %d/%d after %.1fs: %s",
                attempt + 1, max_retries, delay, exc,
            )
            await asyncio.sleep(delay)
            attempt += 1


# Keyed by upstream API; shared across channels and requests
circuit_breakers: dict[str, CircuitBreaker] = {
    "youtube_analytics": CircuitBreaker("youtube_analytics"),
    "youtube_data": CircuitBreaker("youtube_data"),
    "google_oauth": CircuitBreaker("google_oauth"),
}


def get_circuit_breaker(name: str) -> CircuitBreaker:
    if name not in circuit_breakers:
        circuit_breakers[name] = CircuitBreaker(name)
    return circuit_breakers[name]
