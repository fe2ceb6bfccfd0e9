"""Retry with exponential backoff for HTTP requests."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from jota_adapters.errors import NetworkError, NetworkErrorCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry configuration for network requests.

    Attributes:
        max_attempts: Total attempts including the first one.
        delay_ms: Delay before the first retry.
        backoff_factor: Multiplier applied to the delay after each retry.
    """

    max_attempts: int = 3
    delay_ms: float = 1000.0
    backoff_factor: float = 2.0


def _is_transient_error(exc: BaseException) -> bool:
    """Check if an exception represents a transient error.

    Transient errors are those that may succeed on retry:
    - NetworkError with TIMEOUT or NETWORK_ERROR
    - httpx transport errors (connect, read, write, pool)
    - built-in connection and timeout errors

    Args:
        exc: The exception to check.

    Returns:
        bool: True if the error is transient and worth retrying.
    """
    if isinstance(exc, NetworkError):
        return exc.code in (NetworkErrorCode.TIMEOUT, NetworkErrorCode.NETWORK_ERROR)

    if isinstance(exc, httpx.TransportError):
        return True

    return isinstance(exc, ConnectionError | TimeoutError)


def is_retryable_status(status: int) -> bool:
    """Whether an HTTP status is worth retrying (any 5xx and 429)."""
    return status == 429 or 500 <= status < 600


class RetryPolicy:
    """
    Retry policy with exponential backoff and optional jitter.

    Formula:
        delay = delay_ms × backoff_factor^retry ± jitter

    Args:
        config: RetryConfig instance with retry parameters.
        is_transient: Callable to determine if an error is transient.
        jitter_factor: Fraction of the delay used as a random +/- range.

    Example:
        ```python
        policy = RetryPolicy(RetryConfig(max_attempts=3, delay_ms=200))
        response = await policy.execute(
            send, should_retry=lambda r: is_retryable_status(r.status)
        )
        ```
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        is_transient: Callable[[BaseException], bool] | None = None,
        *,
        jitter_factor: float = 0.0,
    ) -> None:
        self._config = config or RetryConfig()
        self._is_transient = is_transient or _is_transient_error
        self._max_attempts = max(1, int(self._config.max_attempts))
        self._jitter_factor = float(jitter_factor)

    @property
    def max_attempts(self) -> int:
        """Total number of attempts including the initial request."""
        return self._max_attempts

    def _calculate_delay(self, retry: int) -> float:
        """Calculate the delay before a retry.

        Args:
            retry: Retry number (0 for the first retry).

        Returns:
            float: Delay in seconds.
        """
        base_delay = self._config.delay_ms * (self._config.backoff_factor**retry)

        jitter_range = base_delay * self._jitter_factor
        delay_ms = base_delay + random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay_ms) / 1000.0

    async def execute[T](
        self,
        func: Callable[[], Awaitable[T]],
        should_retry: Callable[[T], bool] | None = None,
    ) -> T:
        """Execute a function with retry logic.

        A transient exception is retried until attempts run out, then
        re-raised as is. A result for which ``should_retry`` is true is
        retried likewise; the last such result is returned.

        Args:
            func: Callable returning an awaitable.
            should_retry: Predicate marking a result as worth retrying.

        Returns:
            T: Result of the last attempt.
        """
        for attempt in range(self._max_attempts):
            last_attempt = attempt >= self._max_attempts - 1
            try:
                result = await func()
            except Exception as exc:
                if not self._is_transient(exc) or last_attempt:
                    raise
                reason = repr(exc)
            else:
                if should_retry is None or last_attempt or not should_retry(result):
                    return result
                reason = "retryable result"

            delay = self._calculate_delay(attempt)
            logger.debug(
                "Attempt %d/%d failed (%s), retrying in %.3fs",
                attempt + 1,
                self._max_attempts,
                reason,
                delay,
            )
            await asyncio.sleep(delay)

        raise AssertionError("unreachable")
