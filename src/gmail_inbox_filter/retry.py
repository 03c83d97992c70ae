"""Bounded exponential backoff for provider calls."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from tenacity import RetryCallState, Retrying, before_sleep_log, retry_if_exception, stop_after_attempt

from .constants import BASE_DELAY, MAX_RETRIES
from .errors import is_rate_limited, is_retryable
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, rate_limited: bool) -> float:
    """Delay before the retry that follows the given zero-based attempt.

    Rate-limit rejections back off four times harder than other failures.
    """
    if rate_limited:
        return base_delay * 2 ** (attempt + 2)
    return base_delay * 2**attempt


class RetryPolicy:
    """Retry transient failures; let authorization and not-found errors through at once.

    Operations passed to ``execute`` may run more than once, so they must be
    safe to repeat.
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def execute(
        self,
        operation: Callable[[], T],
        max_retries: int | None = None,
        base_delay: float | None = None,
    ) -> T:
        """Run ``operation``, retrying retryable failures; re-raise the last failure."""
        retries = self.max_retries if max_retries is None else max_retries
        delay = self.base_delay if base_delay is None else base_delay

        def _wait(retry_state: RetryCallState) -> float:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            attempt = retry_state.attempt_number - 1
            return backoff_delay(attempt, delay, exc is not None and is_rate_limited(exc))

        retrying = Retrying(
            retry=retry_if_exception(is_retryable),
            wait=_wait,
            stop=stop_after_attempt(retries + 1),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(operation)


def throttled(limiter: RateLimiter, policy: RetryPolicy, operation: Callable[[], T]) -> T:
    """Take a rate-limit permit, then run ``operation`` under the retry policy."""
    limiter.wait()
    return policy.execute(operation)
