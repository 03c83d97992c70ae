"""Fixed-rate throttle shared by every outbound Gmail call."""

from __future__ import annotations

import threading
import time
from typing import Callable

from .constants import REQUESTS_PER_SECOND


class RateLimiter:
    """Allow at most ``requests_per_second`` permits per second.

    One instance is shared by all worker threads. Each ``wait()`` reserves the
    next free slot under a lock, then sleeps outside the lock until that slot
    arrives, so concurrent callers are spaced out rather than released together.
    """

    def __init__(
        self,
        requests_per_second: float = REQUESTS_PER_SECOND,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.min_interval = 1.0 / requests_per_second
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_permit: float | None = None

    def wait(self) -> None:
        """Block until the caller may make its next request."""
        with self._lock:
            now = self._clock()
            if self._last_permit is None:
                slot = now
            else:
                slot = max(now, self._last_permit + self.min_interval)
            self._last_permit = slot
        delay = slot - now
        if delay > 0:
            self._sleep(delay)
