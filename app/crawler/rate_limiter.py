"""
Process-wide request rate limiter.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class MinIntervalRateLimiter:
    """
    Enforces a minimum interval between outgoing requests across all threads.
    """

    def __init__(
        self,
        *,
        min_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._min_interval_seconds = max(0.0, min_interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self._last_request: float | None = None
        self._lock = threading.Lock()

    @property
    def min_interval_seconds(self) -> float:
        return self._min_interval_seconds

    def wait(self) -> float:
        """
        Sleep as needed before the next request and return the time slept.
        """

        if self._min_interval_seconds <= 0:
            return 0.0

        with self._lock:
            waited = 0.0
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                wait_seconds = self._min_interval_seconds - elapsed
                if wait_seconds > 0:
                    self._sleep(wait_seconds)
                    waited = wait_seconds
            self._last_request = self._clock()
            return waited
