"""Operation rate limiter."""

from __future__ import annotations

import threading
import time
from typing import Callable

_SECOND = 1_000_000_000


class Limiter:
    """Spaces calls to wait() so that at most `rate` happen per second.

    Time spent away from wait() is credited, up to ten intervals.
    """

    def __init__(
        self,
        rate: int,
        *,
        clock: Callable[[], int] = time.monotonic_ns,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._interval = _SECOND // rate
        self._slack = -(10 * _SECOND // rate)
        self._pending = 0
        self._last: int | None = None

    def wait(self) -> None:
        """Block until the next operation is allowed."""
        with self._lock:
            now = self._clock()
            if self._last is None:
                self._last = now
                return
            self._pending += self._interval - (now - self._last)
            if self._pending < self._slack:
                self._pending = self._slack
            if self._pending > 0:
                self._sleep(self._pending / _SECOND)
                self._last = now + self._pending
                self._pending = 0
            else:
                self._last = now