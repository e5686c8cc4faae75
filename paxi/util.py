"""Retrying and periodic scheduling helpers."""

from __future__ import annotations

import itertools
import threading
import time
from typing import Callable, TypeVar

T = TypeVar("T")


def retry(func: Callable[[], T], attempts: int, sleep: float) -> T:
    """Call func until it succeeds, at most `attempts` times (at least once).

    Waits sleep * n seconds after the n-th failure. Raises RuntimeError
    chained to the last failure when every attempt fails.
    """
    last: Exception | None = None
    for i in itertools.count():
        try:
            return func()
        except Exception as exc:
            last = exc
        if i >= attempts - 1:
            break
        time.sleep(sleep * (i + 1))
    raise RuntimeError(f"after {attempts} attempts, last error: {last}") from last


def schedule(func: Callable[[], object], delay: float) -> threading.Event:
    """Call func now and then every `delay` seconds until the returned event is set."""
    stop = threading.Event()

    def loop() -> None:
        while True:
            func()
            if stop.wait(delay):
                return

    threading.Thread(target=loop, daemon=True).start()
    return stop