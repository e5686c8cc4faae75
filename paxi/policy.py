"""Access-pattern policies that suggest when data should migrate."""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from typing import Callable

from paxi.config import Config, get_config
from paxi.ident import ID, new_id


class Policy(ABC):
    """Watches accesses and names a node when ownership should move."""

    @abstractmethod
    def hit(self, node_id: ID | str) -> ID | None:
        """Record an access from node_id; return the suggested owner or None."""


class NullPolicy(Policy):
    """Never suggests a move."""

    def hit(self, node_id: ID | str) -> ID | None:
        return None


class ConsecutivePolicy(Policy):
    """Suggests a node after n consecutive accesses from it."""

    def __init__(self, n: int) -> None:
        self.n = n
        self._last: ID | None = None
        self._hits = 0

    def hit(self, node_id: ID | str) -> ID | None:
        ident = ID(node_id)
        if ident == self._last:
            self._hits += 1
        else:
            self._last = ident
            self._hits = 1
        if self._hits >= self.n:
            result = self._last
            self._last = None
            self._hits = 0
            return result
        return None


class MajorityPolicy(Policy):
    """At the end of each interval, suggests a node with half or more of its accesses."""

    def __init__(
        self, interval: int, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._hits: dict[ID, int] = {}
        self._sum = 0
        self._start = clock()

    def hit(self, node_id: ID | str) -> ID | None:
        ident = ID(node_id)
        self._hits[ident] = self._hits.get(ident, 0) + 1
        self._sum += 1
        result = None
        if self._sum > 1 and self._clock() - self._start >= self.interval:
            for candidate, n in self._hits.items():
                if n >= self._sum // 2:
                    result = candidate
            self._reset()
        return result

    def _reset(self) -> None:
        self._hits = dict.fromkeys(self._hits, 0)
        self._sum = 0
        self._start = self._clock()


def _round(x: float) -> int:
    """Round half away from zero."""
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


class EmaPolicy(Policy):
    """Exponential moving average of accessing zones; suggests a new zone when it settles."""

    def __init__(self, alpha: float, epsilon: float = 0.1) -> None:
        self.alpha = alpha
        self.epsilon = epsilon
        self._s = 0.0
        self._zone = 0

    def hit(self, node_id: ID | str) -> ID | None:
        zone = ID(node_id).zone()
        if self._s == 0:
            self._s = float(zone)
            return None
        self._s = self.alpha * zone + (1 - self.alpha) * self._s
        if abs(self._s - _round(self._s)) > self.epsilon:
            return None
        z = _round(self._s)
        if z != self._zone:
            self._zone = z
            return new_id(z, 1)
        return None


def new_policy(config: Config | None = None) -> Policy:
    """Build the policy named in the configuration."""
    config = config if config is not None else get_config()
    name = config.policy
    if name in ("", "null"):
        return NullPolicy()
    if name == "consecutive":
        return ConsecutivePolicy(int(config.threshold))
    if name == "majority":
        return MajorityPolicy(int(config.threshold))
    if name == "ema":
        return EmaPolicy(config.threshold)
    raise ValueError(f"unknown policy name {name}")