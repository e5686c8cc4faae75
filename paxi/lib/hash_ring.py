"""Consistent hash ring keyed by MD5 digests."""

from __future__ import annotations

import bisect
import hashlib
from typing import Any


def _digest(key: bytes | str) -> bytes:
    if isinstance(key, str):
        key = key.encode()
    return hashlib.md5(key).digest()


class HashRing:
    """Ring of values ordered by the MD5 digest of their keys."""

    def __init__(self) -> None:
        self._hashes: list[bytes] = []
        self._values: list[Any] = []

    def insert(self, value: Any, key: bytes | str) -> None:
        """Place value on the ring at the position of key's digest."""
        h = _digest(key)
        i = bisect.bisect_left(self._hashes, h)
        self._hashes.insert(i, h)
        self._values.insert(i, value)

    def get(self, key: bytes | str) -> Any:
        """Return the value that key belongs to."""
        if not self._values:
            raise LookupError("hash ring is empty")
        h = _digest(key)
        for node_hash, value in zip(self._hashes[:-1], self._values[:-1]):
            if h < node_hash:
                return value
        return self._values[0]

    def next(self, value: Any) -> Any:
        """Return the value after the given one on the ring, or None if absent."""
        for i, v in enumerate(self._values):
            if v == value:
                return self._values[(i + 1) % len(self._values)]
        return None

    def __str__(self) -> str:
        return "".join(f"{v} -> " for v in self._values)