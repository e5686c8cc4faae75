"""Key-value commands and the multi-version database they run against."""

from __future__ import annotations

import base64
import hashlib
import json
import struct
import threading
from dataclasses import dataclass
from typing import Iterable

from paxi.config import get_config
from paxi.ident import ID


@dataclass(frozen=True)
class Command:
    """A read (no value) or a write of one key."""

    key: int = 0
    value: bytes | None = None
    client_id: ID = ID("")
    command_id: int = 0

    def empty(self) -> bool:
        """True for the zero command."""
        return (
            self.key == 0
            and self.value is None
            and self.client_id == ""
            and self.command_id == 0
        )

    def is_read(self) -> bool:
        return self.value is None

    def is_write(self) -> bool:
        return self.value is not None

    def equal(self, other: Command) -> bool:
        """Compare commands; a missing value equals an empty one."""
        return (
            self.key == other.key
            and (self.value or b"") == (other.value or b"")
            and self.client_id == other.client_id
            and self.command_id == other.command_id
        )

    def __str__(self) -> str:
        if self.value is None:
            return f"Get{{key={self.key} id={self.client_id} cid={self.command_id}}}"
        return (
            f"Put{{key={self.key} value={self.value.hex()} "
            f"id={self.client_id} cid={self.command_id}"
        )

    def digest(self) -> str:
        """Base64 SHA-1 of the key (little-endian 32-bit) followed by the value."""
        h = hashlib.sha1(struct.pack("<I", self.key & 0xFFFFFFFF))
        h.update(self.value or b"")
        return base64.b64encode(h.digest()).decode("ascii")


class Database:
    """Thread-safe key-value store that can keep every written value per key."""

    def __init__(self, multiversion: bool | None = None) -> None:
        if multiversion is None:
            multiversion = get_config().multiversion
        self._lock = threading.RLock()
        self._data: dict[int, bytes] = {}
        self._version = 0
        self._multiversion = multiversion
        self._history: dict[int, list[bytes]] = {}

    def execute(self, command: Command) -> bytes | None:
        """Apply the command and return the value held before it."""
        with self._lock:
            previous = self._data.get(command.key)
            self._put(command.key, command.value)
            return previous

    def get(self, key: int) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def _put(self, key: int, value: bytes | None) -> None:
        if value is None:
            return
        self._data[key] = value
        self._version += 1
        if self._multiversion:
            self._history.setdefault(key, []).append(value)

    def put(self, key: int, value: bytes | None) -> None:
        """Store value under key; a missing value is ignored."""
        with self._lock:
            self._put(key, value)

    def version(self, key: int) -> int:
        """Number of writes applied to the database."""
        with self._lock:
            return self._version

    def history(self, key: int) -> list[bytes]:
        """All values written to key, oldest first (multi-version mode only)."""
        with self._lock:
            return list(self._history.get(key, ()))

    def __str__(self) -> str:
        with self._lock:
            data = {
                str(k): base64.b64encode(self._data[k]).decode("ascii")
                for k in sorted(self._data, key=str)
            }
        return json.dumps(data, separators=(",", ":"))


def conflict(gamma: Command, delta: Command) -> bool:
    """True if reordering the two commands could change the resulting state."""
    return gamma.key == delta.key and (not gamma.is_read() or not delta.is_read())


def conflict_batch(batch1: Iterable[Command], batch2: Iterable[Command]) -> bool:
    """True if any command of one batch conflicts with any of the other."""
    second = list(batch2)
    return any(conflict(a, b) for a in batch1 for b in second)