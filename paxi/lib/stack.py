"""Last-in first-out stack."""

from __future__ import annotations

from typing import Any


class Stack:
    """A simple stack; pop and peek on an empty stack give None."""

    def __init__(self) -> None:
        self._items: list[Any] = []

    def __len__(self) -> int:
        return len(self._items)

    def push(self, value: Any) -> None:
        self._items.append(value)

    def pop(self) -> Any:
        """Remove and return the top item, or None if empty."""
        return self._items.pop() if self._items else None

    def peek(self) -> Any:
        """Return the top item without removing it, or None if empty."""
        return self._items[-1] if self._items else None

    def empty(self) -> bool:
        return not self._items