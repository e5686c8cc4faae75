"""Client operations recorded for linearizability checking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class Operation:
    """One client operation; reads have no input, writes have no output.

    Instances compare and hash by identity so they can serve as graph vertices.
    """

    key: int = 0
    input: Any = None
    output: Any = None
    start: int = 0
    end: int = 0

    def happen_before(self, other: Operation) -> bool:
        return self.end < other.start

    def concurrent(self, other: Operation) -> bool:
        return not self.happen_before(other) and not other.happen_before(self)

    def equal(self, other: Operation) -> bool:
        return (
            self.input == other.input
            and self.output == other.output
            and self.start == other.start
            and self.end == other.end
        )

    def __str__(self) -> str:
        return (
            f"{{input={self.input}, output={self.output}, "
            f"start={self.start}, end={self.end}}}"
        )