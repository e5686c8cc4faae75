"""Latency statistics for benchmark runs."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable


def _format_float(value: float) -> str:
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


@dataclass
class Stat:
    """Summary of latencies in milliseconds."""

    data: list[float] = field(default_factory=list)
    size: int = 0
    mean: float = 0.0
    min: float = 0.0
    max: float = 0.0
    median: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    p999: float = 0.0

    def write_file(self, path: str | os.PathLike) -> None:
        """Write every latency sample, one per line."""
        with open(path, "w", encoding="utf-8") as f:
            for value in self.data:
                f.write(_format_float(value) + "\n")

    def __str__(self) -> str:
        return (
            f"size = {self.size}\n"
            f"mean = {self.mean:f}\n"
            f"min = {self.min:f}\n"
            f"max = {self.max:f}\n"
            f"median = {self.median:f}\n"
            f"p95 = {self.p95:f}\n"
            f"p99 = {self.p99:f}\n"
            f"p999 = {self.p999:f}\n"
        )


def statistic(latencies: Iterable[int]) -> Stat:
    """Build a Stat from latencies given in nanoseconds."""
    ms = sorted(n / 1_000_000.0 for n in latencies)
    if not ms:
        raise ValueError("no latency data")
    size = len(ms)
    return Stat(
        data=ms,
        size=size,
        mean=sum(ms) / size,
        min=ms[0],
        max=ms[-1],
        median=ms[int(0.5 * size)],
        p95=ms[int(0.95 * size)],
        p99=ms[int(0.99 * size)],
        p999=ms[int(0.999 * size)],
    )