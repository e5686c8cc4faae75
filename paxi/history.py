"""Client operation history, its CSV files and the checker command."""

from __future__ import annotations

import argparse
import csv
import os
import re
import threading
from typing import Any, Sequence

from paxi import log
from paxi.checker import Checker
from paxi.operation import Operation

_FORMAT_ERROR = "operation history file format error"
_INT = re.compile(r"[+-]?[0-9]+")


def _parse_int(text: str) -> int:
    if _INT.fullmatch(text) is None:
        raise ValueError(f"invalid integer {text!r}")
    return int(text)


def _cell_value(text: str) -> str | None:
    return None if text in ("", "null") else text


def _render(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class History:
    """Operations grouped by key, plus the list of all of them in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.shard: dict[int, list[Operation]] = {}
        self.operations: list[Operation] = []

    def add(
        self,
        key: int,
        input_value: Any,
        output_value: Any,
        start: int,
        end: int,
    ) -> None:
        """Record an operation on key."""
        self.add_operation(key, Operation(key, input_value, output_value, start, end))

    def add_operation(self, key: int, op: Operation) -> None:
        with self._lock:
            self.shard.setdefault(key, []).append(op)
            self.operations.append(op)

    def linearizable(self) -> int:
        """Total number of anomalous reads over all keys."""
        with self._lock:
            return sum(
                len(Checker().linearizable(partition))
                for partition in self.shard.values()
            )

    def write_file(self, path: str | os.PathLike) -> None:
        """Write every operation, by start time, to <path>.csv."""
        with self._lock:
            self.operations.sort(key=lambda o: o.start)
            with open(f"{os.fspath(path)}.csv", "w", encoding="utf-8") as f:
                for op in self.operations:
                    start = op.start / 1_000_000_000.0
                    end = op.end / 1_000_000_000.0
                    f.write(
                        f"{op.key},{_render(op.input)},{_render(op.output)},"
                        f"{start:f},{end:f}\n"
                    )

    def read_file(self, path: str | os.PathLike) -> None:
        """Load records "shard,key,input,output,start,end" from a CSV file."""
        with open(path, newline="", encoding="utf-8") as f:
            for record in csv.reader(f):
                if len(record) < 6:
                    raise ValueError(_FORMAT_ERROR)
                shard_key = _parse_int(record[0])
                try:
                    key = _parse_int(record[1])
                except ValueError:
                    key = 0
                op = Operation(
                    key=key,
                    input=_cell_value(record[2]),
                    output=_cell_value(record[3]),
                    start=_parse_int(record[4]),
                    end=_parse_int(record[5]),
                )
                self.add_operation(shard_key, op)


def main(argv: Sequence[str] | None = None) -> int:
    """Read an operation history file and print the number of anomalous reads."""
    parser = argparse.ArgumentParser(
        prog="paxi-checker",
        description="Check an operation history for linearizability.",
    )
    parser.add_argument(
        "-log", "--log", dest="log_file", default="log.csv",
        help="operation history CSV file",
    )
    args = parser.parse_args(argv)

    history = History()
    try:
        history.read_file(args.log_file)
    except (OSError, ValueError) as exc:
        log.error("%s", exc)
        return 1
    print(history.linearizable())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())