"""Linearizability checker over a history of reads and writes on one key."""

from __future__ import annotations

from typing import Iterable

from paxi.lib.graph import Graph
from paxi.operation import Operation


class Checker:
    """Builds a happen-before graph and looks for cycles caused by stale reads."""

    def __init__(self) -> None:
        self.graph = Graph()

    def add(self, op: Operation) -> None:
        """Add op with an edge from every operation that happened before it."""
        if op in self.graph:
            return
        self.graph.add(op)
        for v in self.graph.vertices():
            if v is not op and v.happen_before(op):
                self.graph.add_edge(v, op)

    def remove(self, op: Operation) -> None:
        self.graph.remove(op)

    def clear(self) -> None:
        self.graph = Graph()

    def match(self, read: Operation) -> Operation | None:
        """The first operation whose input is the value the read returned."""
        for v in self.graph.vertices():
            if read.output == v.input:
                return v
        return None

    def merge(self, read: Operation, write: Operation) -> None:
        """Fold read into its matching write, which inherits its incoming edges."""
        for s in self.graph.predecessors(read):
            if s is not write:
                self.graph.add_edge(s, write)
        if read.end < write.end:
            write.end = read.end
        self.graph.remove(read)

    def linearizable(self, history: Iterable[Operation]) -> list[Operation]:
        """Return the reads that break linearizability."""
        self.clear()
        ops = sorted(history, key=lambda o: o.start)
        anomalies: list[Operation] = []
        for i, op in enumerate(ops):
            self.add(op)
            if op.input is not None:
                continue
            for later in ops[i + 1 :]:
                if not op.concurrent(later):
                    break
                if later.output is None:
                    self.add(later)

            write = self.match(op)
            if write is not None:
                self.merge(op, write)

            cycle = self.graph.cycle()
            if cycle:
                anomalies.append(op)
                for u in cycle:
                    for v in cycle:
                        if v in self.graph.successors(u) and u.start > v.end:
                            self.graph.remove_edge(u, v)
        return anomalies