"""Directed graph over hashable vertices."""

from __future__ import annotations

from collections import deque
from enum import Enum
from itertools import count
from typing import Hashable, Iterator


class _Color(Enum):
    WHITE = 0  # unvisited
    GRAY = 1  # on the current search path
    BLACK = 2  # finished


class Graph:
    """Directed graph keeping both outgoing and incoming adjacency."""

    def __init__(self) -> None:
        self._vertices: dict[Hashable, None] = {}
        self._out: dict[Hashable, dict[Hashable, None]] = {}
        self._in: dict[Hashable, dict[Hashable, None]] = {}

    def __len__(self) -> int:
        return len(self._vertices)

    def __contains__(self, v: Hashable) -> bool:
        return v in self._vertices

    def __iter__(self) -> Iterator[Hashable]:
        return iter(list(self._vertices))

    def add(self, v: Hashable) -> None:
        """Add a vertex if it is not present yet."""
        if v not in self._vertices:
            self._vertices[v] = None
            self._out[v] = {}
            self._in[v] = {}

    def remove(self, v: Hashable) -> None:
        """Remove a vertex and every edge touching it."""
        if v not in self._vertices:
            return
        del self._vertices[v]
        for u in self._vertices:
            self._out[u].pop(v, None)
            self._in[u].pop(v, None)
        del self._out[v]
        del self._in[v]

    def add_edge(self, source: Hashable, target: Hashable) -> None:
        """Add an edge, adding missing vertices; self edges are rejected."""
        if source == target:
            raise ValueError("graph: adding self edge")
        self.add(source)
        self.add(target)
        self._out[source][target] = None
        self._in[target][source] = None

    def remove_edge(self, source: Hashable, target: Hashable) -> None:
        if source not in self._vertices or target not in self._vertices:
            return
        self._out[source].pop(target, None)
        self._in[target].pop(source, None)

    def vertices(self) -> list[Hashable]:
        """All vertices in insertion order."""
        return list(self._vertices)

    def successors(self, v: Hashable) -> set[Hashable]:
        """Vertices reachable from v by one edge."""
        return set(self._out.get(v, ()))

    def predecessors(self, v: Hashable) -> set[Hashable]:
        """Vertices with an edge to v."""
        return set(self._in.get(v, ()))

    def _breadth_first(self, v: Hashable, adjacency: dict) -> list[Hashable]:
        result = []
        visited = {v}
        queue = deque([v])
        while queue:
            s = queue.popleft()
            result.append(s)
            for t in adjacency.get(s, ()):
                if t not in visited:
                    visited.add(t)
                    queue.append(t)
        return result

    def bfs(self, v: Hashable) -> list[Hashable]:
        """Breadth first order of vertices reachable from v."""
        return self._breadth_first(v, self._out)

    def bfs_reverse(self, v: Hashable) -> list[Hashable]:
        """Breadth first order following edges backwards from v."""
        return self._breadth_first(v, self._in)

    def dfs(self, v: Hashable) -> list[Hashable]:
        """Depth first order of vertices reachable from v."""
        result = []
        visited: set[Hashable] = set()
        stack = [v]
        while stack:
            s = stack.pop()
            if s not in visited:
                visited.add(s)
                result.append(s)
            stack.extend(i for i in self._out.get(s, ()) if i not in visited)
        return result

    def transpose(self) -> Graph:
        """A new graph with every edge reversed."""
        t = Graph()
        for v in self._vertices:
            t._vertices[v] = None
            t._out[v] = dict(self._in[v])
            t._in[v] = dict(self._out[v])
        return t

    def _visit(self, start: Hashable, colors: dict) -> bool:
        colors[start] = _Color.GRAY
        work = [(start, iter(list(self._out[start])))]
        while work:
            v, it = work[-1]
            for u in it:
                color = colors.get(u, _Color.WHITE)
                if color is _Color.GRAY:
                    return True
                if color is _Color.WHITE:
                    colors[u] = _Color.GRAY
                    work.append((u, iter(list(self._out[u]))))
                    break
            else:
                colors[v] = _Color.BLACK
                work.pop()
        return False

    def cyclic(self) -> bool:
        """True if the graph contains a cycle."""
        return bool(self.cycle())

    def cycle(self) -> list[Hashable]:
        """Vertices on the search path when the first cycle is found; empty if acyclic."""
        colors = {v: _Color.WHITE for v in self._vertices}
        for v in self._vertices:
            if colors[v] is _Color.WHITE and self._visit(v, colors):
                return [u for u, c in colors.items() if c is _Color.GRAY]
        return []

    def scc(self) -> list[list[Hashable]]:
        """Strongly connected components, by Tarjan's algorithm."""
        counter = count()
        index: dict[Hashable, int] = {}
        low: dict[Hashable, int] = {}
        on_stack: set[Hashable] = set()
        stack: list[Hashable] = []
        output: list[list[Hashable]] = []

        for root in self._vertices:
            if root in index:
                continue
            work = []

            def start(v: Hashable) -> None:
                index[v] = low[v] = next(counter)
                stack.append(v)
                on_stack.add(v)
                work.append((v, iter(list(self._out[v]))))

            start(root)
            while work:
                v, it = work[-1]
                descended = False
                for w in it:
                    if w not in index:
                        start(w)
                        descended = True
                        break
                    if w in on_stack:
                        low[v] = min(low[v], index[w])
                if descended:
                    continue
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[v])
                if low[v] == index[v]:
                    component = []
                    while True:
                        w = stack.pop()
                        on_stack.discard(w)
                        component.append(w)
                        if w == v:
                            break
                    output.append(component)
        return output