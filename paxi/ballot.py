"""Ballot numbers: a 32-bit counter above a 16-bit zone and 16-bit node."""

from __future__ import annotations

from paxi import log
from paxi.ident import ID, _parse_uint, new_id

_MASK64 = (1 << 64) - 1


class Ballot(int):
    """Ballot number; compares as an unsigned 64-bit integer."""

    __slots__ = ()

    def n(self) -> int:
        """The counter in the upper 32 bits."""
        return int(self) >> 32

    def id(self) -> ID:
        """The node id held in the lower 32 bits."""
        return new_id((int(self) & 0xFFFFFFFF) >> 16, int(self) & 0xFFFF)

    def next(self, node_id: ID | str) -> Ballot:
        """The following ballot, owned by node_id."""
        return new_ballot(self.n() + 1, node_id)

    def __str__(self) -> str:
        return f"{self.n()}.{self.id()}"

    def __repr__(self) -> str:
        return f"Ballot({self})"


def new_ballot(n: int, node_id: ID | str) -> Ballot:
    """Build a ballot <n, zone, node>."""
    ident = ID(node_id)
    return Ballot(((n << 32) | (ident.zone() << 16) | ident.node()) & _MASK64)


def ballot_from_string(text: str) -> Ballot:
    """Parse "n.zone.node"; a counter that cannot be parsed reads as 0."""
    if "." in text:
        counter, ident = text.split(".", 1)
    else:
        counter, ident = text, ""
    n = _parse_uint(counter)
    if n is None:
        log.error("Failed to convert counter %s to uint64", counter)
        n = 0
    return new_ballot(n, ID(ident))


def next_ballot(ballot: int, node_id: ID | str) -> int:
    """The next ballot number after ballot, owned by node_id."""
    ident = ID(node_id)
    low = (ident.zone() << 16) | ident.node()
    return (((ballot >> 32) + 1) << 32) | low


def leader_id(ballot: int) -> ID:
    """The node id that owns the given ballot number."""
    return new_id((ballot & 0xFFFFFFFF) >> 16, ballot & 0xFFFF)