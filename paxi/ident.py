"""Node identifiers of the form zone.node."""

from __future__ import annotations

import re

from paxi import log

_UINT = re.compile(r"[0-9]+")
_UINT64_MAX = (1 << 64) - 1


def _parse_uint(text: str) -> int | None:
    """Parse an unsigned decimal number; None if it is not one."""
    if _UINT.fullmatch(text) is None:
        return None
    value = int(text)
    return value if value <= _UINT64_MAX else None


class ID(str):
    """Identifier "zone.node"; a part that cannot be parsed reads as 0."""

    __slots__ = ()

    def zone(self) -> int:
        """The zone part, or 0 when the id has no zone."""
        if "." not in self:
            log.warning('id %s does not contain "."', self)
            return 0
        text = self.split(".")[0]
        value = _parse_uint(text)
        if value is None:
            log.error("Failed to convert Zone %s to int", text)
            return 0
        return value

    def node(self) -> int:
        """The node part; an id without a dot is taken as a node number."""
        if "." not in self:
            log.warning('id %s does not contain "."', self)
            text = str(self)
        else:
            text = self.split(".")[1]
        value = _parse_uint(text)
        if value is None:
            log.error("Failed to convert Node %s to int", text)
            return 0
        return value

    def sort_key(self) -> tuple[int, int]:
        """Order ids by zone, then by node."""
        return (self.zone(), self.node())


def new_id(zone: int, node: int) -> ID:
    """Build an ID from zone and node numbers; signs are dropped."""
    return ID(f"{abs(zone)}.{abs(node)}")