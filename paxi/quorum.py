"""Acknowledgement counting and quorum checks."""

from __future__ import annotations

from paxi.config import Config, get_config
from paxi.ident import ID

X = 2
K = 1


class Quorum:
    """Records acknowledgements and tests them against several quorum kinds."""

    def __init__(self, config: Config | None = None) -> None:
        self._config = config if config is not None else get_config()
        self.size = 0
        self.acks: dict[ID, bool] = {}
        self.zones: dict[int, int] = {}
        self.nacks: dict[ID, bool] = {}

    def ack(self, node_id: ID | str) -> None:
        """Count an acknowledgement from node_id once."""
        ident = ID(node_id)
        if not self.acks.get(ident):
            self.acks[ident] = True
            self.size += 1
            zone = ident.zone()
            self.zones[zone] = self.zones.get(zone, 0) + 1

    def nack(self, node_id: ID | str) -> None:
        self.nacks[ID(node_id)] = True

    def add(self) -> None:
        """Increase the ack count by one without naming a node."""
        self.size += 1

    def reset(self) -> None:
        self.size = 0
        self.acks = {}
        self.zones = {}
        self.nacks = {}

    def all(self) -> bool:
        return self.size == self._config.n()

    def majority(self) -> bool:
        return self.size > self._config.n() // 2

    def majority_x(self) -> bool:
        """Majority plus X acknowledgements."""
        return self.size >= self._config.n() // 2 + X

    def fast_quorum(self) -> bool:
        """Three quarters of the nodes, as in Fast Paxos."""
        return self.size >= self._config.n() * 3 // 4

    def all_zones(self) -> bool:
        """At least one ack from every zone."""
        return len(self.zones) == self._config.z()

    def _majority_zones(self) -> int:
        return sum(
            1 for z, n in self.zones.items() if n > self._config.zone_size(z) // 2
        )

    def zone_majority(self) -> bool:
        """A majority within some zone."""
        return self._majority_zones() > 0

    def grid_row(self) -> bool:
        return self.all_zones()

    def grid_column(self) -> bool:
        """Every node of some zone."""
        return any(n == self._config.zone_size(z) for z, n in self.zones.items())

    def fgrid_q1(self, fz: int) -> bool:
        """Flexible grid quorum for phase 1."""
        return self._majority_zones() >= self._config.z() - fz

    def fgrid_q2(self, fz: int) -> bool:
        """Flexible grid quorum for phase 2."""
        return self._majority_zones() >= fz + 1