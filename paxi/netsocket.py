"""Messaging between nodes, with fault injection."""

from __future__ import annotations

import random
import threading
from typing import Any, Callable, Mapping

from paxi import log
from paxi.ident import ID
from paxi.transport import Transport, new_transport
from paxi.util import retry


def _after(seconds: float, func: Callable[[], Any]) -> None:
    timer = threading.Timer(seconds, func)
    timer.daemon = True
    timer.start()


class Socket:
    """Sends to and receives from the other nodes of the configuration."""

    def __init__(self, node_id: ID | str, addresses: Mapping[str, str]) -> None:
        self._id = ID(node_id)
        self._addresses = {ID(k): v for k, v in addresses.items()}
        self._lock = threading.RLock()
        self._nodes: dict[ID, Transport] = {}
        self._crashed = False
        self._drop: dict[ID, bool] = {}
        self._slow: dict[ID, int] = {}
        self._flaky: dict[ID, float] = {}

        own = new_transport(self._addresses[self._id])
        own.listen()
        self._nodes[self._id] = own

    def send(self, to: ID | str, message: Any) -> None:
        """Send message to a node unless a fault injection stops it."""
        to = ID(to)
        log.debug("node %s send message %s to %s", self._id, message, to)
        if self._crashed or self._drop.get(to):
            return
        p = self._flaky.get(to, 0.0)
        if p > 0 and random.random() < p:
            return

        with self._lock:
            transport = self._nodes.get(to)
            if transport is None:
                address = self._addresses.get(to)
                if address is None:
                    log.error("socket does not have address of node %s", to)
                    return
                transport = new_transport(address)
                retry(transport.dial, 100, 0.05)
                self._nodes[to] = transport

        delay = self._slow.get(to, 0)
        if delay > 0:
            _after(delay / 1000.0, lambda: transport.send(message))
            return
        transport.send(message)

    def recv(self) -> Any:
        """Next message received while not crashed."""
        with self._lock:
            transport = self._nodes[self._id]
        while True:
            message = transport.recv()
            if not self._crashed:
                return message

    def multicast_zone(self, zone: int, message: Any) -> None:
        """Send to every other node in the zone."""
        for node_id in list(self._addresses):
            if node_id != self._id and node_id.zone() == zone:
                self.send(node_id, message)

    def multicast_quorum(self, quorum: int, message: Any) -> None:
        """Send to the first `quorum` other nodes."""
        sent = 0
        for node_id in list(self._addresses):
            if node_id == self._id:
                continue
            self.send(node_id, message)
            sent += 1
            if sent == quorum:
                break

    def broadcast(self, message: Any) -> None:
        """Send to every other node."""
        log.debug("node %s broadcasting message %s", self._id, message)
        for node_id in list(self._addresses):
            if node_id != self._id:
                self.send(node_id, message)

    def close(self) -> None:
        with self._lock:
            transports = list(self._nodes.values())
        for transport in transports:
            transport.close()

    def drop(self, node_id: ID | str, seconds: float) -> None:
        """Drop every message to node_id for the given time."""
        ident = ID(node_id)
        self._drop[ident] = True
        _after(seconds, lambda: self._drop.__setitem__(ident, False))

    def slow(self, node_id: ID | str, delay: int, seconds: float) -> None:
        """Delay every message to node_id by delay milliseconds for the given time."""
        ident = ID(node_id)
        self._slow[ident] = delay
        _after(seconds, lambda: self._slow.__setitem__(ident, 0))

    def flaky(self, node_id: ID | str, probability: float, seconds: float) -> None:
        """Drop messages to node_id with the given probability for the given time."""
        ident = ID(node_id)
        self._flaky[ident] = probability
        _after(seconds, lambda: self._flaky.__setitem__(ident, 0.0))

    def crash(self, seconds: float) -> None:
        """Stop sending and receiving; forever unless seconds is positive."""
        self._crashed = True
        if seconds > 0:
            _after(seconds, self._recover)

    def _recover(self) -> None:
        self._crashed = False