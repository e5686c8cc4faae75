"""Replica running the Paxos variant, and the server command that starts it."""

from __future__ import annotations

import argparse
import json
import threading
import time
from typing import Sequence

from paxi import log
from paxi.config import Config, get_config, simulation
from paxi.db import Command
from paxi.ident import ID
from paxi.message import Reply, Request
from paxi.node import Node, init
from paxi.rlpaxos.paxos import DEFAULT_SLIDE_WINDOW, P1a, P1b, P2a, P2b, P3, Paxos

HTTP_HEADER_NODE_ID = "ID"
HTTP_HEADER_SLOT = "Slot"
HTTP_HEADER_KEY_SLOT = "KeySlot"
HTTP_HEADER_KEY_STATUS = "KeyStatus"
HTTP_HEADER_BALLOT = "Ballot"
HTTP_HEADER_EXECUTE = "Execute"
HTTP_HEADER_IN_PROGRESS = "Inprogress"
HTTP_HEADER_HOLE = "Hole"

LEADER = ID("1.1")
ALGORITHMS = ("paxos2bro",)


class Replica(Node):
    """A node that answers reads locally and sends writes to the designated leader."""

    def __init__(
        self,
        node_id: ID | str,
        config: Config | None = None,
        *,
        read_mode: str = "",
        ephemeral_leader: bool = False,
        slide_window: int = DEFAULT_SLIDE_WINDOW,
    ) -> None:
        config = config if config is not None else get_config()
        super().__init__(node_id, config)
        self.read_mode = read_mode
        self.ephemeral_leader = ephemeral_leader
        self.paxos = Paxos(self, config=config, slide_window=slide_window)
        self.register(Request, self.handle_request)
        self.register(P1a, self.paxos.handle_p1a)
        self.register(P1b, self.paxos.handle_p1b)
        self.register(P2a, self.paxos.handle_p2a)
        self.register(P2b, self.paxos.handle_p2b)
        self.register(P3, self.paxos.handle_p3)

    def handle_request(self, request: Request) -> None:
        """Answer reads locally when a read mode is set; propose or forward writes."""
        if request.command.is_read() and self.read_mode:
            log.debug("Replica %s received read request %s", self.id, request)
            value, key_slot, status, in_progress = self.read_in_progress(request)
            hole = {str(k): v for k, v in self.paxos.loghole.items()}
            properties = {
                HTTP_HEADER_NODE_ID: str(self.id),
                HTTP_HEADER_SLOT: str(self.paxos.slot),
                HTTP_HEADER_KEY_SLOT: str(key_slot),
                HTTP_HEADER_KEY_STATUS: status,
                HTTP_HEADER_BALLOT: str(self.paxos.ballot),
                HTTP_HEADER_EXECUTE: str(self.paxos.execute - 1),
                HTTP_HEADER_IN_PROGRESS: "true" if in_progress else "false",
                HTTP_HEADER_HOLE: json.dumps(
                    hole, sort_keys=True, separators=(",", ":")
                ),
            }
            request.reply(
                Reply(
                    command=request.command,
                    value=value,
                    properties=properties,
                    timestamp=int(time.time()),
                )
            )
            return

        if self.ephemeral_leader or self.paxos.is_leader():
            self.paxos.handle_request(request)
        else:
            threading.Thread(
                target=self.forward, args=(LEADER, request), daemon=True
            ).start()

    def read_in_progress(
        self, request: Request
    ) -> tuple[bytes | None, int, str, bool]:
        """Latest unexecuted value of the key: (value, slot, status, in progress).

        Falls back to the stored value, slot -1 and an empty status.
        """
        key = request.command.key
        for slot in range(self.paxos.slot, self.paxos.execute - 1, -1):
            entry = self.paxos.log.get(slot)
            if entry is not None and entry.command.key == key:
                status = entry.status.value if entry.status is not None else ""
                return entry.command.value, slot, status, True
        return self.execute(Command(key=key)), -1, "", False


def _run_replica(node_id: ID | str, args: argparse.Namespace) -> None:
    log.info("node %s starting...", node_id)
    Replica(
        node_id,
        read_mode=args.read2,
        ephemeral_leader=args.ephemeral_leader2,
        slide_window=args.slidewindow,
    ).run()


def main(argv: Sequence[str] | None = None) -> None:
    """Start one replica, or every configured replica in simulation mode."""
    parser = argparse.ArgumentParser(prog="paxi-server")
    parser.add_argument("-algorithm", default="paxos", help="distributed algorithm")
    parser.add_argument("-id", default="", help="ID in format of Zone.Node")
    parser.add_argument("-sim", action="store_true", help="simulation mode")
    parser.add_argument(
        "-read2", default="", help='read from "leader", "RFL", "quorum" or "any" replica'
    )
    parser.add_argument(
        "-ephemeral_leader2",
        action="store_true",
        help="try to become leader instead of forwarding requests",
    )
    parser.add_argument(
        "-slidewindow",
        type=int,
        default=DEFAULT_SLIDE_WINDOW,
        help="length of log that can be committed or executed out of order",
    )
    args, rest = parser.parse_known_args(argv)
    if args.algorithm not in ALGORITHMS:
        parser.error("Unknown algorithm")

    leftover = init(rest)
    if leftover:
        parser.error("unrecognized arguments: " + " ".join(leftover))

    if args.sim:
        simulation()
        for node_id in list(get_config().addrs):
            threading.Thread(
                target=_run_replica, args=(node_id, args), daemon=True
            ).start()
        threading.Event().wait()
    else:
        _run_replica(ID(args.id), args)