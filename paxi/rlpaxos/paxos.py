"""Paxos with early replies for entries that touch recently proposed keys."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable

from paxi import log
from paxi.ballot import Ballot
from paxi.config import Config, get_config
from paxi.db import Command
from paxi.ident import ID
from paxi.message import Reply, Request
from paxi.quorum import Quorum

if TYPE_CHECKING:
    from paxi.node import Node

DEFAULT_SLIDE_WINDOW = 5
OUT_OF_ORDER_WINDOW = 5


class Status(str, Enum):
    """Progress of a log entry."""

    ACCEPT = "accept"
    COMMIT = "committed"
    EXECUTE = "executed"

    def __str__(self) -> str:
        return self.value


@dataclass(eq=False)
class Entry:
    """One slot of the replicated log."""

    ballot: Ballot = Ballot(0)
    command: Command = field(default_factory=Command)
    commutativity: bool = False
    status: Status | None = None
    commit: bool = False
    request: Request | None = None
    quorum: Quorum | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class P1a:
    """Prepare message."""

    ballot: Ballot = Ballot(0)

    def __str__(self) -> str:
        return f"P1a {{b={self.ballot}}}"


@dataclass
class CommandBallot:
    """A command together with the ballot it was accepted in."""

    command: Command = field(default_factory=Command)
    ballot: Ballot = Ballot(0)

    def __str__(self) -> str:
        return f"cmd={self.command} b={self.ballot}"


@dataclass
class P1b:
    """Promise message carrying the sender's uncommitted entries."""

    ballot: Ballot = Ballot(0)
    id: ID = ID("")
    log: dict[int, CommandBallot] = field(default_factory=dict)

    def __str__(self) -> str:
        entries = " ".join(f"{s}:{cb}" for s, cb in sorted(self.log.items()))
        return f"P1b {{b={self.ballot} id={self.id} log=map[{entries}]}}"


@dataclass
class P2a:
    """Accept message."""

    id: ID = ID("")
    ballot: Ballot = Ballot(0)
    slot: int = 0
    commutativity: bool = False
    command: Command = field(default_factory=Command)
    request: Request | None = None
    status: Status | None = None

    def __str__(self) -> str:
        return f"P2a {{b={self.ballot} s={self.slot} cmd={self.command}}}"


@dataclass
class P2b:
    """Accepted message."""

    ballot: Ballot = Ballot(0)
    id: ID = ID("")
    slot: int = 0
    entry: Entry | None = None

    def __str__(self) -> str:
        return f"P2b {{b={self.ballot} id={self.id} s={self.slot} Entry={self.entry}}}"


@dataclass
class P3:
    """Commit message."""

    ballot: Ballot = Ballot(0)
    slot: int = 0
    command: Command = field(default_factory=Command)

    def __str__(self) -> str:
        return f"P3 {{b={self.ballot} s={self.slot} cmd={self.command}}}"


@dataclass
class PullRequest:
    """Request for the entries of log holes."""

    id: ID = ID("")
    slot: list[int] = field(default_factory=list)

    def __str__(self) -> str:
        return "Pullrequest { s=[" + " ".join(str(s) for s in self.slot) + "] }"


@dataclass
class PushRequest:
    """Entries pushed by the leader to fill holes."""

    id: ID = ID("")
    push_entry: dict[int, Entry] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"Pullrequest {{ s={self.id}, PushEntry={self.push_entry} }}"


def _majority(q: Quorum) -> bool:
    return q.majority()


class Paxos:
    """One Paxos instance driven by the messages its node receives."""

    def __init__(
        self,
        node: Node,
        *,
        config: Config | None = None,
        q1: Callable[[Quorum], bool] = _majority,
        q2: Callable[[Quorum], bool] = _majority,
        reply_when_commit: bool = False,
        slide_window: int = DEFAULT_SLIDE_WINDOW,
    ) -> None:
        self.node = node
        self._config = config if config is not None else get_config()
        self.log: dict[int, Entry] = {}
        self.execute = 0
        self.active = False
        self.ballot = Ballot(0)
        self.slot = -1
        self.execute_slot = -1
        self.loghole: dict[int, int] = {}
        self.quorum = self._new_quorum()
        self.requests: list[Request] = []
        self.q1 = q1
        self.q2 = q2
        self.reply_when_commit = reply_when_commit
        self.slide_window = slide_window

    def _new_quorum(self) -> Quorum:
        return Quorum(self._config)

    @property
    def id(self) -> ID:
        return self.node.id

    def is_leader(self) -> bool:
        """Leadership is never claimed; writes go to the designated node."""
        return False

    def leader(self) -> ID:
        """Leader of the current ballot."""
        return self.ballot.id()

    def handle_request(self, request: Request) -> None:
        """Queue the request behind phase 1, or propose it when active."""
        log.debug("Replica %s received %s", self.id, request)
        if not self.active:
            self.requests.append(request)
            if self.ballot.id() != self.id:
                self.p1a()
        else:
            self.p2a(request)

    def p1a(self) -> None:
        """Start phase 1 with the next ballot."""
        if self.active:
            return
        self.ballot = self.ballot.next(self.id)
        self.quorum.reset()
        self.quorum.ack(self.id)
        self.node.broadcast(P1a(ballot=self.ballot))

    def _check_commutativity(self, slot: int, request: Request) -> bool:
        """True if an entry within the window before slot has the same key."""
        for i in range(max(slot - self.slide_window, 0), slot):
            entry = self.log.get(i)
            if entry is not None and entry.command.key == request.command.key:
                return True
        return False

    def p2a(self, request: Request) -> None:
        """Propose the request in the next slot."""
        self.slot += 1
        commutative = self._check_commutativity(self.slot, request)
        entry = Entry(
            ballot=self.ballot,
            command=request.command,
            commutativity=commutative,
            request=request,
            status=Status.ACCEPT,
            quorum=self._new_quorum(),
        )
        self.log[self.slot] = entry
        entry.quorum.ack(self.id)
        message = P2a(
            id=self.id,
            ballot=self.ballot,
            slot=self.slot,
            commutativity=commutative,
            command=request.command,
            request=request,
            status=Status.ACCEPT,
        )
        if self._config.thrifty:
            self.node.multicast_quorum(self._config.n() // 2 + 1, message)
        else:
            self.node.broadcast(message)

    def handle_p1a(self, m: P1a) -> None:
        """Promise to a prepare and report uncommitted entries."""
        if m.ballot > self.ballot:
            self.ballot = m.ballot
            self.active = False
            self._forward()
        uncommitted = {
            s: CommandBallot(entry.command, entry.ballot)
            for s in range(self.execute, self.slot + 1)
            if (entry := self.log.get(s)) is not None and not entry.commit
        }
        self.node.send(
            m.ballot.id(), P1b(ballot=self.ballot, id=self.id, log=uncommitted)
        )

    def _update(self, entries: dict[int, CommandBallot]) -> None:
        for s, cb in entries.items():
            self.slot = max(self.slot, s)
            entry = self.log.get(s)
            if entry is not None:
                if not entry.commit and cb.ballot > entry.ballot:
                    entry.ballot = cb.ballot
                    entry.command = cb.command
            else:
                self.log[s] = Entry(ballot=cb.ballot, command=cb.command, commit=False)

    def handle_p1b(self, m: P1b) -> None:
        """Count a promise; once phase 1 succeeds, propose pending work."""
        self._update(m.log)
        if m.ballot < self.ballot or self.active:
            return
        if m.ballot > self.ballot:
            self.ballot = m.ballot
            self.active = False
            self._forward()
        if m.ballot.id() == self.id and m.ballot == self.ballot:
            self.quorum.ack(m.id)
            if self.q1(self.quorum):
                self.active = True
                for i in range(self.execute, self.slot + 1):
                    entry = self.log.get(i)
                    if entry is None or entry.commit:
                        continue
                    entry.ballot = self.ballot
                    entry.quorum = self._new_quorum()
                    entry.quorum.ack(self.id)
                    self.node.broadcast(
                        P2a(
                            ballot=self.ballot,
                            id=self.id,
                            slot=i,
                            command=entry.command,
                            request=entry.request,
                        )
                    )
                pending, self.requests = self.requests, []
                for request in pending:
                    self.p2a(request)

    def handle_p2a(self, m: P2a) -> None:
        """Accept a proposal with a ballot at least as high as ours."""
        if m.ballot < self.ballot:
            return
        self.ballot = m.ballot
        self.active = False
        self.slot = m.slot
        entry = self.log.get(self.slot)
        if entry is not None:
            if not entry.commit and m.ballot > entry.ballot:
                if not entry.command.equal(m.command) and entry.request is not None:
                    self.node.forward(m.ballot.id(), entry.request)
                    entry.request = None
                entry.command = m.command
                entry.ballot = m.ballot
                entry.commutativity = m.commutativity
                entry.request = m.request
                entry.status = m.status
            entry.quorum = self._new_quorum()
            entry.quorum.ack(self.id)
            entry.quorum.ack(m.id)
        else:
            entry = Entry(
                ballot=m.ballot,
                quorum=self._new_quorum(),
                commutativity=m.commutativity,
                command=m.command,
                status=Status.ACCEPT,
                request=m.request,
                commit=False,
            )
            entry.quorum.ack(self.id)
            entry.quorum.ack(m.id)
            self.log[m.slot] = entry

    def handle_p2b(self, m: P2b) -> None:
        """Count an acceptance; commit and execute once phase 2 succeeds."""
        if m.slot < self.execute:
            return
        log.debug("Replica %s received p2b for slot %d from %s", self.id, m.slot, m.id)
        entry = self.log.get(m.slot)
        if entry is None:
            if m.entry is None:
                log.error("p2b for unknown slot %d carries no entry", m.slot)
                return
            entry = Entry(
                ballot=m.entry.ballot,
                quorum=m.entry.quorum or self._new_quorum(),
                commutativity=m.entry.commutativity,
                command=m.entry.command,
                status=m.entry.status,
                request=m.entry.request,
                commit=False,
            )
            entry.quorum.ack(self.id)
            self.log[m.slot] = entry
            if self.q2(entry.quorum):
                entry.commit = True
                entry.status = Status.COMMIT
                commit = P3(slot=self.execute, command=entry.command)
                self._execute_slot(m.slot)
                self.node.broadcast(commit)
            return
        if entry.status is Status.ACCEPT:
            entry.quorum.ack(m.id)
            if self.q2(entry.quorum):
                entry.commit = True
                entry.status = Status.COMMIT
                self._execute_slot(m.slot)
        elif entry.status is Status.COMMIT:
            self._execute_slot(m.slot)

    def handle_p3(self, m: P3) -> None:
        """Commit the slot if it is not yet in the log; known slots are left as they are."""
        self.slot = max(self.slot, m.slot)
        existing = self.log.get(m.slot)
        if existing is not None:
            log.debug("slot %d already holds %s", m.slot, existing)
            return
        entry = Entry(command=m.command, status=Status.COMMIT, commit=True)
        self.log[m.slot] = entry
        self._execute_slot(m.slot)

    def _reply(self, entry: Entry, value: bytes | None) -> None:
        reply = Reply(command=entry.command, value=value, properties={})
        self.node.reply_forward(entry.command, reply)
        log.debug("Reply sent: %s", reply)
        entry.request = None

    def _execute_slot(self, s: int) -> None:
        log.debug(
            "Replica %s wants to execute slot %d, next in order is %d",
            self.id, s, self.execute,
        )
        if self.execute < s <= self.execute + OUT_OF_ORDER_WINDOW:
            entry = self.log.get(s)
            if entry is None:
                log.debug("Replica %s has a hole in slot %d", self.id, s)
                return
            if entry.status is not Status.COMMIT:
                return
            value = self.node.execute(entry.command)
            entry.status = Status.EXECUTE
            log.debug("Replica %s executes slot %d out of order", self.id, s)
            if entry.request is not None and entry.commutativity:
                self._reply(entry, value)
            return

        entry = self.log.get(self.execute)
        if entry is None:
            log.debug("Replica %s has a hole in slot %d", self.id, self.execute)
            return
        if entry.status is Status.EXECUTE:
            self.execute += 1
            return
        value = self.node.execute(entry.command)
        entry.status = Status.EXECUTE
        self.execute += 1
        log.debug("Replica %s executes slot %d in order", self.id, self.execute - 1)
        if entry.request is not None:
            self._reply(entry, value)

    def _forward(self) -> None:
        pending, self.requests = self.requests, []
        for request in pending:
            self.node.forward(self.ballot.id(), request)