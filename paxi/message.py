"""Messages exchanged between clients and replicas."""

from __future__ import annotations

import queue
from dataclasses import dataclass, field
from typing import Any

from paxi import log
from paxi.db import Command
from paxi.ident import ID


def _hex(value: bytes | None) -> str:
    return (value or b"").hex()


def _map(props: dict[str, str] | None) -> str:
    items = sorted((props or {}).items())
    return "map[" + " ".join(f"{k}:{v}" for k, v in items) + "]"


def _deliver(replies: queue.Queue, reply: Any) -> None:
    log.debug("received reply %s", reply)
    replies.put(reply)


def _await(replies: queue.Queue, timeout: float | None) -> Any:
    try:
        return replies.get(timeout=timeout)
    except queue.Empty:
        raise TimeoutError("no reply received") from None


class _Session:
    """Recreates an empty reply channel when the message is unpickled."""

    def __getstate__(self) -> dict:
        state = dict(self.__dict__)
        state.pop("_replies", None)
        return state

    def __setstate__(self, state: dict) -> None:
        self.__dict__.update(state)
        self._replies = queue.Queue()


def _channel() -> queue.Queue:
    return field(default_factory=queue.Queue, init=False, repr=False, compare=False)


@dataclass
class ProtocolMsg:
    hlc_time: int = 0
    msg_id: int = 0
    msg: Any = None

    def __str__(self) -> str:
        return f"ProtocolMsg {{msgid={self.msg_id}, hlc={self.hlc_time} msg={self.msg}}}"


@dataclass
class Reply:
    """Everything a replica sends back to the client for one request."""

    command: Command = field(default_factory=Command)
    value: bytes | None = None
    properties: dict[str, str] = field(default_factory=dict)
    timestamp: int = 0
    err: Exception | None = None

    def __str__(self) -> str:
        return (
            f"Reply {{cmd={self.command} value={_hex(self.value)} "
            f"prop={_map(self.properties)}}}"
        )


@dataclass
class Request(_Session):
    """A client request carrying the channel its reply goes to."""

    command: Command = field(default_factory=Command)
    properties: dict[str, str] = field(default_factory=dict)
    timestamp: int = 0
    node_id: ID = ID("")
    _replies: queue.Queue = _channel()

    def reply(self, reply: Reply) -> None:
        """Deliver a reply to whoever waits on this request."""
        _deliver(self._replies, reply)

    def wait_reply(self, timeout: float | None = None) -> Reply:
        """Block until a reply arrives; TimeoutError after timeout seconds."""
        return _await(self._replies, timeout)

    def __str__(self) -> str:
        return f"Request {{cmd={self.command} nid={self.node_id}}}"


@dataclass
class AntiEntropy(_Session):
    """A follower-read request carrying the channel its reply goes to."""

    command: Command = field(default_factory=Command)
    properties: dict[str, str] = field(default_factory=dict)
    timestamp: int = 0
    node_id: ID = ID("")
    _replies: queue.Queue = _channel()

    def reply(self, reply: Reply) -> None:
        """Deliver a reply to whoever waits on this request."""
        _deliver(self._replies, reply)

    def wait_reply(self, timeout: float | None = None) -> Reply:
        """Block until a reply arrives; TimeoutError after timeout seconds."""
        return _await(self._replies, timeout)


@dataclass
class Read:
    """Direct read of a key that skips the replication protocol."""

    command_id: int = 0
    key: int = 0

    def __str__(self) -> str:
        return f"Read {{cid={self.command_id}, key={self.key}}}"


@dataclass
class ReadReply:
    command_id: int = 0
    value: bytes | None = None

    def __str__(self) -> str:
        return f"ReadReply {{cid={self.command_id}, val={_hex(self.value)}}}"


@dataclass
class TransactionReply:
    ok: bool = False
    commands: list[Command] = field(default_factory=list)
    timestamp: int = 0
    err: Exception | None = None


@dataclass
class Transaction(_Session):
    """Several commands submitted as one request."""

    commands: list[Command] = field(default_factory=list)
    timestamp: int = 0
    _replies: queue.Queue = _channel()

    def reply(self, reply: TransactionReply) -> None:
        """Deliver the transaction's result to whoever waits on it."""
        _deliver(self._replies, reply)

    def wait_reply(self, timeout: float | None = None) -> TransactionReply:
        """Block until a reply arrives; TimeoutError after timeout seconds."""
        return _await(self._replies, timeout)

    def __str__(self) -> str:
        return "Transaction {cmds=[" + " ".join(str(c) for c in self.commands) + "]}"


@dataclass
class Register:
    """Registration of a node or client with the master."""

    client: bool = False
    id: ID = ID("")
    addr: str = ""