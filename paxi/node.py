"""Replica node: networking, state machine, message dispatch and REST API."""

from __future__ import annotations

import argparse
import dataclasses
import queue
import threading
from typing import Any, Callable, Sequence

from paxi import log
from paxi.config import (
    DEFAULT_CONFIG_FILE,
    Config,
    get_config,
    set_transport_scheme,
)
from paxi.db import Command, Database
from paxi.ident import ID
from paxi.message import Reply, Request
from paxi.netsocket import Socket
from paxi.rest import RestServer


def init(argv: Sequence[str] | None = None) -> list[str]:
    """Parse the common options, set up logging and load the configuration.

    Returns the arguments that were not recognised.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("-config", default=DEFAULT_CONFIG_FILE)
    parser.add_argument("-transport", default="tcp")
    parser.add_argument("-log_dir", default="")
    parser.add_argument("-log_level", default=None)
    args, rest = parser.parse_known_args(argv)

    if args.log_level is not None:
        log.set_level(log.parse_severity(args.log_level))
    log.setup(args.log_dir)
    get_config().load(args.config)
    set_transport_scheme(args.transport)
    return rest


class Node:
    """One replica; dispatches each received message to the handler of its type."""

    def __init__(self, node_id: ID | str, config: Config | None = None) -> None:
        self._config = config if config is not None else get_config()
        self.id = ID(node_id)
        self.socket = Socket(self.id, self._config.addrs)
        self.database = Database(self._config.multiversion)
        self.messages: queue.Queue = queue.Queue(
            maxsize=self._config.chan_buffer_size
        )
        self._handlers: dict[type, Callable[[Any], Any]] = {}
        self._forwards: dict[str, Request] = {}
        self._lock = threading.RLock()
        self._workers_started = False
        self.rest = RestServer(
            self.id,
            self._config.http_addrs.get(self.id, ""),
            self.messages,
            self.database,
            self.socket,
        )

    # networking

    def send(self, to: ID | str, message: Any) -> None:
        self.socket.send(to, message)

    def broadcast(self, message: Any) -> None:
        self.socket.broadcast(message)

    def multicast_quorum(self, quorum: int, message: Any) -> None:
        self.socket.multicast_quorum(quorum, message)

    # state machine

    def execute(self, command: Command) -> bytes | None:
        return self.database.execute(command)

    def get(self, key: int) -> bytes | None:
        return self.database.get(key)

    def put(self, key: int, value: bytes | None) -> None:
        self.database.put(key, value)

    # message handling

    def retry(self, request: Request) -> None:
        """Queue the request to be handled again."""
        log.debug("node %s retry request %s", self.id, request)
        self.messages.put(request)

    def register(self, message_type: type, handler: Callable[[Any], Any]) -> None:
        """Handle every message of message_type with handler."""
        if not isinstance(message_type, type) or not callable(handler):
            raise TypeError("register handle function error")
        self._handlers[message_type] = handler

    def _start_workers(self) -> None:
        with self._lock:
            if self._workers_started or not self._handlers:
                return
            self._workers_started = True
        threading.Thread(target=self._handle_loop, daemon=True).start()
        threading.Thread(target=self._recv_loop, daemon=True).start()

    def run(self) -> None:
        """Start handling messages and serve the REST API in this thread."""
        log.info("node %s start running", self.id)
        self._start_workers()
        self.rest.serve()

    def start(self) -> None:
        """Start handling messages and serve the REST API in the background."""
        log.info("node %s start running", self.id)
        self._start_workers()
        self.rest.start()

    def close(self) -> None:
        """Stop the REST API and the transports."""
        self.rest.shutdown()
        self.socket.close()

    def _handle_loop(self) -> None:
        while True:
            message = self.messages.get()
            handler = self._handlers.get(type(message))
            if handler is None:
                log.error(
                    "no registered handle function for message type %s",
                    type(message).__name__,
                )
                continue
            try:
                handler(message)
            except Exception as exc:
                log.error("handling %s failed: %s", message, exc)

    def _recv_loop(self) -> None:
        while True:
            message = self.socket.recv()
            if isinstance(message, Request):
                log.debug("node %s received request %s", self.id, message)
                local = dataclasses.replace(message)
                threading.Thread(
                    target=self._return_reply, args=(local,), daemon=True
                ).start()
                self.messages.put(local)
            elif isinstance(message, Reply):
                log.debug("node %s received reply %s", self.id, message)
                with self._lock:
                    request = self._forwards.get(str(message.command))
                if request is None:
                    log.error("no forwarded request for %s", message.command)
                else:
                    request.reply(message)
            else:
                self.messages.put(message)

    def _return_reply(self, request: Request) -> None:
        self.send(request.node_id, request.wait_reply())

    def forward(self, node_id: ID | str, request: Request) -> None:
        """Send request to another node; its reply goes back to request's client."""
        log.debug("node %s forwarding %s to %s", self.id, request, node_id)
        forwarded = dataclasses.replace(request, node_id=self.id)
        forwarded._replies = request._replies
        with self._lock:
            self._forwards[str(forwarded.command)] = forwarded
        self.send(node_id, forwarded)

    def reply_forward(self, command: Command, reply: Reply) -> None:
        """Answer the forwarded request for command, if there is one."""
        with self._lock:
            request = self._forwards.get(str(command))
        if request is None:
            return
        request.reply(reply)
        log.debug("node %s received reply %s", self.id, command)