"""Message transports: TCP streams, UDP datagrams and in-process channels."""

from __future__ import annotations

import pickle
import queue
import socket
import threading
from abc import ABC, abstractmethod
from contextlib import suppress
from typing import Any, Callable
from urllib.parse import SplitResult, urlsplit

from paxi import log
from paxi.config import get_config, transport_scheme

_CLOSE = object()
_POLL = 0.2
_MAX_DATAGRAM = 65535


class Transport(ABC):
    """Outbound and inbound message queues bound to one address."""

    def __init__(self, uri: SplitResult) -> None:
        size = get_config().chan_buffer_size
        self._uri = uri
        self._send: queue.Queue = queue.Queue(maxsize=size)
        self._recv: queue.Queue = queue.Queue(maxsize=size)
        self._closed = threading.Event()

    def scheme(self) -> str:
        return self._uri.scheme

    def send(self, message: Any) -> None:
        """Queue a message for the dialled peer."""
        self._send.put(message)

    def recv(self) -> Any:
        """Block until a message arrives at the listener."""
        return self._recv.get()

    @abstractmethod
    def dial(self) -> None:
        """Connect to the remote address; queued messages then flow to it."""

    @abstractmethod
    def listen(self) -> None:
        """Start accepting messages at this address without blocking."""

    def close(self) -> None:
        """Stop sending and listening."""
        self._closed.set()
        self._send.put(_CLOSE)

    def _start_sender(
        self, write: Callable[[Any], None], done: Callable[[], None] | None = None
    ) -> None:
        def loop() -> None:
            try:
                while True:
                    message = self._send.get()
                    if message is _CLOSE:
                        return
                    try:
                        write(message)
                    except Exception as exc:
                        log.error("%s", exc)
            finally:
                if done is not None:
                    done()

        threading.Thread(target=loop, daemon=True).start()


class TcpTransport(Transport):
    """Pickled messages over TCP connections."""

    def __init__(self, uri: SplitResult) -> None:
        super().__init__(uri)
        self._listener: socket.socket | None = None
        self._conns: list[socket.socket] = []
        self._lock = threading.Lock()

    def dial(self) -> None:
        conn = socket.create_connection((self._uri.hostname, self._uri.port))
        out = conn.makefile("wb")

        def write(message: Any) -> None:
            pickle.dump(message, out)
            out.flush()

        def done() -> None:
            with suppress(OSError):
                out.close()
            conn.close()

        self._start_sender(write, done)

    def listen(self) -> None:
        log.debug("start listening %s", self._uri.port)
        listener = socket.create_server(("", self._uri.port or 0))
        listener.settimeout(_POLL)
        self._listener = listener
        threading.Thread(target=self._accept, args=(listener,), daemon=True).start()

    def _accept(self, listener: socket.socket) -> None:
        with listener:
            while not self._closed.is_set():
                try:
                    conn, _ = listener.accept()
                except socket.timeout:
                    continue
                except OSError as exc:
                    if self._closed.is_set():
                        return
                    log.error("TCP Accept error: %s", exc)
                    continue
                conn.settimeout(None)
                with self._lock:
                    self._conns.append(conn)
                threading.Thread(target=self._read, args=(conn,), daemon=True).start()

    def _read(self, conn: socket.socket) -> None:
        with conn, conn.makefile("rb") as stream:
            while not self._closed.is_set():
                try:
                    message = pickle.load(stream)
                except EOFError:
                    return
                except Exception as exc:
                    if not self._closed.is_set():
                        log.error("%s", exc)
                    return
                self._recv.put(message)

    def close(self) -> None:
        super().close()
        if self._listener is not None:
            with suppress(OSError):
                self._listener.close()
        with self._lock:
            conns, self._conns = self._conns, []
        for conn in conns:
            with suppress(OSError):
                conn.shutdown(socket.SHUT_RDWR)


class UdpTransport(Transport):
    """One pickled message per UDP datagram."""

    def __init__(self, uri: SplitResult) -> None:
        super().__init__(uri)
        self._listener: socket.socket | None = None

    def dial(self) -> None:
        family, kind, proto, _, addr = socket.getaddrinfo(
            self._uri.hostname, self._uri.port, type=socket.SOCK_DGRAM
        )[0]
        conn = socket.socket(family, kind, proto)
        conn.connect(addr)
        self._start_sender(lambda m: conn.send(pickle.dumps(m)), conn.close)

    def listen(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind(("", self._uri.port or 0))
        sock.settimeout(_POLL)
        self._listener = sock
        threading.Thread(target=self._read, args=(sock,), daemon=True).start()

    def _read(self, sock: socket.socket) -> None:
        with sock:
            while not self._closed.is_set():
                try:
                    packet = sock.recv(_MAX_DATAGRAM)
                except socket.timeout:
                    continue
                except OSError as exc:
                    if self._closed.is_set():
                        return
                    log.error("%s", exc)
                    continue
                try:
                    message = pickle.loads(packet)
                except Exception as exc:
                    log.error("%s", exc)
                    continue
                self._recv.put(message)

    def close(self) -> None:
        super().close()
        if self._listener is not None:
            with suppress(OSError):
                self._listener.close()


_channels: dict[str, queue.Queue] = {}
_channels_lock = threading.Lock()


class ChannelTransport(Transport):
    """In-process delivery between transports of the same program."""

    def scheme(self) -> str:
        return "chan"

    def dial(self) -> None:
        with _channels_lock:
            inbox = _channels.get(self._uri.netloc)
        if inbox is None:
            raise ConnectionError("server not ready")
        self._start_sender(inbox.put)

    def listen(self) -> None:
        with _channels_lock:
            _channels[self._uri.netloc] = self._recv


_TRANSPORTS: dict[str, type[Transport]] = {
    "tcp": TcpTransport,
    "udp": UdpTransport,
    "chan": ChannelTransport,
}


def new_transport(addr: str, scheme: str | None = None) -> Transport:
    """Transport for addr; an address without "scheme://" uses the given or configured scheme."""
    if "://" not in addr:
        addr = f"{scheme or transport_scheme()}://{addr}"
    uri = urlsplit(addr)
    try:
        cls = _TRANSPORTS[uri.scheme]
    except KeyError:
        raise ValueError(f"unknown scheme {uri.scheme}") from None
    return cls(uri)