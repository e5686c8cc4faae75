"""HTTP REST interface through which clients reach a replica."""

from __future__ import annotations

import base64
import json
import re
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

from paxi import log
from paxi.db import Command
from paxi.ident import ID
from paxi.message import AntiEntropy, Request

HTTP_CLIENT_ID = "Id"
HTTP_COMMAND_ID = "Cid"
HTTP_TIMESTAMP = "Timestamp"
HTTP_NODE_ID = "Id"

_INT = re.compile(r"[+-]?[0-9]+")
_JSON_FIELDS = {
    "key": "key",
    "value": "value",
    "clientid": "client_id",
    "commandid": "command_id",
}


def _atoi(text: str) -> int:
    if _INT.fullmatch(text) is None:
        raise ValueError(f"invalid integer {text!r}")
    return int(text)


def _canonical(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


def _merge_json(fields: dict[str, Any], body: bytes) -> None:
    try:
        data = json.loads(body)
    except ValueError:
        return
    if not isinstance(data, dict):
        return
    for name, value in data.items():
        attr = _JSON_FIELDS.get(name.lower())
        if attr is None:
            continue
        if attr in ("key", "command_id"):
            if isinstance(value, int) and not isinstance(value, bool):
                fields[attr] = value
        elif attr == "client_id":
            if isinstance(value, str):
                fields[attr] = ID(value)
        elif value is None:
            fields[attr] = None
        elif isinstance(value, str):
            try:
                fields[attr] = base64.b64decode(value, validate=True)
            except ValueError:
                continue


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server: _Server

    def log_message(self, format: str, *args: Any) -> None:
        log.debug(format, *args)

    def _dispatch(self) -> None:
        self.server.rest._dispatch(self)

    do_GET = do_PUT = do_POST = do_DELETE = _dispatch

    def _body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length) if length > 0 else b""

    def _respond(
        self, status: int, body: bytes = b"", headers: dict[str, str] | None = None
    ) -> None:
        self.send_response(status)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _error(self, status: int, text: str) -> None:
        self._respond(
            status,
            (text + "\n").encode("utf-8"),
            {
                "Content-Type": "text/plain; charset=utf-8",
                "X-Content-Type-Options": "nosniff",
            },
        )


class _Server(ThreadingHTTPServer):
    rest: RestServer


class RestServer:
    """Serves client requests and fault-injection commands for one node.

    Client requests are put on `messages` and answered with the reply the
    node delivers to them.
    """

    def __init__(
        self,
        node_id: ID | str,
        http_address: str,
        messages: Any,
        database: Any,
        socket: Any,
    ) -> None:
        self._node_id = ID(node_id)
        self._address = http_address
        self._messages = messages
        self._database = database
        self._socket = socket
        self._server: _Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int | None:
        """The port being served on, once bound."""
        if self._server is None:
            return urlsplit(self._address).port
        return self._server.server_address[1]

    def _bind(self) -> _Server:
        if self._server is None:
            log.info("http server starting on url %s", self._address)
            port = urlsplit(self._address).port or 0
            server = _Server(("", port), _Handler)
            server.rest = self
            self._server = server
            log.info("http server starting on :%s", self.port)
        return self._server

    def start(self) -> None:
        """Serve in a background thread."""
        server = self._bind()
        self._thread = threading.Thread(target=server.serve_forever, daemon=True)
        self._thread.start()

    def serve(self) -> None:
        """Serve in the calling thread until shut down."""
        self._bind().serve_forever()

    def shutdown(self) -> None:
        """Stop serving and release the port."""
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join()
        self._server = None
        self._thread = None

    def _dispatch(self, h: _Handler) -> None:
        parts = urlsplit(h.path)
        query = parse_qs(parts.query, keep_blank_values=True)
        body = h._body()
        routes: dict[str, Callable[..., None]] = {
            "/history": self._history,
            "/crash": self._crash,
            "/drop": self._drop,
            "/RFL": self._rfl,
        }
        routes.get(parts.path, self._root)(h, parts.path, query, body)

    def _root(self, h: _Handler, path: str, query: dict, body: bytes) -> None:
        self._client_request(h, path, body, Request)

    def _rfl(self, h: _Handler, path: str, query: dict, body: bytes) -> None:
        self._client_request(h, path, body, AntiEntropy)

    def _client_request(self, h: _Handler, path: str, body: bytes, kind: type) -> None:
        fields: dict[str, Any] = {
            "key": 0,
            "value": None,
            "client_id": ID(""),
            "command_id": 0,
        }
        properties: dict[str, str] = {}
        for name in dict.fromkeys(_canonical(k) for k in h.headers.keys()):
            value = h.headers.get(name, "")
            if name == HTTP_CLIENT_ID:
                fields["client_id"] = ID(value)
            elif name == HTTP_COMMAND_ID:
                try:
                    fields["command_id"] = _atoi(value)
                except ValueError as exc:
                    fields["command_id"] = 0
                    log.error("%s", exc)
            else:
                properties[name] = value

        if len(path) > 1:
            try:
                fields["key"] = _atoi(path[1:])
            except ValueError as exc:
                h._error(400, "invalid path")
                log.error("%s", exc)
                return
            if h.command in ("PUT", "POST"):
                fields["value"] = body
        else:
            _merge_json(fields, body)

        request = kind(
            command=Command(**fields),
            properties=properties,
            timestamp=time.time_ns(),
            node_id=self._node_id,
        )
        self._messages.put(request)
        reply = request.wait_reply()
        if reply.err is not None:
            h._error(500, str(reply.err))
            return

        headers = {
            HTTP_CLIENT_ID: str(reply.command.client_id),
            HTTP_COMMAND_ID: str(reply.command.command_id),
        }
        headers.update(reply.properties or {})
        h._respond(200, reply.value or b"", headers)

    def _history(self, h: _Handler, path: str, query: dict, body: bytes) -> None:
        try:
            key = _atoi(query.get("key", [""])[0])
        except ValueError as exc:
            log.error("%s", exc)
            h._error(400, "invalide key")
            return
        values = self._database.history(key)
        if values:
            text = json.dumps(
                [base64.b64encode(v).decode("ascii") for v in values],
                separators=(",", ":"),
            )
        else:
            text = "null"
        h._respond(200, text.encode("utf-8"), {HTTP_NODE_ID: str(self._node_id)})

    def _seconds(self, h: _Handler, query: dict) -> int | None:
        try:
            return _atoi(query.get("t", [""])[0])
        except ValueError as exc:
            log.error("%s", exc)
            h._error(400, "invalide time")
            return None

    def _crash(self, h: _Handler, path: str, query: dict, body: bytes) -> None:
        seconds = self._seconds(h, query)
        if seconds is None:
            return
        self._socket.crash(seconds)
        h._respond(200)

    def _drop(self, h: _Handler, path: str, query: dict, body: bytes) -> None:
        target = query.get("id", [""])[0]
        seconds = self._seconds(h, query)
        if seconds is None:
            return
        self._socket.drop(ID(target), seconds)
        h._respond(200)