import base64
import json
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest

from paxi.client import ClientError, HTTPClient
from paxi.config import Config
from paxi.ident import ID


@dataclass
class _State:
    node_id: str
    store: dict = field(default_factory=dict)
    history: list = field(default_factory=list)
    requests: list = field(default_factory=list)
    fail: set = field(default_factory=set)


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, *args):
        pass

    def _reply(self, status, body=b"", headers=()):
        self.send_response(status)
        for k, v in headers:
            self.send_header(k, v)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _handle(self):
        st = self.server.state
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        parts = urlsplit(self.path)
        query = parse_qs(parts.query)
        headers = {k.lower(): v for k, v in self.headers.items()}
        st.requests.append((self.command, parts.path, query, headers, body))
        if parts.path == "/history":
            data = [base64.b64encode(v).decode() for v in st.history]
            self._reply(200, json.dumps(data).encode())
        elif parts.path in ("/crash", "/drop", "/RFL"):
            self._reply(200, b"done", [("KeySlot", "5")])
        elif parts.path == "/":
            data = json.loads(body)
            key = data["Key"]
            if data.get("Value") is not None:
                st.store[key] = base64.b64decode(data["Value"])
            self._reply(200, st.store.get(key, b""))
        else:
            key = int(parts.path[1:])
            if key in st.fail:
                self._reply(500, b"boom")
                return
            if self.command == "PUT":
                st.store[key] = body
            self._reply(
                200, st.store.get(key, b""),
                [("Node", st.node_id), ("KeySlot", "5")],
            )

    do_GET = do_PUT = do_POST = _handle


@pytest.fixture
def cluster():
    servers = {}
    for name in ("1.1", "1.2", "1.3"):
        server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
        server.state = _State(name)
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers[ID(name)] = server
    config = Config(
        addrs={i: f"127.0.0.1:{s.server_address[1]}" for i, s in servers.items()},
        http_addrs={
            i: f"http://127.0.0.1:{s.server_address[1]}" for i, s in servers.items()
        },
    )
    yield config, {i: s.state for i, s in servers.items()}
    for s in servers.values():
        s.shutdown()
        s.server_close()


def test_put_then_get(cluster):
    config, states = cluster
    client = HTTPClient("1.2", config)
    client.put(4, b"val")
    assert client.get(4) == b"val"
    assert states[ID("1.2")].store[4] == b"val"
    assert client.cid == 2
    method, path, _, headers, _ = states[ID("1.2")].requests[-1]
    assert (method, path, headers["id"]) == ("GET", "/4", "1.2")


def test_metadata_names_are_canonical(cluster):
    config, _ = cluster
    client = HTTPClient("1.2", config)
    _, meta = client.rest_get(ID("1.3"), 1)
    assert meta["Keyslot"] == "5"
    assert meta["Node"] == "1.3"


def test_error_status_raises(cluster):
    config, states = cluster
    states[ID("1.2")].fail.add(13)
    client = HTTPClient("1.2", config)
    with pytest.raises(ClientError, match="500"):
        client.rest_get(ID("1.2"), 13)


def test_unreachable_node_raises():
    config = Config(addrs={ID("1.1"): "x"}, http_addrs={ID("1.1"): "http://127.0.0.1:1"})
    client = HTTPClient("1.1", config)
    with pytest.raises(ClientError):
        client.get(1)


def test_get_url(cluster):
    config, _ = cluster
    client = HTTPClient("1.2", config)
    assert client.get_url(ID("1.3"), 7) == config.http_addrs[ID("1.3")] + "/7"
    assert client.get_url("", 7) in {u + "/7" for u in config.http_addrs.values()}


def test_json_put_and_get(cluster):
    config, states = cluster
    client = HTTPClient("1.2", config)
    assert client.json_put(4, b"xyz") == b"xyz"
    sent = json.loads(states[ID("1.2")].requests[-1][4])
    assert sent["Key"] == 4
    assert sent["ClientID"] == "1.2"
    assert client.json_get(4) == b"xyz"


def test_quorum_get_skips_first_node(cluster):
    config, _ = cluster
    client = HTTPClient("1.2", config)
    values, metas = client.quorum_get(9)
    assert {m["Node"] for m in metas} == {"1.2", "1.3"}
    assert len(values) == len(metas)


def test_local_quorum_get(cluster):
    config, _ = cluster
    client = HTTPClient("1.1", config)
    values, metas = client.local_quorum_get(9)
    assert len(values) == 1
    assert metas[0]["Node"] == "1.1"


def test_quorum_put(cluster):
    config, states = cluster
    client = HTTPClient("1.1", config)
    client.quorum_put(6, b"q")
    assert sum(1 for st in states.values() if st.store.get(6) == b"q") == 1


def test_consensus(cluster):
    config, states = cluster
    client = HTTPClient("1.1", config)
    for st in states.values():
        st.history = [b"a", b"b"]
    assert client.consensus(1) is True
    states[ID("1.3")].history = [b"a"]
    assert client.consensus(1) is True
    states[ID("1.3")].history = [b"a", b"c"]
    assert client.consensus(1) is False


def test_crash(cluster):
    config, states = cluster
    client = HTTPClient("1.1", config)
    client.crash(ID("1.2"), 5)
    _, path, query, _, _ = states[ID("1.2")].requests[-1]
    assert path == "/crash"
    assert query["t"] == ["5"]


def test_partition(cluster):
    config, states = cluster
    client = HTTPClient("1.1", config)
    client.partition(10, ID("1.3"))
    drops = {
        (sid, q["id"][0], q["t"][0])
        for sid, st in states.items()
        for _, path, q, _, _ in st.requests
        if path == "/drop"
    }
    assert drops == {("1.1", "1.3", "10"), ("1.2", "1.3", "10")}


def test_rfl_get_sends_headers(cluster):
    config, states = cluster
    client = HTTPClient("1.2", config)
    body, meta = client.rfl_get(ID("1.3"), 8, 3, "holes")
    assert body == b"done"
    _, path, query, headers, _ = states[ID("1.3")].requests[-1]
    assert path == "/RFL"
    assert query["key"] == ["8"]
    assert headers["keyslot"] == "3"
    assert headers["nodeholes"] == "holes"
    assert meta["Keyslot"] == "5"