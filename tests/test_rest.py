import base64
import json
import queue
import threading
import urllib.request
from types import SimpleNamespace
from urllib.error import HTTPError

import pytest

from paxi.db import Database
from paxi.ident import ID
from paxi.message import Reply, Request
from paxi.rest import RestServer


class FakeSocket:
    def __init__(self):
        self.crashes = []
        self.drops = []

    def crash(self, t):
        self.crashes.append(t)

    def drop(self, node_id, t):
        self.drops.append((node_id, t))


@pytest.fixture
def node():
    messages = queue.Queue()
    db = Database(multiversion=True)
    sock = FakeSocket()
    server = RestServer(ID("1.1"), "http://127.0.0.1:0", messages, db, sock)
    server.start()
    yield SimpleNamespace(
        server=server,
        messages=messages,
        db=db,
        sock=sock,
        url=f"http://127.0.0.1:{server.port}",
    )
    server.shutdown()


def _answer(messages, make_reply):
    seen = []

    def work():
        req = messages.get(timeout=5)
        seen.append(req)
        req.reply(make_reply(req))

    threading.Thread(target=work, daemon=True).start()
    return seen


def _echo(req):
    return Reply(command=req.command, value=req.command.value, properties={"Slot": "3"})


def test_put_reaches_node_and_reply_is_returned(node):
    seen = _answer(node.messages, _echo)
    req = urllib.request.Request(
        node.url + "/5",
        data=b"hello",
        method="PUT",
        headers={"Id": "2.1", "Cid": "7", "X-Trace": "abc"},
    )
    with urllib.request.urlopen(req, timeout=5) as res:
        body = res.read()
        headers = res.headers
    assert body == b"hello"
    assert headers["Id"] == "2.1"
    assert headers["Cid"] == "7"
    assert headers["Slot"] == "3"
    request = seen[0]
    assert isinstance(request, Request) and request.node_id == "1.1"
    assert request.command.key == 5
    assert request.command.value == b"hello"
    assert request.command.client_id == "2.1"
    assert request.command.command_id == 7
    assert request.properties["X-Trace"] == "abc"


def test_get_is_a_read(node):
    seen = _answer(node.messages, lambda r: Reply(command=r.command, value=b"v"))
    with urllib.request.urlopen(node.url + "/9", timeout=5) as res:
        assert res.read() == b"v"
    assert seen[0].command.key == 9
    assert seen[0].command.is_read()


def test_json_command_on_root(node):
    seen = _answer(node.messages, _echo)
    payload = {
        "Key": 3,
        "Value": base64.b64encode(b"xyz").decode(),
        "ClientID": "1.2",
        "CommandID": 4,
    }
    req = urllib.request.Request(
        node.url + "/", data=json.dumps(payload).encode(), method="POST"
    )
    with urllib.request.urlopen(req, timeout=5) as res:
        assert res.read() == b"xyz"
    command = seen[0].command
    assert (command.key, command.value, command.client_id, command.command_id) == (
        3,
        b"xyz",
        "1.2",
        4,
    )


def test_invalid_path_is_bad_request(node):
    with pytest.raises(HTTPError) as e:
        urllib.request.urlopen(node.url + "/abc", timeout=5)
    assert e.value.code == 400
    assert e.value.read() == b"invalid path\n"
    assert node.messages.empty()


def test_rfl_path_is_not_a_key(node):
    with pytest.raises(HTTPError) as e:
        urllib.request.urlopen(node.url + "/RFL?key=1", timeout=5)
    assert e.value.code == 400


def test_reply_error_is_server_error(node):
    _answer(node.messages, lambda r: Reply(command=r.command, err=RuntimeError("boom")))
    with pytest.raises(HTTPError) as e:
        urllib.request.urlopen(node.url + "/1", timeout=5)
    assert e.value.code == 500
    assert e.value.read() == b"boom\n"


def test_history_lists_values(node):
    node.db.put(1, b"a")
    node.db.put(1, b"b")
    with urllib.request.urlopen(node.url + "/history?key=1", timeout=5) as res:
        values = json.loads(res.read())
        assert res.headers["Id"] == "1.1"
    assert [base64.b64decode(v) for v in values] == [b"a", b"b"]


def test_history_of_unknown_key_is_null(node):
    with urllib.request.urlopen(node.url + "/history?key=2", timeout=5) as res:
        assert res.read() == b"null"


def test_history_needs_integer_key(node):
    with pytest.raises(HTTPError) as e:
        urllib.request.urlopen(node.url + "/history?key=x", timeout=5)
    assert e.value.code == 400


def test_crash_and_drop_reach_socket(node):
    with urllib.request.urlopen(node.url + "/crash?t=5", timeout=5) as res:
        assert res.status == 200
    with urllib.request.urlopen(node.url + "/drop?id=1.2&t=3", timeout=5) as res:
        assert res.status == 200
    assert node.sock.crashes == [5]
    assert node.sock.drops == [("1.2", 3)]


def test_crash_needs_integer_time(node):
    with pytest.raises(HTTPError) as e:
        urllib.request.urlopen(node.url + "/crash?t=soon", timeout=5)
    assert e.value.code == 400
    assert node.sock.crashes == []