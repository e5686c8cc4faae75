import json
import queue
import threading
import uuid

import pytest

from paxi.ballot import new_ballot
from paxi.config import make_default_config
from paxi.db import Command
from paxi.ident import ID
from paxi.message import Request
from paxi.node import Node
from paxi.rlpaxos.paxos import P1a, P1b, P2a, Status
from paxi.rlpaxos.replica import (
    HTTP_HEADER_BALLOT,
    HTTP_HEADER_EXECUTE,
    HTTP_HEADER_HOLE,
    HTTP_HEADER_IN_PROGRESS,
    HTTP_HEADER_KEY_SLOT,
    HTTP_HEADER_NODE_ID,
    HTTP_HEADER_SLOT,
    Replica,
    main,
)


@pytest.fixture
def config(tmp_path):
    tag = uuid.uuid4().hex
    addrs = {f"1.{i}": f"chan://{tag}-{i}" for i in (1, 2, 3)}
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "address": addrs,
                "http_address": {k: "http://127.0.0.1:0" for k in addrs},
            }
        )
    )
    cfg = make_default_config()
    cfg.load(str(path))
    return cfg


@pytest.fixture
def cluster(config):
    created = []

    def build(replica_id="1.2", **options):
        replica = Replica(replica_id, config, **options)
        created.append(replica)
        others = {}
        for node_id in ("1.1", "1.2", "1.3"):
            if node_id != replica_id:
                node = Node(node_id, config)
                created.append(node)
                others[ID(node_id)] = node
        return replica, others

    yield build
    for node in created:
        node.close()


def receive(node, timeout=5.0):
    box = queue.Queue()
    threading.Thread(target=lambda: box.put(node.socket.recv()), daemon=True).start()
    return box.get(timeout=timeout)


def test_local_read_reply_carries_metadata(cluster):
    replica, _ = cluster(read_mode="any")
    replica.put(7, b"seven")
    request = Request(command=Command(key=7))
    replica.handle_request(request)
    reply = request.wait_reply(timeout=5)
    assert reply.value == b"seven"
    assert reply.command == request.command
    props = reply.properties
    assert props[HTTP_HEADER_NODE_ID] == "1.2"
    assert props[HTTP_HEADER_SLOT] == str(replica.paxos.slot)
    assert props[HTTP_HEADER_BALLOT] == str(replica.paxos.ballot)
    assert props[HTTP_HEADER_KEY_SLOT] == props[HTTP_HEADER_EXECUTE]
    assert props[HTTP_HEADER_IN_PROGRESS] == "false"
    assert props[HTTP_HEADER_HOLE] == "{}"


def test_read_in_progress_prefers_log_entry(cluster):
    replica, _ = cluster()
    replica.put(3, b"old")
    replica.paxos.handle_p2a(
        P2a(
            id=ID("1.1"),
            ballot=new_ballot(1, "1.1"),
            slot=0,
            command=Command(key=3, value=b"new"),
            status=Status.ACCEPT,
        )
    )
    result = replica.read_in_progress(Request(command=Command(key=3)))
    assert result == (b"new", 0, Status.ACCEPT.value, True)


def test_read_outside_log_uses_database(cluster):
    replica, _ = cluster()
    replica.put(4, b"stored")
    value, slot, status, in_progress = replica.read_in_progress(
        Request(command=Command(key=4))
    )
    assert value == b"stored"
    assert slot < 0
    assert status == ""
    assert in_progress is False
    assert replica.get(4) == b"stored"


def test_write_is_forwarded_to_leader(cluster):
    replica, others = cluster()
    request = Request(command=Command(key=1, value=b"v"))
    replica.handle_request(request)
    forwarded = receive(others["1.1"])
    assert isinstance(forwarded, Request)
    assert forwarded.command == request.command
    assert forwarded.node_id == "1.2"
    assert replica.paxos.requests == []


def test_read_without_read_mode_is_forwarded(cluster):
    replica, others = cluster()
    request = Request(command=Command(key=2))
    replica.handle_request(request)
    forwarded = receive(others["1.1"])
    assert isinstance(forwarded, Request)
    assert forwarded.command == request.command


def test_ephemeral_leader_starts_phase_one(cluster):
    replica, others = cluster(ephemeral_leader=True)
    request = Request(command=Command(key=1, value=b"v"))
    replica.handle_request(request)
    assert replica.paxos.requests == [request]
    assert replica.paxos.ballot == new_ballot(1, "1.2")
    prepare = receive(others["1.3"])
    assert isinstance(prepare, P1a)
    assert prepare.ballot == replica.paxos.ballot


def test_registered_handlers_dispatch_messages(cluster):
    replica, others = cluster()
    replica.start()
    ballot = new_ballot(2, "1.3")
    replica.messages.put(P1a(ballot=ballot))
    promise = receive(others["1.3"])
    assert isinstance(promise, P1b)
    assert promise.ballot == ballot
    assert promise.id == "1.2"


def test_main_rejects_unknown_algorithm():
    with pytest.raises(SystemExit):
        main(["-algorithm", "paxos"])