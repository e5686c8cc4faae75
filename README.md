# paxi

Building blocks for replicated key-value stores that use Paxos-style
consensus, together with a replica server, an HTTP client and a
linearizability checker for recorded operation histories.

The package uses only the Python standard library (Python 3.10 or later).

## What is in it

| Module | Contents |
| --- | --- |
| `paxi.ident` | `ID` (a `str` of the form `zone.node`) with `zone()`, `node()`, `sort_key()`; `new_id(zone, node)` |
| `paxi.ballot` | `Ballot` (an `int`: 32-bit counter over 16-bit zone and 16-bit node) with `n()`, `id()`, `next()`; `new_ballot`, `ballot_from_string`, `next_ballot`, `leader_id` |
| `paxi.config` | `Config` and `BenchmarkConfig` dataclasses, JSON `load`/`save`, the process-wide `get_config()`, `simulation()` and the default transport scheme |
| `paxi.quorum` | `Quorum`: `ack`, `nack`, `majority`, `majority_x`, `fast_quorum`, `all`, `all_zones`, `zone_majority`, `grid_row`, `grid_column`, `fgrid_q1`, `fgrid_q2` |
| `paxi.policy` | Migration policies `NullPolicy`, `ConsecutivePolicy`, `MajorityPolicy`, `EmaPolicy`; `new_policy(config)` picks one by `config.policy` |
| `paxi.db` | `Command` (frozen dataclass) and the thread-safe `Database`, optionally keeping every written value per key; `conflict`, `conflict_batch` |
| `paxi.message` | `Request`, `Reply`, `AntiEntropy`, `Read`, `ReadReply`, `Transaction`, `TransactionReply`, `Register`, `ProtocolMsg` |
| `paxi.codec` | `new_codec("json" \| "pickle" \| "gob", stream)`; `"gob"` is an alias of the pickle codec |
| `paxi.transport` | `new_transport(addr, scheme=None)` giving `TcpTransport`, `UdpTransport` or in-process `ChannelTransport` (pickled messages on the network) |
| `paxi.netsocket` | `Socket`: send, broadcast, multicast and fault injection (`drop`, `slow`, `flaky`, `crash`) |
| `paxi.rest` | `RestServer`, the HTTP front end of a node |
| `paxi.node` | `Node` (socket, database, message dispatch by type, REST server) and `init(argv)` |
| `paxi.client` | `HTTPClient` and `ClientError` |
| `paxi.rlpaxos.paxos` | `Paxos` and its messages `P1a`, `P1b`, `P2a`, `P2b`, `P3`, `PullRequest`, `PushRequest` |
| `paxi.rlpaxos.replica` | `Replica` (a `Node` running `Paxos`) and the `paxi-server` command |
| `paxi.rate` | `Limiter`, spacing calls to `wait()` to a given rate per second |
| `paxi.stat` | `statistic(latencies_ns)` giving a `Stat` (mean, min, max, median, p95, p99, p999 in ms) |
| `paxi.operation`, `paxi.checker`, `paxi.history` | Recorded operations, the linearizability `Checker`, `History` and the `paxi-checker` command |
| `paxi.util` | `retry(func, attempts, sleep)` and `schedule(func, delay)` |
| `paxi.log` | Levelled logging; `setup(log_dir)` writes to `<program>.<pid>.log` |
| `paxi.lib` | `Graph` (BFS, DFS, transpose, cycle and SCC detection), `Stack`, `HashRing` |

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Configuration

Nodes and clients read a JSON file (`config.json` by default):

```json
{
  "address": {"1.1": "127.0.0.1:1735", "1.2": "127.0.0.1:1736", "1.3": "127.0.0.1:1737"},
  "http_address": {"1.1": "http://127.0.0.1:8080",
                   "1.2": "http://127.0.0.1:8081",
                   "1.3": "http://127.0.0.1:8082"},
  "policy": "consecutive",
  "threshold": 3,
  "thrifty": false,
  "chan_buffer_size": 1024,
  "multiversion": true
}
```

Node addresses without a `scheme://` prefix use the transport scheme
(`tcp` unless changed). Keys missing from the file keep their defaults.

## Running replicas

```
paxi-server -algorithm paxos2bro -id 1.1 -config config.json
```

`-algorithm` must be `paxos2bro` (the default value `paxos` is rejected).
Other options:

- `-id` — the node to run; `-sim` runs every configured node in this
  process over in-process channels instead;
- `-read2 MODE` — when non-empty, reads are answered by the receiving
  replica with the newest value of the key still in its unexecuted log
  (or its stored value), and headers `ID`, `Slot`, `KeySlot`,
  `KeyStatus`, `Ballot`, `Execute`, `Inprogress` and `Hole`;
- `-ephemeral_leader2` — the replica runs phase 1 and proposes requests
  itself; without it, requests are forwarded to node `1.1`;
- `-slidewindow N` — how far back (default 5) a new entry is compared
  with earlier entries of the same key;
- `-config`, `-transport`, `-log_dir`, `-log_level` — configuration file,
  default transport scheme, log directory and level.

`paxi-server --help` lists the command's own options.

Each node serves HTTP on the port of its `http_address`:

- `GET /<key>` reads, `PUT /<key>` (or `POST`) with the value as body writes;
  headers `Id` and `Cid` carry client and command ids;
- `POST /` with a JSON command `{"Key", "Value" (base64), "ClientID", "CommandID"}`;
- `GET /history?key=K` — JSON list (base64) of all values written to K,
  when `multiversion` is on;
- `GET /crash?t=S` and `GET /drop?id=ID&t=S` — fault injection.

## Client

```python
from paxi.config import get_config
from paxi.client import HTTPClient, ClientError

get_config().load("config.json")
client = HTTPClient("1.1")
client.put(1, b"hello")
try:
    print(client.get(1))
except ClientError as exc:
    print("failed:", exc, exc.metadata)

values, headers = client.quorum_get(1)
print(client.consensus(1))     # True if node histories agree
client.crash("1.2", 5)         # crash node 1.2 for five seconds
client.partition(10, "1.3")    # cut 1.3 off from the others for ten seconds
```

## Checking a recorded history

`paxi-checker -log FILE` (default `log.csv`) reads a CSV history and prints
the number of reads that break linearizability. Each row is
`shard,key,input,output,start,end`, with empty or `null` for a missing
input (a read) or output (a write) and integer timestamps.

```
paxi-checker -log log.csv
```

From Python:

```python
from paxi.history import History

history = History()
history.add(1, "x", None, 0, 10)     # write x
history.add(1, None, "x", 20, 30)    # read x
print(history.linearizable())        # 0
```

`History.write_file(path)` writes `<path>.csv` with five columns
`key,input,output,start,end` (times in seconds); that layout is not the one
`read_file` expects.

## Library examples

```python
from paxi.ident import new_id
from paxi.ballot import new_ballot

leader = new_id(2, 1)
ballot = new_ballot(0, leader).next(leader)
assert ballot.n() == 1 and ballot.id() == leader
```

```python
from paxi.lib.graph import Graph

g = Graph()
g.add_edge(1, 2)
g.add_edge(1, 3)
g.add_edge(2, 4)
print(g.bfs(1))        # [1, 2, 3, 4]
g.add_edge(4, 3)
g.add_edge(3, 2)
print(g.cyclic())      # True
```

```python
from paxi.lib.stack import Stack
from paxi.lib.hash_ring import HashRing

s = Stack()
s.push(1)
s.push(2)
print(s.peek(), len(s))   # 2 2

ring = HashRing()
ring.insert("a", b"a")
ring.insert("b", b"b")
print(ring.next("a"))     # b
```

## What it does not do

- There is no benchmark driver: `BenchmarkConfig` holds workload settings
  and `Limiter`, `statistic` and `History` are available, but nothing
  generates a workload or records a history from live requests.
- There is no interactive command-line client and no master node that
  hands out configuration; use `HTTPClient` from Python.
- Only one replication protocol is included. Its acceptors record `P2a`
  proposals but do not answer them with `P2b` messages, and `is_leader()`
  always returns false, so writes are forwarded to node `1.1` unless
  `-ephemeral_leader2` is given.