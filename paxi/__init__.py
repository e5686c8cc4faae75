"""Building blocks for Paxos-style replicated key-value stores: identifiers, ballots,
quorums, transports, a replica node with a REST API, an HTTP client and a
linearizability checker."""

__version__ = "0.1.0"