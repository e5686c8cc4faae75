"""HTTP client of the replicated key-value store, with fault-injection calls."""

from __future__ import annotations

import base64
import json
import random
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from paxi import log
from paxi.config import Config, get_config
from paxi.ident import ID
from paxi.rest import HTTP_CLIENT_ID, HTTP_COMMAND_ID


class ClientError(Exception):
    """A request to a node failed; metadata holds the response headers, if any."""

    def __init__(self, message: str, metadata: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.metadata = metadata or {}


def _canonical(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


def _metadata(headers: Any) -> dict[str, str]:
    return {
        _canonical(k): headers.get(k, "") for k in dict.fromkeys(headers.keys())
    }


class HTTPClient:
    """Talks to the nodes' REST APIs."""

    def __init__(
        self,
        node_id: ID | str = "",
        config: Config | None = None,
        timeout: float | None = None,
    ) -> None:
        config = config if config is not None else get_config()
        self.id = ID(node_id)
        self.addrs = dict(config.addrs)
        self.http = dict(config.http_addrs)
        self.n = len(self.addrs)
        self.local_n = (
            sum(1 for i in self.addrs if ID(i).zone() == self.id.zone())
            if self.id
            else 0
        )
        self.cid = 0
        self.timeout = timeout

    def _call(
        self,
        method: str,
        url: str,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, str, bytes, dict[str, str]]:
        request = urllib.request.Request(url, data=body, method=method)
        for name, value in (headers or {}).items():
            request.add_header(name, value)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as resp:
                return resp.status, resp.reason, resp.read(), _metadata(resp.headers)
        except urllib.error.HTTPError as exc:
            with exc:
                data = exc.read()
            return exc.code, str(exc.reason), data, _metadata(exc.headers)
        except (urllib.error.URLError, OSError, ValueError) as exc:
            log.error("%s", exc)
            raise ClientError(str(exc)) from exc

    def _session_headers(self) -> dict[str, str]:
        return {HTTP_CLIENT_ID: str(self.id), HTTP_COMMAND_ID: str(self.cid)}

    def get(self, key: int) -> bytes:
        """Read key through the node this client belongs to."""
        self.cid += 1
        value, _ = self.rest_get(self.id, key)
        return value

    def put(self, key: int, value: bytes) -> None:
        """Write value to key through the node this client belongs to."""
        self.cid += 1
        self.rest_put(self.id, key, value)

    def get_url(self, node_id: ID | str, key: int) -> str:
        """URL of key at node_id, or at a random node when node_id is empty."""
        node_id = ID(node_id)
        if not node_id:
            if not self.http:
                raise ClientError("no http addresses configured")
            node_id = random.choice(list(self.http))
        return f"{self.http.get(node_id, '')}/{key}"

    def _rest(
        self, node_id: ID | str, key: int, value: bytes | None
    ) -> tuple[bytes, dict[str, str]]:
        url = self.get_url(node_id, key)
        method = "GET" if value is None else "PUT"
        status, reason, body, metadata = self._call(
            method, url, value, self._session_headers()
        )
        if status == 200:
            log.debug(
                "node=%s type=%s key=%s value=%s",
                node_id, method, key, (body if value is None else value).hex(),
            )
            return body, metadata
        log.debug("%r", body)
        raise ClientError(f"{status} {reason}", metadata)

    def rest_get(self, node_id: ID | str, key: int) -> tuple[bytes, dict[str, str]]:
        """Read key from a node; returns the value and the response headers."""
        return self._rest(node_id, key, None)

    def rest_put(
        self, node_id: ID | str, key: int, value: bytes
    ) -> tuple[bytes, dict[str, str]]:
        """Write key at a node; returns the response body and headers."""
        return self._rest(node_id, key, bytes(value))

    def rfl_get(
        self, node_id: ID | str, key: int, keyslot: int, nodehole: str
    ) -> tuple[bytes, dict[str, str]]:
        """Follower read of key; the body is returned whatever the status."""
        url = f"{self.http.get(ID(node_id), '')}/RFL?key={key}"
        headers = self._session_headers()
        headers["keyslot"] = str(keyslot)
        headers["NodeHoles"] = nodehole
        _, _, body, metadata = self._call("GET", url, None, headers)
        return body, metadata

    def _json(self, key: int, value: bytes | None) -> bytes:
        command = {
            "Key": key,
            "Value": None if value is None else base64.b64encode(value).decode("ascii"),
            "ClientID": str(self.id),
            "CommandID": self.cid,
        }
        data = json.dumps(command).encode("utf-8")
        status, reason, body, metadata = self._call(
            "POST", self.http.get(self.id, ""), data, {"Content-Type": "json"}
        )
        if status == 200:
            log.debug("key=%s value=%s", key, body.hex())
            return body
        raise ClientError(f"{status} {reason}", metadata)

    def json_get(self, key: int) -> bytes:
        """Read key by posting a JSON command."""
        return self._json(key, None)

    def json_put(self, key: int, value: bytes) -> bytes:
        """Write key by posting a JSON command."""
        return self._json(key, bytes(value))

    def _gather(self, ids: list[ID], key: int) -> tuple[list[bytes], list[dict[str, str]]]:
        values: list[bytes] = []
        metas: list[dict[str, str]] = []
        if not ids:
            return values, metas
        with ThreadPoolExecutor(max_workers=len(ids)) as pool:
            futures = [pool.submit(self._rest, i, key, None) for i in ids]
            for future in futures:
                try:
                    value, meta = future.result()
                except ClientError as exc:
                    log.error("%s", exc)
                    continue
                values.append(value)
                metas.append(meta)
        return values, metas

    def quorum_get(self, key: int) -> tuple[list[bytes], list[dict[str, str]]]:
        """Read key from a majority of nodes."""
        return self.multi_get(self.n // 2 + 1, key)

    def multi_get(self, n: int, key: int) -> tuple[list[bytes], list[dict[str, str]]]:
        """Read key concurrently from n nodes other than 1.1."""
        ids = [i for i in self.http if i != "1.1"][:n]
        return self._gather(ids, key)

    def local_quorum_get(self, key: int) -> tuple[list[bytes], list[dict[str, str]]]:
        """Read key concurrently from half of the nodes in this client's zone."""
        zone = self.id.zone()
        ids = [i for i in self.http if ID(i).zone() == zone][: self.local_n // 2]
        return self._gather(ids, key)

    def quorum_put(self, key: int, value: bytes) -> None:
        """Write key concurrently to half of the nodes."""
        ids = list(self.http)[: self.n // 2]
        with ThreadPoolExecutor(max_workers=max(len(ids), 1)) as pool:
            for future in [pool.submit(self._rest, i, key, bytes(value)) for i in ids]:
                try:
                    future.result()
                except ClientError as exc:
                    log.error("%s", exc)

    def consensus(self, key: int) -> bool:
        """True if no two nodes hold different values at the same history position."""
        histories: dict[ID, list[bytes]] = {}
        for node_id, url in self.http.items():
            histories[node_id] = []
            try:
                _, _, body, _ = self._call("GET", f"{url}/history?key={key}")
                data = json.loads(body)
                values = [base64.b64decode(v) for v in data or []]
            except (ClientError, ValueError, TypeError) as exc:
                log.error("%s", exc)
                continue
            histories[node_id] = values
            log.debug("node=%s key=%s h=%s", node_id, key, values)
        length = max((len(h) for h in histories.values()), default=0)
        for position in range(length):
            seen = {h[position] for h in histories.values() if len(h) > position}
            if len(seen) > 1:
                return False
        return True

    def _admin(self, url: str) -> None:
        try:
            self._call("GET", url)
        except ClientError:
            pass

    def crash(self, node_id: ID | str, seconds: int) -> None:
        """Crash a node for the given seconds; forever if negative."""
        self._admin(f"{self.http.get(ID(node_id), '')}/crash?t={seconds}")

    def drop(self, source: ID | str, target: ID | str, seconds: int) -> None:
        """Make source drop every message to target for the given seconds."""
        self._admin(
            f"{self.http.get(ID(source), '')}/drop?id={target}&t={seconds}"
        )

    def partition(self, seconds: int, *args: ID | str) -> None:
        """Cut the given nodes off from all others for the given seconds."""
        cut = {ID(a) for a in args}
        for source in self.addrs:
            if ID(source) not in cut:
                for target in args:
                    self.drop(source, target, seconds)