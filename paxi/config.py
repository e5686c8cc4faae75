"""System and benchmark configuration, loaded from and saved to JSON."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any

from paxi.ident import ID

DEFAULT_CONFIG_FILE = "config.json"


@dataclass
class BenchmarkConfig:
    """Workload settings for a benchmark run."""

    duration: int = 60  # seconds of running time; 0 means run a fixed count
    requests: int = 0  # total number of requests
    keys: int = 1000  # key space
    write_ratio: float = 0.5
    throttle: int = 0  # requests per second, unused if 0
    concurrency: int = 1  # number of simulated clients
    distribution: str = "uniform"
    linearizability_check: bool = True
    conflicts: int = 100  # percentage of conflicting keys
    min_key: int = 0
    mu: float = 0.0
    sigma: float = 60.0
    move: bool = False  # move the normal distribution's mean over time
    speed: int = 500  # milliseconds per key of movement
    zipfian_s: float = 2.0
    zipfian_v: float = 1.0
    lambda_: float = 0.01  # exponential distribution rate


_BENCHMARK_FIELDS = (
    ("duration", "T", int),
    ("requests", "N", int),
    ("keys", "K", int),
    ("write_ratio", "W", float),
    ("throttle", "Throttle", int),
    ("concurrency", "Concurrency", int),
    ("distribution", "Distribution", str),
    ("linearizability_check", "LinearizabilityCheck", bool),
    ("conflicts", "Conflicts", int),
    ("min_key", "Min", int),
    ("mu", "Mu", float),
    ("sigma", "Sigma", float),
    ("move", "Move", bool),
    ("speed", "Speed", int),
    ("zipfian_s", "ZipfianS", float),
    ("zipfian_v", "ZipfianV", float),
    ("lambda_", "Lambda", float),
)


@dataclass
class Config:
    """Addresses of all nodes and the system-wide settings."""

    addrs: dict[ID, str] = field(default_factory=dict)
    http_addrs: dict[ID, str] = field(default_factory=dict)
    policy: str = "consecutive"
    threshold: float = 3.0
    thrifty: bool = False
    buffer_size: int = 1024
    chan_buffer_size: int = 1024
    multiversion: bool = False
    benchmark: BenchmarkConfig = field(default_factory=BenchmarkConfig)

    def ids(self) -> list[ID]:
        """All node ids."""
        return list(self.addrs)

    def n(self) -> int:
        """Total number of nodes."""
        return len(self.addrs)

    def z(self) -> int:
        """Total number of zones."""
        return len({ID(i).zone() for i in self.addrs})

    def zone_size(self, zone: int) -> int:
        """Number of nodes in the given zone."""
        return sum(1 for i in self.addrs if ID(i).zone() == zone)

    def __str__(self) -> str:
        return json.dumps(_dump(self, _CONFIG_FIELDS), separators=(",", ":"))

    def load(self, path: str | os.PathLike = DEFAULT_CONFIG_FILE) -> None:
        """Overlay the settings found in a JSON file onto this configuration."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        _apply(self, _CONFIG_FIELDS, data, "config")

    def save(self, path: str | os.PathLike = DEFAULT_CONFIG_FILE) -> None:
        """Write this configuration to a JSON file."""
        with open(path, "w", encoding="utf-8") as f:
            f.write(str(self) + "\n")


_CONFIG_FIELDS = (
    ("addrs", "address", dict),
    ("http_addrs", "http_address", dict),
    ("policy", "policy", str),
    ("threshold", "threshold", float),
    ("thrifty", "thrifty", bool),
    ("buffer_size", "buffer_size", int),
    ("chan_buffer_size", "chan_buffer_size", int),
    ("multiversion", "multiversion", bool),
    ("benchmark", "benchmark", BenchmarkConfig),
)


def _json_number(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def _coerce(value: Any, kind: type, name: str) -> Any:
    if kind is bool:
        if isinstance(value, bool):
            return value
    elif kind is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif kind is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif kind is str:
        if isinstance(value, str):
            return value
    raise ValueError(f"cannot use {value!r} for config field {name}")


def _apply(target: Any, fields: tuple, data: Any, context: str) -> None:
    if not isinstance(data, dict):
        raise ValueError(f"{context} must be a JSON object")
    by_name = {json_name.lower(): (attr, kind) for attr, json_name, kind in fields}
    exact = {json_name: (attr, kind) for attr, json_name, kind in fields}
    for key, value in data.items():
        spec = exact.get(key) or by_name.get(key.lower())
        if spec is None or value is None:
            continue
        attr, kind = spec
        if kind is BenchmarkConfig:
            _apply(getattr(target, attr), _BENCHMARK_FIELDS, value, key)
        elif kind is dict:
            if not isinstance(value, dict) or not all(
                isinstance(v, str) for v in value.values()
            ):
                raise ValueError(f"config field {key} must map ids to addresses")
            merged = dict(getattr(target, attr))
            merged.update({ID(k): v for k, v in value.items()})
            setattr(target, attr, merged)
        else:
            setattr(target, attr, _coerce(value, kind, key))


def _dump(target: Any, fields: tuple) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for attr, json_name, kind in fields:
        value = getattr(target, attr)
        if kind is dict:
            value = {str(k): value[k] for k in sorted(value)}
        elif kind is BenchmarkConfig:
            value = _dump(value, _BENCHMARK_FIELDS)
        elif kind is float:
            value = _json_number(value)
        out[json_name] = value
    return out


def default_benchmark_config() -> BenchmarkConfig:
    """Benchmark settings used when none are configured."""
    return BenchmarkConfig()


def make_default_config() -> Config:
    """A configuration with the default settings and no nodes."""
    return Config()


_config = make_default_config()
_settings: dict[str, str] = {"transport_scheme": "tcp"}


def get_config() -> Config:
    """The process-wide configuration."""
    return _config


def transport_scheme() -> str:
    """Scheme used for node addresses that do not name one."""
    return _settings["transport_scheme"]


def set_transport_scheme(scheme: str) -> None:
    """Change the scheme used for node addresses that do not name one."""
    _settings["transport_scheme"] = str(scheme)


def simulation() -> None:
    """Use in-process channels instead of the network."""
    set_transport_scheme("chan")