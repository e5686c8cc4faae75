"""Serialisation of messages onto a byte stream."""

from __future__ import annotations

import base64
import dataclasses
import json
import pickle
from abc import ABC, abstractmethod
from typing import Any, BinaryIO


def _to_json(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


class Codec(ABC):
    """Writes messages to and reads messages from one stream."""

    scheme = ""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    @abstractmethod
    def encode(self, message: Any) -> None:
        """Write one message to the stream."""

    @abstractmethod
    def decode(self) -> Any:
        """Read the next message; EOFError when the stream has none."""

    def _flush(self) -> None:
        flush = getattr(self._stream, "flush", None)
        if flush is not None:
            flush()


class JSONCodec(Codec):
    """One JSON document per line; dataclasses become objects, bytes base64."""

    scheme = "json"

    def encode(self, message: Any) -> None:
        text = json.dumps(message, default=_to_json) + "\n"
        self._stream.write(text.encode("utf-8"))
        self._flush()

    def decode(self) -> Any:
        line = self._stream.readline()
        if not line:
            raise EOFError("no more messages")
        return json.loads(line)


class PickleCodec(Codec):
    """Self-describing binary messages that keep their Python types."""

    scheme = "pickle"

    def encode(self, message: Any) -> None:
        pickle.dump(message, self._stream)
        self._flush()

    def decode(self) -> Any:
        return pickle.load(self._stream)


_CODECS = {"json": JSONCodec, "pickle": PickleCodec, "gob": PickleCodec}


def new_codec(scheme: str, stream: BinaryIO) -> Codec:
    """Codec for the scheme "json", or "pickle" (alias "gob")."""
    try:
        cls = _CODECS[scheme]
    except KeyError:
        raise ValueError(f"unknown codec scheme {scheme}") from None
    return cls(stream)