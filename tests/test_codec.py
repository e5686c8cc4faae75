import base64
from dataclasses import dataclass

import pytest

from paxi.codec import JSONCodec, PickleCodec, new_codec


@dataclass
class A:
    I: int
    S: str
    B: bool


@dataclass
class B:
    S: str


class _Fifo:
    """Byte buffer that reads from the front and writes at the back."""

    def __init__(self):
        self._data = bytearray()

    def write(self, b):
        self._data += b
        return len(b)

    def read(self, n=-1):
        if n is None or n < 0:
            n = len(self._data)
        chunk = bytes(self._data[:n])
        del self._data[:n]
        return chunk

    def readinto(self, buf):
        chunk = self.read(len(buf))
        buf[: len(chunk)] = chunk
        return len(chunk)

    def readline(self, size=-1):
        i = self._data.find(b"\n")
        end = len(self._data) if i < 0 else i + 1
        return self.read(end)


def test_gob_round_trip_keeps_types():
    c = new_codec("gob", _Fifo())
    send = A(1, "a", True)
    c.encode(send)
    assert c.decode() == send

    send = B("test")
    c.encode(send)
    assert c.decode() == send


def test_pickle_scheme_round_trip_in_order():
    c = new_codec("pickle", _Fifo())
    c.encode(A(1, "a", True))
    c.encode(B("x"))
    assert [c.decode(), c.decode()] == [A(1, "a", True), B("x")]
    assert c.scheme == "pickle"


def test_json_encodes_dataclass_as_object():
    c = new_codec("json", _Fifo())
    c.encode(A(1, "a", True))
    assert c.decode() == {"I": 1, "S": "a", "B": True}
    assert c.scheme == "json"


def test_json_encodes_bytes_as_base64():
    c = JSONCodec(_Fifo())
    c.encode({"v": b"hi"})
    decoded = c.decode()
    assert base64.b64decode(decoded["v"]) == b"hi"


def test_json_decode_of_empty_stream_raises():
    with pytest.raises(EOFError):
        JSONCodec(_Fifo()).decode()


def test_pickle_decode_of_empty_stream_raises():
    with pytest.raises(EOFError):
        PickleCodec(_Fifo()).decode()


def test_unknown_scheme_rejected():
    with pytest.raises(ValueError):
        new_codec("xml", _Fifo())