import threading
import time
from unittest import mock

import pytest

from paxi.util import retry, schedule


def flaky(failures):
    calls = []

    def func():
        calls.append(None)
        if len(calls) <= failures:
            raise OSError(f"fail {len(calls)}")
        return len(calls)

    return func, calls


def test_retry_returns_after_failures():
    func, calls = flaky(2)
    assert retry(func, 5, 0) == 3
    assert len(calls) == 3


def test_retry_gives_up_with_last_error():
    func, calls = flaky(10)
    with pytest.raises(RuntimeError, match="after 3 attempts, last error: fail 3") as info:
        retry(func, 3, 0)
    assert len(calls) == 3
    assert isinstance(info.value.__cause__, OSError)


def test_retry_calls_at_least_once():
    func, calls = flaky(0)
    assert retry(func, 0, 0) == 1
    assert len(calls) == 1


def test_retry_sleeps_longer_each_time():
    func, _ = flaky(10)
    with mock.patch("paxi.util.time.sleep") as sleep:
        with pytest.raises(RuntimeError):
            retry(func, 3, 0.5)
    assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]


def test_schedule_repeats_until_stopped():
    count = []
    reached = threading.Event()

    def tick():
        count.append(None)
        if len(count) >= 3:
            reached.set()

    stop = schedule(tick, 0.01)
    assert not stop.is_set()
    assert reached.wait(2.0)
    stop.set()
    assert stop.is_set()
    time.sleep(0.05)
    settled = len(count)
    time.sleep(0.05)
    assert len(count) == settled
    assert settled >= 3