import pytest

from paxi.rate import Limiter


class FakeClock:
    def __init__(self):
        self.now = 0
        self.sleeps = []

    def clock(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += round(seconds * 1_000_000_000)


def test_back_to_back_calls_are_spaced_by_interval():
    fake = FakeClock()
    limiter = Limiter(10, clock=fake.clock, sleep=fake.sleep)
    for _ in range(11):
        limiter.wait()
    assert len(fake.sleeps) == 10
    assert all(s == pytest.approx(0.1) for s in fake.sleeps)
    assert sum(fake.sleeps) == pytest.approx(1.0)


def test_idle_time_credit_is_capped_at_ten_intervals():
    fake = FakeClock()
    limiter = Limiter(10, clock=fake.clock, sleep=fake.sleep)
    limiter.wait()
    fake.now += 5_000_000_000
    limiter.wait()
    for _ in range(10):
        limiter.wait()
    assert fake.sleeps == []
    limiter.wait()
    assert fake.sleeps == [pytest.approx(0.1)]


def test_throughput_matches_rate():
    rate = 1000
    fake = FakeClock()
    limiter = Limiter(rate, clock=fake.clock, sleep=fake.sleep)
    for _ in range(10001):
        limiter.wait()
    elapsed = fake.now / 1_000_000_000
    throughput = 10000 / elapsed
    assert abs(throughput - rate) / rate <= 0.001
    assert len(fake.sleeps) == 10000


def test_rate_must_be_positive():
    with pytest.raises(ValueError):
        Limiter(0)