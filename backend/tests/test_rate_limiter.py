import threading
import time

import pytest

from chainsync.ingest.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_first_call_is_not_delayed():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)
    limiter.configure("etherscan", 200)

    assert limiter.acquire("etherscan") == 0
    assert clock.sleeps == []


def test_consecutive_calls_wait_for_min_interval():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)

    limiter.acquire("coingecko", 1200)
    clock.now += 0.2
    waited = limiter.acquire("coingecko", 1200)

    assert waited == pytest.approx(1.0)
    assert limiter.last_granted("coingecko") == pytest.approx(101.2)


def test_no_wait_after_interval_elapsed():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)
    limiter.configure("etherscan", 200)

    limiter.acquire("etherscan")
    clock.now += 5
    assert limiter.acquire("etherscan") == 0


def test_keys_are_independent():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)
    limiter.configure("etherscan", 200)
    limiter.configure("coingecko", 1200)

    limiter.acquire("coingecko")
    assert limiter.acquire("etherscan") == 0


def test_burst_allows_initial_calls_then_spaces_them():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=lambda _seconds: None)
    limiter.configure("rpc", 1000, burst=3)

    waits = [limiter.acquire("rpc") for _ in range(4)]

    assert waits[:3] == [0, 0, 0]
    assert waits[3] == pytest.approx(1.0)


def test_configure_rejects_invalid_values():
    limiter = RateLimiter()
    with pytest.raises(ValueError):
        limiter.configure("x", -1)
    with pytest.raises(ValueError):
        limiter.configure("x", 10, burst=0)


def test_concurrent_callers_get_distinct_slots():
    """A lost update under contention would hand two callers the same slot."""
    frozen = 50.0
    limiter = RateLimiter(clock=lambda: frozen, sleep=lambda _seconds: None)
    limiter.configure("etherscan", 100)

    waits = []
    lock = threading.Lock()
    barrier = threading.Barrier(16)

    def worker():
        barrier.wait()
        for _ in range(10):
            waited = limiter.acquire("etherscan")
            with lock:
                waits.append(round(waited, 6))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(waits) == 160
    assert sorted(waits) == [round(i * 0.1, 6) for i in range(160)]


def test_real_threads_respect_spacing():
    limiter = RateLimiter()
    limiter.configure("etherscan", 30)
    granted = []
    lock = threading.Lock()

    def worker():
        limiter.acquire("etherscan")
        with lock:
            granted.append(time.monotonic())

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    granted.sort()
    gaps = [later - earlier for earlier, later in zip(granted, granted[1:])]
    # five gaps of ~30ms each; allow scheduler jitter on individual gaps
    assert granted[-1] - granted[0] >= 5 * 0.03 - 0.01
    assert all(gap >= 0 for gap in gaps)
