import threading

from storefront.core.rate_limiter import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_fixed_window_counts_per_key():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=3, window_seconds=60, clock=clock)

    decisions = [limiter.check(key="a") for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions[:3]] == [2, 1, 0]
    assert decisions[-1].retry_after_seconds == 60
    assert limiter.check(key="b").allowed is True


def test_retry_after_shrinks_with_time():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
    limiter.check(key="a")

    clock.now = 45
    decision = limiter.check(key="a")

    assert decision.allowed is False
    assert decision.retry_after_seconds == 15


def test_window_expires_and_is_purged():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
    limiter.check(key="a")
    limiter.check(key="b")

    clock.now = 61
    assert limiter.check(key="a").allowed is True
    assert "b" not in limiter._windows


def test_reset_clears_state():
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=FakeClock())
    limiter.check(key="a")

    limiter.reset()

    assert limiter.check(key="a").allowed is True


def test_concurrent_checks_never_exceed_limit():
    limiter = FixedWindowRateLimiter(limit=10, window_seconds=60, clock=FakeClock())
    results = []
    results_lock = threading.Lock()
    start = threading.Barrier(40)

    def worker():
        start.wait()
        decision = limiter.check(key="10.0.0.1")
        with results_lock:
            results.append(decision.allowed)

    threads = [threading.Thread(target=worker) for _ in range(40)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 10
    assert results.count(False) == 30
