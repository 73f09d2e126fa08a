"""Tests for the fixed-window rate limiter."""

from __future__ import annotations

import threading

import pytest

from repohealth.stores import FixedWindowRateLimiter, client_identifier


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _limiter(clock: FakeClock, max_requests: int = 3) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(max_requests, 60, sweep_interval=None, clock=clock)


def test_request_after_limit_is_rejected_until_window_elapses() -> None:
    clock = FakeClock()
    limiter = _limiter(clock)

    decisions = [limiter.admit("1.2.3.4") for _ in range(3)]
    assert [decision.allowed for decision in decisions] == [True, True, True]
    assert [decision.remaining for decision in decisions] == [2, 1, 0]

    rejected = limiter.admit("1.2.3.4")
    assert rejected.allowed is False
    assert rejected.remaining == 0
    assert rejected.retry_after == 60

    clock.now += 30.5
    assert limiter.admit("1.2.3.4").retry_after == 30

    clock.now += 30
    reset = limiter.admit("1.2.3.4")
    assert reset.allowed is True
    assert reset.remaining == 2


def test_rejections_do_not_extend_the_window() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, max_requests=1)
    limiter.admit("a")
    for _ in range(5):
        assert limiter.admit("a").allowed is False

    clock.now += 60.001
    assert limiter.admit("a").allowed is True


def test_clients_are_tracked_independently() -> None:
    limiter = _limiter(FakeClock(), max_requests=1)

    assert limiter.admit("a").allowed is True
    assert limiter.admit("b").allowed is True
    assert limiter.admit("a").allowed is False


def test_sweep_drops_expired_records() -> None:
    clock = FakeClock()
    limiter = _limiter(clock)
    limiter.admit("old")
    clock.now += 45
    limiter.admit("new")

    clock.now += 20
    assert limiter.sweep() == 1
    assert len(limiter) == 1


def test_concurrent_admissions_never_exceed_limit() -> None:
    limiter = _limiter(FakeClock(), max_requests=50)
    results = []
    lock = threading.Lock()

    def worker() -> None:
        for _ in range(20):
            decision = limiter.admit("shared")
            with lock:
                results.append(decision.allowed)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 50


def test_background_sweeper_can_be_stopped() -> None:
    limiter = FixedWindowRateLimiter(2, 60, sweep_interval=3600)
    limiter.admit("a")
    assert limiter._timer is not None
    assert limiter._timer.daemon is True

    limiter.stop()
    assert limiter._timer is None


def test_invalid_limit_is_rejected() -> None:
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(0)


@pytest.mark.parametrize(
    "headers, expected",
    [
        ({"CF-Connecting-IP": "9.9.9.9", "X-Forwarded-For": "1.1.1.1"}, "9.9.9.9"),
        ({"x-vercel-forwarded-for": "2.2.2.2, 10.0.0.1"}, "2.2.2.2"),
        ({"x-forwarded-for": " 3.3.3.3 , 10.0.0.1", "x-real-ip": "4.4.4.4"}, "3.3.3.3"),
        ({"x-real-ip": "4.4.4.4"}, "4.4.4.4"),
        ({}, "unknown"),
    ],
)
def test_client_identifier_header_priority(headers, expected) -> None:
    assert client_identifier(headers) == expected
