from __future__ import annotations

import pytest

from rate_limiter import RateLimiter, cooldown_duration


@pytest.mark.parametrize("count,expected", [
    (0, 0.0),
    (1, 30.0),
    (2, 60.0),
    (3, 120.0),
    (4, 240.0),
    (5, 300.0),
    (10, 300.0),
])
def test_cooldown_duration(count, expected):
    assert cooldown_duration(count) == expected


def test_first_request_does_not_wait(clock):
    limiter = RateLimiter("Test", 10.0, clock=clock, sleep=clock.sleep)
    limiter.wait()
    assert clock.sleeps == []
    assert limiter.last_request_time == clock.now


def test_enforces_min_interval(clock):
    limiter = RateLimiter("Test", 10.0, clock=clock, sleep=clock.sleep)
    limiter.wait()
    clock.now += 4
    limiter.wait()
    assert clock.sleeps == [pytest.approx(6.0)]


def test_no_wait_after_interval_elapsed(clock):
    limiter = RateLimiter("Test", 10.0, clock=clock, sleep=clock.sleep)
    limiter.wait()
    clock.now += 15
    limiter.wait()
    assert clock.sleeps == []


def test_waits_out_cooldown(clock):
    limiter = RateLimiter("Test", 10.0, clock=clock, sleep=clock.sleep)
    limiter.wait()
    duration = limiter.record_rate_limited()
    assert duration == 30.0

    limiter.wait()
    assert clock.sleeps == [pytest.approx(30.0)]


def test_cooldown_progression_and_reset(clock):
    limiter = RateLimiter("Test", 10.0, clock=clock, sleep=clock.sleep)

    durations = [limiter.record_rate_limited() for _ in range(3)]
    assert durations == [30.0, 60.0, 120.0]
    assert limiter.consecutive_429_count == 3
    assert limiter.cooldown_until == clock.now + 120.0

    limiter.record_success()
    assert limiter.consecutive_429_count == 0
    assert limiter.cooldown_until == 0.0
    assert limiter.record_rate_limited() == 30.0


def test_time_until_ready_takes_longest_constraint(clock):
    limiter = RateLimiter("Test", 10.0, clock=clock, sleep=clock.sleep)
    limiter.wait()
    assert limiter.time_until_ready() == pytest.approx(10.0)
    limiter.record_rate_limited()
    assert limiter.time_until_ready() == pytest.approx(30.0)
