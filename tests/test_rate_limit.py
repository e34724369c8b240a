"""
Fixed-window rate limiter backends.
"""
import pytest

from car_reliability.core.exceptions import RateLimitExceededError
from car_reliability.core.rate_limit import DatabaseRateLimiter, InMemoryRateLimiter, build_rate_limiter
from car_reliability.db.models.rate_limit import RateLimitCounter


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_in_memory_counts_within_window(clock):
    limiter = InMemoryRateLimiter(clock=clock)

    assert [limiter.hit("k", 60) for _ in range(3)] == [1, 2, 3]
    assert limiter.hit("other", 60) == 1


def test_in_memory_window_rollover_resets_count(clock):
    limiter = InMemoryRateLimiter(clock=clock)
    limiter.hit("k", 60)
    limiter.hit("k", 60)

    clock.now += 60

    assert limiter.hit("k", 60) == 1


def test_check_raises_after_limit(clock):
    limiter = InMemoryRateLimiter(clock=clock)
    for _ in range(3):
        limiter.check("report:1.2.3.4", 3, 60)

    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.check("report:1.2.3.4", 3, 60)
    assert exc_info.value.status_code == 429


def test_database_limiter_shares_counts_between_instances(clock, session_factory):
    first = DatabaseRateLimiter(session_factory=session_factory, clock=clock)
    second = DatabaseRateLimiter(session_factory=session_factory, clock=clock)

    assert first.hit("report:ip", 60) == 1
    assert second.hit("report:ip", 60) == 2
    assert first.hit("report:ip", 60) == 3

    with session_factory() as s:
        row = s.query(RateLimitCounter).one()
        assert row.hits == 3
        assert row.window_start == 999960


def test_database_limiter_drops_old_windows(clock, session_factory):
    limiter = DatabaseRateLimiter(session_factory=session_factory, clock=clock)
    limiter.hit("k", 60)
    limiter.hit("k", 60)

    clock.now += 120

    assert limiter.hit("k", 60) == 1
    with session_factory() as s:
        assert s.query(RateLimitCounter).count() == 1


def test_database_limiter_enforces_limit(clock, session_factory):
    limiter = DatabaseRateLimiter(session_factory=session_factory, clock=clock)
    limiter.check("k", 1, 60)

    with pytest.raises(RateLimitExceededError):
        limiter.check("k", 1, 60)


def test_build_rate_limiter_backends():
    assert isinstance(build_rate_limiter("memory"), InMemoryRateLimiter)
    assert isinstance(build_rate_limiter("database"), DatabaseRateLimiter)
    assert isinstance(build_rate_limiter("redis"), DatabaseRateLimiter)
