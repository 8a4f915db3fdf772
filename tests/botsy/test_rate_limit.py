import pytest

from packages.botsy.rate_limit import RateLimiter, rate_limit_identifier


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_blocks():
    clock = Clock()
    limiter = RateLimiter(2, 60, clock=clock)

    first = limiter.check("ip:1")
    second = limiter.check("ip:1")
    third = limiter.check("ip:1")

    assert first.allowed and first.remaining == 1
    assert second.allowed and second.remaining == 0
    assert not third.allowed
    assert third.retry_after == 60
    assert limiter.check("ip:2").allowed


def test_window_expiry_resets_counter():
    clock = Clock()
    limiter = RateLimiter(1, 10, clock=clock)
    limiter.check("user:a")
    assert not limiter.check("user:a").allowed

    clock.now += 10

    assert limiter.check("user:a").allowed


def test_retry_after_counts_down():
    clock = Clock()
    limiter = RateLimiter(1, 30, clock=clock)
    limiter.check("k")
    clock.now += 25.5

    assert limiter.check("k").retry_after == 5


def test_invalid_limit():
    with pytest.raises(ValueError):
        RateLimiter(0, 60)


def test_identifier_prefers_user():
    assert rate_limit_identifier(user_id="u1", ip="1.2.3.4") == "user:u1"
    assert rate_limit_identifier(ip="1.2.3.4") == "ip:1.2.3.4"
    assert rate_limit_identifier() == "anonymous"
