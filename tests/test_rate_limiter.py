from __future__ import annotations

from nochicken.utils.rate_limiter import RateLimiter, estimate_tokens


class Ticker:
    """Float clock that only moves when told to"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def test_request_limit_within_window() -> None:
    ticker = Ticker()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=ticker)

    assert limiter.check_limit("u1").remaining == 1
    assert limiter.check_limit("u1").remaining == 0

    blocked = limiter.check_limit("u1")
    assert not blocked.allowed
    assert blocked.reason == "Request limit exceeded"
    assert blocked.reset_at == 1060.0
    assert limiter.check_limit("u2").allowed


def test_window_resets_after_it_elapses() -> None:
    ticker = Ticker()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=ticker)
    limiter.check_limit("u1")

    ticker.now += 60
    assert not limiter.check_limit("u1").allowed

    ticker.now += 1
    check = limiter.check_limit("u1")
    assert check.allowed
    assert check.reset_at == 1121.0


def test_token_budget() -> None:
    limiter = RateLimiter(max_requests=10, window_seconds=60, max_tokens=100, clock=Ticker())

    assert limiter.check_limit("u1", 80).allowed
    blocked = limiter.check_limit("u1", 30)

    assert not blocked.allowed
    assert blocked.reason == "Token limit exceeded"
    assert blocked.remaining == 9
    assert limiter.get_usage("u1").tokens == 80
    assert limiter.check_limit("u1", 20).allowed


def test_reset_clears_usage() -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=Ticker())
    limiter.check_limit("u1")

    limiter.reset("u1")

    assert limiter.get_usage("u1") is None
    assert limiter.check_limit("u1").allowed


def test_cleanup_drops_users_idle_for_two_windows() -> None:
    ticker = Ticker()
    limiter = RateLimiter(max_requests=5, window_seconds=60, clock=ticker)
    limiter.check_limit("idle")
    ticker.now += 100
    limiter.check_limit("active")
    ticker.now += 21

    assert limiter.cleanup() == 1
    assert limiter.get_usage("idle") is None
    assert limiter.get_usage("active") is not None


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
