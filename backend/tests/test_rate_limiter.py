"""
Audiomosh Proxy — Rate Limiter Unit Tests
==========================================

What we test:
    ✅ Exactly max_requests inside a window are all allowed
    ✅ Request max_requests + 1 is rejected with a positive retry_after
    ✅ The window restarts once it has elapsed (boundary is inclusive)
    ✅ Clients are counted independently
    ✅ Sweeping drops only expired counters; stats reflect occupancy
"""

import pytest

from media_proxy.services.rate_limiter import RateLimiter


class TestAdmit:
    """Fixed window admission decisions."""

    def test_first_request_is_allowed(self):
        limiter = RateLimiter(max_requests=3, window_seconds=60)
        decision = limiter.admit("10.0.0.1", now=0.0)
        assert decision.allowed
        assert decision.retry_after == 0
        assert decision.count == 1

    def test_exactly_max_requests_allowed(self):
        limiter = RateLimiter(max_requests=100, window_seconds=60)
        decisions = [limiter.admit("10.0.0.1", now=float(i) * 0.1) for i in range(100)]
        assert all(d.allowed for d in decisions)

    def test_request_over_limit_rejected(self):
        limiter = RateLimiter(max_requests=100, window_seconds=60)
        for _ in range(100):
            limiter.admit("10.0.0.1", now=0.0)

        decision = limiter.admit("10.0.0.1", now=10.0)
        assert not decision.allowed
        assert decision.retry_after == 50
        assert decision.count == 101

    def test_retry_after_rounds_up(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.admit("c", now=0.0)
        decision = limiter.admit("c", now=59.2)
        assert not decision.allowed
        assert decision.retry_after == 1

    def test_rejections_keep_counting(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.admit("c", now=0.0)
        limiter.admit("c", now=1.0)
        decision = limiter.admit("c", now=2.0)
        assert not decision.allowed
        assert decision.count == 3

    def test_window_resets_when_elapsed(self):
        limiter = RateLimiter(max_requests=2, window_seconds=60)
        limiter.admit("c", now=0.0)
        limiter.admit("c", now=1.0)
        assert not limiter.admit("c", now=2.0).allowed

        # now == window_reset_at counts as elapsed
        decision = limiter.admit("c", now=60.0)
        assert decision.allowed
        assert decision.count == 1

        # The new window runs from the reset request, not the old start
        limiter.admit("c", now=100.0)
        assert not limiter.admit("c", now=119.0).allowed
        assert limiter.admit("c", now=120.0).allowed

    def test_clients_are_independent(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.admit("a", now=0.0).allowed
        assert not limiter.admit("a", now=1.0).allowed
        assert limiter.admit("b", now=1.0).allowed

    def test_uses_injected_clock(self):
        now = [500.0]
        limiter = RateLimiter(max_requests=1, window_seconds=10, clock=lambda: now[0])
        assert limiter.admit("c").allowed
        assert not limiter.admit("c").allowed
        now[0] += 10
        assert limiter.admit("c").allowed


class TestOccupancy:
    """Stats and sweeping of the counter map."""

    def test_stats_counts_clients_and_requests(self):
        limiter = RateLimiter(max_requests=10, window_seconds=60, sweep_every=0)
        limiter.admit("a", now=0.0)
        limiter.admit("a", now=1.0)
        limiter.admit("b", now=1.0)
        assert limiter.stats() == {"active_clients": 2, "total_requests": 3}

    def test_counters_grow_without_sweeping(self):
        limiter = RateLimiter(max_requests=10, window_seconds=1, sweep_every=0)
        for i in range(50):
            limiter.admit(f"client-{i}", now=float(i))
        assert limiter.stats()["active_clients"] == 50

    def test_sweep_removes_only_expired_counters(self):
        limiter = RateLimiter(max_requests=10, window_seconds=60, sweep_every=0)
        limiter.admit("old", now=0.0)
        limiter.admit("new", now=30.0)

        removed = limiter.sweep(now=60.0)

        assert removed == 1
        assert limiter.stats()["active_clients"] == 1

    def test_periodic_sweep_runs_every_n_admits(self):
        limiter = RateLimiter(max_requests=10, window_seconds=1, sweep_every=3)
        limiter.admit("a", now=0.0)
        limiter.admit("b", now=0.0)
        # Third admit triggers the sweep; a and b have expired by t=5
        limiter.admit("c", now=5.0)
        assert limiter.stats() == {"active_clients": 1, "total_requests": 1}

    def test_reset_clears_everything(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.admit("a", now=0.0)
        limiter.reset()
        assert limiter.stats()["active_clients"] == 0
        assert limiter.admit("a", now=1.0).allowed


@pytest.mark.parametrize("max_requests", [1, 5, 100])
def test_boundary_holds_for_any_limit(max_requests):
    limiter = RateLimiter(max_requests=max_requests, window_seconds=60)
    for _ in range(max_requests):
        assert limiter.admit("c", now=0.0).allowed
    rejected = limiter.admit("c", now=0.0)
    assert not rejected.allowed
    assert rejected.retry_after > 0
