"""Tests for the fixed-window request throttle."""

import threading

import pytest

from folioforge.auth.exceptions import RateLimitExceededError
from folioforge.auth.rate_limiter import (
    Allow,
    Deny,
    FixedWindowRateLimiter,
    InMemoryThrottleStore,
    RateLimitConfig,
    RateLimitPresets,
    get_preset,
    rate_limit_headers,
    resolve_client_key,
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(clock=clock, cleanup_probability=0.0)


class TestFixedWindow:
    def test_auth_preset_allows_five_then_denies(self, limiter):
        config = RateLimitPresets.AUTH
        decisions = [limiter.admit("/api/auth/login", "1.2.3.4", config) for _ in range(6)]

        assert all(isinstance(d, Allow) for d in decisions[:5])
        assert [d.remaining for d in decisions[:5]] == [4, 3, 2, 1, 0]

        denied = decisions[5]
        assert isinstance(denied, Deny)
        assert denied.remaining == 0
        assert 1 <= denied.retry_after_seconds <= 900

    def test_window_expiry_starts_fresh(self, limiter, clock):
        config = RateLimitConfig(max_requests=2, window_seconds=60)
        limiter.admit("/x", "c", config)
        limiter.admit("/x", "c", config)
        assert isinstance(limiter.admit("/x", "c", config), Deny)

        clock.advance(60)
        decision = limiter.admit("/x", "c", config)
        assert isinstance(decision, Allow)
        assert decision.remaining == 1
        assert decision.reset_at == clock.now + 60

    def test_retry_after_counts_down(self, limiter, clock):
        config = RateLimitConfig(max_requests=1, window_seconds=100)
        limiter.admit("/x", "c", config)
        clock.advance(40)

        denied = limiter.admit("/x", "c", config)
        assert denied.retry_after_seconds == 60

    def test_denied_requests_do_not_extend_window(self, limiter, clock):
        config = RateLimitConfig(max_requests=1, window_seconds=10)
        first = limiter.admit("/x", "c", config)
        for _ in range(5):
            clock.advance(1)
            limiter.admit("/x", "c", config)

        assert limiter.store.get(limiter.make_key("/x", "c")).reset_at == first.reset_at

    def test_keys_are_independent(self, limiter):
        config = RateLimitConfig(max_requests=1, window_seconds=60)
        assert isinstance(limiter.admit("/a", "client-1", config), Allow)
        assert isinstance(limiter.admit("/a", "client-2", config), Allow)
        assert isinstance(limiter.admit("/b", "client-1", config), Allow)
        assert isinstance(limiter.admit("/a", "client-1", config), Deny)

    def test_check_raises_on_deny(self, limiter):
        config = RateLimitConfig(max_requests=1, window_seconds=30)
        limiter.check("/x", "c", config)

        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.check("/x", "c", config)
        assert exc_info.value.retry_after == 30

    def test_get_remaining_does_not_count(self, limiter):
        config = RateLimitConfig(max_requests=3, window_seconds=60)
        assert limiter.get_remaining("/x", "c", config) == 3
        limiter.admit("/x", "c", config)
        assert limiter.get_remaining("/x", "c", config) == 2
        assert limiter.get_remaining("/x", "c", config) == 2

    def test_sweep_removes_expired_records(self, limiter, clock):
        config = RateLimitConfig(max_requests=5, window_seconds=10)
        limiter.admit("/x", "old", config)
        clock.advance(5)
        limiter.admit("/x", "new", config)
        clock.advance(5)

        assert limiter.sweep() == 1
        assert len(limiter.store) == 1

    def test_probabilistic_sweep_runs_on_admit(self, clock):
        limiter = FixedWindowRateLimiter(clock=clock, cleanup_probability=0.5, rng=lambda: 0.1)
        config = RateLimitConfig(max_requests=5, window_seconds=10)
        limiter.admit("/x", "stale", config)
        clock.advance(20)

        limiter.admit("/x", "fresh", config)
        assert limiter.store.get(limiter.make_key("/x", "stale")) is None

    def test_concurrent_admits_never_exceed_limit(self):
        limiter = FixedWindowRateLimiter(cleanup_probability=0.0)
        config = RateLimitConfig(max_requests=50, window_seconds=60)
        barrier = threading.Barrier(20)
        allowed = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            for _ in range(10):
                decision = limiter.admit("/upload", "same-client", config)
                if decision.allowed:
                    with lock:
                        allowed.append(decision)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(allowed) == 50
        assert sorted(d.remaining for d in allowed) == list(range(50))


class TestThrottleStore:
    def test_lru_bound(self, clock):
        store = InMemoryThrottleStore(max_entries=2)
        limiter = FixedWindowRateLimiter(store=store, clock=clock, cleanup_probability=0.0)
        config = RateLimitConfig(max_requests=5, window_seconds=60)

        limiter.admit("/x", "a", config)
        limiter.admit("/x", "b", config)
        limiter.admit("/x", "a", config)
        limiter.admit("/x", "c", config)

        assert len(store) == 2
        assert store.get("/x:b") is None
        assert store.get("/x:a").count == 2

    def test_reset(self):
        store = InMemoryThrottleStore()
        limiter = FixedWindowRateLimiter(store=store, cleanup_probability=0.0)
        config = RateLimitConfig(max_requests=1, window_seconds=60)
        limiter.admit("/x", "a", config)
        limiter.admit("/x", "b", config)

        store.reset("/x:a")
        assert isinstance(limiter.admit("/x", "a", config), Allow)
        store.reset()
        assert len(store) == 0

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            InMemoryThrottleStore(max_entries=0)


class TestConfigAndHeaders:
    @pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_seconds": 0}])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            RateLimitConfig(**kwargs)

    def test_presets(self):
        assert get_preset("auth") == RateLimitConfig(max_requests=5, window_seconds=900)
        assert get_preset("upload").max_requests == 10
        with pytest.raises(KeyError):
            get_preset("nope")

    def test_headers_for_allow_and_deny(self):
        allow = rate_limit_headers(Allow(limit=5, remaining=3, reset_at=100.2))
        assert allow == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "3",
            "X-RateLimit-Reset": "101",
        }

        deny = rate_limit_headers(Deny(limit=5, reset_at=100.0, retry_after_seconds=42))
        assert deny["X-RateLimit-Remaining"] == "0"
        assert deny["Retry-After"] == "42"


class TestResolveClientKey:
    def test_user_identity_wins(self):
        assert resolve_client_key({"X-Forwarded-For": "1.1.1.1"}, user_id="u1") == "user:u1"

    def test_first_forwarded_address(self):
        headers = {"X-Forwarded-For": " 203.0.113.7 , 10.0.0.1"}
        assert resolve_client_key(headers) == "203.0.113.7"

    def test_fallback_headers(self):
        assert resolve_client_key({"X-Real-IP": "198.51.100.2"}) == "198.51.100.2"
        assert resolve_client_key({"CF-Connecting-IP": "192.0.2.9"}) == "192.0.2.9"

    def test_unknown(self):
        assert resolve_client_key({}) == "unknown"
        assert resolve_client_key({"X-Forwarded-For": " , "}) == "unknown"
