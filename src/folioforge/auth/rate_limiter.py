"""Fixed-window request throttle.

Counts requests per (endpoint path, client key) inside fixed windows and
denies once a window's ceiling is reached. Fixed windows admit bursts at
window boundaries; callers needing smoother shaping layer a stricter
policy on top.

The counting store is injected rather than module-global so each app (and
each test) owns its own state. Single-process only.
"""

import math
import random
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol, TypeVar

import structlog

from folioforge.auth.exceptions import RateLimitExceededError

logger = structlog.get_logger()

T = TypeVar("T")

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limit configuration.

    Attributes:
        max_requests: Maximum requests allowed in window.
        window_seconds: Time window in seconds.
    """

    max_requests: int = 10
    window_seconds: float = 60

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")


class RateLimitPresets:
    """Named limits for the endpoint families."""

    # Strict limits for authentication endpoints
    AUTH = RateLimitConfig(max_requests=5, window_seconds=15 * 60)
    # Standard limits for API endpoints
    API = RateLimitConfig(max_requests=100, window_seconds=15 * 60)
    # Limits for file uploads
    UPLOAD = RateLimitConfig(max_requests=10, window_seconds=60 * 60)
    # Deployment actions
    DEPLOY = RateLimitConfig(max_requests=5, window_seconds=24 * 60 * 60)
    # Administrative actions
    ADMIN = RateLimitConfig(max_requests=50, window_seconds=60 * 60)


PRESETS: dict[str, RateLimitConfig] = {
    "auth": RateLimitPresets.AUTH,
    "api": RateLimitPresets.API,
    "upload": RateLimitPresets.UPLOAD,
    "deploy": RateLimitPresets.DEPLOY,
    "admin": RateLimitPresets.ADMIN,
}


def get_preset(name: str) -> RateLimitConfig:
    """Look up a preset by name.

    Raises:
        KeyError: If no preset has that name.
    """
    try:
        return PRESETS[name]
    except KeyError:
        raise KeyError(f"Unknown rate limit preset: {name}. Known: {', '.join(PRESETS)}") from None


@dataclass(frozen=True)
class ThrottleRecord:
    """Request count for one key inside one window.

    Attributes:
        count: Requests admitted in the current window.
        reset_at: Epoch seconds when the window expires.
    """

    count: int
    reset_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.reset_at


@dataclass(frozen=True)
class Allow:
    """Request admitted."""

    limit: int
    remaining: int
    reset_at: float

    allowed = True


@dataclass(frozen=True)
class Deny:
    """Request rejected until the window resets."""

    limit: int
    reset_at: float
    retry_after_seconds: int

    allowed = False
    remaining = 0


Decision = Allow | Deny


def rate_limit_headers(decision: Decision) -> dict[str, str]:
    """HTTP headers describing a throttle decision."""
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(math.ceil(decision.reset_at)),
    }
    if isinstance(decision, Deny):
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


class ThrottleStore(Protocol):
    """Shared counting store for throttle records.

    Reason: Using Protocol so an external cache can back the throttle
    without changing the decision logic.
    """

    def atomic_update(
        self,
        key: str,
        update: Callable[[ThrottleRecord | None], tuple[ThrottleRecord, T]],
    ) -> T:
        """Apply a read-modify-write to one key as a single atomic step.

        Args:
            key: Throttle key.
            update: Receives the current record (or None) and returns the
                record to store plus a result to hand back.

        Returns:
            The result produced by update.
        """
        ...

    def get(self, key: str) -> ThrottleRecord | None:
        """Current record for key, expired or not."""
        ...

    def sweep(self, now: float) -> int:
        """Remove expired records.

        Returns:
            Number of records removed.
        """
        ...

    def reset(self, key: str | None = None) -> None:
        """Drop one key, or every key when None."""
        ...

    def __len__(self) -> int: ...


class InMemoryThrottleStore:
    """Lock-protected in-memory throttle store.

    With max_entries set, the least recently updated keys are evicted once
    the store is full, giving a hard memory ceiling under adversarial key
    cardinality.
    """

    def __init__(self, max_entries: int | None = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._records: OrderedDict[str, ThrottleRecord] = OrderedDict()
        self._lock = threading.Lock()
        self._max_entries = max_entries

    def atomic_update(
        self,
        key: str,
        update: Callable[[ThrottleRecord | None], tuple[ThrottleRecord, T]],
    ) -> T:
        with self._lock:
            record, result = update(self._records.get(key))
            self._records[key] = record
            self._records.move_to_end(key)
            if self._max_entries is not None:
                while len(self._records) > self._max_entries:
                    evicted, _ = self._records.popitem(last=False)
                    logger.debug("Throttle record evicted", identifier=evicted)
            return result

    def get(self, key: str) -> ThrottleRecord | None:
        with self._lock:
            return self._records.get(key)

    def sweep(self, now: float) -> int:
        with self._lock:
            expired = [key for key, record in self._records.items() if record.is_expired(now)]
            for key in expired:
                del self._records[key]
        return len(expired)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._records.clear()
            else:
                self._records.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class FixedWindowRateLimiter:
    """Pure fixed-window decision function over a shared store.

    It knows nothing about HTTP beyond the key and limit it is given.
    """

    def __init__(
        self,
        store: ThrottleStore | None = None,
        clock: Callable[[], float] = time.time,
        cleanup_probability: float = 0.01,
        rng: Callable[[], float] = random.random,
    ):
        """Initialize rate limiter.

        Args:
            store: Counting store. Defaults to a fresh InMemoryThrottleStore.
            clock: Returns the current time in epoch seconds.
            cleanup_probability: Chance per call of sweeping expired records.
            rng: Returns a float in [0, 1); injectable for tests.
        """
        self.store = store if store is not None else InMemoryThrottleStore()
        self._clock = clock
        self._cleanup_probability = cleanup_probability
        self._rng = rng

    @staticmethod
    def make_key(endpoint_path: str, client_key: str) -> str:
        return f"{endpoint_path}:{client_key}"

    def admit(self, endpoint_path: str, client_key: str, config: RateLimitConfig) -> Decision:
        """Count one request and decide whether it may proceed.

        Args:
            endpoint_path: Path of the endpoint being called.
            client_key: Partition key from resolve_client_key().
            config: Limit to enforce.

        Returns:
            Allow with remaining quota, or Deny with retry timing.
        """
        if self._cleanup_probability > 0 and self._rng() < self._cleanup_probability:
            self.sweep()

        now = self._clock()
        limit = config.max_requests

        def step(record: ThrottleRecord | None) -> tuple[ThrottleRecord, Decision]:
            if record is None or record.is_expired(now):
                fresh = ThrottleRecord(count=1, reset_at=now + config.window_seconds)
                return fresh, Allow(limit=limit, remaining=limit - 1, reset_at=fresh.reset_at)

            if record.count >= limit:
                retry_after = math.ceil(record.reset_at - now)
                return record, Deny(
                    limit=limit,
                    reset_at=record.reset_at,
                    retry_after_seconds=max(1, retry_after),
                )

            updated = ThrottleRecord(count=record.count + 1, reset_at=record.reset_at)
            return updated, Allow(
                limit=limit,
                remaining=limit - updated.count,
                reset_at=updated.reset_at,
            )

        return self.store.atomic_update(self.make_key(endpoint_path, client_key), step)

    def check(self, endpoint_path: str, client_key: str, config: RateLimitConfig) -> Allow:
        """admit(), raising on denial.

        Raises:
            RateLimitExceededError: If rate limit exceeded.
        """
        decision = self.admit(endpoint_path, client_key, config)
        if isinstance(decision, Deny):
            logger.warning(
                "Rate limit exceeded",
                endpoint=endpoint_path,
                identifier=client_key,
                limit=config.max_requests,
                retry_after=decision.retry_after_seconds,
            )
            raise RateLimitExceededError(retry_after=decision.retry_after_seconds)
        return decision

    def get_remaining(self, endpoint_path: str, client_key: str, config: RateLimitConfig) -> int:
        """Remaining requests in the current window without counting one."""
        record = self.store.get(self.make_key(endpoint_path, client_key))
        if record is None or record.is_expired(self._clock()):
            return config.max_requests
        return max(0, config.max_requests - record.count)

    def sweep(self) -> int:
        """Remove expired records from the store."""
        removed = self.store.sweep(self._clock())
        if removed:
            logger.debug("Throttle records swept", count=removed)
        return removed


def resolve_client_key(headers: Mapping[str, str], user_id: str | None = None) -> str:
    """Derive the throttling partition key for a request.

    Authenticated users are keyed by identity. Anonymous clients fall back
    to the first X-Forwarded-For address, then X-Real-IP, then
    CF-Connecting-IP, then the literal "unknown". Never persisted.
    """
    if user_id:
        return f"user:{user_id}"

    lowered = {name.lower(): value for name, value in headers.items()}

    forwarded = lowered.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = (lowered.get(header) or "").strip()
        if value:
            return value

    return UNKNOWN_CLIENT
