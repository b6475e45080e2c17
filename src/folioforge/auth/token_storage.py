"""Revocation list for refresh tokens.

Reason: Tokens are stateless and verified by signature alone, so logout and
refresh rotation need an explicit denylist. Entries are keyed by the refresh
token's jti and dropped once the token would have expired anyway.
Single-process, in-memory; shared across request threads.
"""

import threading
from datetime import datetime, timezone
from typing import Protocol

import structlog

logger = structlog.get_logger()


class RevocationStore(Protocol):
    """Revocation storage interface.

    Reason: Using Protocol so a persistent or shared backend can replace
    the in-memory list without changing the token service.
    """

    def revoke(self, token_id: str, expires_at: datetime) -> bool:
        """Record a token id as revoked until expires_at.

        Returns:
            True if newly revoked, False if it was already revoked.
        """
        ...

    def is_revoked(self, token_id: str) -> bool:
        """Check whether a token id is on the denylist."""
        ...

    def cleanup_expired(self) -> int:
        """Drop entries whose tokens have expired.

        Returns:
            Number of entries removed.
        """
        ...


class RevocationList:
    """Thread-safe in-memory denylist of refresh token ids."""

    def __init__(self) -> None:
        # token_id -> expiry of the revoked token
        self._revoked: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def revoke(self, token_id: str, expires_at: datetime) -> bool:
        with self._lock:
            if token_id in self._revoked:
                return False
            self._revoked[token_id] = expires_at
        logger.info("Token revoked", token_id=token_id)
        return True

    def is_revoked(self, token_id: str) -> bool:
        with self._lock:
            return token_id in self._revoked

    def cleanup_expired(self) -> int:
        now = datetime.now(timezone.utc)
        with self._lock:
            expired = [token_id for token_id, exp in self._revoked.items() if exp <= now]
            for token_id in expired:
                del self._revoked[token_id]

        if expired:
            logger.info("Expired revocations cleaned up", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._revoked)
