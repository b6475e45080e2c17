"""Authentication package for FolioForge.

Provides password hashing, JWT sessions and request throttling. The FastAPI
dependencies live in folioforge.auth.dependencies.
"""

from folioforge.auth.jwt_auth import TokenService, create_access_token, create_refresh_token
from folioforge.auth.models import AuthUser, TokenPair, TokenPayload, TokenType
from folioforge.auth.passwords import hash_password, verify_password
from folioforge.auth.rate_limiter import (
    FixedWindowRateLimiter,
    InMemoryThrottleStore,
    RateLimitConfig,
    RateLimitPresets,
)
from folioforge.auth.token_storage import RevocationList

__all__ = [
    "AuthUser",
    "FixedWindowRateLimiter",
    "InMemoryThrottleStore",
    "RateLimitConfig",
    "RateLimitPresets",
    "RevocationList",
    "TokenPair",
    "TokenPayload",
    "TokenService",
    "TokenType",
    "create_access_token",
    "create_refresh_token",
    "hash_password",
    "verify_password",
]
