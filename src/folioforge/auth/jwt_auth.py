"""JWT issuing and verification.

Reason: Using PyJWT for JWT operations, which is a lightweight
and well-maintained library.

Tokens are self-contained: validity is a function of the HS256 signature
and the embedded expiry, plus the refresh-token denylist for revocation.
"""

import secrets
from datetime import datetime, timedelta, timezone

import jwt
import structlog

from folioforge.auth.exceptions import (
    ExpiredTokenError,
    InvalidSignatureError,
    RevokedTokenError,
    WrongTokenTypeError,
)
from folioforge.auth.models import TokenPair, TokenPayload, TokenType
from folioforge.auth.token_storage import RevocationStore
from folioforge.exceptions import ConfigurationError

logger = structlog.get_logger()

ALGORITHM = "HS256"
MIN_SECRET_BYTES = 32

ACCESS_TOKEN_LIFETIME = timedelta(hours=1)
REFRESH_TOKEN_LIFETIME = timedelta(days=7)

_REQUIRED_CLAIMS = ["exp", "iat", "sub", "type"]


def generate_token_id() -> str:
    """Generate a unique token ID (jti claim)."""
    return secrets.token_urlsafe(32)


def create_access_token(
    secret_key: str,
    user_id: str,
    email: str,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token.

    Args:
        secret_key: Secret key for signing the token.
        user_id: Subject of the token.
        email: User email claim.
        role: User role claim.
        expires_delta: Token validity duration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    if expires_delta is None:
        expires_delta = ACCESS_TOKEN_LIFETIME

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "iat": now,
        "exp": expire,
        "type": TokenType.ACCESS.value,
    }

    token = jwt.encode(payload, secret_key, algorithm=ALGORITHM)
    logger.debug("Access token created", user_id=user_id, expires_at=expire.isoformat())
    return token


def create_refresh_token(
    secret_key: str,
    user_id: str,
    expires_delta: timedelta | None = None,
) -> tuple[str, str, datetime]:
    """Create a signed refresh token.

    Args:
        secret_key: Secret key for signing the token.
        user_id: Subject of the token.
        expires_delta: Token validity duration. Defaults to 7 days.

    Returns:
        Tuple of (encoded JWT string, token_id, expiration datetime).
    """
    if expires_delta is None:
        expires_delta = REFRESH_TOKEN_LIFETIME

    now = datetime.now(timezone.utc)
    expire = now + expires_delta
    token_id = generate_token_id()

    payload = {
        "sub": user_id,
        "iat": now,
        "exp": expire,
        "type": TokenType.REFRESH.value,
        "jti": token_id,
    }

    token = jwt.encode(payload, secret_key, algorithm=ALGORITHM)
    logger.debug("Refresh token created", user_id=user_id, token_id=token_id)
    return token, token_id, expire


def decode_token(
    token: str,
    secret_key: str,
    expected_type: TokenType | None = None,
    leeway_seconds: int = 0,
) -> TokenPayload:
    """Verify a token's signature, expiry and type.

    Args:
        token: The JWT string to decode.
        secret_key: Secret key used for signing.
        expected_type: Required token type, or None to accept either.
        leeway_seconds: Clock skew tolerance for the expiry check.

    Returns:
        Verified TokenPayload.

    Raises:
        ExpiredTokenError: If the signature is valid but the token has expired.
        InvalidSignatureError: If the token is malformed, unsigned by us, or missing claims.
        WrongTokenTypeError: If the token type does not match expected_type.
    """
    if not token or not isinstance(token, str):
        raise InvalidSignatureError("Token is missing")

    try:
        claims = jwt.decode(
            token,
            secret_key,
            algorithms=[ALGORITHM],
            leeway=leeway_seconds,
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        logger.info("JWT token expired")
        raise ExpiredTokenError() from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid JWT token", reason=type(e).__name__)
        raise InvalidSignatureError() from None

    try:
        token_type = TokenType(claims["type"])
    except ValueError:
        raise InvalidSignatureError("Token has an unknown type") from None

    if expected_type is not None and token_type != expected_type:
        logger.warning(
            "Wrong token type presented",
            expected=expected_type.value,
            actual=token_type.value,
        )
        raise WrongTokenTypeError(expected_type.value, token_type.value)

    return TokenPayload(
        sub=str(claims["sub"]),
        exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        iat=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
        type=token_type,
        email=claims.get("email"),
        role=claims.get("role"),
        jti=claims.get("jti"),
    )


class TokenService:
    """Issues and verifies access/refresh tokens bound to a user identity.

    Reason: Holds the signing secret and lifetimes in one place so routes
    and dependencies never handle the raw secret.
    """

    def __init__(
        self,
        secret_key: str,
        access_ttl: timedelta = ACCESS_TOKEN_LIFETIME,
        refresh_ttl: timedelta = REFRESH_TOKEN_LIFETIME,
        leeway_seconds: int = 0,
        revocations: RevocationStore | None = None,
    ):
        """Initialize with the signing secret.

        Raises:
            ConfigurationError: If secret_key is shorter than 32 bytes.
        """
        if not secret_key or len(secret_key.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ConfigurationError(
                f"Token signing secret must be at least {MIN_SECRET_BYTES} bytes"
            )
        self._secret_key = secret_key
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.leeway_seconds = leeway_seconds
        self._revocations = revocations

    def issue_access(self, user_id: str, email: str, role: str) -> str:
        return create_access_token(self._secret_key, user_id, email, role, self.access_ttl)

    def issue_refresh(self, user_id: str) -> str:
        token, _, _ = create_refresh_token(self._secret_key, user_id, self.refresh_ttl)
        return token

    def issue_pair(self, user_id: str, email: str, role: str) -> TokenPair:
        """Mint an access token and a refresh token together."""
        return TokenPair(
            access_token=self.issue_access(user_id, email, role),
            refresh_token=self.issue_refresh(user_id),
            access_expires_in=int(self.access_ttl.total_seconds()),
            refresh_expires_in=int(self.refresh_ttl.total_seconds()),
        )

    def decode(self, token: str, expected_type: TokenType) -> TokenPayload:
        payload = decode_token(token, self._secret_key, expected_type, self.leeway_seconds)
        if expected_type is TokenType.REFRESH:
            self._check_not_revoked(payload)
        return payload

    def decode_access(self, token: str) -> TokenPayload:
        return self.decode(token, TokenType.ACCESS)

    def decode_refresh(self, token: str) -> TokenPayload:
        return self.decode(token, TokenType.REFRESH)

    def verify_access(self, token: str) -> str:
        """Return the user id of a valid access token.

        Raises:
            AuthenticationError: ExpiredTokenError, InvalidSignatureError or
                WrongTokenTypeError.
        """
        return self.decode_access(token).sub

    def verify_refresh(self, token: str) -> str:
        """Return the user id of a valid, unrevoked refresh token.

        Raises:
            AuthenticationError: ExpiredTokenError, InvalidSignatureError,
                WrongTokenTypeError or RevokedTokenError.
        """
        return self.decode_refresh(token).sub

    def consume_refresh(self, token: str) -> TokenPayload:
        """Verify a refresh token and revoke it in one step (rotation).

        Reason: revoke() reports whether the id was already present, so two
        concurrent refreshes with the same token cannot both succeed.
        """
        payload = self.decode_refresh(token)
        if self._revocations is not None and payload.jti:
            if not self._revocations.revoke(payload.jti, payload.exp):
                raise RevokedTokenError()
        return payload

    def revoke_refresh(self, token: str) -> bool:
        """Revoke a refresh token.

        Returns:
            True if the token was valid and is now revoked.
        """
        payload = self.decode_refresh(token)
        if self._revocations is None or not payload.jti:
            return False
        return self._revocations.revoke(payload.jti, payload.exp)

    def _check_not_revoked(self, payload: TokenPayload) -> None:
        if self._revocations is None:
            return
        if not payload.jti:
            raise InvalidSignatureError("Refresh token missing ID")
        if self._revocations.is_revoked(payload.jti):
            logger.warning("Revoked refresh token presented", user_id=payload.sub)
            raise RevokedTokenError()
