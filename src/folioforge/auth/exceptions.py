"""Authentication-specific exceptions.

Extends the FolioForge exception hierarchy for auth errors. Token failures
are distinguished here so callers can choose between prompting re-login and
silently refreshing, but clients only ever see "invalid or expired session".
"""

from folioforge.exceptions import FolioForgeError


class AuthenticationError(FolioForgeError):
    """Base authentication error."""

    pass


class ExpiredTokenError(AuthenticationError):
    """Raised when a token's signature is valid but its expiry has passed."""

    def __init__(self) -> None:
        super().__init__("Token has expired")


class InvalidSignatureError(AuthenticationError):
    """Raised when a token is malformed or its signature does not verify."""

    def __init__(self, message: str = "Token signature is invalid") -> None:
        super().__init__(message)


class WrongTokenTypeError(AuthenticationError):
    """Raised when an access token is presented where a refresh token is required, or vice versa.

    Attributes:
        expected: Token type the caller required.
        actual: Token type found in the claims.
    """

    def __init__(self, expected: str, actual: str | None):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected} token, got {actual or 'untyped'} token")


class RevokedTokenError(AuthenticationError):
    """Raised when a refresh token has been revoked (logout or rotation)."""

    def __init__(self) -> None:
        super().__init__("Token has been revoked")


class InvalidCredentialsError(AuthenticationError):
    """Raised when email/password do not match a usable account."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class AccountDisabledError(AuthenticationError):
    """Raised when credentials are correct but the account is deactivated."""

    def __init__(self) -> None:
        super().__init__("Account is deactivated")


class EmailAlreadyRegisteredError(AuthenticationError):
    """Raised when registering an email that already has an account."""

    def __init__(self) -> None:
        super().__init__("User already exists")


class RateLimitExceededError(AuthenticationError):
    """Raised when rate limit is exceeded.

    Attributes:
        retry_after: Seconds until rate limit resets.
        headers: Rate-limit response headers, when raised from an HTTP request.
    """

    def __init__(self, retry_after: int, headers: dict[str, str] | None = None):
        self.retry_after = retry_after
        self.headers = headers or {}
        super().__init__(f"Rate limit exceeded. Retry after {retry_after} seconds")


# Failures that mean "the presented session is not usable"
SESSION_ERRORS = (ExpiredTokenError, InvalidSignatureError, WrongTokenTypeError, RevokedTokenError)
