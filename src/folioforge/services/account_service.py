"""Account registration, login and session refresh.

Composes the credential hasher, the token service and the user-record
store. Password derivation runs in the threadpool so it never blocks
the event loop.
"""

import re

import structlog

from folioforge.auth.exceptions import (
    SESSION_ERRORS,
    AccountDisabledError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
)
from folioforge.auth.jwt_auth import TokenService
from folioforge.auth.models import TokenPair
from folioforge.auth.passwords import (
    dummy_verify_async,
    hash_password_async,
    verify_password_async,
)
from folioforge.exceptions import DuplicateRecordError, InvalidInputError
from folioforge.models.user import UserRecord
from folioforge.storage.base import UserStore

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_PASSWORD_LENGTH = 1024


def _is_text(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class AccountService:
    """Register, log in, refresh and log out users."""

    def __init__(
        self,
        users: UserStore,
        tokens: TokenService,
        password_min_length: int = 5,
    ):
        self._users = users
        self._tokens = tokens
        self._password_min_length = password_min_length

    def _validate_credentials(self, email: str, password: str) -> str:
        if not email or not password:
            raise InvalidInputError("Email and password are required")
        if not (_is_text(email) and _is_text(password)):
            raise InvalidInputError("Email and password must be valid text")
        normalized = email.strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise InvalidInputError("Invalid email format")
        if len(password) < self._password_min_length:
            raise InvalidInputError(
                f"Password must be at least {self._password_min_length} characters"
            )
        if len(password) > MAX_PASSWORD_LENGTH:
            raise InvalidInputError(f"Password must be at most {MAX_PASSWORD_LENGTH} characters")
        return normalized

    def _issue(self, user: UserRecord) -> TokenPair:
        return self._tokens.issue_pair(user.id, user.email, user.role)

    async def register(
        self,
        email: str,
        password: str,
        name: str | None = None,
    ) -> tuple[UserRecord, TokenPair]:
        """Create an account and open a session.

        Raises:
            InvalidInputError: If email or password fail validation.
            EmailAlreadyRegisteredError: If the email already has an account.
        """
        normalized = self._validate_credentials(email, password)
        if name is not None and not _is_text(name):
            raise InvalidInputError("Name must be valid text")

        if await self._users.find_user_by_email(normalized):
            raise EmailAlreadyRegisteredError()

        password_hash = await hash_password_async(password)
        try:
            user = await self._users.create_user(normalized, password_hash, name=name)
        except DuplicateRecordError:
            raise EmailAlreadyRegisteredError() from None

        logger.info("User registered", user_id=user.id)
        return user, self._issue(user)

    async def login(self, email: str, password: str) -> tuple[UserRecord, TokenPair]:
        """Verify credentials and open a session.

        Raises:
            InvalidInputError: If email or password is missing.
            InvalidCredentialsError: If the email is unknown or the password is wrong.
            AccountDisabledError: If the account is deactivated.
        """
        if not email or not password:
            raise InvalidInputError("Email and password are required")

        user = None
        if _is_text(email):
            user = await self._users.find_user_by_email(email.strip().lower())
        if user is None:
            await dummy_verify_async(password)
            logger.info("Login failed", reason="unknown_email")
            raise InvalidCredentialsError()

        if not await verify_password_async(password, user.password_hash):
            logger.info("Login failed", reason="bad_password", user_id=user.id)
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.info("Login refused for inactive account", user_id=user.id)
            raise AccountDisabledError()

        await self._users.update_last_login(user.id)
        logger.info("User logged in", user_id=user.id)
        return user, self._issue(user)

    async def refresh(self, refresh_token: str) -> tuple[UserRecord, TokenPair]:
        """Exchange a refresh token for a new pair; the old one is revoked.

        Raises:
            AuthenticationError: If the refresh token is invalid, expired, of
                the wrong type or already used.
            InvalidCredentialsError: If the user no longer exists or is inactive.
        """
        payload = self._tokens.consume_refresh(refresh_token)

        user = await self._users.find_user_by_id(payload.sub)
        if user is None or not user.is_active:
            logger.warning("Refresh for missing or inactive user", user_id=payload.sub)
            raise InvalidCredentialsError()

        logger.info("Session refreshed", user_id=user.id)
        return user, self._issue(user)

    def logout(self, refresh_token: str | None) -> bool:
        """Revoke the refresh token, if it is still usable.

        Logout is best-effort: an invalid or missing token is not an error.

        Returns:
            True if a token was revoked.
        """
        if not refresh_token:
            return False
        try:
            return self._tokens.revoke_refresh(refresh_token)
        except SESSION_ERRORS as e:
            logger.info("Logout with unusable refresh token", reason=type(e).__name__)
            return False
