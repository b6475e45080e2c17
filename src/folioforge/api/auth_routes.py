"""Authentication routes for account sessions.

Provides endpoints for registration, login, token refresh and logout.
Tokens travel in HttpOnly cookies; the refresh endpoint also accepts the
token in the request body.
"""

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel

from folioforge.auth.dependencies import get_core, rate_limit, session_invalid, user_rate_limit
from folioforge.auth.exceptions import (
    SESSION_ERRORS,
    AccountDisabledError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
)
from folioforge.auth.models import (
    AuthUser,
    Credentials,
    RefreshTokenRequest,
    SessionResponse,
    TokenPair,
    UserResponse,
)
from folioforge.config.settings import Settings
from folioforge.context import SecurityCore
from folioforge.exceptions import InvalidInputError
from folioforge.models.user import UserRecord

router = APIRouter(prefix="/api/auth", tags=["authentication"])


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str


def _cookie_options(settings: Settings) -> dict:
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "lax",
        "path": "/",
    }


def set_session_cookies(response: Response, pair: TokenPair, settings: Settings) -> None:
    """Attach both session cookies to the response.

    Max-age follows the token lifetimes so the browser drops a cookie
    when its token would be rejected anyway.
    """
    options = _cookie_options(settings)
    response.set_cookie(
        settings.access_cookie_name,
        pair.access_token,
        max_age=pair.access_expires_in,
        **options,
    )
    response.set_cookie(
        settings.refresh_cookie_name,
        pair.refresh_token,
        max_age=pair.refresh_expires_in,
        **options,
    )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    options = _cookie_options(settings)
    response.delete_cookie(settings.access_cookie_name, **options)
    response.delete_cookie(settings.refresh_cookie_name, **options)


def _user_response(user: UserRecord) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        email_verified=user.email_verified,
    )


@router.post(
    "/register",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("auth"))],
)
async def register(
    credentials: Credentials,
    response: Response,
    core: SecurityCore = Depends(get_core),
) -> SessionResponse:
    """Create an account and start a session.

    Raises:
        HTTPException: 400 on invalid input, 409 if the email is taken.
    """
    try:
        user, pair = await core.accounts.register(
            credentials.email,
            credentials.password,
            credentials.name,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    set_session_cookies(response, pair, core.settings)
    return SessionResponse(message="User registered successfully", user=_user_response(user))


@router.post(
    "/login",
    response_model=SessionResponse,
    dependencies=[Depends(rate_limit("auth"))],
)
async def login(
    credentials: Credentials,
    response: Response,
    core: SecurityCore = Depends(get_core),
) -> SessionResponse:
    """Verify email and password and start a session.

    Unknown email and wrong password produce the same 401.

    Raises:
        HTTPException: 400 on missing fields, 401 on bad credentials,
            403 if the account is deactivated.
    """
    try:
        user, pair = await core.accounts.login(credentials.email, credentials.password)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except AccountDisabledError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    set_session_cookies(response, pair, core.settings)
    return SessionResponse(message="Login successful", user=_user_response(user))


@router.post(
    "/refresh",
    response_model=SessionResponse,
    dependencies=[Depends(rate_limit("auth"))],
)
async def refresh(
    request: Request,
    response: Response,
    body: RefreshTokenRequest | None = Body(default=None),
    core: SecurityCore = Depends(get_core),
) -> SessionResponse:
    """Exchange a refresh token for a new token pair.

    The old refresh token is revoked, so replaying it fails.

    Raises:
        HTTPException: 401 if the refresh token is missing or unusable.
    """
    token = request.cookies.get(core.settings.refresh_cookie_name)
    if not token and body is not None:
        token = body.refresh_token
    if not token:
        raise session_invalid()

    try:
        user, pair = await core.accounts.refresh(token)
    except (*SESSION_ERRORS, InvalidCredentialsError):
        raise session_invalid()

    set_session_cookies(response, pair, core.settings)
    return SessionResponse(message="Session refreshed", user=_user_response(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    core: SecurityCore = Depends(get_core),
) -> MessageResponse:
    """Revoke the refresh token and clear both cookies.

    Always succeeds; a missing or unusable token is simply not revoked.
    """
    core.accounts.logout(request.cookies.get(core.settings.refresh_cookie_name))
    clear_session_cookies(response, core.settings)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(
    user: AuthUser = Depends(user_rate_limit("api")),
    core: SecurityCore = Depends(get_core),
) -> UserResponse:
    """Return the authenticated user's profile."""
    record = await core.storage.find_user_by_id(user.user_id)
    if record is None or not record.is_active:
        raise session_invalid()
    return _user_response(record)
