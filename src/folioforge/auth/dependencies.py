"""FastAPI dependency injection for authentication and throttling.

Reason: Centralized auth logic via dependencies allows clean
separation of concerns and easy testing.
"""

from collections.abc import Awaitable, Callable

import structlog
from fastapi import Depends, HTTPException, Request, Response, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from folioforge.auth.exceptions import SESSION_ERRORS, RateLimitExceededError
from folioforge.auth.models import AuthUser
from folioforge.auth.rate_limiter import Deny, get_preset, rate_limit_headers, resolve_client_key
from folioforge.context import SecurityCore

logger = structlog.get_logger()

SESSION_INVALID_DETAIL = "Invalid or expired session"

bearer_scheme = HTTPBearer(auto_error=False)


def get_core(request: Request) -> SecurityCore:
    """The SecurityCore attached to the running app."""
    core = getattr(request.app.state, "core", None)
    if core is None:
        raise RuntimeError("Security core not initialized. Use create_app().")
    return core


def session_invalid() -> HTTPException:
    """401 used for every token failure; never says which check failed."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=SESSION_INVALID_DETAIL,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    bearer_credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    core: SecurityCore = Depends(get_core),
) -> AuthUser | None:
    """Extract and validate the access token.

    This dependency does NOT raise exceptions - it returns None if not authenticated.
    Use user_rate_limit() for protected endpoints.

    The access cookie takes precedence over an Authorization: Bearer header.
    """
    cookie_token = request.cookies.get(core.settings.access_cookie_name)
    if cookie_token:
        token, method = cookie_token, "cookie"
    elif bearer_credentials:
        token, method = bearer_credentials.credentials, "bearer"
    else:
        return None

    try:
        payload = core.tokens.decode_access(token)
    except SESSION_ERRORS as e:
        logger.info("Access token rejected", reason=type(e).__name__)
        return None

    user = AuthUser(
        user_id=payload.sub,
        email=payload.email,
        role=payload.role or "user",
        auth_method=method,
    )
    request.state.auth_user = user
    return user


def _endpoint_path(request: Request) -> str:
    # Route template keeps /files/{file_id} in one bucket
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _enforce(request: Request, response: Response, preset: str, client_key: str) -> None:
    core = get_core(request)
    config = get_preset(preset)
    path = _endpoint_path(request)

    decision = core.rate_limiter.admit(path, client_key, config)
    headers = rate_limit_headers(decision)

    if isinstance(decision, Deny):
        logger.warning(
            "Rate limit exceeded",
            endpoint=path,
            identifier=client_key,
            preset=preset,
            retry_after=decision.retry_after_seconds,
        )
        raise RateLimitExceededError(decision.retry_after_seconds, headers=headers)

    # Routes that build their own Response copy these from request.state
    request.state.rate_limit_headers = headers
    for name, value in headers.items():
        response.headers[name] = value


def rate_limit(preset: str) -> Callable[..., Awaitable[None]]:
    """Throttle by network origin (or the user, when already authenticated).

    Usage:
        @router.post("/login", dependencies=[Depends(rate_limit("auth"))])
    """
    get_preset(preset)

    async def dependency(request: Request, response: Response) -> None:
        auth_user = getattr(request.state, "auth_user", None)
        client_key = resolve_client_key(
            request.headers, auth_user.user_id if auth_user else None
        )
        _enforce(request, response, preset, client_key)

    return dependency


def user_rate_limit(preset: str) -> Callable[..., Awaitable[AuthUser]]:
    """Throttle, then require authentication.

    Verified callers are counted per user; anonymous or badly signed
    requests are counted by network origin, so they still hit the limit
    before the 401. Returns the authenticated user so routes can depend
    on it directly.
    """
    get_preset(preset)

    async def dependency(
        request: Request,
        response: Response,
        user: AuthUser | None = Depends(get_current_user),
    ) -> AuthUser:
        client_key = resolve_client_key(request.headers, user.user_id if user else None)
        _enforce(request, response, preset, client_key)
        if user is None:
            raise session_invalid()
        return user

    return dependency
