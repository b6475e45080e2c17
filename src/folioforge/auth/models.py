"""Authentication-related Pydantic models."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class TokenType(str, Enum):
    """Token purpose, carried in the 'type' claim."""

    ACCESS = "access"
    REFRESH = "refresh"


class AuthUser(BaseModel):
    """Authenticated user information, built from verified access token claims."""

    user_id: str = Field(..., description="User identifier")
    email: str | None = Field(default=None, description="Email claim of the access token")
    role: str = Field(default="user", description="Role claim of the access token")
    auth_method: str = Field(..., description="How user was authenticated: 'cookie' or 'bearer'")
    authenticated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TokenPayload(BaseModel):
    """Verified JWT claims."""

    sub: str = Field(..., description="Subject (user ID)")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime = Field(..., description="Issued at")
    type: TokenType = Field(..., description="Token type: 'access' or 'refresh'")
    email: str | None = Field(default=None, description="Email (access tokens only)")
    role: str | None = Field(default=None, description="Role (access tokens only)")
    jti: str | None = Field(default=None, description="JWT ID (refresh tokens, for revocation)")


class TokenPair(BaseModel):
    """Access and refresh tokens minted together."""

    access_token: str
    refresh_token: str
    access_expires_in: int = Field(..., description="Access token lifetime in seconds")
    refresh_expires_in: int = Field(..., description="Refresh token lifetime in seconds")


class Credentials(BaseModel):
    """Register/login request body."""

    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Plaintext password (never logged or stored)")
    name: str | None = Field(default=None, description="Display name (register only)")


class RefreshTokenRequest(BaseModel):
    """Optional body for token refresh when the cookie is not available."""

    refresh_token: str | None = Field(default=None, description="Refresh token to exchange")


class UserResponse(BaseModel):
    """Public view of a user record."""

    id: str
    email: str
    name: str | None = None
    role: str = "user"
    email_verified: bool = False


class SessionResponse(BaseModel):
    """Response body for register/login/refresh; tokens travel in cookies."""

    message: str
    user: UserResponse
