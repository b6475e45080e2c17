"""User record model."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class UserRecord(BaseModel):
    """Account as stored by the user-record collaborator.

    password_hash is never logged or returned to a client; use
    folioforge.auth.models.UserResponse for public views.
    """

    id: str = Field(..., description="User identifier")
    email: str = Field(..., description="Login email, stored lowercased")
    name: str | None = Field(default=None, description="Display name")
    password_hash: str = Field(..., repr=False, description="Self-describing scrypt hash")
    role: str = Field(default="user", description="Role: user or admin")
    is_active: bool = Field(default=True)
    email_verified: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_login_at: datetime | None = Field(default=None)
