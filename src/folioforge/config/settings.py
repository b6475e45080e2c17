"""Configuration management using pydantic-settings.

Supports environment variables and .env file loading. Missing or weak
secrets are fatal: load_settings() raises ConfigurationError and the
application refuses to start.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from folioforge.crypto.encryption import KEY_SIZE, decode_key
from folioforge.exceptions import ConfigurationError, InvalidKeyError

MIN_JWT_SECRET_BYTES = 32

_PLACEHOLDER_SECRETS = {"changeme", "secret", "password", "test", "your-secret-key"}


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),  # .env.local overrides .env
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "folioforge"
    environment: str = Field(
        default="development",
        description="Deployment environment: development or production",
    )
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False  # Set True in production for structured logs

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    db_path: Path = Field(
        default=Path("data/folioforge.db"),
        description="SQLite database path for user and file records",
    )

    # Blob storage
    storage_type: str = Field(
        default="local",
        description="Blob storage backend: local or memory",
    )
    upload_dir: Path = Field(
        default=Path("data/uploads"),
        description="Base directory for encrypted uploads (used when storage_type=local)",
    )

    # Cryptography
    auth_jwt_secret: SecretStr = Field(
        ...,
        description="Symmetric secret for token signing (min 32 bytes)",
    )
    encryption_key: SecretStr = Field(
        ...,
        description="32-byte PII encryption key, hex (64 chars) or base64 encoded",
    )

    # Tokens
    auth_jwt_access_token_expiry_minutes: int = Field(
        default=60,
        ge=1,
        le=1440,
        description="Access token expiry time in minutes",
    )
    auth_jwt_refresh_token_expiry_days: int = Field(
        default=7,
        ge=1,
        le=30,
        description="Refresh token expiry time in days",
    )
    auth_jwt_leeway_seconds: int = Field(
        default=0,
        ge=0,
        le=300,
        description="Clock skew tolerance applied to token expiry checks",
    )
    access_cookie_name: str = "accessToken"
    refresh_cookie_name: str = "refreshToken"
    password_min_length: int = Field(default=5, ge=1)

    # Rate limiting
    throttle_cleanup_probability: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Chance that a throttle call sweeps expired records",
    )
    throttle_max_entries: int | None = Field(
        default=None,
        ge=1,
        description="Optional capacity bound for the throttle store (LRU eviction)",
    )

    # Uploads
    max_resumes: int = Field(default=2, ge=0)
    max_photos: int = Field(default=3, ge=0)
    upload_retention_days: int = Field(
        default=365,
        ge=1,
        description="Days an encrypted upload is kept before purge",
    )

    # Maintenance
    maintenance_enabled: bool = True
    maintenance_interval_minutes: int = Field(default=15, ge=1)

    @field_validator("auth_jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, value: SecretStr) -> SecretStr:
        """Fail closed if the signing secret is short or a placeholder."""
        secret = value.get_secret_value()
        if len(secret.encode("utf-8")) < MIN_JWT_SECRET_BYTES:
            raise ValueError(f"must be at least {MIN_JWT_SECRET_BYTES} bytes")
        lowered = secret.lower()
        if lowered in _PLACEHOLDER_SECRETS or "changeme" in lowered:
            raise ValueError("must not be a placeholder value")
        return value

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(cls, value: SecretStr) -> SecretStr:
        try:
            decode_key(value.get_secret_value())
        except InvalidKeyError:
            raise ValueError(f"must decode to exactly {KEY_SIZE} bytes (hex or base64)") from None
        return value

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def encryption_key_bytes(self) -> bytes:
        """Decoded 32-byte encryption key."""
        return decode_key(self.encryption_key.get_secret_value())


def load_settings(**overrides) -> Settings:
    """Load settings, converting validation failures into ConfigurationError.

    Only field names and reasons are reported; input values (which may be
    secrets) never appear in the message.

    Raises:
        ConfigurationError: If any required value is missing or invalid.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
