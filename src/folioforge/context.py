"""Wiring of the security core for one application instance.

Reason: Every piece of shared state (throttle store, revocation list,
storage) is owned by this object and handed to FastAPI via app.state,
so tests can build an isolated core per case.
"""

from dataclasses import dataclass
from datetime import timedelta

from folioforge.auth.jwt_auth import TokenService
from folioforge.auth.rate_limiter import FixedWindowRateLimiter, InMemoryThrottleStore
from folioforge.auth.token_storage import RevocationList
from folioforge.config.settings import Settings
from folioforge.services.account_service import AccountService
from folioforge.services.upload_service import UploadService
from folioforge.storage.base import BlobStorage
from folioforge.storage.factory import create_blob_storage
from folioforge.storage.sqlite import SQLiteStorage
from folioforge.uploads.gatekeeper import UploadGatekeeper, policies_with_quotas


@dataclass
class SecurityCore:
    """Components shared by all requests of one app."""

    settings: Settings
    tokens: TokenService
    revocations: RevocationList
    rate_limiter: FixedWindowRateLimiter
    storage: SQLiteStorage
    blob_storage: BlobStorage
    gatekeeper: UploadGatekeeper
    accounts: AccountService
    uploads: UploadService


def build_security_core(settings: Settings, blob_storage: BlobStorage | None = None) -> SecurityCore:
    """Create all components from settings.

    Raises:
        ConfigurationError: If the signing secret is too short.
        InvalidKeyError: If the encryption key is not 32 bytes.
    """
    revocations = RevocationList()
    tokens = TokenService(
        secret_key=settings.auth_jwt_secret.get_secret_value(),
        access_ttl=timedelta(minutes=settings.auth_jwt_access_token_expiry_minutes),
        refresh_ttl=timedelta(days=settings.auth_jwt_refresh_token_expiry_days),
        leeway_seconds=settings.auth_jwt_leeway_seconds,
        revocations=revocations,
    )
    rate_limiter = FixedWindowRateLimiter(
        store=InMemoryThrottleStore(max_entries=settings.throttle_max_entries),
        cleanup_probability=settings.throttle_cleanup_probability,
    )
    storage = SQLiteStorage(settings.db_path)
    blob_storage = blob_storage if blob_storage is not None else create_blob_storage(settings)
    gatekeeper = UploadGatekeeper(
        blob_storage=blob_storage,
        encryption_key=settings.encryption_key_bytes(),
        policies=policies_with_quotas(settings.max_resumes, settings.max_photos),
        retention_days=settings.upload_retention_days,
    )

    return SecurityCore(
        settings=settings,
        tokens=tokens,
        revocations=revocations,
        rate_limiter=rate_limiter,
        storage=storage,
        blob_storage=blob_storage,
        gatekeeper=gatekeeper,
        accounts=AccountService(storage, tokens, settings.password_min_length),
        uploads=UploadService(gatekeeper, storage),
    )
