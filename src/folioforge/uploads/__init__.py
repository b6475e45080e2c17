"""Upload validation and encrypted storage."""

from folioforge.uploads.gatekeeper import (
    DEFAULT_POLICIES,
    PHOTO_POLICY,
    RESUME_POLICY,
    UploadGatekeeper,
    UploadPolicy,
    policies_with_quotas,
)

__all__ = [
    "DEFAULT_POLICIES",
    "PHOTO_POLICY",
    "RESUME_POLICY",
    "UploadGatekeeper",
    "UploadPolicy",
    "policies_with_quotas",
]
