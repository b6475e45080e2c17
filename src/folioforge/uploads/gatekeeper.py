"""Upload gatekeeper.

Validates an incoming résumé or photo before any byte is encrypted or
persisted, then encrypts it and hands the ciphertext to blob storage.

Check order: quota, MIME allow-list, size ceiling, emptiness, content
signature. The declared MIME type is never trusted on its own.
"""

import base64
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath

import structlog

from folioforge.crypto.encryption import EncryptedPayload, PayloadCipher
from folioforge.exceptions import (
    FileTooLargeError,
    IntegrityError,
    InvalidInputError,
    QuotaExceededError,
    UnsupportedTypeError,
)
from folioforge.models.upload import AcceptedFile, FileKind, IncomingFile, OwnerQuota
from folioforge.storage.base import BlobStorage

logger = structlog.get_logger()

MB = 1024 * 1024

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@dataclass(frozen=True)
class UploadPolicy:
    """Limits for one upload kind.

    Attributes:
        kind: Upload kind this policy applies to.
        allowed_mime_types: Allowed MIME type -> default extension.
        extensions: Extensions accepted from the original filename.
        max_bytes: Size ceiling.
        max_files: Maximum files an owner may hold.
    """

    kind: FileKind
    allowed_mime_types: dict[str, str]
    extensions: frozenset[str]
    max_bytes: int
    max_files: int

    def with_max_files(self, max_files: int) -> "UploadPolicy":
        return UploadPolicy(
            kind=self.kind,
            allowed_mime_types=self.allowed_mime_types,
            extensions=self.extensions,
            max_bytes=self.max_bytes,
            max_files=max_files,
        )


RESUME_POLICY = UploadPolicy(
    kind=FileKind.RESUME,
    allowed_mime_types={
        "application/pdf": ".pdf",
        DOCX_MIME: ".docx",
        "application/msword": ".doc",
        "text/plain": ".txt",
        "text/markdown": ".md",
        "text/x-markdown": ".md",
    },
    extensions=frozenset({".pdf", ".docx", ".doc", ".txt", ".md", ".markdown"}),
    max_bytes=10 * MB,
    max_files=2,  # unpaid tier
)

PHOTO_POLICY = UploadPolicy(
    kind=FileKind.PHOTO,
    allowed_mime_types={
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/webp": ".webp",
    },
    extensions=frozenset({".jpg", ".jpeg", ".png", ".webp"}),
    max_bytes=5 * MB,
    max_files=3,
)

DEFAULT_POLICIES: dict[FileKind, UploadPolicy] = {
    FileKind.RESUME: RESUME_POLICY,
    FileKind.PHOTO: PHOTO_POLICY,
}

_SAFE_OWNER = re.compile(r"[^A-Za-z0-9-]")
_SAFE_EXTENSION = re.compile(r"\.[a-z0-9]{1,8}")


def normalize_mime_type(mime_type: str | None) -> str:
    """Lowercase and strip parameters: 'Text/Plain; charset=utf-8' -> 'text/plain'."""
    return (mime_type or "").split(";", 1)[0].strip().lower()


def matches_signature(mime_type: str, data: bytes) -> bool:
    """Check file content against the magic bytes expected for mime_type."""
    if mime_type == "application/pdf":
        return data.startswith(b"%PDF-")
    if mime_type == DOCX_MIME:
        return data.startswith(b"PK\x03\x04")
    if mime_type == "application/msword":
        return data.startswith(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1")
    if mime_type == "image/jpeg":
        return data.startswith(b"\xff\xd8\xff")
    if mime_type == "image/png":
        return data.startswith(b"\x89PNG\r\n\x1a\n")
    if mime_type == "image/webp":
        return data[:4] == b"RIFF" and data[8:12] == b"WEBP"
    if mime_type.startswith("text/"):
        return b"\x00" not in data[:8192]
    return False


def policies_with_quotas(max_resumes: int, max_photos: int) -> dict[FileKind, UploadPolicy]:
    """Default policies with configured per-kind file counts."""
    return {
        FileKind.RESUME: RESUME_POLICY.with_max_files(max_resumes),
        FileKind.PHOTO: PHOTO_POLICY.with_max_files(max_photos),
    }


class UploadGatekeeper:
    """Validates, encrypts and stores uploaded PII files."""

    def __init__(
        self,
        blob_storage: BlobStorage,
        encryption_key: bytes,
        policies: dict[FileKind, UploadPolicy] | None = None,
        retention_days: int = 365,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize gatekeeper.

        Args:
            blob_storage: Destination for encrypted bytes.
            encryption_key: 32-byte key for the authenticated encryption unit.
            policies: Per-kind limits. Defaults to DEFAULT_POLICIES.
            retention_days: Days until an accepted file is due for purge.
            clock: Returns the current UTC time; injectable for tests.

        Raises:
            InvalidKeyError: If encryption_key is not exactly 32 bytes.
        """
        self._blob_storage = blob_storage
        self._cipher = PayloadCipher(encryption_key)
        self._policies = policies or DEFAULT_POLICIES
        self._retention = timedelta(days=retention_days)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def policy_for(self, kind: FileKind) -> UploadPolicy:
        return self._policies[FileKind(kind)]

    def validate(self, file: IncomingFile, kind: FileKind, quota: OwnerQuota) -> str:
        """Run every check; nothing is encrypted or stored here.

        Returns:
            The normalized MIME type.

        Raises:
            QuotaExceededError: If the owner already holds quota.max files.
            UnsupportedTypeError: If the type is not allowed or content does not match it.
            FileTooLargeError: If declared or actual size exceeds the ceiling.
            InvalidInputError: If the file is empty.
        """
        policy = self.policy_for(kind)
        kind_name = policy.kind.value

        if quota.exhausted:
            raise QuotaExceededError(kind_name, quota.max)

        mime_type = normalize_mime_type(file.declared_mime_type)
        if mime_type not in policy.allowed_mime_types:
            raise UnsupportedTypeError(kind_name, mime_type or "unknown", sorted(policy.allowed_mime_types))

        size = max(file.size_bytes, len(file.data))
        if size > policy.max_bytes:
            raise FileTooLargeError(kind_name, size, policy.max_bytes)

        if not file.data:
            raise InvalidInputError("No file content uploaded")

        if not matches_signature(mime_type, file.data):
            raise UnsupportedTypeError(kind_name, mime_type)

        return mime_type

    def build_storage_name(
        self,
        owner_id: str,
        file_name: str,
        mime_type: str,
        kind: FileKind,
        now: datetime,
    ) -> str:
        """Collision-resistant storage name: <owner>_<ms timestamp>_<random hex><ext>.

        The client filename contributes only a whitelisted extension.
        """
        policy = self.policy_for(kind)
        safe_owner = _SAFE_OWNER.sub("", owner_id)[:64] or "anonymous"

        suffix = PurePosixPath((file_name or "").replace("\\", "/")).suffix.lower()
        if not _SAFE_EXTENSION.fullmatch(suffix) or suffix not in policy.extensions:
            suffix = policy.allowed_mime_types.get(mime_type, "")

        timestamp_ms = int(now.timestamp() * 1000)
        return f"{safe_owner}_{timestamp_ms}_{secrets.token_hex(8)}{suffix}"

    async def accept(
        self,
        file: IncomingFile,
        kind: FileKind,
        quota: OwnerQuota,
        owner_id: str,
    ) -> AcceptedFile:
        """Validate, encrypt and store a file.

        Raises:
            UploadRejectedError: QuotaExceededError, UnsupportedTypeError or FileTooLargeError.
            InvalidInputError: If the file is empty.
            StorageError: If the blob store fails.
        """
        kind = FileKind(kind)
        mime_type = self.validate(file, kind, quota)

        now = self._clock()
        storage_name = self.build_storage_name(owner_id, file.file_name, mime_type, kind, now)

        payload = self._cipher.encrypt(file.data)
        location = await self._blob_storage.put(
            payload.ciphertext,
            {"name": storage_name, "kind": kind.value, "owner_id": owner_id},
        )

        logger.info(
            "Upload accepted",
            owner_id=owner_id,
            kind=kind.value,
            mime_type=mime_type,
            size=len(file.data),
            location=location,
        )

        return AcceptedFile(
            location=location,
            storage_name=storage_name,
            kind=kind,
            original_file_name=file.file_name,
            mime_type=mime_type,
            size_bytes=len(file.data),
            iv=base64.b64encode(payload.iv).decode("ascii"),
            auth_tag=base64.b64encode(payload.auth_tag).decode("ascii"),
            uploaded_at=now,
            retention_until=now + self._retention,
        )

    async def open(self, location: str, iv: str, auth_tag: str) -> bytes:
        """Fetch and decrypt a stored file.

        Raises:
            IntegrityError: If the stored bytes, iv or tag were altered.
            StorageError: If the blob is missing.
        """
        ciphertext = await self._blob_storage.get(location)
        payload = EncryptedPayload.from_dict(
            {
                "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
                "iv": iv,
                "auth_tag": auth_tag,
            }
        )
        try:
            return self._cipher.decrypt(payload)
        except IntegrityError:
            logger.error("Stored upload failed integrity check", location=location)
            raise

    async def discard(self, location: str) -> None:
        """Delete a stored blob."""
        await self._blob_storage.delete(location)
