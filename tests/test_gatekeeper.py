"""Tests for upload validation, encryption and storage."""

import re
from datetime import datetime, timedelta, timezone

import pytest

from folioforge.exceptions import (
    FileTooLargeError,
    IntegrityError,
    InvalidInputError,
    QuotaExceededError,
    UnsupportedTypeError,
)
from folioforge.models.upload import FileKind, IncomingFile, OwnerQuota
from folioforge.uploads.gatekeeper import (
    DOCX_MIME,
    MB,
    UploadGatekeeper,
    matches_signature,
    normalize_mime_type,
    policies_with_quotas,
)

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
NO_FILES = OwnerQuota(current=0, max=3)


@pytest.fixture
def fixed_gatekeeper(blob_storage, encryption_key):
    return UploadGatekeeper(
        blob_storage=blob_storage,
        encryption_key=encryption_key,
        clock=lambda: FIXED_NOW,
    )


class TestAccept:
    async def test_photo_is_encrypted_at_rest(self, fixed_gatekeeper, blob_storage, png_bytes):
        accepted = await fixed_gatekeeper.accept(
            IncomingFile.from_bytes(png_bytes, "image/png", "me.png"),
            FileKind.PHOTO,
            NO_FILES,
            owner_id="user-1",
        )

        stored = await blob_storage.get(accepted.location)
        assert stored != png_bytes
        assert len(stored) == len(png_bytes)
        assert accepted.mime_type == "image/png"
        assert accepted.size_bytes == len(png_bytes)
        assert accepted.uploaded_at == FIXED_NOW
        assert accepted.retention_until == FIXED_NOW + timedelta(days=365)

        opened = await fixed_gatekeeper.open(accepted.location, accepted.iv, accepted.auth_tag)
        assert opened == png_bytes

    async def test_storage_name_shape(self, fixed_gatekeeper, pdf_bytes):
        accepted = await fixed_gatekeeper.accept(
            IncomingFile.from_bytes(pdf_bytes, "application/pdf", "../../etc/passwd.pdf"),
            FileKind.RESUME,
            NO_FILES,
            owner_id="user-1",
        )

        timestamp = int(FIXED_NOW.timestamp() * 1000)
        assert re.fullmatch(rf"user-1_{timestamp}_[0-9a-f]{{16}}\.pdf", accepted.storage_name)
        assert accepted.original_file_name == "../../etc/passwd.pdf"

    async def test_untrusted_extension_replaced(self, fixed_gatekeeper, png_bytes):
        accepted = await fixed_gatekeeper.accept(
            IncomingFile.from_bytes(png_bytes, "image/png", "avatar.exe"),
            FileKind.PHOTO,
            NO_FILES,
            owner_id="user/../1",
        )
        assert accepted.storage_name.startswith("user1_")
        assert accepted.storage_name.endswith(".png")

    async def test_oversized_photo_never_reaches_storage(self, fixed_gatekeeper, blob_storage):
        data = b"\xff\xd8\xff" + b"\x00" * (12 * MB)

        with pytest.raises(FileTooLargeError) as exc_info:
            await fixed_gatekeeper.accept(
                IncomingFile.from_bytes(data, "image/jpeg", "big.jpg"),
                FileKind.PHOTO,
                NO_FILES,
                owner_id="user-1",
            )

        assert exc_info.value.max_bytes == 5 * MB
        assert blob_storage.get_blob_count() == 0

    async def test_quota_checked_first(self, fixed_gatekeeper, blob_storage, png_bytes):
        with pytest.raises(QuotaExceededError) as exc_info:
            await fixed_gatekeeper.accept(
                IncomingFile.from_bytes(png_bytes, "image/png", "fourth.png"),
                FileKind.PHOTO,
                OwnerQuota(current=3, max=3),
                owner_id="user-1",
            )

        assert "Maximum photo limit reached" in str(exc_info.value)
        assert blob_storage.get_blob_count() == 0

    async def test_tampered_blob_fails_integrity(self, fixed_gatekeeper, blob_storage, pdf_bytes):
        accepted = await fixed_gatekeeper.accept(
            IncomingFile.from_bytes(pdf_bytes, "application/pdf", "cv.pdf"),
            FileKind.RESUME,
            NO_FILES,
            owner_id="user-1",
        )
        stored = await blob_storage.get(accepted.location)
        blob_storage._blobs[accepted.location] = bytes([stored[0] ^ 0x80]) + stored[1:]

        with pytest.raises(IntegrityError):
            await fixed_gatekeeper.open(accepted.location, accepted.iv, accepted.auth_tag)


class TestValidate:
    def test_type_not_allowed_for_kind(self, gatekeeper, pdf_bytes):
        with pytest.raises(UnsupportedTypeError) as exc_info:
            gatekeeper.validate(
                IncomingFile.from_bytes(pdf_bytes, "application/pdf", "cv.pdf"),
                FileKind.PHOTO,
                NO_FILES,
            )
        assert exc_info.value.mime_type == "application/pdf"

    def test_spoofed_content_rejected(self, gatekeeper):
        with pytest.raises(UnsupportedTypeError):
            gatekeeper.validate(
                IncomingFile.from_bytes(b"<script>alert(1)</script>", "image/png", "x.png"),
                FileKind.PHOTO,
                NO_FILES,
            )

    def test_declared_size_also_enforced(self, gatekeeper, png_bytes):
        incoming = IncomingFile(
            data=png_bytes,
            declared_mime_type="image/png",
            size_bytes=6 * MB,
            file_name="x.png",
        )
        with pytest.raises(FileTooLargeError):
            gatekeeper.validate(incoming, FileKind.PHOTO, NO_FILES)

    def test_exactly_at_ceiling_is_allowed(self, gatekeeper):
        data = b"%PDF-" + b"0" * (10 * MB - 5)
        mime = gatekeeper.validate(
            IncomingFile.from_bytes(data, "application/pdf", "cv.pdf"),
            FileKind.RESUME,
            NO_FILES,
        )
        assert mime == "application/pdf"

    def test_empty_file(self, gatekeeper):
        with pytest.raises(InvalidInputError):
            gatekeeper.validate(
                IncomingFile.from_bytes(b"", "text/plain", "empty.txt"),
                FileKind.RESUME,
                NO_FILES,
            )

    def test_mime_parameters_ignored(self, gatekeeper):
        mime = gatekeeper.validate(
            IncomingFile.from_bytes(b"# Ada\n", "Text/Markdown; charset=utf-8", "cv.md"),
            FileKind.RESUME,
            NO_FILES,
        )
        assert mime == "text/markdown"

    def test_configured_quotas(self, blob_storage, encryption_key, png_bytes):
        gatekeeper = UploadGatekeeper(
            blob_storage,
            encryption_key,
            policies=policies_with_quotas(max_resumes=5, max_photos=1),
        )
        assert gatekeeper.policy_for(FileKind.RESUME).max_files == 5
        with pytest.raises(QuotaExceededError):
            gatekeeper.validate(
                IncomingFile.from_bytes(png_bytes, "image/png", "x.png"),
                FileKind.PHOTO,
                OwnerQuota(current=1, max=gatekeeper.policy_for(FileKind.PHOTO).max_files),
            )


class TestSignatures:
    @pytest.mark.parametrize(
        ("mime", "data", "expected"),
        [
            ("application/pdf", b"%PDF-1.7", True),
            ("application/pdf", b"PK\x03\x04", False),
            (DOCX_MIME, b"PK\x03\x04rest", True),
            ("application/msword", b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1", True),
            ("image/webp", b"RIFF\x00\x00\x00\x00WEBPVP8 ", True),
            ("image/webp", b"RIFF\x00\x00\x00\x00AVI ", False),
            ("text/plain", b"plain text", True),
            ("text/plain", b"bin\x00ary", False),
            ("application/zip", b"PK\x03\x04", False),
        ],
    )
    def test_matches_signature(self, mime, data, expected):
        assert matches_signature(mime, data) is expected

    def test_normalize_mime_type(self):
        assert normalize_mime_type(" IMAGE/PNG ") == "image/png"
        assert normalize_mime_type(None) == ""
