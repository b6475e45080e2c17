"""Test configuration and fixtures."""

import struct
import tempfile
import zlib
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from folioforge.auth.jwt_auth import TokenService
from folioforge.auth.token_storage import RevocationList
from folioforge.config.settings import load_settings
from folioforge.main import create_app
from folioforge.storage.memory import InMemoryBlobStorage
from folioforge.storage.sqlite import SQLiteStorage
from folioforge.uploads.gatekeeper import UploadGatekeeper

JWT_SECRET = "t9Vq2Lx7Rk4Wm8Zp1Hc6Jd3Nb5Fs0Gy-signing"
ENCRYPTION_KEY_HEX = "8f3c1a6e5b2d4f7091a8c3e6d5b4f2a19e8d7c6b5a4f3e2d1c0b9a8f7e6d5c4b"


def _png_bytes() -> bytes:
    """A valid 1x1 PNG."""

    def chunk(tag: bytes, data: bytes) -> bytes:
        body = tag + data
        return struct.pack(">I", len(data)) + body + struct.pack(">I", zlib.crc32(body))

    header = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    pixels = zlib.compress(b"\x00\xff\x00\x00")
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", header) + chunk(b"IDAT", pixels) + chunk(b"IEND", b"")


@pytest.fixture
def temp_db_path():
    """Create a temporary database path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def jwt_secret() -> str:
    return JWT_SECRET


@pytest.fixture
def encryption_key() -> bytes:
    return bytes.fromhex(ENCRYPTION_KEY_HEX)


@pytest.fixture
def settings(temp_db_path, tmp_path):
    """Settings isolated from the environment and from any .env file."""
    return load_settings(
        _env_file=None,
        auth_jwt_secret=JWT_SECRET,
        encryption_key=ENCRYPTION_KEY_HEX,
        db_path=temp_db_path,
        upload_dir=tmp_path / "uploads",
        storage_type="memory",
        maintenance_enabled=False,
        environment="development",
    )


@pytest.fixture
def revocations() -> RevocationList:
    return RevocationList()


@pytest.fixture
def token_service(jwt_secret, revocations) -> TokenService:
    return TokenService(
        secret_key=jwt_secret,
        access_ttl=timedelta(hours=1),
        refresh_ttl=timedelta(days=7),
        revocations=revocations,
    )


@pytest.fixture
async def sqlite_storage(temp_db_path):
    storage = SQLiteStorage(temp_db_path)
    await storage.initialize()
    yield storage
    await storage.close()


@pytest.fixture
def blob_storage() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def gatekeeper(blob_storage, encryption_key) -> UploadGatekeeper:
    return UploadGatekeeper(blob_storage=blob_storage, encryption_key=encryption_key)


@pytest.fixture
def app(settings, blob_storage):
    return create_app(settings, blob_storage=blob_storage)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def png_bytes() -> bytes:
    return _png_bytes()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00" + b"\x00" * 64 + b"\xff\xd9"


@pytest.fixture
def pdf_bytes() -> bytes:
    return b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"
