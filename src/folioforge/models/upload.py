"""Upload data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class FileKind(str, Enum):
    """Kind of uploaded PII file."""

    RESUME = "resume"
    PHOTO = "photo"


@dataclass
class IncomingFile:
    """A file as received from the client, before any checks.

    Attributes:
        data: Raw file bytes.
        declared_mime_type: Content type claimed by the client (untrusted).
        size_bytes: Declared size; checked alongside len(data).
        file_name: Original client filename (untrusted, never used as a path).
    """

    data: bytes = field(repr=False)
    declared_mime_type: str
    size_bytes: int
    file_name: str

    @classmethod
    def from_bytes(cls, data: bytes, declared_mime_type: str, file_name: str) -> "IncomingFile":
        return cls(
            data=data,
            declared_mime_type=declared_mime_type,
            size_bytes=len(data),
            file_name=file_name,
        )


@dataclass(frozen=True)
class OwnerQuota:
    """How many files of a kind the owner holds, and may hold."""

    current: int
    max: int

    @property
    def exhausted(self) -> bool:
        return self.current >= self.max


class AcceptedFile(BaseModel):
    """Result of a successful gatekeeper pass: encrypted bytes are in storage.

    iv and auth_tag are base64 and stored apart from the ciphertext blob.
    """

    location: str = Field(..., description="Blob storage location")
    storage_name: str = Field(..., description="Generated collision-resistant name")
    kind: FileKind
    original_file_name: str
    mime_type: str
    size_bytes: int
    iv: str = Field(..., description="Base64 16-byte nonce")
    auth_tag: str = Field(..., description="Base64 16-byte GCM tag")
    uploaded_at: datetime
    retention_until: datetime


class FileRecord(AcceptedFile):
    """Persisted upload metadata."""

    id: str
    owner_id: str


class FileResponse(BaseModel):
    """Public view of an upload record."""

    id: str
    kind: FileKind
    file_name: str
    mime_type: str
    size_bytes: int
    uploaded_at: datetime
    retention_until: datetime

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileResponse":
        return cls(
            id=record.id,
            kind=record.kind,
            file_name=record.original_file_name,
            mime_type=record.mime_type,
            size_bytes=record.size_bytes,
            uploaded_at=record.uploaded_at,
            retention_until=record.retention_until,
        )
