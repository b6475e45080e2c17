"""Data models package."""

from folioforge.models.upload import (
    AcceptedFile,
    FileKind,
    FileRecord,
    FileResponse,
    IncomingFile,
    OwnerQuota,
)
from folioforge.models.user import UserRecord

__all__ = [
    "AcceptedFile",
    "FileKind",
    "FileRecord",
    "FileResponse",
    "IncomingFile",
    "OwnerQuota",
    "UserRecord",
]
