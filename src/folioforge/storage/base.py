"""Abstract storage interfaces using Protocol.

The security core consumes storage only through these narrow contracts:
an opaque blob store for encrypted bytes, a user-record store, and a
store for upload metadata.
"""

from datetime import datetime
from typing import Protocol

from folioforge.models.upload import AcceptedFile, FileKind, FileRecord
from folioforge.models.user import UserRecord


class BlobStorage(Protocol):
    """Opaque blob store for encrypted upload bytes.

    Reason: Using Protocol instead of ABC allows more flexible implementations
    (local disk, object storage) while maintaining strict type checking.
    """

    async def put(self, data: bytes, metadata: dict[str, str]) -> str:
        """Store bytes.

        Args:
            data: Bytes to store (already encrypted).
            metadata: At least 'name' (generated storage name) and 'kind'.

        Returns:
            Location string to pass back to get()/delete().
        """
        ...

    async def get(self, location: str) -> bytes:
        """Read bytes previously stored at location.

        Raises:
            StorageError: If nothing is stored there.
        """
        ...

    async def delete(self, location: str) -> None:
        """Delete bytes at location (no error if already gone)."""
        ...


class UserStore(Protocol):
    """User-record collaborator."""

    async def initialize(self) -> None:
        """Initialize the storage (create tables, etc.)."""
        ...

    async def find_user_by_email(self, email: str) -> UserRecord | None:
        """Look up a user by email (case-insensitive)."""
        ...

    async def find_user_by_id(self, user_id: str) -> UserRecord | None:
        """Look up a user by id."""
        ...

    async def create_user(
        self,
        email: str,
        password_hash: str,
        name: str | None = None,
        role: str = "user",
    ) -> UserRecord:
        """Create a user.

        Raises:
            StorageError: If the email is already registered.
        """
        ...

    async def update_last_login(self, user_id: str, when: datetime | None = None) -> None:
        """Record a successful login."""
        ...


class FileRecordStore(Protocol):
    """Upload metadata collaborator."""

    async def count_files(self, owner_id: str, kind: FileKind) -> int:
        """Number of files of a kind the owner currently holds."""
        ...

    async def save_file(self, owner_id: str, accepted: AcceptedFile) -> FileRecord:
        """Persist metadata for an accepted upload."""
        ...

    async def list_files(self, owner_id: str, kind: FileKind | None = None) -> list[FileRecord]:
        """List the owner's files, newest first."""
        ...

    async def get_file(self, file_id: str) -> FileRecord | None:
        """Get one file record by id."""
        ...

    async def delete_file(self, file_id: str) -> bool:
        """Delete a file record.

        Returns:
            True if a record was deleted.
        """
        ...

    async def list_expired(self, now: datetime) -> list[FileRecord]:
        """Records whose retention period has passed."""
        ...
