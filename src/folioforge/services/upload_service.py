"""Upload service.

Ties the gatekeeper to the upload record store: quota lookup, accept,
record save, owner-checked reads, and the retention purge.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog

from folioforge.exceptions import StorageError
from folioforge.models.upload import FileKind, FileRecord, IncomingFile, OwnerQuota
from folioforge.storage.base import FileRecordStore
from folioforge.uploads.gatekeeper import UploadGatekeeper

logger = structlog.get_logger()


class FileNotFoundForOwner(StorageError):
    """Raised when a file id does not exist or belongs to someone else."""

    def __init__(self, file_id: str):
        self.file_id = file_id
        super().__init__(f"File not found: {file_id}")


class UploadService:
    """Upload orchestration for one process."""

    def __init__(self, gatekeeper: UploadGatekeeper, records: FileRecordStore):
        self._gatekeeper = gatekeeper
        self._records = records
        # Reason: count-then-save must not interleave for the same owner,
        # otherwise two parallel uploads could both pass the quota check.
        self._owner_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _owner_lock(self, owner_id: str):
        lock = self._owner_locks.setdefault(owner_id, asyncio.Lock())
        self._lock_users[owner_id] = self._lock_users.get(owner_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # Drop the lock once no upload holds or waits on it
            self._lock_users[owner_id] -= 1
            if self._lock_users[owner_id] == 0:
                del self._lock_users[owner_id]
                del self._owner_locks[owner_id]

    async def upload(self, owner_id: str, file: IncomingFile, kind: FileKind) -> FileRecord:
        """Accept a file for owner_id and record it.

        Raises:
            UploadRejectedError: If the gatekeeper rejects the file.
            InvalidInputError: If the file is empty.
            StorageError: If storage fails.
        """
        kind = FileKind(kind)
        policy = self._gatekeeper.policy_for(kind)

        async with self._owner_lock(owner_id):
            current = await self._records.count_files(owner_id, kind)
            quota = OwnerQuota(current=current, max=policy.max_files)
            accepted = await self._gatekeeper.accept(file, kind, quota, owner_id)
            try:
                return await self._records.save_file(owner_id, accepted)
            except Exception:
                # Do not leave an orphaned blob behind when the record fails
                await self._gatekeeper.discard(accepted.location)
                raise

    async def list_files(self, owner_id: str, kind: FileKind | None = None) -> list[FileRecord]:
        return await self._records.list_files(owner_id, kind)

    async def _owned_record(self, owner_id: str, file_id: str) -> FileRecord:
        record = await self._records.get_file(file_id)
        if record is None or record.owner_id != owner_id:
            raise FileNotFoundForOwner(file_id)
        return record

    async def read_file(self, owner_id: str, file_id: str) -> tuple[FileRecord, bytes]:
        """Decrypt one of the owner's files.

        Raises:
            FileNotFoundForOwner: If the file is missing or not the owner's.
            IntegrityError: If the stored bytes fail authentication.
        """
        record = await self._owned_record(owner_id, file_id)
        data = await self._gatekeeper.open(record.location, record.iv, record.auth_tag)
        return record, data

    async def delete_file(self, owner_id: str, file_id: str) -> None:
        """Delete one of the owner's files (blob and record)."""
        record = await self._owned_record(owner_id, file_id)
        await self._gatekeeper.discard(record.location)
        await self._records.delete_file(record.id)
        logger.info("Upload deleted", owner_id=owner_id, file_id=file_id)

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete files whose retention period has passed.

        Returns:
            Number of files purged.
        """
        now = now or datetime.now(timezone.utc)
        expired = await self._records.list_expired(now)
        purged = 0
        for record in expired:
            try:
                await self._gatekeeper.discard(record.location)
            except StorageError as e:
                logger.warning("Failed to delete expired blob", file_id=record.id, error=str(e))
                continue
            await self._records.delete_file(record.id)
            purged += 1

        if purged:
            logger.info("Expired uploads purged", count=purged)
        return purged
