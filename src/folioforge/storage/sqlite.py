"""SQLite storage implementation for user and upload records.

Provides async SQLite storage using a connection per operation.
"""

import uuid
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from folioforge.exceptions import DuplicateRecordError
from folioforge.models.upload import AcceptedFile, FileKind, FileRecord
from folioforge.models.user import UserRecord

logger = structlog.get_logger()

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT,
    password_hash TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'user',
    is_active INTEGER NOT NULL DEFAULT 1,
    email_verified INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    last_login_at TEXT
);

CREATE TABLE IF NOT EXISTS uploads (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL REFERENCES users(id),
    kind TEXT NOT NULL,
    location TEXT NOT NULL,
    storage_name TEXT NOT NULL,
    original_file_name TEXT NOT NULL,
    mime_type TEXT NOT NULL,
    size_bytes INTEGER NOT NULL,
    encryption_iv TEXT NOT NULL,
    auth_tag TEXT NOT NULL,
    uploaded_at TEXT NOT NULL,
    retention_until TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_uploads_owner_kind ON uploads(owner_id, kind);
CREATE INDEX IF NOT EXISTS idx_uploads_retention ON uploads(retention_until);
"""


def _to_db_time(value: datetime) -> str:
    """UTC ISO string; lexicographic order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_db_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteStorage:
    """SQLite-backed user and upload record storage.

    Reason: accounts and upload metadata live in one file next to the
    blob directory. Implements UserStore and FileRecordStore.
    """

    def __init__(self, db_path: Path):
        """Initialize SQLite storage.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = db_path
        self._initialized = False

    async def initialize(self) -> None:
        """Create tables if they don't exist. Should be called once on startup."""
        if self._initialized:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self._db_path) as db:
            await db.executescript(SCHEMA_SQL)
            await db.commit()

        self._initialized = True
        logger.info("Storage initialized", db_path=str(self._db_path))

    # Users

    async def find_user_by_email(self, email: str) -> UserRecord | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
            ) as cursor:
                row = await cursor.fetchone()
                return self._row_to_user(row) if row else None

    async def find_user_by_id(self, user_id: str) -> UserRecord | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM users WHERE id = ?", (user_id,)) as cursor:
                row = await cursor.fetchone()
                return self._row_to_user(row) if row else None

    async def create_user(
        self,
        email: str,
        password_hash: str,
        name: str | None = None,
        role: str = "user",
    ) -> UserRecord:
        """Insert a new active, unverified user.

        Raises:
            DuplicateRecordError: If the email is already registered.
        """
        user = UserRecord(
            id=uuid.uuid4().hex,
            email=email.strip().lower(),
            name=name,
            password_hash=password_hash,
            role=role,
        )
        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(
                    """
                    INSERT INTO users (
                        id, email, name, password_hash, role,
                        is_active, email_verified, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user.id,
                        user.email,
                        user.name,
                        user.password_hash,
                        user.role,
                        int(user.is_active),
                        int(user.email_verified),
                        _to_db_time(user.created_at),
                    ),
                )
                await db.commit()
        except aiosqlite.IntegrityError:
            raise DuplicateRecordError("Email already registered") from None
        return user

    async def update_last_login(self, user_id: str, when: datetime | None = None) -> None:
        when = when or datetime.now(timezone.utc)
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "UPDATE users SET last_login_at = ? WHERE id = ?",
                (_to_db_time(when), user_id),
            )
            await db.commit()

    async def set_user_active(self, user_id: str, is_active: bool) -> None:
        """Activate or deactivate an account."""
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "UPDATE users SET is_active = ? WHERE id = ?",
                (int(is_active), user_id),
            )
            await db.commit()

    # Uploads

    async def count_files(self, owner_id: str, kind: FileKind) -> int:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute(
                "SELECT COUNT(*) FROM uploads WHERE owner_id = ? AND kind = ?",
                (owner_id, kind.value),
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    async def save_file(self, owner_id: str, accepted: AcceptedFile) -> FileRecord:
        record = FileRecord(id=uuid.uuid4().hex, owner_id=owner_id, **accepted.model_dump())
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                """
                INSERT INTO uploads (
                    id, owner_id, kind, location, storage_name, original_file_name,
                    mime_type, size_bytes, encryption_iv, auth_tag,
                    uploaded_at, retention_until
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.owner_id,
                    record.kind.value,
                    record.location,
                    record.storage_name,
                    record.original_file_name,
                    record.mime_type,
                    record.size_bytes,
                    record.iv,
                    record.auth_tag,
                    _to_db_time(record.uploaded_at),
                    _to_db_time(record.retention_until),
                ),
            )
            await db.commit()
        return record

    async def list_files(self, owner_id: str, kind: FileKind | None = None) -> list[FileRecord]:
        query = "SELECT * FROM uploads WHERE owner_id = ?"
        params: tuple = (owner_id,)
        if kind is not None:
            query += " AND kind = ?"
            params = (owner_id, kind.value)
        query += " ORDER BY uploaded_at DESC"

        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_file(row) for row in rows]

    async def get_file(self, file_id: str) -> FileRecord | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM uploads WHERE id = ?", (file_id,)) as cursor:
                row = await cursor.fetchone()
                return self._row_to_file(row) if row else None

    async def delete_file(self, file_id: str) -> bool:
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute("DELETE FROM uploads WHERE id = ?", (file_id,))
            await db.commit()
            return cursor.rowcount > 0

    async def list_expired(self, now: datetime) -> list[FileRecord]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM uploads WHERE retention_until <= ? ORDER BY retention_until",
                (_to_db_time(now),),
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_file(row) for row in rows]

    async def close(self) -> None:
        """Close storage (no-op for SQLite as we use connection per operation)."""
        pass

    def _row_to_user(self, row: aiosqlite.Row) -> UserRecord:
        return UserRecord(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            password_hash=row["password_hash"],
            role=row["role"],
            is_active=bool(row["is_active"]),
            email_verified=bool(row["email_verified"]),
            created_at=_from_db_time(row["created_at"]),
            last_login_at=_from_db_time(row["last_login_at"]),
        )

    def _row_to_file(self, row: aiosqlite.Row) -> FileRecord:
        return FileRecord(
            id=row["id"],
            owner_id=row["owner_id"],
            kind=FileKind(row["kind"]),
            location=row["location"],
            storage_name=row["storage_name"],
            original_file_name=row["original_file_name"],
            mime_type=row["mime_type"],
            size_bytes=row["size_bytes"],
            iv=row["encryption_iv"],
            auth_tag=row["auth_tag"],
            uploaded_at=_from_db_time(row["uploaded_at"]),
            retention_until=_from_db_time(row["retention_until"]),
        )
