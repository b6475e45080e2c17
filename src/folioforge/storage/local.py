"""Local filesystem blob storage.

Encrypted uploads are written under base_dir/<kind dir>/<storage name>.
Locations are relative paths; anything resolving outside base_dir is refused.
"""

from pathlib import Path

import aiofiles
import aiofiles.os
import structlog

from folioforge.exceptions import StorageError

logger = structlog.get_logger()

_KIND_DIRS = {"resume": "resumes", "photo": "photos"}


class LocalBlobStorage:
    """Blob storage backed by the local filesystem."""

    def __init__(self, base_dir: Path):
        """Initialize local storage.

        Args:
            base_dir: Directory that holds all stored blobs.
        """
        self._base_dir = Path(base_dir)

    def _ensure_dirs(self) -> None:
        for sub in _KIND_DIRS.values():
            (self._base_dir / sub).mkdir(parents=True, exist_ok=True)

    def _resolve(self, location: str) -> Path:
        base = self._base_dir.resolve()
        path = (base / location).resolve()
        if not path.is_relative_to(base) or path == base:
            raise StorageError(f"Location outside storage root: {location}")
        return path

    async def put(self, data: bytes, metadata: dict[str, str]) -> str:
        """Write bytes to a new file; never overwrites an existing one."""
        name = metadata.get("name", "")
        kind = metadata.get("kind", "")
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise StorageError("Invalid storage name")
        if kind not in _KIND_DIRS:
            raise StorageError(f"Unknown upload kind: {kind}")

        self._ensure_dirs()
        location = f"{_KIND_DIRS[kind]}/{name}"
        path = self._resolve(location)

        try:
            async with aiofiles.open(path, "xb") as f:
                await f.write(data)
        except FileExistsError:
            raise StorageError(f"Storage name collision: {name}") from None
        except OSError as e:
            raise StorageError(f"Failed to write blob: {e.strerror}") from e

        logger.debug("Blob stored", location=location, size=len(data))
        return location

    async def get(self, location: str) -> bytes:
        path = self._resolve(location)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            raise StorageError(f"Blob not found: {location}") from None

    async def delete(self, location: str) -> None:
        path = self._resolve(location)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug("Blob already deleted", location=location)
