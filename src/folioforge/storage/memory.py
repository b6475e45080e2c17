"""In-memory blob storage.

Reason: Suitable for tests and throwaway instances; all blobs are lost
on restart.
"""

import asyncio

from folioforge.exceptions import StorageError


class InMemoryBlobStorage:
    """Blob storage held in a dict."""

    def __init__(self) -> None:
        # location -> bytes
        self._blobs: dict[str, bytes] = {}
        self._lock = asyncio.Lock()

    async def put(self, data: bytes, metadata: dict[str, str]) -> str:
        location = f"memory://{metadata.get('kind', 'blob')}/{metadata['name']}"
        async with self._lock:
            if location in self._blobs:
                raise StorageError(f"Storage name collision: {metadata['name']}")
            self._blobs[location] = bytes(data)
        return location

    async def get(self, location: str) -> bytes:
        try:
            return self._blobs[location]
        except KeyError:
            raise StorageError(f"Blob not found: {location}") from None

    async def delete(self, location: str) -> None:
        async with self._lock:
            self._blobs.pop(location, None)

    def get_blob_count(self) -> int:
        """Number of stored blobs (for monitoring and tests)."""
        return len(self._blobs)
