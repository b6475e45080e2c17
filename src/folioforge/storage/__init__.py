"""Storage package."""

from folioforge.storage.base import BlobStorage, FileRecordStore, UserStore
from folioforge.storage.factory import create_blob_storage
from folioforge.storage.local import LocalBlobStorage
from folioforge.storage.memory import InMemoryBlobStorage
from folioforge.storage.sqlite import SQLiteStorage

__all__ = [
    "BlobStorage",
    "FileRecordStore",
    "InMemoryBlobStorage",
    "LocalBlobStorage",
    "SQLiteStorage",
    "UserStore",
    "create_blob_storage",
]
