"""Storage factory for creating blob storage instances."""

from folioforge.config.settings import Settings
from folioforge.storage.base import BlobStorage
from folioforge.storage.local import LocalBlobStorage
from folioforge.storage.memory import InMemoryBlobStorage


def create_blob_storage(settings: Settings) -> BlobStorage:
    """Create a blob storage instance based on configuration.

    Args:
        settings: Application settings.

    Returns:
        BlobStorage instance (local or memory).

    Raises:
        ValueError: If the storage type is unsupported.
    """
    storage_type = settings.storage_type.lower()

    if storage_type == "local":
        return LocalBlobStorage(settings.upload_dir)

    elif storage_type == "memory":
        return InMemoryBlobStorage()

    else:
        raise ValueError(f"Unsupported storage type: {storage_type}. Supported types: local, memory")
