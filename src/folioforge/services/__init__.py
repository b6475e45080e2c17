"""Services package."""

from folioforge.services.account_service import AccountService
from folioforge.services.upload_service import FileNotFoundForOwner, UploadService

__all__ = [
    "AccountService",
    "FileNotFoundForOwner",
    "UploadService",
]
