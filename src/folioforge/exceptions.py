"""Custom exceptions for FolioForge.

Provides a structured exception hierarchy for different error scenarios.
None of these messages may carry a password, key or raw token.
"""


class FolioForgeError(Exception):
    """Base exception class for all FolioForge errors."""

    pass


class ConfigurationError(FolioForgeError):
    """Raised when required configuration is missing or too weak.

    Fatal at startup: the service refuses to run with weakened guarantees.
    """

    pass


class InvalidInputError(FolioForgeError):
    """Raised when caller input is malformed (empty password, bad email, etc.)."""

    pass


class StorageError(FolioForgeError):
    """Raised when blob or record storage operations fail."""

    pass


class DuplicateRecordError(StorageError):
    """Raised when a uniqueness constraint (e.g. user email) is violated."""

    pass


class InvalidKeyError(FolioForgeError):
    """Raised when an encryption key is not exactly 32 bytes."""

    def __init__(self, length: int | None = None):
        self.length = length
        if length is None:
            super().__init__("Encryption key must be exactly 32 bytes")
        else:
            super().__init__(f"Encryption key must be exactly 32 bytes, got {length}")


class IntegrityError(FolioForgeError):
    """Raised when an encrypted payload fails authentication.

    Treated as corruption or tampering; no plaintext is ever returned.
    """

    def __init__(self, message: str = "Encrypted payload failed integrity check"):
        super().__init__(message)


class UploadRejectedError(FolioForgeError):
    """Base class for upload rejections.

    Messages carry no sensitive detail and are shown to clients verbatim.

    Attributes:
        kind: The upload kind that was rejected ('resume' or 'photo').
    """

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(message)


class QuotaExceededError(UploadRejectedError):
    """Raised when the owner already holds the maximum number of files.

    Attributes:
        limit: Maximum number of files allowed for this kind.
    """

    def __init__(self, kind: str, limit: int):
        self.limit = limit
        super().__init__(kind, f"Maximum {kind} limit reached. Users can upload up to {limit}.")


class UnsupportedTypeError(UploadRejectedError):
    """Raised when the declared or detected file type is not allowed.

    Attributes:
        mime_type: The rejected MIME type.
    """

    def __init__(self, kind: str, mime_type: str, allowed: list[str] | None = None):
        self.mime_type = mime_type
        message = f"Invalid file type for {kind}: {mime_type}"
        if allowed:
            message += f". Allowed: {', '.join(allowed)}"
        super().__init__(kind, message)


class FileTooLargeError(UploadRejectedError):
    """Raised when a file exceeds the kind-specific size ceiling.

    Attributes:
        size_bytes: Size of the rejected file.
        max_bytes: Ceiling for this kind.
    """

    def __init__(self, kind: str, size_bytes: int, max_bytes: int):
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        max_mb = max_bytes // (1024 * 1024)
        super().__init__(kind, f"File too large. Maximum size for {kind}: {max_mb}MB")
