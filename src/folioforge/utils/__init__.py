"""Utils package."""

from folioforge.utils.logger import configure_logging, get_logger, redact_sensitive

__all__ = [
    "configure_logging",
    "get_logger",
    "redact_sensitive",
]
