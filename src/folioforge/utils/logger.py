"""structlog setup for FolioForge.

Console output with colors in development, one JSON object per line when
``log_json`` is enabled. Every event passes through ``redact_sensitive``
before it is rendered, so credentials, tokens and key material never reach
the log sink even when a caller binds them by mistake.
"""

import logging
import sys

import structlog
from structlog.typing import FilteringBoundLogger

REDACTED = "[REDACTED]"

# Substrings that mark an event key as sensitive
_SENSITIVE_MARKERS = ("password", "token", "secret", "key", "cookie", "authorization")

# Keys that contain a marker but carry no secret material
_SAFE_KEYS = {"key_count", "token_type", "token_id", "keys_swept"}

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("aiosqlite", "apscheduler.executors.default", "multipart")


def redact_sensitive(logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor that masks values of sensitive-looking keys."""
    for key in list(event_dict):
        lowered = key.lower()
        if lowered in _SAFE_KEYS:
            continue
        if any(marker in lowered for marker in _SENSITIVE_MARKERS):
            event_dict[key] = REDACTED
    return event_dict


def _build_processors(json_format: bool) -> list:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_sensitive,
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Minimum level name, e.g. ``"DEBUG"`` or ``"WARNING"``.
        json_format: Render events as JSON lines instead of console text.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=_build_processors(json_format),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **context) -> FilteringBoundLogger:
    """Return a logger, optionally bound to a component name and extra context."""
    if name:
        context["logger"] = name
    return structlog.get_logger().bind(**context)
