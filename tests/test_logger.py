"""Tests for log redaction."""

import logging

import pytest
import structlog

from folioforge.utils.logger import REDACTED, configure_logging, get_logger, redact_sensitive


def test_sensitive_keys_are_masked():
    event = redact_sensitive(
        None,
        "info",
        {
            "event": "Login attempt",
            "password": "hunter2",
            "refresh_token": "eyJ...",
            "encryption_key": "00ff",
            "Authorization": "Bearer abc",
            "user_id": "user-1",
        },
    )

    assert event["password"] == REDACTED
    assert event["refresh_token"] == REDACTED
    assert event["encryption_key"] == REDACTED
    assert event["Authorization"] == REDACTED
    assert event["user_id"] == "user-1"
    assert event["event"] == "Login attempt"


def test_safe_keys_pass_through():
    event = redact_sensitive(None, "info", {"token_id": "jti-1", "token_type": "refresh"})
    assert event == {"token_id": "jti-1", "token_type": "refresh"}


@pytest.fixture
def configured_logging():
    configure_logging("WARNING", json_format=True)
    yield
    structlog.reset_defaults()


def test_get_logger_binds_name_and_context(configured_logging):
    log = get_logger("lifespan", request_id="r-1")

    assert structlog.get_context(log) == {"logger": "lifespan", "request_id": "r-1"}
    assert not log.is_enabled_for(logging.INFO)
    assert log.is_enabled_for(logging.ERROR)
