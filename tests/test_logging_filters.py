"""Tests for sensitive data filtering and security audit logging."""

from __future__ import annotations

import json
import logging
from io import StringIO

from authorkit.core.config import LogSettings
from authorkit.core.logging import (
    JsonFormatter,
    SensitiveDataFilter,
    hash_sensitive,
    log_security_event,
    resolve_level,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_license_material():
    logger, stream = _capture("test_license_redaction")

    logger.info(
        "license.validate",
        extra={
            "license_key": "AK-PRO-1234-5678-ABCD",
            "signature": "deadbeef",
            "site_url": "jane.example",
        },
    )

    output = stream.getvalue()
    assert "AK-PRO-1234-5678-ABCD" not in output
    assert "deadbeef" not in output
    assert "[REDACTED]" in output
    assert "jane.example" in output


def test_sensitive_filter_redacts_nested_emails():
    logger, stream = _capture("test_nested_redaction")

    logger.info(
        "webhook.received",
        extra={"payload": {"attributes": {"user_email": "reader@example.com", "status": "active"}}},
    )

    record = json.loads(stream.getvalue())
    assert record["payload"]["attributes"]["user_email"] == "[REDACTED]"
    assert record["payload"]["attributes"]["status"] == "active"


def test_hash_sensitive_is_stable_and_short():
    digest = hash_sensitive("AK-PRO-1234-5678-ABCD")

    assert digest == hash_sensitive("AK-PRO-1234-5678-ABCD")
    assert digest != hash_sensitive("AK-PRO-1234-5678-ABCE")
    assert len(digest) == 16
    assert hash_sensitive("") == ""
    assert hash_sensitive(None) == ""


def test_security_event_logged_at_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="authorkit.security"):
        log_security_event("invalid_signature", client_ip="203.0.113.7")

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.security_event == "invalid_signature"
    assert record.client_ip == "203.0.113.7"


def test_message_text_is_scrubbed():
    logger, stream = _capture("test_message_scrub")

    logger.info("activation failed for %s (%s)", "AK12-ABCD-EFGH-IJKL", "reader@example.com")

    record = json.loads(stream.getvalue())
    assert "AK12-ABCD-EFGH-IJKL" not in record["message"]
    assert "reader@example.com" not in record["message"]
    assert record["message"].startswith("activation failed for [REDACTED]")


def test_level_defaults_by_environment():
    assert resolve_level(LogSettings(level=None), "production") == logging.WARNING
    assert resolve_level(LogSettings(level=None), "development") == logging.DEBUG
    assert resolve_level(LogSettings(level=None), "staging") == logging.INFO
    assert resolve_level(LogSettings(level="error"), "development") == logging.ERROR


def test_string_extras_are_scrubbed():
    record = logging.LogRecord("authorkit.db.session", logging.ERROR, __file__, 1, "database.error", None, None)
    record.error_msg = "(sqlite3.IntegrityError) [parameters: ('jane@example.com', 'jane.example', '203.0.113.7')]"
    record.context = {"detail": ["owner jane@example.com"]}

    SensitiveDataFilter().filter(record)

    assert "jane@example.com" not in record.error_msg
    assert "[REDACTED]" in record.error_msg
    assert "jane.example" in record.error_msg
    assert record.context == {"detail": ["owner [REDACTED]"]}
