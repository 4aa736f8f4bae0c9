"""Structured logging for the AuthorKit API.

What this module sets up:
- JSON (or plain) log lines on stdout or a rotating file
- request_id correlation through a context variable
- Redaction of licence keys, secrets and e-mail addresses, both in
  structured ``extra`` fields and inside free-text messages
- Security audit events on a dedicated logger
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from authorkit.core.config import LogSettings, settings

REDACTED = "[REDACTED]"
SECURITY_LOGGER_NAME = "authorkit.security"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

security_logger = logging.getLogger(SECURITY_LOGGER_NAME)

# Structured fields whose values never reach a log sink
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "secret",
        "webhook_secret",
        "token",
        "download_token",
        "key",
        "license_key",
        "signature",
        "x-signature",
        "email",
        "customer_email",
        "user_email",
    }
)

# Values scrubbed from message text: e-mail addresses and licence-key shaped tokens
_TEXT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[^\s@\"']+@[^\s@\"']+\.[^\s@\"']+"),
    re.compile(r"\b[A-Z0-9]{4,}(?:-[A-Z0-9]{4,}){3,}\b"),
)

# Built-in LogRecord attributes; everything else on a record came from ``extra``
_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
    }
)

_ENV_DEFAULT_LEVELS = {
    "production": logging.WARNING,
    "development": logging.DEBUG,
}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_sensitive(value: Any) -> str:
    """Return a short, stable digest of a sensitive value for log correlation.

    Args:
        value: Licence key, e-mail address or other identifier.

    Returns:
        First 16 hex characters of the SHA-256 digest ("" for empty input).
    """

    if not value:
        return ""
    return hashlib.sha256(str(value).encode("utf-8")).hexdigest()[:16]


def log_security_event(event: str, **details: Any) -> None:
    """Emit a security audit event.

    Audit events are logged at WARNING so they survive production log levels.
    Callers pass hashed identifiers, never raw secrets.
    """

    security_logger.warning(event, extra={"security_event": event, **details})


class Redactor:
    """Masks sensitive keys in nested structures and sensitive text in every string.

    String leaves are scrubbed too: exception text such as a driver error can
    carry bound parameters (e-mail addresses, licence keys).
    """

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        text_patterns: Iterable[re.Pattern[str]] = _TEXT_PATTERNS,
    ) -> None:
        keys = SENSITIVE_KEYS_DEFAULT if sensitive_keys is None else sensitive_keys
        self.sensitive_keys = frozenset(key.lower() for key in keys)
        self.text_patterns = tuple(text_patterns)

    def is_sensitive(self, key: str) -> bool:
        return key.lower() in self.sensitive_keys

    def scrub_text(self, text: str) -> str:
        for pattern in self.text_patterns:
            text = pattern.sub(REDACTED, text)
        return text

    def redact(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                k: REDACTED if isinstance(k, str) and self.is_sensitive(k) else self.redact(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self.redact(v) for v in value)
        if isinstance(value, str):
            return self.scrub_text(value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Return the record's ``extra`` fields with sensitive values masked."""

        return {
            key: REDACTED if self.is_sensitive(key) else self.redact(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive extras and message text on the record before formatting.

    Runs on the handler, so plain-text output is masked as well as JSON.
    """

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in self.redactor.extras(record).items():
            setattr(record, key, value)
        record.msg = self.redactor.scrub_text(record.getMessage())
        record.args = None
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, extras."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        line: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": self.redactor.scrub_text(record.getMessage()),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            line["request_id"] = request_id

        line.update(self.redactor.extras(record))

        if record.exc_info:
            line["exception"] = self.redactor.scrub_text(self.formatException(record.exc_info))

        return json.dumps(line, default=str, ensure_ascii=self.ensure_ascii)


def resolve_level(log_settings: LogSettings, env: str | None = None) -> int:
    """Pick the root log level.

    An explicit ``LOG_LEVEL`` wins; otherwise production logs warnings and up,
    development everything, and other environments info.
    """

    if log_settings.level:
        return getattr(logging, log_settings.level.upper(), logging.INFO)
    return _ENV_DEFAULT_LEVELS.get((env or "").lower(), logging.INFO)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/authorkit.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(file_path, encoding="utf-8")
    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None, *, env: str | None = None) -> None:
    """Install the AuthorKit handler on the root logger.

    Args:
        log_settings: Logging settings; defaults to the process-wide settings.
        env: Deployment environment used when no explicit level is set.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())

    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(resolve_level(cfg, env or settings.app.env))

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
