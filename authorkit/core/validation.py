"""Declarative validation and sanitization of request payloads.

Each endpoint declares a schema (field name -> ``FieldRule``) and passes the
raw JSON body through ``validate_input``. The validator never raises: it
returns every field-level error at once so clients can fix a form in one
round trip, and a dict of sanitized values for the fields that passed.
Routes call ``ensure_valid``, which turns a failed result into a 400.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from authorkit.core.errors import ErrorCode, ValidationAppError
from authorkit.core.logging import log_security_event

FieldType = Literal["string", "url", "email", "integer", "object"]

MAX_URL_LENGTH = 255

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_SCHEME_RE = re.compile(r"^https?://")
_WWW_RE = re.compile(r"^www\.")
_INTEGER_RE = re.compile(r"^-?\d+$")


@dataclass(frozen=True)
class FieldRule:
    """Constraints applied to a single payload field.

    Attributes:
        type: Value kind; drives sanitization.
        required: Whether an absent or blank value is an error.
        min_length: Minimum length for string values.
        max_length: Maximum length for string values.
        pattern: Regular expression the raw string must match (searched).
        min_value: Smallest accepted integer.
        max_value: Largest accepted integer.
        fields: Nested schema for ``object`` values.
        default: Value stored when an optional field is absent.
    """

    type: FieldType = "string"
    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | re.Pattern[str] | None = None
    min_value: int | None = None
    max_value: int | None = None
    fields: Mapping[str, FieldRule] | None = None
    default: Any = None


@dataclass
class ValidationResult:
    """Outcome of validating one payload against a schema."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


def sanitize_url(value: str) -> str:
    """Normalize a site URL to ``host[/path]`` form.

    Lowercases, then strips whitespace, the ``http(s)://`` scheme, a leading
    ``www.`` and trailing slashes until nothing changes, so the function is
    idempotent: ``sanitize_url(sanitize_url(u)) == sanitize_url(u)``.
    """
    cleaned = value.strip().lower()
    while True:
        previous = cleaned
        cleaned = _SCHEME_RE.sub("", cleaned)
        cleaned = _WWW_RE.sub("", cleaned)
        cleaned = cleaned.rstrip("/").strip()
        if cleaned == previous:
            return cleaned


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _check_string(name: str, value: Any, rule: FieldRule) -> tuple[str | None, Any]:
    if not isinstance(value, str):
        return f"{name} must be a string", None
    if rule.max_length is not None and len(value) > rule.max_length:
        return f"{name} must be less than {rule.max_length} characters", None
    if rule.min_length is not None and len(value) < rule.min_length:
        return f"{name} must be at least {rule.min_length} characters", None
    if rule.pattern is not None and not re.search(rule.pattern, value):
        return f"{name} has invalid format", None
    return None, value.strip()


def _check_url(name: str, value: Any, rule: FieldRule) -> tuple[str | None, Any]:
    if not isinstance(value, str):
        return f"{name} must be a valid URL", None
    cleaned = sanitize_url(value)
    if not cleaned or len(cleaned) > MAX_URL_LENGTH:
        return f"{name} must be a valid URL", None
    return None, cleaned


def _check_email(name: str, value: Any, rule: FieldRule) -> tuple[str | None, Any]:
    if not isinstance(value, str):
        return f"{name} must be a valid email address", None
    cleaned = value.strip().lower()
    max_length = rule.max_length or MAX_URL_LENGTH
    if len(cleaned) > max_length or not EMAIL_PATTERN.match(cleaned):
        return f"{name} must be a valid email address", None
    return None, cleaned


def _check_integer(name: str, value: Any, rule: FieldRule) -> tuple[str | None, Any]:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        return f"{name} must be an integer", None
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and _INTEGER_RE.match(value.strip()):
        number = int(value.strip())
    else:
        return f"{name} must be an integer", None

    if rule.min_value is not None and number < rule.min_value:
        return f"{name} must be at least {rule.min_value}", None
    if rule.max_value is not None and number > rule.max_value:
        return f"{name} must be at most {rule.max_value}", None
    return None, number


def _check_object(name: str, value: Any, rule: FieldRule) -> tuple[list[str], Any]:
    if not isinstance(value, Mapping):
        return [f"{name} must be an object"], None
    nested = validate_input(value, rule.fields or {})
    return [f"{name}.{error}" for error in nested.errors], nested.data


_CHECKS = {
    "string": _check_string,
    "url": _check_url,
    "email": _check_email,
    "integer": _check_integer,
}


def validate_input(payload: Mapping[str, Any] | None, schema: Mapping[str, FieldRule]) -> ValidationResult:
    """Validate and sanitize ``payload`` against ``schema``.

    Fields not declared in the schema are ignored. A failing field contributes
    exactly one error message and is left out of ``data``; the remaining
    fields are still checked. ``object`` fields are validated against their
    nested schema and report each failing member as ``parent.member``.

    Args:
        payload: Decoded request body (``None`` is treated as empty).
        schema: Mapping of field name to its rule.

    Returns:
        ValidationResult with ``is_valid``, accumulated ``errors`` and the
        sanitized ``data``.
    """
    payload = payload or {}
    errors: list[str] = []
    data: dict[str, Any] = {}

    for name, rule in schema.items():
        value = payload.get(name)

        if _is_blank(value):
            if rule.required:
                errors.append(f"{name} is required")
            else:
                data[name] = rule.default
            continue

        if rule.type == "object":
            nested_errors, cleaned = _check_object(name, value, rule)
            if nested_errors:
                errors.extend(nested_errors)
                continue
            data[name] = cleaned
            continue

        error, cleaned = _CHECKS[rule.type](name, value, rule)
        if error:
            errors.append(error)
            continue
        data[name] = cleaned

    return ValidationResult(is_valid=not errors, errors=errors, data=data)


def ensure_valid(payload: Mapping[str, Any] | None, schema: Mapping[str, FieldRule]) -> dict[str, Any]:
    """Validate ``payload`` and return the sanitized data.

    Raises:
        ValidationAppError: With every field error under ``errors``.
    """
    result = validate_input(payload, schema)
    if not result.is_valid:
        log_security_event("invalid_input", errors=result.errors)
        raise ValidationAppError(
            code=ErrorCode.VALIDATION_ERROR,
            message="Invalid input",
            extra={"errors": result.errors},
        )
    return result.data
