"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses. Each error class maps
to one HTTP status; ``status_code`` overrides it for the few business errors
that surface under more than one status (e.g. licence state 400 vs 403).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, NotRequired, TypedDict


class ErrorCode:
    """Stable, machine-readable error codes shared with API clients."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    FORBIDDEN = "FORBIDDEN"
    INVALID_LICENSE = "INVALID_LICENSE"
    LICENSE_INACTIVE = "LICENSE_INACTIVE"
    LICENSE_EXPIRED = "LICENSE_EXPIRED"
    ACTIVATION_LIMIT_REACHED = "ACTIVATION_LIMIT_REACHED"
    NOT_FOUND = "NOT_FOUND"
    SERVICE_NOT_CONFIGURED = "SERVICE_NOT_CONFIGURED"
    EXTERNAL_API_ERROR = "EXTERNAL_API_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    WEBHOOK_PROCESSING_FAILED = "WEBHOOK_PROCESSING_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    hint: str
    field: str
    event: str
    provider_status: int
    retry_after: int
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
        extra: Top-level fields merged into the JSON error body
            (e.g. ``errors``, ``retryAfter``, ``data``).
        status_code: Optional override of the class default HTTP status.
        headers: Extra response headers (e.g. ``Retry-After``).
    """

    code: str
    message: str
    details: ErrorDetails | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    status_code: int | None = None
    headers: dict[str, str] = field(default_factory=dict)

    default_status: ClassVar[int] = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        return self.status_code or self.default_status


class ValidationAppError(AppError):
    """Raised when request input fails validation."""


class MethodNotAllowedAppError(AppError):
    """Raised when an endpoint is called with an unsupported HTTP method."""

    default_status = 405


class RateLimitAppError(AppError):
    """Raised when a client exhausted its request budget for a window."""

    default_status = 429


class AuthenticationAppError(AppError):
    """Raised when a caller or an inbound webhook cannot be authenticated."""

    default_status = 401


class LicenseStateAppError(AppError):
    """Raised for business-level licence failures (inactive, expired, limit reached)."""


class NotFoundAppError(AppError):
    """Raised when the requested resource does not exist."""

    default_status = 404


class ConfigurationAppError(AppError):
    """Raised when a required secret or service is not configured."""

    default_status = 500


class UpstreamAppError(AppError):
    """Raised when the payments provider fails or is unreachable."""

    default_status = 502


class DatabaseAppError(AppError):
    """Raised when a database query or mutation fails."""

    default_status = 500


class WebhookHandlerAppError(AppError):
    """Raised when a webhook event handler fails."""

    default_status = 500
