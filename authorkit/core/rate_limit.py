"""Rate limiting dependency for FastAPI routes.

This module wires the fixed-window limiter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency factory only.
- Swap-friendly: the limiter lives on ``app.state`` and its store can be
  in-memory (single process) or Redis (shared between instances).
- Independent buckets: each endpoint counts under its own key prefix, so
  exhausting one endpoint does not throttle another.

Client identity is the first ``X-Forwarded-For`` entry, then ``X-Real-IP``,
then the socket peer address.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from authorkit.adapters.rate_limit import FixedWindowRateLimiter
from authorkit.core.errors import ErrorCode, RateLimitAppError
from authorkit.core.logging import hash_sensitive, log_security_event

logger = logging.getLogger(__name__)

MINUTE = 60
HOUR = 60 * MINUTE


@dataclass(frozen=True)
class RateLimitPolicy:
    """Per-endpoint budget: ``max_requests`` per ``window_seconds``."""

    bucket: str
    max_requests: int
    window_seconds: int


VALIDATE_LICENSE_POLICY = RateLimitPolicy("validate", 20, MINUTE)
ACTIVATE_LICENSE_POLICY = RateLimitPolicy("activate", 10, HOUR)
DEACTIVATE_LICENSE_POLICY = RateLimitPolicy("deactivate", 10, HOUR)
CHECK_UPDATE_POLICY = RateLimitPolicy("check-update", 30, HOUR)
EMAIL_CAPTURE_POLICY = RateLimitPolicy("email", 10, HOUR)
BOOKSHELF_WRITE_POLICY = RateLimitPolicy("bookshelf-write", 120, MINUTE)
BOOKSHELF_READ_POLICY = RateLimitPolicy("bookshelf-read", 120, MINUTE)


def client_identity(request: Request) -> str:
    """Return the best-effort client IP address for ``request``."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(policy: RateLimitPolicy) -> Callable[[Request], None]:
    """Build a dependency enforcing ``policy`` for the decorated route.

    Usage:
        @router.post("/activate-license", dependencies=[Depends(rate_limit(ACTIVATE_LICENSE_POLICY))])

    Args:
        policy: Bucket name and budget for the route.

    Returns:
        A sync FastAPI dependency that consumes one unit of budget and raises
        ``RateLimitAppError`` (HTTP 429) when it is exhausted.
    """

    def enforce_rate_limit(request: Request) -> None:
        settings = request.app.state.settings
        if not settings.app.rate_limit_enabled:
            return

        limiter: FixedWindowRateLimiter = request.app.state.limiter
        identity = client_identity(request)
        key = f"{policy.bucket}:{identity}"
        key_hash = hash_sensitive(key)

        result = limiter.check(key, policy.max_requests, policy.window_seconds)
        if result.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "bucket": policy.bucket,
                    "key_hash": key_hash,
                    "limit": result.limit,
                    "remaining": result.remaining,
                    "window_s": policy.window_seconds,
                },
            )
            return

        retry_after = result.retry_after_seconds or 1
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "bucket": policy.bucket,
                "key_hash": key_hash,
                "limit": result.limit,
                "window_s": policy.window_seconds,
                "retry_after_s": retry_after,
            },
        )
        log_security_event(
            "rate_limit_exceeded",
            bucket=policy.bucket,
            ip_hash=hash_sensitive(identity),
            path=request.url.path,
        )

        headers: dict[str, str] = {}
        if settings.app.rate_limit_include_headers:
            headers["Retry-After"] = str(retry_after)
            headers["X-RateLimit-Limit"] = str(result.limit)
            headers["X-RateLimit-Remaining"] = str(result.remaining)
            headers["X-RateLimit-Reset"] = str(result.reset_at)

        raise RateLimitAppError(
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message="Too many requests. Please try again later.",
            details={"retry_after": retry_after},
            extra={"retryAfter": retry_after},
            headers=headers,
        )

    return enforce_rate_limit
