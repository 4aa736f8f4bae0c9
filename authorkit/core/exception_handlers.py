"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain, routing and unexpected) and return one JSON envelope:

    {"success": false, "code": ..., "message": ..., "request_id": ..., **extra}

The licence-validation route answers with ``valid`` instead of ``success``;
routes opt into that through the ``result_flag`` dependency.

Design:
- AppError subclasses → their own HTTP status (400, 401, 404, 429, 500, 502)
- Starlette HTTP errors (unknown route, wrong method) → same envelope
- Unexpected Exception → generic 500 (safety net)
- Exception detail and traceback only in development
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from authorkit.core.errors import AppError, ErrorCode, MethodNotAllowedAppError
from authorkit.core.logging import get_request_id

logger = logging.getLogger(__name__)

_HTTP_STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
}


def result_flag(flag: str) -> Callable[[Request], None]:
    """Dependency selecting the boolean key of error bodies for a route."""

    def _set_result_flag(request: Request) -> None:
        request.state.result_flag = flag

    return _set_result_flag


def _is_development(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.is_development)


def _error_body(request: Request, code: str, message: str, **extra: Any) -> dict[str, Any]:
    flag = getattr(request.state, "result_flag", "success")
    body: dict[str, Any] = {
        flag: False,
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    body.update(extra)
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include the result flag, ``code``, ``message`` and
    ``request_id``; ``exc.extra`` is merged at the top level and
    ``exc.details`` is attached under ``details`` when present.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the error's HTTP status and headers.
    """
    status_code = exc.http_status
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    content = _error_body(request, exc.code, exc.message, **exc.extra)
    if exc.details:
        content["details"] = exc.details
    if _is_development(request) and exc.__cause__ is not None:
        content["error"] = str(exc.__cause__)

    return JSONResponse(status_code=status_code, content=content, headers=exc.headers or None)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (404, 405, ...) in the error envelope.

    A 405 is re-raised as ``MethodNotAllowedAppError`` and keeps the ``Allow``
    header Starlette computed.
    """
    if exc.status_code == 405:
        return await app_error_handler(
            request,
            MethodNotAllowedAppError(
                code=ErrorCode.METHOD_NOT_ALLOWED,
                message="Method not allowed",
                headers=dict(getattr(exc, "headers", None) or {}),
            ),
        )

    code = _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    if exc.status_code == 404:
        message = "Not found"
    else:
        message = str(exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, code, message),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI parameter validation failures as 400 responses."""
    errors = [
        f"{'.'.join(str(part) for part in error.get('loc', ())[1:]) or 'request'} {error.get('msg', 'is invalid')}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=_error_body(request, ErrorCode.VALIDATION_ERROR, "Invalid input", errors=errors),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. Stack traces reach the client only in development.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with a generic 500 error.
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    content = _error_body(
        request,
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred. Please try again later.",
    )
    if _is_development(request):
        content["error"] = str(exc)
        content["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)

    return JSONResponse(status_code=500, content=content)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with FastAPI app.

    Order matters: specific handlers registered before general fallback.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
