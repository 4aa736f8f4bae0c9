"""HTTP middleware: request correlation, security headers and CORS.

The request-id middleware:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id into response headers for client-side tracking
- Measures total request duration and includes it in response headers
- Clears context after request completion to prevent context leaks

The remaining middleware attach a fixed set of security headers to every
response and answer CORS preflight requests. WordPress sites call the API
from arbitrary origins and are authenticated by licence key, so unknown
origins are echoed as well.

Unexpected exceptions are rendered by ``unhandled_error_middleware``, the
innermost layer, so the 500 still passes through CORS, security headers and
request correlation on its way out.

Usage (last registered runs first):
    app.middleware("http")(unhandled_error_middleware)
    app.middleware("http")(cors_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from authorkit.core.exception_handlers import general_exception_handler
from authorkit.core.logging import clear_request_id, set_request_id

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": (
        "default-src 'none'; script-src 'self'; connect-src 'self'; img-src 'self'; style-src 'self'"
    ),
}

CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization, X-Signature, X-Request-ID"
CORS_MAX_AGE_SECONDS = 86400


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides the configured request-id header, that value is
    used. Otherwise, a new UUID is generated. The ID is then propagated back
    in the response headers and stored in contextvars for log correlation.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = request.app.state.settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def security_headers_middleware(request: Request, call_next) -> Response:
    """Attach the fixed security header set to every response."""

    response: Response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


def _allowed_origin(request: Request) -> str:
    origin = request.headers.get("origin")
    if origin and origin in request.app.state.settings.app.allowed_origins:
        return origin
    return origin or "*"


def _apply_cors_headers(request: Request, response: Response) -> None:
    response.headers["Access-Control-Allow-Origin"] = _allowed_origin(request)
    response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
    response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
    response.headers["Access-Control-Max-Age"] = str(CORS_MAX_AGE_SECONDS)
    if request.headers.get("origin"):
        response.headers["Vary"] = "Origin"


async def cors_middleware(request: Request, call_next) -> Response:
    """Answer preflight requests with an empty 200 and add CORS headers."""

    if request.method == "OPTIONS":
        response = Response(status_code=200)
    else:
        response = await call_next(request)
    _apply_cors_headers(request, response)
    return response


async def unhandled_error_middleware(request: Request, call_next) -> Response:
    """Render exceptions no handler claimed as the generic 500 envelope."""

    try:
        return await call_next(request)
    except Exception as exc:
        return await general_exception_handler(request, exc)
