"""FastAPI dependencies exposing the collaborators built by ``create_app``.

Everything is read from ``request.app.state`` so tests can build an app with
explicit settings and fakes without touching module globals.
"""

from __future__ import annotations

import json
from typing import Any, Iterator

from fastapi import Request
from sqlalchemy.orm import Session

from authorkit.core.config import Settings
from authorkit.core.errors import ConfigurationAppError, ErrorCode, ValidationAppError
from authorkit.core.tokens import TokenSigner
from authorkit.core.webhook_signature import WebhookSignatureVerifier
from authorkit.services.license_service import LicenseService
from authorkit.services.webhook_service import WebhookDispatcher


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_license_service(request: Request) -> LicenseService:
    return request.app.state.license_service


def get_webhook_verifier(request: Request) -> WebhookSignatureVerifier:
    return request.app.state.webhook_verifier


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher


def get_token_signer(request: Request) -> TokenSigner:
    signer: TokenSigner | None = request.app.state.token_signer
    if signer is None:
        raise ConfigurationAppError(
            code=ErrorCode.SERVICE_NOT_CONFIGURED,
            message="Download service not configured",
        )
    return signer


def get_db_session(request: Request) -> Iterator[Session]:
    """Yield a session for the request and close it afterwards."""
    session = request.app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


async def json_body(request: Request) -> dict[str, Any]:
    """Parse the request body as a JSON object; an empty body is ``{}``.

    Raises:
        ValidationAppError: If the body is not valid JSON or not an object.
    """
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise ValidationAppError(
            code=ErrorCode.VALIDATION_ERROR,
            message="Invalid JSON body",
        ) from exc
    if not isinstance(payload, dict):
        raise ValidationAppError(
            code=ErrorCode.VALIDATION_ERROR,
            message="Request body must be a JSON object",
        )
    return payload
