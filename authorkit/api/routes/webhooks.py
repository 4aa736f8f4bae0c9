"""Inbound payment-provider webhooks."""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from authorkit.core.dependencies import get_dispatcher, get_webhook_verifier
from authorkit.core.errors import ErrorCode, ValidationAppError
from authorkit.core.rate_limit import client_identity
from authorkit.core.webhook_signature import SIGNATURE_HEADER, WebhookSignatureVerifier
from authorkit.services.webhook_service import WebhookDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])


@router.post("/webhooks/provider")
@router.post("/webhooks/lemon-squeezy", include_in_schema=False)
async def receive_webhook(
    request: Request,
    verifier: Annotated[WebhookSignatureVerifier, Depends(get_webhook_verifier)],
    dispatcher: Annotated[WebhookDispatcher, Depends(get_dispatcher)],
) -> dict[str, Any]:
    """Verify the signature over the raw body, then dispatch the event.

    The body is read as bytes and authenticated before it is decoded, so the
    HMAC covers exactly what the provider signed.
    """
    raw_body = await request.body()
    verifier.verify(
        raw_body,
        request.headers.get(SIGNATURE_HEADER),
        client_ip=client_identity(request),
    )

    try:
        payload = json.loads(raw_body)
    except ValueError as exc:
        raise ValidationAppError(code=ErrorCode.VALIDATION_ERROR, message="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise ValidationAppError(code=ErrorCode.VALIDATION_ERROR, message="Invalid JSON payload")

    result = dispatcher.dispatch(payload)
    logger.info("webhook.received", extra={"event": result.event, "handled": result.handled})
    return {"received": True, "event": result.event, "handled": result.handled}
