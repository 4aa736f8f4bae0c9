"""E-mail capture from plugin onboarding."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from authorkit.core.dependencies import get_db_session, json_body
from authorkit.core.rate_limit import EMAIL_CAPTURE_POLICY, rate_limit
from authorkit.core.validation import ensure_valid
from authorkit.schemas.requests import EMAIL_CAPTURE_SCHEMA
from authorkit.services.email_service import EmailSubscriberRepository

router = APIRouter(tags=["Email"])


@router.post("/email-capture", dependencies=[Depends(rate_limit(EMAIL_CAPTURE_POLICY))])
def capture_email(
    payload: Annotated[dict[str, Any], Depends(json_body)],
    session: Annotated[Session, Depends(get_db_session)],
) -> dict[str, Any]:
    data = ensure_valid(payload, EMAIL_CAPTURE_SCHEMA)
    result = EmailSubscriberRepository(session).capture(data)
    if result.already_subscribed:
        return {
            "success": True,
            "already_subscribed": True,
            "message": "Email already subscribed",
        }
    return {
        "success": True,
        "subscriber_id": result.subscriber_id,
        "message": "Email captured successfully",
    }
