"""E-mail capture for plugin installs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from authorkit.core.logging import hash_sensitive
from authorkit.db.models import EmailSubscriber
from authorkit.db.session import database_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureResult:
    subscriber_id: int | None
    already_subscribed: bool


class EmailSubscriberRepository:
    """Stores subscribers; one row per ``(email, site_url)``."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def capture(self, fields: Mapping[str, Any]) -> CaptureResult:
        """Insert a subscriber, treating a uniqueness conflict as a duplicate.

        The unique constraint is the only duplicate check, so two concurrent
        identical signups still produce exactly one row.

        Args:
            fields: Validated e-mail capture payload.

        Returns:
            CaptureResult with the new id, or ``already_subscribed`` set.

        Raises:
            DatabaseAppError: On any other database failure.
        """
        subscriber = EmailSubscriber(
            email=fields["email"],
            site_url=fields["site_url"],
            site_name=fields["site_name"],
            user_login=fields.get("user_login"),
            user_role=fields.get("user_role"),
            ip_address=fields.get("ip_address"),
            user_agent=fields.get("user_agent"),
            type=fields.get("type") or "free",
            active=True,
        )
        email_hash = hash_sensitive(fields["email"])

        with database_errors(self._session, "capture_email"):
            try:
                self._session.add(subscriber)
                self._session.commit()
            except IntegrityError:
                self._session.rollback()
                logger.info(
                    "email_capture.duplicate",
                    extra={"email_hash": email_hash, "site_url": fields["site_url"]},
                )
                return CaptureResult(subscriber_id=None, already_subscribed=True)

        logger.info(
            "email_capture.subscribed",
            extra={
                "email_hash": email_hash,
                "site_url": fields["site_url"],
                "subscriber_id": subscriber.id,
                "subscriber_type": subscriber.type,
            },
        )
        return CaptureResult(subscriber_id=subscriber.id, already_subscribed=False)
