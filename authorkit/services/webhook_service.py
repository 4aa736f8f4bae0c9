"""Dispatch of verified payment-provider webhook events.

Handlers are registered per event name in a dispatch table. Each returns a
``WebhookResult``; a handler that raises is reported as a
``WebhookHandlerAppError`` naming its event, so one broken event type never
affects the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from authorkit.core.errors import ErrorCode, WebhookHandlerAppError
from authorkit.core.logging import hash_sensitive

logger = logging.getLogger(__name__)


@dataclass
class WebhookResult:
    """Outcome of dispatching one event."""

    event: str | None
    handled: bool
    summary: dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[Mapping[str, Any]], WebhookResult]


def _attributes(data: Mapping[str, Any]) -> Mapping[str, Any]:
    attributes = data.get("attributes")
    return attributes if isinstance(attributes, Mapping) else {}


def _customer(attributes: Mapping[str, Any]) -> str:
    return hash_sensitive(attributes.get("user_email"))


def handle_order_created(data: Mapping[str, Any]) -> WebhookResult:
    attributes = _attributes(data)
    first_item = attributes.get("first_order_item") or {}
    summary = {
        "order_id": data.get("id"),
        "customer_hash": _customer(attributes),
        "product": first_item.get("product_name"),
        "total": attributes.get("total_formatted"),
    }
    logger.info("webhook.order_created", extra=summary)
    return WebhookResult(event="order_created", handled=True, summary=summary)


def handle_order_refunded(data: Mapping[str, Any]) -> WebhookResult:
    attributes = _attributes(data)
    summary = {"order_id": data.get("id"), "customer_hash": _customer(attributes)}
    logger.info("webhook.order_refunded", extra=summary)
    return WebhookResult(event="order_refunded", handled=True, summary=summary)


def _subscription_handler(event: str, *fields: str) -> EventHandler:
    def handler(data: Mapping[str, Any]) -> WebhookResult:
        attributes = _attributes(data)
        summary: dict[str, Any] = {
            "subscription_id": data.get("id"),
            "customer_hash": _customer(attributes),
        }
        for name in fields:
            summary[name] = attributes.get(name)
        logger.info(f"webhook.{event}", extra=summary)
        return WebhookResult(event=event, handled=True, summary=summary)

    handler.__name__ = f"handle_{event}"
    return handler


def handle_license_key_created(data: Mapping[str, Any]) -> WebhookResult:
    attributes = _attributes(data)
    summary = {
        "license_key_id": data.get("id"),
        "license_hash": hash_sensitive(attributes.get("key")),
        "status": attributes.get("status"),
    }
    logger.info("webhook.license_key_created", extra=summary)
    return WebhookResult(event="license_key_created", handled=True, summary=summary)


def handle_license_key_updated(data: Mapping[str, Any]) -> WebhookResult:
    attributes = _attributes(data)
    summary = {
        "license_key_id": data.get("id"),
        "status": attributes.get("status"),
        "activation_limit": attributes.get("activation_limit"),
        "activations_count": attributes.get("activations_count"),
    }
    logger.info("webhook.license_key_updated", extra=summary)
    return WebhookResult(event="license_key_updated", handled=True, summary=summary)


DEFAULT_HANDLERS: dict[str, EventHandler] = {
    "order_created": handle_order_created,
    "order_refunded": handle_order_refunded,
    "subscription_created": _subscription_handler("subscription_created", "product_name", "status"),
    "subscription_updated": _subscription_handler("subscription_updated", "status", "ends_at"),
    "subscription_cancelled": _subscription_handler("subscription_cancelled", "ends_at"),
    "subscription_resumed": _subscription_handler("subscription_resumed"),
    "subscription_expired": _subscription_handler("subscription_expired"),
    "subscription_payment_success": _subscription_handler("subscription_payment_success", "total_formatted"),
    "subscription_payment_failed": _subscription_handler("subscription_payment_failed"),
    "license_key_created": handle_license_key_created,
    "license_key_updated": handle_license_key_updated,
}


class WebhookDispatcher:
    """Route events to handlers by ``meta.event_name``."""

    def __init__(self, handlers: Mapping[str, EventHandler] | None = None) -> None:
        self._handlers: dict[str, EventHandler] = dict(DEFAULT_HANDLERS if handlers is None else handlers)

    @property
    def events(self) -> list[str]:
        return sorted(self._handlers)

    def register(self, event: str, handler: EventHandler) -> None:
        self._handlers[event] = handler

    def dispatch(self, payload: Mapping[str, Any]) -> WebhookResult:
        """Run the handler registered for the payload's event.

        Raises:
            WebhookHandlerAppError: If the handler raised.
        """
        meta = payload.get("meta")
        event = meta.get("event_name") if isinstance(meta, Mapping) else None
        data = payload.get("data")
        data = data if isinstance(data, Mapping) else {}

        handler = self._handlers.get(event) if event else None
        if handler is None:
            logger.info("webhook.unhandled_event", extra={"event": event})
            return WebhookResult(event=event, handled=False)

        try:
            return handler(data)
        except Exception as exc:
            logger.exception("webhook.handler_failed", extra={"event": event})
            raise WebhookHandlerAppError(
                code=ErrorCode.WEBHOOK_PROCESSING_FAILED,
                message=f"Webhook handler for '{event}' failed",
                details={"event": event},
            ) from exc
