"""Authentication of inbound payment-provider webhooks.

The provider signs the exact request body with HMAC-SHA256 and sends the hex
digest in the ``X-Signature`` header. Verification must run on the raw bytes
before any JSON parsing: re-serializing the body would change whitespace or
key order and break the digest.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from authorkit.core.errors import AuthenticationAppError, ConfigurationAppError, ErrorCode
from authorkit.core.logging import hash_sensitive, log_security_event

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature"


def compute_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


class WebhookSignatureVerifier:
    """Verify ``X-Signature`` against the raw request body.

    ``allow_unsigned`` lets requests without a signature through and exists
    only for local development against tunnels that strip headers. Unsigned
    deliveries are still audited.
    """

    def __init__(self, secret: str | None, *, allow_unsigned: bool = False) -> None:
        self._secret = secret
        self._allow_unsigned = allow_unsigned

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def verify(self, raw_body: bytes, signature: str | None, *, client_ip: str = "unknown") -> None:
        """Authenticate one delivery.

        Args:
            raw_body: Untouched request body bytes.
            signature: Value of the signature header, if any.
            client_ip: Caller address for audit events.

        Raises:
            ConfigurationAppError: If no webhook secret is configured.
            AuthenticationAppError: If the signature is missing (strict mode)
                or does not match.
        """
        if not self._secret:
            logger.error("webhook.secret_not_configured")
            log_security_event("webhook_config_error", ip=client_ip)
            raise ConfigurationAppError(
                code=ErrorCode.SERVICE_NOT_CONFIGURED,
                message="Webhook not configured",
            )

        if not signature:
            if self._allow_unsigned:
                log_security_event("webhook_unsigned_accepted", ip=client_ip)
                return
            log_security_event("webhook_missing_signature", ip=client_ip)
            raise AuthenticationAppError(
                code=ErrorCode.UNAUTHORIZED,
                message="Missing signature",
            )

        expected = compute_signature(self._secret, raw_body)
        if not hmac.compare_digest(signature.strip().lower().encode("utf-8"), expected.encode("utf-8")):
            log_security_event(
                "webhook_invalid_signature",
                ip=client_ip,
                signature_hash=hash_sensitive(signature),
            )
            raise AuthenticationAppError(
                code=ErrorCode.INVALID_SIGNATURE,
                message="Invalid signature",
            )
