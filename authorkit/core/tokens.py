"""Signed, time-boxed download tokens.

Token format: ``base64(canonical_json(claims + exp)) + "." + hex(hmac_sha256)``
where ``exp`` is the expiry as UNIX epoch milliseconds. Tokens are bearer
credentials with no revocation list; expiry is the only invalidation path.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

EXPIRY_CLAIM = "exp"


@dataclass(frozen=True)
class TokenVerification:
    """Result of verifying a token.

    Attributes:
        valid: True when signature and expiry checks passed.
        claims: Original claims (without ``exp``) when valid.
        error: Failure reason when invalid.
        expires_at: Expiry in epoch milliseconds when the token was decodable.
    """

    valid: bool
    claims: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    expires_at: int | None = None


def _canonical_json(data: Mapping[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class TokenSigner:
    """Issue and verify HMAC-SHA256 signed tokens under a server secret."""

    def __init__(self, secret: str, *, clock: Callable[[], float] = time.time) -> None:
        if not secret:
            raise ValueError("secret must be a non-empty string")
        self._secret = secret.encode("utf-8")
        self._clock = clock

    def _digest(self, serialized: str) -> str:
        return hmac.new(self._secret, serialized.encode("utf-8"), hashlib.sha256).hexdigest()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def sign(self, claims: Mapping[str, Any], expires_in_seconds: int = 3600) -> str:
        """Sign ``claims`` into a token valid for ``expires_in_seconds``.

        Raises:
            ValueError: If claims already contain the reserved ``exp`` key.
            TypeError: If claims are not JSON-serializable.
        """
        if EXPIRY_CLAIM in claims:
            raise ValueError(f"'{EXPIRY_CLAIM}' is a reserved claim")

        payload = dict(claims)
        payload[EXPIRY_CLAIM] = self._now_ms() + expires_in_seconds * 1000
        serialized = _canonical_json(payload)

        encoded = base64.b64encode(serialized.encode("utf-8")).decode("ascii")
        return f"{encoded}.{self._digest(serialized)}"

    def verify(self, token: str) -> TokenVerification:
        """Check a token's signature and expiry; fails closed."""
        encoded, sep, signature = (token or "").rpartition(".")
        if not sep or not encoded or not signature:
            return TokenVerification(valid=False, error="Invalid token format")

        try:
            serialized = base64.b64decode(encoded, validate=True).decode("utf-8")
            payload = json.loads(serialized)
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return TokenVerification(valid=False, error="Invalid token format")

        if not isinstance(payload, dict):
            return TokenVerification(valid=False, error="Invalid token format")

        if not hmac.compare_digest(signature.encode("utf-8"), self._digest(serialized).encode("utf-8")):
            return TokenVerification(valid=False, error="Invalid signature")

        expires_at = payload.pop(EXPIRY_CLAIM, None)
        if not isinstance(expires_at, int) or self._now_ms() > expires_at:
            return TokenVerification(valid=False, error="Token expired", expires_at=expires_at)

        return TokenVerification(valid=True, claims=payload, expires_at=expires_at)
