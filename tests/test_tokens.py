"""Tests for HMAC-signed download tokens."""

from __future__ import annotations

import base64
import json
from unittest.mock import Mock

import pytest

from authorkit.core.tokens import TokenSigner

SECRET = "s" * 40


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=1_700_000_000.0)


@pytest.fixture
def signer(clock: Mock) -> TokenSigner:
    return TokenSigner(SECRET, clock=clock)


def test_round_trip_returns_original_claims(signer: TokenSigner) -> None:
    claims = {"license_key": "AK-PRO-1234-567", "plugin_slug": "authorkit-pro", "nested": {"n": [1, 2]}}

    result = signer.verify(signer.sign(claims, 3600))

    assert result.valid is True
    assert result.claims == claims
    assert result.expires_at == 1_700_000_000_000 + 3_600_000


def test_token_shape_is_base64_payload_dot_hex_digest(signer: TokenSigner) -> None:
    token = signer.sign({"b": 1, "a": 2}, 60)

    encoded, _, digest = token.rpartition(".")
    payload = base64.b64decode(encoded).decode("utf-8")

    # canonical form: sorted keys, compact separators
    assert payload == '{"a":2,"b":1,"exp":1700000060000}'
    assert len(digest) == 64
    int(digest, 16)


def test_negative_lifetime_is_expired(signer: TokenSigner) -> None:
    result = signer.verify(signer.sign({"plugin_slug": "authorkit-pro"}, -1))

    assert result.valid is False
    assert "expired" in result.error.lower()


def test_expires_after_lifetime(signer: TokenSigner, clock: Mock) -> None:
    token = signer.sign({"plugin_slug": "authorkit-pro"}, 10)

    clock.return_value += 10
    assert signer.verify(token).valid is True

    clock.return_value += 0.01
    assert signer.verify(token).error == "Token expired"


def test_flipped_signature_character_is_rejected(signer: TokenSigner) -> None:
    token = signer.sign({"plugin_slug": "authorkit-pro"}, 3600)
    flipped = token[:-1] + ("0" if token[-1] != "0" else "1")

    result = signer.verify(flipped)

    assert result.valid is False
    assert result.error == "Invalid signature"


def test_tampered_payload_is_rejected(signer: TokenSigner) -> None:
    token = signer.sign({"plugin_slug": "authorkit-pro"}, 3600)
    _, _, digest = token.rpartition(".")
    forged = json.dumps({"exp": 9_999_999_999_999, "plugin_slug": "authorkit-agency"}, separators=(",", ":"))

    result = signer.verify(base64.b64encode(forged.encode()).decode() + "." + digest)

    assert result.error == "Invalid signature"


def test_token_from_other_secret_is_rejected(signer: TokenSigner, clock: Mock) -> None:
    other = TokenSigner("o" * 40, clock=clock)

    assert signer.verify(other.sign({"a": 1})).error == "Invalid signature"


@pytest.mark.parametrize("token", ["", "no-dot-here", ".abc", "abc.", "!!!.abcdef", "W10=.abcdef"])
def test_malformed_tokens_fail_closed(signer: TokenSigner, token: str) -> None:
    result = signer.verify(token)

    assert result.valid is False
    assert result.error == "Invalid token format"


def test_exp_is_reserved(signer: TokenSigner) -> None:
    with pytest.raises(ValueError):
        signer.sign({"exp": 1})


def test_empty_secret_rejected() -> None:
    with pytest.raises(ValueError):
        TokenSigner("")
