"""End-to-end tests for the licence endpoints with a mocked payments API."""

from __future__ import annotations

import json
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from authorkit.core.app_factory import create_app
from authorkit.core.tokens import TokenSigner
from conftest import LICENSE_KEY, LS_BASE_URL, TOKEN_SECRET, build_settings

VALIDATE_URL = f"{LS_BASE_URL}/v1/licenses/validate"
ACTIVATE_URL = f"{LS_BASE_URL}/v1/licenses/activate"
DEACTIVATE_URL = f"{LS_BASE_URL}/v1/licenses/deactivate"


def ls_license(
    *,
    status: str = "active",
    variant: str = "Pro",
    active_sites: list | None = None,
    expires_at: str | None = None,
) -> dict:
    return {
        "valid": status == "active",
        "license_key": {
            "id": 42,
            "status": status,
            "key": LICENSE_KEY,
            "activation_limit": 1,
            "activation_usage": len(active_sites or []),
            "expires_at": expires_at,
            "meta": {"active_sites": active_sites or []},
        },
        "meta": {
            "product_name": "AuthorKit",
            "variant_name": variant,
            "customer_name": "Jane Author",
            "customer_email": "jane@example.com",
        },
    }


@pytest.fixture
def ls_api():
    with respx.mock(assert_all_called=False) as router:
        yield router


# --- validate-license ------------------------------------------------------


def test_validate_active_agency_license(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(
        return_value=httpx.Response(
            200,
            json=ls_license(variant="Agency Unlimited", active_sites=["https://www.jane.example/", "blog.jane.example"]),
        )
    )

    resp = client.post("/validate-license", json={"license_key": LICENSE_KEY, "site_url": "https://jane.example"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is True
    assert body["data"]["tier"] == "agency"
    assert body["data"]["max_activations"] == 999999
    assert body["data"]["active_sites"] == ["jane.example", "blog.jane.example"]
    assert body["data"]["is_site_activated"] is True
    assert body["data"]["customer_name"] == "Jane Author"


def test_validate_inactive_license_reports_invalid(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(200, json=ls_license(status="disabled")))

    resp = client.post("/validate-license", json={"license_key": LICENSE_KEY, "site_url": "jane.example"})

    assert resp.status_code == 200
    assert resp.json()["valid"] is False
    assert resp.json()["data"]["status"] == "disabled"


def test_validate_expired_license_reports_expired(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(
        return_value=httpx.Response(200, json=ls_license(expires_at="2020-01-01T00:00:00.000000Z"))
    )

    resp = client.post("/validate-license", json={"license_key": LICENSE_KEY, "site_url": "jane.example"})

    assert resp.status_code == 200
    assert resp.json()["valid"] is False
    assert resp.json()["data"]["status"] == "expired"


def test_validate_invalid_input_uses_valid_flag(client: TestClient) -> None:
    resp = client.post("/validate-license", json={"license_key": "short"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["valid"] is False
    assert "success" not in body
    assert body["code"] == "VALIDATION_ERROR"
    assert body["errors"] == ["license_key must be at least 10 characters", "site_url is required"]


def test_validate_unknown_key_is_400(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(404, json={"error": "license_key not found."}))

    resp = client.post("/validate-license", json={"license_key": LICENSE_KEY, "site_url": "jane.example"})

    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_LICENSE"
    assert resp.json()["valid"] is False


def test_provider_outage_is_502(client: TestClient, ls_api) -> None:
    route = ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(503))

    resp = client.post("/validate-license", json={"license_key": LICENSE_KEY, "site_url": "jane.example"})

    assert resp.status_code == 502
    assert resp.json()["code"] == "EXTERNAL_API_ERROR"
    assert route.call_count == 2


def test_unconfigured_provider_is_500(tmp_path) -> None:
    settings = build_settings(tmp_path)
    settings.license.api_key = None
    client = TestClient(create_app(settings))

    resp = client.post("/validate-license", json={"license_key": LICENSE_KEY, "site_url": "jane.example"})

    assert resp.status_code == 500
    assert resp.json()["code"] == "SERVICE_NOT_CONFIGURED"


def test_validate_rate_limited_after_twenty_requests(client: TestClient) -> None:
    for _ in range(20):
        assert client.post("/validate-license", json={}).status_code == 400

    resp = client.post("/validate-license", json={})

    assert resp.status_code == 429
    assert resp.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert resp.json()["retryAfter"] > 0
    assert int(resp.headers["Retry-After"]) > 0
    assert resp.headers["X-RateLimit-Limit"] == "20"


def test_rate_limit_buckets_are_per_endpoint(client: TestClient) -> None:
    for _ in range(21):
        client.post("/validate-license", json={})

    assert client.post("/activate-license", json={}).status_code == 400


def test_wrong_method_is_405_envelope(client: TestClient) -> None:
    resp = client.get("/validate-license")

    assert resp.status_code == 405
    assert resp.json()["code"] == "METHOD_NOT_ALLOWED"


def test_invalid_json_body_is_400(client: TestClient) -> None:
    resp = client.post(
        "/activate-license",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False


# --- activate-license ------------------------------------------------------


def test_activate_pro_license_at_ceiling_returns_400(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(
        return_value=httpx.Response(200, json=ls_license(variant="Pro", active_sites=["first-site.example"]))
    )
    activate = ls_api.post(ACTIVATE_URL)

    resp = client.post("/activate-license", json={"license_key": LICENSE_KEY, "site_url": "second-site.example"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "ACTIVATION_LIMIT_REACHED"
    assert body["data"]["max_activations"] == 1
    assert body["data"]["active_sites"] == ["first-site.example"]
    assert body["data"]["upgrade_url"]
    assert not activate.called


def test_activate_new_site(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(200, json=ls_license()))
    activate = ls_api.post(ACTIVATE_URL).mock(
        return_value=httpx.Response(200, json={"activated": True, "instance": {"id": "inst-9", "name": "Jane's Books"}})
    )

    resp = client.post(
        "/activate-license",
        json={"license_key": LICENSE_KEY, "site_url": "https://www.Jane.example/", "site_name": "Jane's Books"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["tier"] == "pro"
    assert body["data"]["sites_remaining"] == 0
    assert body["data"]["instance_id"] == "inst-9"
    assert "jane.example" in body["message"]
    assert json.loads(activate.calls.last.request.content) == {
        "license_key": LICENSE_KEY,
        "instance_name": "Jane's Books",
    }


def test_activate_already_activated_site_is_idempotent(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(
        return_value=httpx.Response(
            200,
            json=ls_license(active_sites=[{"url": "jane.example", "activated_at": "2026-01-02T00:00:00Z"}]),
        )
    )
    activate = ls_api.post(ACTIVATE_URL)

    resp = client.post("/activate-license", json={"license_key": LICENSE_KEY, "site_url": "jane.example"})

    assert resp.status_code == 200
    assert "already activated" in resp.json()["message"]
    assert resp.json()["data"]["activated_at"] == "2026-01-02T00:00:00Z"
    assert not activate.called


def test_activate_inactive_license_is_400(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(200, json=ls_license(status="expired")))

    resp = client.post("/activate-license", json={"license_key": LICENSE_KEY, "site_url": "jane.example"})

    assert resp.status_code == 400
    assert resp.json()["code"] == "LICENSE_INACTIVE"


# --- deactivate-license ----------------------------------------------------


def test_deactivate_success(client: TestClient, ls_api) -> None:
    ls_api.post(DEACTIVATE_URL).mock(return_value=httpx.Response(200, json={"deactivated": True}))

    resp = client.post(
        "/deactivate-license",
        json={"license_key": LICENSE_KEY, "site_url": "jane.example", "instance_id": "inst-9"},
    )

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["data"]["deactivated_at"]


def test_deactivate_unknown_instance_is_404(client: TestClient, ls_api) -> None:
    ls_api.post(DEACTIVATE_URL).mock(return_value=httpx.Response(404, json={"error": "instance not found"}))

    resp = client.post("/deactivate-license", json={"license_key": LICENSE_KEY, "instance_id": "inst-missing"})

    assert resp.status_code == 404
    assert resp.json()["message"] == "Activation not found for this site"


def test_deactivate_requires_site_or_instance(client: TestClient) -> None:
    resp = client.post("/deactivate-license", json={"license_key": LICENSE_KEY})

    assert resp.status_code == 400
    assert resp.json()["code"] == "MISSING_REQUIRED_FIELD"


# --- check-update ----------------------------------------------------------


def _check_update_body(**overrides) -> dict:
    body = {
        "license_key": LICENSE_KEY,
        "plugin_slug": "authorkit-pro",
        "current_version": "0.9.0",
        "site_url": "jane.example",
    }
    body.update(overrides)
    return body


def test_check_update_offers_signed_package(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(200, json=ls_license()))

    resp = client.post("/check-update", json=_check_update_body())

    assert resp.status_code == 200
    body = resp.json()
    assert body["update_available"] is True
    assert body["new_version"] == "1.0.0"
    assert body["changelog"]

    package = urlsplit(body["package"])
    assert package.path == "/downloads/authorkit-pro-1.0.0.zip"
    token = parse_qs(package.query)["token"][0]
    verification = TokenSigner(TOKEN_SECRET).verify(token)
    assert verification.valid is True
    assert verification.claims == {
        "license_key": LICENSE_KEY[:16],
        "plugin_slug": "authorkit-pro",
        "site_url": "jane.example",
    }


def test_check_update_when_current(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(200, json=ls_license()))

    resp = client.post("/check-update", json=_check_update_body(current_version="1.0.0"))

    assert resp.status_code == 200
    assert resp.json()["update_available"] is False
    assert resp.json()["latest_version"] == "1.0.0"


def test_check_update_inactive_license_is_403(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(200, json=ls_license(status="inactive")))

    resp = client.post("/check-update", json=_check_update_body())

    assert resp.status_code == 403


def test_check_update_unknown_key_is_403(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(404, json={"error": "not found"}))

    resp = client.post("/check-update", json=_check_update_body())

    assert resp.status_code == 403
    assert resp.json()["code"] == "INVALID_LICENSE"


def test_check_update_unknown_plugin_is_404(client: TestClient, ls_api) -> None:
    ls_api.post(VALIDATE_URL).mock(return_value=httpx.Response(200, json=ls_license()))

    resp = client.post("/check-update", json=_check_update_body(plugin_slug="authorkit-lite"))

    assert resp.status_code == 404
