"""Tests for global exception handlers.

Validates that every error type is rendered in one envelope with the
proper HTTP status and that internals only leak in development.
"""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from authorkit.core.errors import (
    AuthenticationAppError,
    ErrorCode,
    LicenseStateAppError,
    RateLimitAppError,
    UpstreamAppError,
    ValidationAppError,
)
from authorkit.core.exception_handlers import result_flag, setup_exception_handlers
from conftest import build_settings


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/validation")
    async def raise_validation():
        raise ValidationAppError(
            code=ErrorCode.VALIDATION_ERROR,
            message="Invalid input",
            extra={"errors": ["license_key is required"]},
        )

    @app.get("/forbidden")
    async def raise_forbidden():
        raise LicenseStateAppError(code=ErrorCode.LICENSE_INACTIVE, message="License is not active", status_code=403)

    @app.get("/unauthorized")
    async def raise_unauthorized():
        raise AuthenticationAppError(code=ErrorCode.INVALID_SIGNATURE, message="Invalid signature")

    @app.get("/limited")
    async def raise_limited():
        raise RateLimitAppError(
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message="Too many requests. Please try again later.",
            details={"retry_after": 30},
            extra={"retryAfter": 30},
            headers={"Retry-After": "30"},
        )

    @app.get("/upstream")
    async def raise_upstream():
        try:
            raise ConnectionError("provider unreachable")
        except ConnectionError as exc:
            raise UpstreamAppError(code=ErrorCode.EXTERNAL_API_ERROR, message="Provider unavailable") from exc

    @app.get("/flagged", dependencies=[Depends(result_flag("valid"))])
    async def raise_flagged():
        raise LicenseStateAppError(code=ErrorCode.LICENSE_EXPIRED, message="License has expired")

    @app.get("/boom")
    async def raise_unexpected():
        raise RuntimeError("database password is hunter2")

    @app.post("/post-only")
    async def post_only():
        return {"ok": True}

    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client that renders unhandled errors instead of raising."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Handler for AppError and subclasses."""

    def test_validation_error_merges_extra(self, client: TestClient):
        response = client.get("/validation")

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "VALIDATION_ERROR"
        assert data["message"] == "Invalid input"
        assert data["errors"] == ["license_key is required"]
        assert "request_id" in data
        assert "details" not in data

    def test_status_override(self, client: TestClient):
        response = client.get("/forbidden")

        assert response.status_code == 403
        assert response.json()["code"] == "LICENSE_INACTIVE"

    def test_authentication_error_is_401(self, client: TestClient):
        assert client.get("/unauthorized").status_code == 401

    def test_rate_limit_carries_headers_and_details(self, client: TestClient):
        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"
        data = response.json()
        assert data["retryAfter"] == 30
        assert data["details"] == {"retry_after": 30}

    def test_cause_hidden_outside_development(self, client: TestClient):
        response = client.get("/upstream")

        assert response.status_code == 502
        assert "error" not in response.json()

    def test_cause_exposed_in_development(self, app_with_handlers: FastAPI, client: TestClient, tmp_path):
        app_with_handlers.state.settings = build_settings(tmp_path, env="development")

        response = client.get("/upstream")

        assert response.json()["error"] == "provider unreachable"

    def test_result_flag_renames_success_key(self, client: TestClient):
        data = client.get("/flagged").json()

        assert data["valid"] is False
        assert "success" not in data


class TestRoutingErrors:
    """Starlette routing errors share the envelope."""

    def test_unknown_route(self, client: TestClient):
        response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"
        assert response.json()["success"] is False

    def test_wrong_method(self, client: TestClient):
        response = client.get("/post-only")

        assert response.status_code == 405
        assert response.json()["code"] == "METHOD_NOT_ALLOWED"
        assert response.json()["message"] == "Method not allowed"
        assert "POST" in response.headers["allow"]


class TestUnexpectedErrors:
    """Safety net for exceptions that are not AppErrors."""

    def test_generic_500_without_leak(self, client: TestClient):
        response = client.get("/boom")

        assert response.status_code == 500
        data = response.json()
        assert data["code"] == "INTERNAL_ERROR"
        assert "hunter2" not in response.text
        assert "traceback" not in data

    def test_traceback_in_development(self, app_with_handlers: FastAPI, client: TestClient, tmp_path):
        app_with_handlers.state.settings = build_settings(tmp_path, env="development")

        data = client.get("/boom").json()

        assert data["error"] == "database password is hunter2"
        assert any("RuntimeError" in line for line in data["traceback"])
