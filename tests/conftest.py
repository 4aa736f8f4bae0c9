"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It selects the testing environment before any settings are imported, so no
developer ``.env`` file leaks into the suite.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from authorkit.core.app_factory import create_app
from authorkit.core.config import (
    AppSettings,
    DatabaseSettings,
    LicenseSettings,
    LogSettings,
    Settings,
    TokenSettings,
)

LS_API_KEY = "test-lemon-squeezy-key"
LS_BASE_URL = "https://ls.test"
WEBHOOK_SECRET = "test-webhook-secret"
TOKEN_SECRET = "t" * 48
LICENSE_KEY = "AK-PRO-1234-5678-ABCD"


def build_settings(tmp_path, **app_overrides) -> Settings:
    app_fields = {
        "env": "testing",
        "downloads_dir": str(tmp_path),
        "rate_limit_backend": "memory",
        "public_base_url": "https://authorkit.test",
    }
    app_fields.update(app_overrides)
    return Settings(
        app=AppSettings(**app_fields),
        license=LicenseSettings(
            api_key=LS_API_KEY,
            webhook_secret=WEBHOOK_SECRET,
            base_url=LS_BASE_URL,
            timeout_seconds=2.0,
            max_retries=1,
            retry_backoff_seconds=0,
        ),
        token=TokenSettings(secret=TOKEN_SECRET, ttl_seconds=3600),
        database=DatabaseSettings(url="sqlite://", create_tables=True),
        log=LogSettings(level="WARNING"),
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return build_settings(tmp_path)


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
