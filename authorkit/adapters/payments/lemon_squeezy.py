"""Lemon Squeezy licence API client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from authorkit.adapters.payments.base import (
    AbstractLicenseProvider,
    LicenseProviderRejected,
    LicenseProviderUnavailable,
    LicenseResponse,
)

logger = logging.getLogger(__name__)


class LemonSqueezyClient(AbstractLicenseProvider):
    """Client for the ``/v1/licenses/*`` endpoints.

    Every call is bounded by ``timeout_seconds`` and retried ``max_retries``
    times (after ``retry_backoff_seconds``, doubled per attempt) on transport
    errors and 5xx answers. 4xx answers are never retried.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = "https://api.lemonsqueezy.com",
        timeout_seconds: float = 10.0,
        max_retries: int = 1,
        retry_backoff_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._backoff = retry_backoff_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    async def _post(self, path: str, body: dict[str, Any]) -> LicenseResponse:
        url = f"{self._base_url}{path}"
        attempts = self._max_retries + 1
        last_error: Exception | None = None

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for attempt in range(1, attempts + 1):
                try:
                    response = await client.post(url, json=body, headers=self._headers())
                except httpx.TransportError as exc:
                    last_error = exc
                    logger.warning(
                        "license_provider.transport_error",
                        extra={"path": path, "attempt": attempt, "error_type": type(exc).__name__},
                    )
                else:
                    if response.status_code < 500:
                        return self._parse(path, response)
                    last_error = LicenseProviderUnavailable(
                        f"License provider returned HTTP {response.status_code}"
                    )
                    logger.warning(
                        "license_provider.server_error",
                        extra={"path": path, "attempt": attempt, "status_code": response.status_code},
                    )

                if attempt < attempts:
                    await asyncio.sleep(self._backoff * (2 ** (attempt - 1)))

        raise LicenseProviderUnavailable(str(last_error)) from last_error

    @staticmethod
    def _parse(path: str, response: httpx.Response) -> LicenseResponse:
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error:
            logger.info(
                "license_provider.rejected",
                extra={"path": path, "status_code": response.status_code, "provider_error": payload.get("error")},
            )
            raise LicenseProviderRejected(response.status_code, payload)

        return LicenseResponse.model_validate(payload)

    async def validate(self, license_key: str) -> LicenseResponse:
        return await self._post("/v1/licenses/validate", {"license_key": license_key})

    async def activate(self, license_key: str, instance_name: str) -> LicenseResponse:
        return await self._post(
            "/v1/licenses/activate",
            {"license_key": license_key, "instance_name": instance_name},
        )

    async def deactivate(self, license_key: str, instance_id: str | None) -> LicenseResponse:
        return await self._post(
            "/v1/licenses/deactivate",
            {"license_key": license_key, "instance_id": instance_id},
        )
