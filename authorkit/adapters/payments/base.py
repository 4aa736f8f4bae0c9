"""Licensing provider interface and response models.

Services depend on ``AbstractLicenseProvider`` so tests and alternative
payment providers can replace the Lemon Squeezy client.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LicenseProviderRejected(Exception):
    """The provider answered with a client error (unknown key, unknown instance)."""

    def __init__(self, status_code: int, payload: dict[str, Any] | None = None) -> None:
        super().__init__(f"License provider rejected request with HTTP {status_code}")
        self.status_code = status_code
        self.payload = payload or {}


class LicenseProviderUnavailable(Exception):
    """The provider could not be reached or kept failing after retries."""


class LicenseKey(BaseModel):
    """Licence record as returned by the provider."""

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    status: str = "inactive"
    key: str | None = None
    activation_limit: int | None = None
    activation_usage: int | None = None
    expires_at: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


class LicenseMeta(BaseModel):
    """Store/product metadata attached to a licence."""

    model_config = ConfigDict(extra="ignore")

    product_name: str | None = None
    variant_name: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None


class LicenseInstance(BaseModel):
    """Activation instance created by the provider."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str | None = None
    created_at: str | None = None


class LicenseResponse(BaseModel):
    """Envelope of validate/activate/deactivate responses."""

    model_config = ConfigDict(extra="ignore")

    valid: bool | None = None
    activated: bool | None = None
    deactivated: bool | None = None
    error: str | None = None
    license_key: LicenseKey = Field(default_factory=LicenseKey)
    instance: LicenseInstance | None = None
    meta: LicenseMeta = Field(default_factory=LicenseMeta)


class AbstractLicenseProvider(ABC):
    """Interface for licensing/payments providers."""

    @property
    @abstractmethod
    def configured(self) -> bool:
        """Whether credentials are present."""
        ...

    @abstractmethod
    async def validate(self, license_key: str) -> LicenseResponse:
        """Fetch the licence state for ``license_key``.

        Raises:
            LicenseProviderRejected: If the provider does not know the key.
            LicenseProviderUnavailable: If the provider cannot be reached.
        """
        ...

    @abstractmethod
    async def activate(self, license_key: str, instance_name: str) -> LicenseResponse:
        """Register a new activation instance for ``license_key``."""
        ...

    @abstractmethod
    async def deactivate(self, license_key: str, instance_id: str | None) -> LicenseResponse:
        """Remove an activation instance from ``license_key``."""
        ...
