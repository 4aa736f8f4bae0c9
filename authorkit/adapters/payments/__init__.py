"""Payments/licensing provider adapters."""

from authorkit.adapters.payments.base import (
    AbstractLicenseProvider,
    LicenseProviderRejected,
    LicenseProviderUnavailable,
    LicenseResponse,
)
from authorkit.adapters.payments.lemon_squeezy import LemonSqueezyClient

__all__ = [
    "AbstractLicenseProvider",
    "LemonSqueezyClient",
    "LicenseProviderRejected",
    "LicenseProviderUnavailable",
    "LicenseResponse",
]
