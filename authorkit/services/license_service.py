"""Licence validation, activation, deactivation and update checks.

Each operation makes one round trip to the licensing provider (two for a new
activation: the licence lookup and the activation itself) and shapes the
result into the JSON bodies the WordPress plugin expects.

Activation state is read from the provider's per-licence metadata
(``license_key.meta.active_sites``); concurrent activate/deactivate calls for
the same licence are not serialized here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from urllib.parse import quote

from authorkit.adapters.payments.base import (
    AbstractLicenseProvider,
    LicenseProviderRejected,
    LicenseProviderUnavailable,
    LicenseResponse,
)
from authorkit.core.errors import (
    ConfigurationAppError,
    ErrorCode,
    LicenseStateAppError,
    NotFoundAppError,
    UpstreamAppError,
)
from authorkit.core.logging import hash_sensitive
from authorkit.core.tokens import TokenSigner
from authorkit.core.validation import sanitize_url
from authorkit.services.plugin_catalog import compare_versions, get_release

logger = logging.getLogger(__name__)

UNLIMITED_ACTIVATIONS = 999999
PRO_MAX_ACTIVATIONS = 1
UPGRADE_URL = "https://authorkit.pro/pricing"
TOKEN_KEY_PREFIX_CHARS = 16


@dataclass(frozen=True)
class Tier:
    name: str
    max_activations: int

    @property
    def unlimited(self) -> bool:
        return self.max_activations >= UNLIMITED_ACTIVATIONS


def derive_tier(variant_name: str | None) -> Tier:
    """Map a product variant name to a licence tier."""
    if "agency" in (variant_name or "").lower():
        return Tier(name="agency", max_activations=UNLIMITED_ACTIVATIONS)
    return Tier(name="pro", max_activations=PRO_MAX_ACTIVATIONS)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _active_sites(license_response: LicenseResponse) -> list[dict[str, Any]]:
    """Normalize the provider's ``active_sites`` metadata to dicts with a clean url."""
    sites: list[dict[str, Any]] = []
    for entry in license_response.license_key.meta.get("active_sites") or []:
        if isinstance(entry, str):
            site = {"url": entry}
        elif isinstance(entry, dict) and isinstance(entry.get("url"), str):
            site = dict(entry)
        else:
            continue
        site["url"] = sanitize_url(site["url"])
        sites.append(site)
    return sites


def _sites_remaining(tier: Tier, used: int) -> int:
    if tier.unlimited:
        return UNLIMITED_ACTIVATIONS
    return max(0, tier.max_activations - used)


class LicenseService:
    """Licence operations over an ``AbstractLicenseProvider``."""

    def __init__(
        self,
        provider: AbstractLicenseProvider,
        *,
        token_signer: TokenSigner | None = None,
        public_base_url: str = "https://authorkit.pro",
        token_ttl_seconds: int = 3600,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._provider = provider
        self._token_signer = token_signer
        self._public_base_url = public_base_url.rstrip("/")
        self._token_ttl = token_ttl_seconds
        self._now = now

    def _is_expired(self, expires_at: str | None) -> bool:
        if not expires_at:
            return False
        parsed = _parse_timestamp(expires_at)
        if parsed is None:
            logger.warning("license.unparseable_expiry", extra={"expires_at": expires_at})
            return False
        return parsed < self._now()

    def _require_configured(self, message: str) -> None:
        if not self._provider.configured:
            logger.error("license_provider.not_configured")
            raise ConfigurationAppError(code=ErrorCode.SERVICE_NOT_CONFIGURED, message=message)

    async def _fetch(
        self,
        license_key: str,
        *,
        rejected_status: int = 400,
        rejected_message: str = "Invalid license key",
    ) -> LicenseResponse:
        try:
            return await self._provider.validate(license_key)
        except LicenseProviderRejected as exc:
            logger.info(
                "license.rejected",
                extra={"license_hash": hash_sensitive(license_key), "provider_status": exc.status_code},
            )
            raise LicenseStateAppError(
                code=ErrorCode.INVALID_LICENSE,
                message=rejected_message,
                status_code=rejected_status,
            ) from exc
        except LicenseProviderUnavailable as exc:
            logger.error(
                "license.provider_unavailable",
                extra={"license_hash": hash_sensitive(license_key), "error_msg": str(exc)},
            )
            raise UpstreamAppError(
                code=ErrorCode.EXTERNAL_API_ERROR,
                message="License service is temporarily unavailable",
            ) from exc

    async def validate_license(self, license_key: str, site_url: str) -> dict[str, Any]:
        """Report whether ``license_key`` is usable on ``site_url``."""
        self._require_configured("License validation service not configured")
        result = await self._fetch(license_key)
        license = result.license_key

        if license.status != "active":
            return {
                "valid": False,
                "message": f"License is {license.status}. Please renew your subscription.",
                "data": {"status": license.status, "expires_at": license.expires_at},
            }

        if self._is_expired(license.expires_at):
            return {
                "valid": False,
                "message": "License has expired. Please renew your subscription.",
                "data": {"status": "expired", "expires_at": license.expires_at},
            }

        tier = derive_tier(result.meta.variant_name)
        sites = _active_sites(result)
        site_urls = [site["url"] for site in sites]

        logger.info(
            "license.validated",
            extra={"license_hash": hash_sensitive(license_key), "tier": tier.name, "site_url": site_url},
        )
        return {
            "valid": True,
            "message": "License is valid",
            "data": {
                "tier": tier.name,
                "status": license.status,
                "expires_at": license.expires_at,
                "max_activations": tier.max_activations,
                "active_sites": site_urls,
                "sites_remaining": _sites_remaining(tier, len(sites)),
                "is_site_activated": site_url in site_urls,
                "customer_name": result.meta.customer_name or "",
                "customer_email": result.meta.customer_email or "",
            },
        }

    async def activate_license(
        self,
        license_key: str,
        site_url: str,
        site_name: str | None = None,
    ) -> dict[str, Any]:
        """Activate ``license_key`` on ``site_url`` within the tier's ceiling."""
        self._require_configured("License service not configured")
        result = await self._fetch(license_key)
        license = result.license_key

        if license.status != "active":
            raise LicenseStateAppError(
                code=ErrorCode.LICENSE_INACTIVE,
                message=f"Cannot activate. License is {license.status}.",
            )
        if self._is_expired(license.expires_at):
            raise LicenseStateAppError(code=ErrorCode.LICENSE_EXPIRED, message="License has expired")

        tier = derive_tier(result.meta.variant_name)
        sites = _active_sites(result)

        existing = next((site for site in sites if site["url"] == site_url), None)
        if existing is not None:
            return {
                "success": True,
                "message": f"License already activated on {site_url}",
                "data": {
                    "tier": tier.name,
                    "activated_at": existing.get("activated_at"),
                    "sites_remaining": _sites_remaining(tier, len(sites)),
                },
            }

        if not tier.unlimited and len(sites) >= tier.max_activations:
            logger.info(
                "license.activation_limit_reached",
                extra={"license_hash": hash_sensitive(license_key), "tier": tier.name, "active": len(sites)},
            )
            raise LicenseStateAppError(
                code=ErrorCode.ACTIVATION_LIMIT_REACHED,
                message=(
                    f"Activation limit reached. Pro licenses can only be activated on "
                    f"{tier.max_activations} site(s). Please deactivate from another site first."
                ),
                extra={
                    "data": {
                        "max_activations": tier.max_activations,
                        "active_sites": [site["url"] for site in sites],
                        "upgrade_url": UPGRADE_URL,
                    }
                },
            )

        try:
            activation = await self._provider.activate(license_key, site_name or site_url)
        except LicenseProviderRejected as exc:
            raise LicenseStateAppError(
                code=ErrorCode.INVALID_LICENSE,
                message="Failed to activate license",
                details={"provider_status": exc.status_code},
            ) from exc
        except LicenseProviderUnavailable as exc:
            raise UpstreamAppError(
                code=ErrorCode.EXTERNAL_API_ERROR,
                message="Failed to activate license",
            ) from exc

        activated_at = self._now().isoformat()
        logger.info(
            "license.activated",
            extra={"license_hash": hash_sensitive(license_key), "tier": tier.name, "site_url": site_url},
        )
        return {
            "success": True,
            "message": f"License successfully activated on {site_url}",
            "data": {
                "tier": tier.name,
                "activated_at": activated_at,
                "sites_remaining": _sites_remaining(tier, len(sites) + 1),
                "expires_at": license.expires_at,
                "instance_id": activation.instance.id if activation.instance else None,
            },
        }

    async def deactivate_license(
        self,
        license_key: str,
        site_url: str | None = None,
        instance_id: str | None = None,
    ) -> dict[str, Any]:
        """Release one activation of ``license_key``."""
        self._require_configured("License service not configured")
        try:
            await self._provider.deactivate(license_key, instance_id)
        except LicenseProviderRejected as exc:
            if exc.status_code == 404:
                raise NotFoundAppError(
                    code=ErrorCode.NOT_FOUND,
                    message="Activation not found for this site",
                ) from exc
            raise LicenseStateAppError(
                code=ErrorCode.INVALID_LICENSE,
                message="Failed to deactivate license",
                details={"provider_status": exc.status_code},
            ) from exc
        except LicenseProviderUnavailable as exc:
            raise UpstreamAppError(
                code=ErrorCode.EXTERNAL_API_ERROR,
                message="Failed to deactivate license",
            ) from exc

        logger.info(
            "license.deactivated",
            extra={"license_hash": hash_sensitive(license_key), "site_url": site_url},
        )
        return {
            "success": True,
            "message": f"License successfully deactivated from {site_url or 'this site'}",
            "data": {"deactivated_at": self._now().isoformat()},
        }

    def build_download_url(self, license_key: str, plugin_slug: str, site_url: str) -> str:
        """Build a time-boxed download link for the latest release of ``plugin_slug``."""
        release = get_release(plugin_slug)
        if release is None:
            raise NotFoundAppError(code=ErrorCode.NOT_FOUND, message=f"No release found for {plugin_slug}")
        if self._token_signer is None:
            logger.error("download_token.secret_not_configured")
            raise ConfigurationAppError(
                code=ErrorCode.SERVICE_NOT_CONFIGURED,
                message="Update service not configured",
            )

        token = self._token_signer.sign(
            {
                "license_key": license_key[:TOKEN_KEY_PREFIX_CHARS],
                "plugin_slug": plugin_slug,
                "site_url": site_url,
            },
            self._token_ttl,
        )
        return f"{self._public_base_url}/downloads/{release.filename}?token={quote(token, safe='')}"

    async def check_update(
        self,
        license_key: str,
        plugin_slug: str,
        current_version: str,
        site_url: str,
    ) -> dict[str, Any]:
        """Offer the latest release of ``plugin_slug`` to licensed sites."""
        self._require_configured("Update service not configured")
        result = await self._fetch(
            license_key,
            rejected_status=403,
            rejected_message="Your license is not valid. Updates are only available for active licenses.",
        )
        license = result.license_key

        if license.status != "active":
            raise LicenseStateAppError(
                code=ErrorCode.LICENSE_INACTIVE,
                message=f"Your license is {license.status}. Please renew to receive updates.",
                status_code=403,
            )
        if self._is_expired(license.expires_at):
            raise LicenseStateAppError(
                code=ErrorCode.LICENSE_EXPIRED,
                message="Your license has expired. Please renew to receive updates.",
                status_code=403,
            )

        release = get_release(plugin_slug)
        if release is None:
            raise NotFoundAppError(
                code=ErrorCode.NOT_FOUND,
                message=f"No update information available for {plugin_slug}",
            )

        if compare_versions(current_version, release.version) >= 0:
            return {
                "success": True,
                "update_available": False,
                "current_version": current_version,
                "latest_version": release.version,
                "message": "You have the latest version",
            }

        package = self.build_download_url(license_key, plugin_slug, site_url)
        logger.info(
            "license.update_offered",
            extra={
                "license_hash": hash_sensitive(license_key),
                "plugin_slug": plugin_slug,
                "from_version": current_version,
                "to_version": release.version,
            },
        )
        return {
            "success": True,
            "update_available": True,
            "id": plugin_slug,
            "slug": plugin_slug,
            "plugin": f"{plugin_slug}/{plugin_slug}.php",
            "new_version": release.version,
            "url": self._public_base_url,
            "package": package,
            "tested": release.tested_up_to,
            "requires_php": release.requires_php,
            "changelog": release.changelog,
            "icons": {
                "1x": f"{self._public_base_url}/images/icon-128x128.png",
                "2x": f"{self._public_base_url}/images/icon-256x256.png",
            },
            "banners": {
                "1x": f"{self._public_base_url}/images/banner-772x250.png",
                "2x": f"{self._public_base_url}/images/banner-1544x500.png",
            },
            "sections": {
                "description": release.description,
                "changelog": release.changelog,
            },
        }
