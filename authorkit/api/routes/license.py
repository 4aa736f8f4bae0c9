"""Licence endpoints consumed by the WordPress plugin."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from authorkit.core.dependencies import get_license_service, json_body
from authorkit.core.errors import ErrorCode, ValidationAppError
from authorkit.core.exception_handlers import result_flag
from authorkit.core.rate_limit import (
    ACTIVATE_LICENSE_POLICY,
    CHECK_UPDATE_POLICY,
    DEACTIVATE_LICENSE_POLICY,
    VALIDATE_LICENSE_POLICY,
    rate_limit,
)
from authorkit.core.validation import ensure_valid
from authorkit.schemas.requests import (
    ACTIVATE_LICENSE_SCHEMA,
    CHECK_UPDATE_SCHEMA,
    DEACTIVATE_LICENSE_SCHEMA,
    VALIDATE_LICENSE_SCHEMA,
)
from authorkit.services.license_service import LicenseService

router = APIRouter(tags=["License"])

Payload = Annotated[dict[str, Any], Depends(json_body)]
Service = Annotated[LicenseService, Depends(get_license_service)]


@router.post(
    "/validate-license",
    dependencies=[Depends(result_flag("valid")), Depends(rate_limit(VALIDATE_LICENSE_POLICY))],
)
async def validate_license(payload: Payload, service: Service) -> dict[str, Any]:
    """Report tier, status and activations of a licence for a site."""
    data = ensure_valid(payload, VALIDATE_LICENSE_SCHEMA)
    return await service.validate_license(data["license_key"], data["site_url"])


@router.post("/activate-license", dependencies=[Depends(rate_limit(ACTIVATE_LICENSE_POLICY))])
async def activate_license(payload: Payload, service: Service) -> dict[str, Any]:
    data = ensure_valid(payload, ACTIVATE_LICENSE_SCHEMA)
    return await service.activate_license(data["license_key"], data["site_url"], data.get("site_name"))


@router.post("/deactivate-license", dependencies=[Depends(rate_limit(DEACTIVATE_LICENSE_POLICY))])
async def deactivate_license(payload: Payload, service: Service) -> dict[str, Any]:
    """Release one activation, identified by site URL or provider instance id."""
    data = ensure_valid(payload, DEACTIVATE_LICENSE_SCHEMA)
    if not data.get("site_url") and not data.get("instance_id"):
        raise ValidationAppError(
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            message="Missing required fields: license_key and (site_url or instance_id)",
        )
    return await service.deactivate_license(
        data["license_key"],
        site_url=data.get("site_url"),
        instance_id=data.get("instance_id"),
    )


@router.post("/check-update", dependencies=[Depends(rate_limit(CHECK_UPDATE_POLICY))])
async def check_update(payload: Payload, service: Service) -> dict[str, Any]:
    data = ensure_valid(payload, CHECK_UPDATE_SCHEMA)
    return await service.check_update(
        data["license_key"],
        data["plugin_slug"],
        data["current_version"],
        data["site_url"],
    )
