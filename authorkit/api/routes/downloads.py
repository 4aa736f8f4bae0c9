"""Token-protected plugin downloads."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from authorkit.core.config import Settings
from authorkit.core.dependencies import get_settings, get_token_signer
from authorkit.core.errors import AuthenticationAppError, ErrorCode, LicenseStateAppError, NotFoundAppError
from authorkit.core.logging import hash_sensitive, log_security_event
from authorkit.core.tokens import TokenSigner
from authorkit.services.plugin_catalog import find_release_by_filename

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Downloads"])


@router.get("/downloads/{filename}", response_class=FileResponse)
def download_release(
    filename: str,
    signer: Annotated[TokenSigner, Depends(get_token_signer)],
    settings: Annotated[Settings, Depends(get_settings)],
    token: Annotated[str | None, Query()] = None,
) -> FileResponse:
    """Serve a release archive to the holder of a valid download token.

    Raises:
        AuthenticationAppError: Token malformed, tampered with or expired.
        LicenseStateAppError: Token issued for a different plugin (403).
        NotFoundAppError: Unknown release or archive missing on disk.
    """
    verification = signer.verify(token or "")
    if not verification.valid:
        log_security_event("download_token_rejected", reason=verification.error, archive=filename)
        raise AuthenticationAppError(code=ErrorCode.UNAUTHORIZED, message=verification.error or "Invalid token")

    release = find_release_by_filename(filename)
    if release is None:
        raise NotFoundAppError(code=ErrorCode.NOT_FOUND, message="File not found")

    if verification.claims.get("plugin_slug") != release.slug:
        log_security_event(
            "download_token_slug_mismatch",
            archive=filename,
            token_hash=hash_sensitive(token),
        )
        raise LicenseStateAppError(
            code=ErrorCode.FORBIDDEN,
            message="Token not valid for this download",
            status_code=403,
        )

    path = Path(settings.app.downloads_dir) / release.filename
    if not path.is_file():
        logger.error("download.file_missing", extra={"archive": release.filename})
        raise NotFoundAppError(code=ErrorCode.NOT_FOUND, message="File not found")

    logger.info(
        "download.served",
        extra={"archive": release.filename, "site_url": verification.claims.get("site_url")},
    )
    return FileResponse(path, media_type="application/zip", filename=release.filename)
