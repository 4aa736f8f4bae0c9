from __future__ import annotations

from authorkit.api.routes.bookshelf import router as bookshelf_router
from authorkit.api.routes.downloads import router as downloads_router
from authorkit.api.routes.email_capture import router as email_router
from authorkit.api.routes.health import router as health_router
from authorkit.api.routes.license import router as license_router
from authorkit.api.routes.webhooks import router as webhooks_router

__all__ = [
    "bookshelf_router",
    "downloads_router",
    "email_router",
    "health_router",
    "license_router",
    "webhooks_router",
]
