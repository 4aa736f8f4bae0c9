"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
builds every collaborator once from an explicit ``Settings`` object. The
collaborators live on ``app.state`` and reach handlers through the
dependencies in ``authorkit.core.dependencies``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from authorkit.adapters.payments import AbstractLicenseProvider, LemonSqueezyClient
from authorkit.adapters.rate_limit import FixedWindowRateLimiter, build_rate_limit_store
from authorkit.api.routes import (
    bookshelf_router,
    downloads_router,
    email_router,
    health_router,
    license_router,
    webhooks_router,
)
from authorkit.core.config import Settings, collect_config_problems
from authorkit.core.config import settings as default_settings
from authorkit.core.exception_handlers import setup_exception_handlers
from authorkit.core.logging import configure_logging
from authorkit.core.middleware import (
    cors_middleware,
    request_id_middleware,
    security_headers_middleware,
    unhandled_error_middleware,
)
from authorkit.core.openapi import apply_openapi_customizations
from authorkit.core.tokens import TokenSigner
from authorkit.core.webhook_signature import WebhookSignatureVerifier
from authorkit.db.session import create_db_engine, create_session_factory, create_tables
from authorkit.services.license_service import LicenseService
from authorkit.services.webhook_service import WebhookDispatcher

logger = logging.getLogger(__name__)


def _build_license_provider(settings: Settings) -> AbstractLicenseProvider:
    cfg = settings.license
    return LemonSqueezyClient(
        cfg.api_key,
        base_url=cfg.base_url,
        timeout_seconds=cfg.timeout_seconds,
        max_retries=cfg.max_retries,
        retry_backoff_seconds=cfg.retry_backoff_seconds,
    )


def create_app(
    settings: Settings | None = None,
    *,
    license_provider: AbstractLicenseProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Configuration; defaults to the process-wide settings.
        license_provider: Provider override (defaults to the Lemon Squeezy client).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    settings = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log, env=settings.app.env)

    for problem in collect_config_problems(settings):
        logger.warning("config.problem", extra={"problem": problem, "env": settings.app.env})

    app = FastAPI(
        title="AuthorKit API",
        description=(
            "Licensing, update delivery, webhook relay, bookshelf catalogue and "
            "e-mail capture for the AuthorKit WordPress plugins."
        ),
        version="1.0.0",
        contact={
            "name": "AuthorKit",
            "url": "https://authorkit.pro",
        },
    )

    # Collaborators
    signer = TokenSigner(settings.token.secret) if settings.token.secret else None
    app.state.settings = settings
    app.state.limiter = FixedWindowRateLimiter(
        build_rate_limit_store(
            settings.app.rate_limit_backend,
            redis_url=settings.app.redis_url,
            sweep_threshold=settings.app.rate_limit_sweep_threshold,
        )
    )
    app.state.token_signer = signer
    app.state.license_service = LicenseService(
        license_provider or _build_license_provider(settings),
        token_signer=signer,
        public_base_url=settings.app.public_base_url,
        token_ttl_seconds=settings.token.ttl_seconds,
    )
    app.state.webhook_verifier = WebhookSignatureVerifier(
        settings.license.webhook_secret,
        allow_unsigned=settings.is_development,
    )
    app.state.dispatcher = WebhookDispatcher()

    engine = create_db_engine(settings.database)
    if settings.database.create_tables:
        create_tables(engine)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    # Middleware (last registered runs outermost)
    app.middleware("http")(unhandled_error_middleware)
    app.middleware("http")(cors_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(license_router)
    app.include_router(webhooks_router)
    app.include_router(bookshelf_router)
    app.include_router(email_router)
    app.include_router(downloads_router)
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags)
    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "env": settings.app.env,
            "rate_limit_backend": settings.app.rate_limit_backend,
            "license_configured": bool(settings.license.api_key),
        },
    )
    return app
