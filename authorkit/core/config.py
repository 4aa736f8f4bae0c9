"""AuthorKit configuration.

Values come from the process environment, optionally pre-seeded from an
``.env.{APP_ENV}`` file in the project root (``APP_ENV`` is one of
development, testing, staging or production).

The composed ``Settings`` object is built once at process start and handed to
``create_app``; handlers receive collaborators built from it instead of
reading the environment themselves.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_ENV = os.getenv("APP_ENV", "development")

PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_path = PROJECT_ROOT / ENV_FILE_MAP.get(APP_ENV, ".env.development")

# Nested BaseSettings do not inherit env_file, so seed os.environ up front.
# Deployments without the file rely on real environment variables.
if _env_path.is_file():
    from dotenv import load_dotenv
    load_dotenv(_env_path, override=True)

MIN_SECRET_LENGTH = 32
PLACEHOLDER_MARKERS = ("change-this", "your-key-here")


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    env: str = Field(
        APP_ENV,
        description="Deployment environment: development, testing, staging or production",
    )
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["https://authorkit.pro", "https://www.authorkit.pro"],
        description="Origins echoed verbatim in CORS responses",
    )
    public_base_url: str = Field(
        "https://authorkit.pro",
        description="Public base URL used to build download links",
    )
    downloads_dir: str = Field(
        "downloads",
        description="Directory holding plugin release archives served by /downloads",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-endpoint rate limiting per client IP",
    )
    rate_limit_backend: str = Field(
        "memory",
        description="Rate limit storage backend: memory (single process) or redis (shared)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL used when rate_limit_backend=redis",
    )
    rate_limit_sweep_threshold: int = Field(
        10000,
        description="Tracked keys above which expired in-memory windows are swept",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LicenseSettings(BaseSettings):
    """Payments/licensing provider (Lemon Squeezy) configuration."""

    api_key: str | None = Field(
        None,
        description="Lemon Squeezy API key for license validation",
    )
    webhook_secret: str | None = Field(
        None,
        description="Lemon Squeezy webhook signing secret",
    )
    base_url: str = Field(
        "https://api.lemonsqueezy.com",
        description="Lemon Squeezy API base URL",
    )
    timeout_seconds: float = Field(
        10.0,
        description="Timeout for each outbound request in seconds",
    )
    max_retries: int = Field(
        1,
        description="Retries after a transient failure (network error or 5xx)",
        ge=0,
        le=3,
    )
    retry_backoff_seconds: float = Field(
        0.5,
        description="Delay before retrying a transient failure",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LEMON_SQUEEZY_",
        case_sensitive=False,
    )


class TokenSettings(BaseSettings):
    """Download token signing configuration."""

    secret: str | None = Field(
        None,
        description="Secret key used to sign download tokens (min 32 chars)",
    )
    ttl_seconds: int = Field(
        3600,
        description="Lifetime of issued download tokens",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="DOWNLOAD_TOKEN_",
        case_sensitive=False,
    )


class DatabaseSettings(BaseSettings):
    """Hosted database (bookshelf, email subscribers) configuration."""

    url: str = Field(
        "sqlite:///./authorkit.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(
        False,
        description="Echo SQL statements to the log",
    )
    create_tables: bool = Field(
        False,
        description="Create missing tables at startup (local development only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str | None = Field(None, description="Root log level; defaults by environment when unset")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate log file after this size (0 disables)")
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation id header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development (error details exposed, unsigned webhooks allowed)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app: AppSettings = Field(default_factory=AppSettings)
    license: LicenseSettings = Field(default_factory=LicenseSettings)
    token: TokenSettings = Field(default_factory=TokenSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def is_development(self) -> bool:
        return self.app.env.lower() == "development"

    @property
    def is_production(self) -> bool:
        return self.app.env.lower() == "production"


def collect_config_problems(cfg: Settings) -> list[str]:
    """Report missing, placeholder or weak secrets.

    Args:
        cfg: Settings to inspect.

    Returns:
        Human-readable problems; empty when the configuration is usable.
    """
    problems: list[str] = []
    secrets = {
        "LEMON_SQUEEZY_API_KEY": cfg.license.api_key,
        "LEMON_SQUEEZY_WEBHOOK_SECRET": cfg.license.webhook_secret,
        "DOWNLOAD_TOKEN_SECRET": cfg.token.secret,
    }
    for name, value in secrets.items():
        if not value:
            problems.append(f"Missing required environment variable: {name}")
            continue
        if any(marker in value for marker in PLACEHOLDER_MARKERS):
            problems.append(f"Environment variable {name} appears to be a placeholder value")

    if cfg.token.secret and len(cfg.token.secret) < MIN_SECRET_LENGTH:
        problems.append(
            f"Environment variable DOWNLOAD_TOKEN_SECRET is too short "
            f"(minimum {MIN_SECRET_LENGTH} characters)"
        )

    if cfg.app.env.lower() not in ENV_FILE_MAP:
        problems.append(f"Invalid value for APP_ENV: {cfg.app.env!r}")

    return problems


# Process-wide settings; nested groups read the environment via default_factory
settings = Settings()
