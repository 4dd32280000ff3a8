"""
Application configuration via Pydantic Settings.

All values are sourced from environment variables or an .env file.
No defaults expose insecure behaviour in production.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from typing import Annotated

from pydantic import (
    AnyHttpUrl,
    BeforeValidator,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment identifiers."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(StrEnum):
    """Structured log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _parse_csv(value: str | list[str]) -> list[str]:
    """Accept comma-separated string or list."""
    if isinstance(value, list):
        return value
    return [item.strip() for item in value.split(",") if item.strip()]


CsvList = Annotated[list[str], NoDecode, BeforeValidator(_parse_csv)]


class Settings(BaseSettings):
    """
    Centralised, type-validated application configuration.

    Reads from environment variables with an optional .env file.
    All secrets are Pydantic SecretStr to prevent accidental logging.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────── #
    app_name: str = Field(default="RamsFlow", description="Human-readable application name")
    app_version: str = Field(default="1.0.0", description="Semantic version string")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development|testing|production)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode. Must be False in production.",
    )
    run_migrations_on_startup: bool = Field(
        default=True,
        description="Apply alembic migrations during application startup",
    )

    # ── Server ─────────────────────────────────────────────────────────── #
    host: str = Field(default="127.0.0.1", description="Bind host. Default local-only.")
    port: int = Field(default=8000, ge=1024, le=65535, description="Bind port")
    reload: bool = Field(default=False, description="Auto-reload on code change (dev only)")

    # ── CORS ───────────────────────────────────────────────────────────── #
    cors_origins: CsvList = Field(
        default=["http://localhost:5173"],
        description="Comma-separated list of allowed CORS origins",
    )

    # ── Database ───────────────────────────────────────────────────────── #
    database_url: str = Field(
        default="sqlite+aiosqlite:///./ramsflow.db",
        description=(
            "Async SQLAlchemy connection string. "
            "Use sqlite+aiosqlite:// for local or postgresql+asyncpg:// for production."
        ),
    )
    db_pool_size: int = Field(default=5, ge=1, le=50, description="Connection pool size")
    db_max_overflow: int = Field(default=10, ge=0, le=100, description="Pool max overflow")
    db_echo: bool = Field(default=False, description="Log all SQL statements (debug only)")

    # ── Auth / JWT ─────────────────────────────────────────────────────── #
    jwt_secret_key: SecretStr = Field(
        ...,
        description="HS256 signing secret. Minimum 32 characters. Required.",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_access_token_expire_minutes: int = Field(
        default=60,
        ge=5,
        le=1440,
        description="Access token TTL in minutes",
    )
    jwt_refresh_token_expire_days: int = Field(
        default=7,
        ge=1,
        le=30,
        description="Refresh token TTL in days",
    )

    # ── RAMS ───────────────────────────────────────────────────────────── #
    rams_base_url: str = Field(
        default="http://localhost:5173",
        description="Front-end base URL used to build links in notification emails",
    )
    rams_company_name: str = Field(
        default="RASCOR Ireland",
        description="Company name shown in emails and PDF exports",
    )
    rams_seed_library: bool = Field(
        default=True,
        description="Seed the default hazard/control/legislation/SOP library on startup",
    )

    # ── AI suggestions (Anthropic) ─────────────────────────────────────── #
    rams_ai_enabled: bool = Field(
        default=True,
        description="Allow the suggestion pipeline to call the external LLM",
    )
    anthropic_api_key: SecretStr | None = Field(
        default=None,
        description="Anthropic API key. When unset the LLM step is skipped.",
    )
    anthropic_base_url: AnyHttpUrl = Field(
        default="https://api.anthropic.com",
        description="Anthropic API base URL",
    )
    anthropic_model: str = Field(
        default="claude-3-sonnet-20240229",
        description="Model identifier sent with every suggestion request",
    )
    anthropic_version: str = Field(
        default="2023-06-01",
        description="Value of the anthropic-version request header",
    )
    anthropic_max_tokens: int = Field(
        default=1024,
        ge=64,
        le=8192,
        description="max_tokens for suggestion completions",
    )
    anthropic_timeout_seconds: int = Field(
        default=60,
        ge=5,
        le=600,
        description="HTTP timeout for Anthropic API calls (seconds)",
    )
    ai_circuit_breaker_threshold: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Consecutive failures before circuit opens",
    )
    ai_circuit_breaker_timeout_seconds: int = Field(
        default=60,
        ge=10,
        le=3600,
        description="Seconds to wait before testing circuit again",
    )

    # ── Notifications ──────────────────────────────────────────────────── #
    notifications_enabled: bool = Field(default=True, description="Master switch for RAMS emails")
    notify_on_submit: bool = Field(default=True, description="Email reviewers on submit")
    notify_on_approve: bool = Field(default=True, description="Email the creator on approval")
    notify_on_reject: bool = Field(default=True, description="Email the creator on rejection")
    daily_digest_enabled: bool = Field(default=True, description="Allow the daily digest email")
    rams_approver_emails: CsvList = Field(
        default=[],
        description="Fallback reviewer addresses when no safety officer is assigned",
    )
    rams_digest_recipients: CsvList = Field(
        default=[],
        description="Recipients of the daily pending/overdue digest",
    )

    # ── SMTP ───────────────────────────────────────────────────────────── #
    smtp_host: str | None = Field(default=None, description="SMTP host. Unset logs emails instead.")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP port")
    smtp_user: str | None = Field(default=None, description="SMTP username")
    smtp_password: SecretStr | None = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="Issue STARTTLS after connecting")
    smtp_from_email: str = Field(
        default="rams@localhost",
        description="From address for outbound notifications",
    )

    # ── Rate Limiting ──────────────────────────────────────────────────── #
    rate_limit_enabled: bool = Field(default=True, description="Enforce the limits below")
    rate_limit_default: str = Field(
        default="100/minute",
        description="Default rate limit string (slowapi format)",
    )
    rate_limit_ai: str = Field(
        default="10/minute",
        description="Rate limit for AI suggestion endpoints",
    )
    rate_limit_auth: str = Field(
        default="20/minute",
        description="Rate limit for auth endpoints",
    )

    # ── Logging ────────────────────────────────────────────────────────── #
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Minimum log level")
    log_json: bool = Field(default=True, description="Emit logs as JSON (False for dev console)")

    # ── Admin Bootstrap ────────────────────────────────────────────────── #
    admin_username: str = Field(
        default="admin",
        description="Bootstrap admin username (used only on first startup)",
    )
    admin_password: SecretStr = Field(
        ...,
        description="Bootstrap admin password. Required. Min 12 chars.",
    )
    default_tenant_id: str = Field(
        default="11111111-1111-1111-1111-111111111111",
        description="Tenant assigned to the bootstrap admin and seeded library",
    )

    # ── Validators ─────────────────────────────────────────────────────── #

    @field_validator("jwt_secret_key")
    @classmethod
    def jwt_secret_must_be_strong(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < 32:
            raise ValueError("jwt_secret_key must be at least 32 characters")
        return v

    @field_validator("admin_password")
    @classmethod
    def admin_password_must_be_strong(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < 12:
            raise ValueError("admin_password must be at least 12 characters")
        return v

    @field_validator("rams_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def production_safety_checks(self) -> Settings:
        if self.environment == Environment.PRODUCTION:
            if self.debug:
                raise ValueError("debug must be False in production")
            if self.reload:
                raise ValueError("reload must be False in production")
            if self.db_echo:
                raise ValueError("db_echo must be False in production")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the cached Settings singleton.

    Use dependency injection in FastAPI routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
