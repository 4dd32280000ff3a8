"""
RamsFlow: FastAPI application factory.

Application lifecycle:
  startup  → configure logging, run DB migrations, seed roles/admin/library,
             start the notification dispatcher
  shutdown → drain notifications, dispose DB engine pool
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import sqlalchemy as sa
import structlog
from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ramsflow.api.deps import DbSession
from ramsflow.api.v1.router import router as v1_router
from ramsflow.config.logging_config import configure_logging
from ramsflow.config.settings import Environment, Settings, get_settings
from ramsflow.core.errors import AppError
from ramsflow.core.middleware import (
    CorrelationIDMiddleware,
    SecurityHeadersMiddleware,
    app_error_handler,
    rate_limit_handler,
    unhandled_exception_handler,
)
from ramsflow.core.rate_limit import limiter
from ramsflow.core.security import hash_password
from ramsflow.db.base import Base
from ramsflow.db.models.user import Role, RoleEnum, User
from ramsflow.db.session import create_engine, dispose_engine, session_scope
from ramsflow.services.ai.client import AnthropicClient
from ramsflow.services.library.seed import seed_defaults
from ramsflow.services.notifications.dispatcher import NotificationDispatcher
from ramsflow.services.notifications.events import NotificationQueue
from ramsflow.services.notifications.sender import build_email_sender

_log = structlog.get_logger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def _upgrade_schema() -> None:
    cfg = Config(str(ALEMBIC_INI))
    # Keep structlog's handlers; alembic.ini would otherwise replace them
    cfg.attributes["configure_logger"] = False
    command.upgrade(cfg, "head")


async def _migrate(settings: Settings) -> None:
    if not ALEMBIC_INI.exists():
        engine = create_engine(settings)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        _log.info("schema_created", source="metadata")
        return
    try:
        # env.py runs its own event loop
        await asyncio.to_thread(_upgrade_schema)
        _log.info("migrations_applied")
    except CommandError as exc:
        _log.warning("migration_warning", error=str(exc))


async def seed_database(settings: Settings | None = None) -> None:
    """Ensure roles exist, the bootstrap admin is present and the library is seeded."""
    settings = settings or get_settings()

    async with session_scope() as db:
        for role_enum in RoleEnum:
            result = await db.execute(select(Role).where(Role.name == role_enum.value))
            if result.scalar_one_or_none() is None:
                db.add(Role(name=role_enum.value, description=f"{role_enum.value} role"))
        await db.flush()

        admin_result = await db.execute(
            select(User).where(User.username == settings.admin_username)
        )
        if admin_result.scalar_one_or_none() is None:
            role = (
                await db.execute(select(Role).where(Role.name == RoleEnum.ADMIN.value))
            ).scalar_one()
            db.add(
                User(
                    tenant_id=settings.default_tenant_id,
                    username=settings.admin_username,
                    full_name="Administrator",
                    password_hash=hash_password(settings.admin_password.get_secret_value()),
                    role_id=role.id,
                    is_active=True,
                )
            )
            _log.info("admin_bootstrapped", username=settings.admin_username)

        if settings.rams_seed_library:
            created = await seed_defaults(db, settings.default_tenant_id)
            if created:
                _log.info("rams_library_seeded", created=created)


async def _startup(app: FastAPI) -> None:
    settings = get_settings()
    configure_logging(log_level=settings.log_level.value, json_logs=settings.log_json)
    _log.info(
        "ramsflow_starting",
        version=settings.app_version,
        environment=settings.environment.value,
    )

    if settings.run_migrations_on_startup:
        await _migrate(settings)
    await seed_database(settings)

    dispatcher = NotificationDispatcher(
        app.state.notification_queue,
        sender=app.state.email_sender,
        settings=settings,
    )
    dispatcher.start()
    app.state.notification_dispatcher = dispatcher

    _log.info("ramsflow_ready", host=settings.host, port=settings.port)


async def _shutdown(app: FastAPI) -> None:
    dispatcher: NotificationDispatcher | None = getattr(
        app.state, "notification_dispatcher", None
    )
    if dispatcher is not None:
        await dispatcher.stop()
    await dispose_engine()
    _log.info("ramsflow_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory. Returns a configured FastAPI instance."""
    settings = settings or get_settings()
    is_production = settings.environment == Environment.PRODUCTION

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "RamsFlow: Risk Assessment and Method Statement authoring, "
            "approval workflow, AI-assisted control suggestions and reporting."
        ),
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
    )

    # Shared per-process collaborators; set here so they exist without startup
    app.state.notification_queue = NotificationQueue()
    app.state.email_sender = build_email_sender(settings)
    app.state.ai_client = AnthropicClient(settings)

    # ── Startup / Shutdown ────────────────────────────────────────────── #
    @app.on_event("startup")
    async def on_startup() -> None:
        await _startup(app)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await _shutdown(app)

    # ── Rate Limiting ─────────────────────────────────────────────────── #
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)  # type: ignore[arg-type]
    app.add_middleware(SlowAPIMiddleware)

    # ── CORS ──────────────────────────────────────────────────────────── #
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID", "Content-Disposition"],
    )

    # ── Custom Middleware (applied in reverse order) ───────────────────── #
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    # ── Exception Handlers ────────────────────────────────────────────── #
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routes ────────────────────────────────────────────────────────── #
    app.include_router(v1_router)

    # ── Health ────────────────────────────────────────────────────────── #
    @app.get("/health", tags=["health"], summary="Health check")
    async def health(db: DbSession) -> dict[str, object]:
        """Database reachability plus whether the AI step is configured."""
        db_ok = False
        try:
            await db.execute(sa.text("SELECT 1"))
            db_ok = True
        except (SQLAlchemyError, OSError) as exc:
            _log.warning("health_db_unavailable", error=str(exc))

        ai_client: AnthropicClient = app.state.ai_client
        return {
            "status": "healthy" if db_ok else "degraded",
            "database": "ok" if db_ok else "unavailable",
            "ai": "configured" if ai_client.is_configured else "disabled",
            "version": settings.app_version,
        }

    # ── Metrics (Prometheus) ──────────────────────────────────────────── #
    @app.get("/metrics", tags=["observability"], summary="Prometheus metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


# Entry point for uvicorn
app = create_app()
