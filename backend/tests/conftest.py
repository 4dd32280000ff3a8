"""
Shared pytest fixtures for RamsFlow backend tests.

Provides:
  - async SQLite in-memory database (per-test isolation)
  - a request context and ready-made RAMS documents for service tests
  - the FastAPI app with overridden DB dependency, plus bearer headers
    for admin / editor / reviewer / viewer users
  - recording e-mail sender and a fake Anthropic client (no network)
"""

from __future__ import annotations

import os

# Settings are read once and cached; set the environment before any import
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production-at-all")
os.environ.setdefault("ADMIN_PASSWORD", "TestAdmin@2024!")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("RAMS_BASE_URL", "https://rams.example.com")

from collections.abc import AsyncGenerator
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ramsflow.core.context import RequestContext
from ramsflow.core.security import hash_password
from ramsflow.db.base import Base
from ramsflow.db.models.directory import Employee
from ramsflow.db.models.rams import MethodStep, RamsDocument, RamsStatus, RiskAssessment
from ramsflow.db.models.user import Role, RoleEnum, User
from ramsflow.db.session import get_db
from ramsflow.main import create_app
from ramsflow.services.ai.client import CompletionResponse

TENANT_ID = "11111111-1111-1111-1111-111111111111"
OTHER_TENANT_ID = "22222222-2222-2222-2222-222222222222"

PASSWORDS = {
    RoleEnum.ADMIN: "Adm!nP@ssw0rd99",
    RoleEnum.EDITOR: "Ed!torP@ssw0rd99",
    RoleEnum.REVIEWER: "Rev!ewerP@ssw0rd99",
    RoleEnum.VIEWER: "V!ewerP@ssw0rd99",
}

AI_REPLY = """CONTROL_MEASURES:
- Use a mobile elevating work platform instead of ladders
- Install edge protection on all open edges
- Harness and lanyard for all operatives

LEGISLATION:
- Safety, Health and Welfare at Work (Work at Height) Regulations 2006

RESIDUAL_RISK:
Likelihood: 2
Severity: 4
"""


# ─── Test doubles ─────────────────────────────────────────────────────────────


class RecordingSender:
    """EmailSender double. Set `fail_with` to make every send raise."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str | None]] = []
        self.fail_with: Exception | None = None

    async def send(
        self, to_email: str, subject: str, html_body: str, text_body: str | None = None
    ) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(
            {"to": to_email, "subject": subject, "html": html_body, "text": text_body}
        )


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def fake_ai_client() -> MagicMock:
    """Stands in for AnthropicClient; replies with a well-formed suggestion."""
    client = MagicMock()
    client.is_configured = True
    client.model = "claude-test"
    client.complete = AsyncMock(
        return_value=CompletionResponse(
            text=AI_REPLY, model="claude-test", input_tokens=120, output_tokens=80
        )
    )
    return client


# ─── Database ─────────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def db_engine():
    """Async in-memory SQLite engine per test function."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


async def seed_roles(session: AsyncSession) -> dict[RoleEnum, Role]:
    roles = {}
    for role_enum in RoleEnum:
        role = (
            await session.execute(select(Role).where(Role.name == role_enum.value))
        ).scalar_one_or_none()
        if role is None:
            role = Role(name=role_enum.value, description=role_enum.value)
            session.add(role)
        roles[role_enum] = role
    await session.flush()
    return roles


async def make_user(
    session: AsyncSession,
    username: str,
    role: RoleEnum,
    tenant_id: str = TENANT_ID,
    email: str | None = None,
    full_name: str | None = None,
) -> User:
    roles = await seed_roles(session)
    user = User(
        username=username,
        full_name=full_name or username.title(),
        email=email or f"{username}@example.com",
        password_hash=hash_password(PASSWORDS[role]),
        role_id=roles[role].id,
        tenant_id=tenant_id,
        is_active=True,
    )
    user.role = roles[role]
    session.add(user)
    await session.flush()
    return user


@pytest_asyncio.fixture
async def author(db_session) -> User:
    return await make_user(db_session, "author", RoleEnum.EDITOR, full_name="Alice Author")


@pytest.fixture
def ctx(author) -> RequestContext:
    return RequestContext(user_id=author.id, tenant_id=TENANT_ID, user_name=author.display_name)


@pytest.fixture
def other_tenant_ctx() -> RequestContext:
    return RequestContext(user_id=None, tenant_id=OTHER_TENANT_ID, user_name="Outsider")


@pytest_asyncio.fixture
async def safety_officer(db_session) -> Employee:
    officer = Employee(
        tenant_id=TENANT_ID, first_name="Sam", last_name="Safety", email="sam.safety@example.com"
    )
    db_session.add(officer)
    await db_session.flush()
    return officer


async def make_document(
    session: AsyncSession,
    ctx: RequestContext,
    reference: str = "RAMS-001",
    status: RamsStatus = RamsStatus.DRAFT,
    risks: int = 0,
    steps: int = 0,
    **fields,
) -> RamsDocument:
    document = RamsDocument(
        tenant_id=ctx.tenant_id,
        project_name=fields.pop("project_name", f"Project {reference}"),
        project_reference=reference,
        status=status,
        created_by=ctx.user_id,
        **fields,
    )
    session.add(document)
    await session.flush()
    for index in range(1, risks + 1):
        session.add(
            RiskAssessment(
                tenant_id=ctx.tenant_id,
                rams_document_id=document.id,
                task_activity=f"Task {index}",
                hazard_identified=f"Hazard {index}",
                initial_likelihood=3,
                initial_severity=4,
                residual_likelihood=1,
                residual_severity=3,
                sort_order=index,
            )
        )
    for index in range(1, steps + 1):
        session.add(
            MethodStep(
                tenant_id=ctx.tenant_id,
                rams_document_id=document.id,
                step_number=index,
                step_title=f"Step {index}",
            )
        )
    await session.flush()
    return document


@pytest.fixture
def document_factory(db_session, ctx):
    """Build a document in `ctx`'s tenant (or the context passed in)."""

    async def _make(reference: str = "RAMS-001", context: RequestContext | None = None, **fields):
        return await make_document(db_session, context or ctx, reference, **fields)

    return _make


@pytest.fixture
def user_factory(db_session):
    async def _make(username: str, role: RoleEnum = RoleEnum.EDITOR, **fields) -> User:
        return await make_user(db_session, username, role, **fields)

    return _make


@pytest_asyncio.fixture
async def draft_document(db_session, ctx) -> RamsDocument:
    return await make_document(db_session, ctx, proposed_end_date=date(2030, 1, 31))


@pytest_asyncio.fixture
async def complete_document(db_session, ctx) -> RamsDocument:
    """Draft with one risk assessment and one method step: ready to submit."""
    return await make_document(db_session, ctx, reference="RAMS-READY", risks=1, steps=1)


# ─── App & HTTP client ────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def app(session_factory, sender, fake_ai_client):
    """FastAPI test app bound to the per-test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async with session_factory() as session:
        await seed_roles(session)
        await session.commit()

    app_ = create_app()
    app_.dependency_overrides[get_db] = override_get_db
    app_.state.email_sender = sender
    app_.state.ai_client = fake_ai_client
    return app_


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated async HTTP client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def login_headers(client: AsyncClient, username: str, password: str) -> dict[str, str]:
    resp = await client.post(
        "/api/v1/auth/login", json={"username": username, "password": password}
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


async def _user_headers(
    client: AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
    username: str,
    role: RoleEnum,
    tenant_id: str = TENANT_ID,
) -> dict[str, str]:
    async with session_factory() as session:
        await make_user(session, username, role, tenant_id=tenant_id)
        await session.commit()
    return await login_headers(client, username, PASSWORDS[role])


@pytest_asyncio.fixture
async def admin_headers(client, session_factory) -> dict[str, str]:
    return await _user_headers(client, session_factory, "testadmin", RoleEnum.ADMIN)


@pytest_asyncio.fixture
async def editor_headers(client, session_factory) -> dict[str, str]:
    return await _user_headers(client, session_factory, "testeditor", RoleEnum.EDITOR)


@pytest_asyncio.fixture
async def reviewer_headers(client, session_factory) -> dict[str, str]:
    return await _user_headers(client, session_factory, "testreviewer", RoleEnum.REVIEWER)


@pytest_asyncio.fixture
async def viewer_headers(client, session_factory) -> dict[str, str]:
    return await _user_headers(client, session_factory, "testviewer", RoleEnum.VIEWER)


@pytest_asyncio.fixture
async def outsider_headers(client, session_factory) -> dict[str, str]:
    """An editor in a different tenant."""
    return await _user_headers(
        client, session_factory, "outsider", RoleEnum.EDITOR, tenant_id=OTHER_TENANT_ID
    )
