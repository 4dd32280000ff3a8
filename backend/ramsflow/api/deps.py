"""
FastAPI dependency providers.

All authentication and authorization logic lives here, not in routes.
Routes receive a RequestContext and pass it explicitly into services.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ramsflow.config.logging_config import bind_request_context
from ramsflow.core.context import RequestContext
from ramsflow.core.errors import AuthError, ErrorCode, ForbiddenError
from ramsflow.core.security import ACCESS_TOKEN, decode_token
from ramsflow.db.models.user import RoleEnum, User
from ramsflow.db.session import get_db
from ramsflow.services.directory import SqlDirectory
from ramsflow.services.notifications.events import NotificationQueue

_log = structlog.get_logger(__name__)
_bearer = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    db: DbSession,
) -> User:
    """
    Validate JWT Bearer token and return the authenticated User.

    Raises AuthError on any JWT problem.
    """
    if credentials is None:
        raise AuthError(
            ErrorCode.AUTH_TOKEN_INVALID, "Authorization header missing or not Bearer type"
        )

    try:
        payload = decode_token(credentials.credentials, expected_type=ACCESS_TOKEN)
    except JWTError as exc:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Token invalid or expired") from exc

    user_id: str | None = payload.get("sub")  # type: ignore[assignment]
    if not user_id:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Token missing subject")

    user_result = await db.execute(
        select(User).options(selectinload(User.role)).where(User.id == user_id)
    )
    user = user_result.scalar_one_or_none()
    if user is None or user.is_deleted:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "User not found")

    if not user.is_active:
        raise AuthError(ErrorCode.AUTH_USER_INACTIVE, "Account is deactivated")

    bind_request_context(user_id=user.id, username=user.username, tenant_id=user.tenant_id)
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: RoleEnum):
    """Return a dependency callable that enforces role membership."""

    async def _check(user: CurrentUser) -> User:
        if user.role.name not in [r.value for r in roles]:
            raise ForbiddenError(
                f"This action requires one of: {[r.value for r in roles]}. "
                f"Your role is: {user.role.name}"
            )
        return user

    return _check


AdminUser = Depends(require_roles(RoleEnum.ADMIN))
EditorUser = Depends(require_roles(RoleEnum.ADMIN, RoleEnum.EDITOR))
ReviewerUser = Depends(require_roles(RoleEnum.ADMIN, RoleEnum.REVIEWER))


def get_request_context(request: Request, user: CurrentUser) -> RequestContext:
    return RequestContext(
        user_id=user.id,
        tenant_id=user.tenant_id,
        user_name=user.display_name,
        correlation_id=getattr(request.state, "correlation_id", None),
    )


Ctx = Annotated[RequestContext, Depends(get_request_context)]


def get_notification_queue(request: Request) -> NotificationQueue | None:
    """The app-wide queue drained by the NotificationDispatcher, if configured."""
    return getattr(request.app.state, "notification_queue", None)


Notifications = Annotated[NotificationQueue | None, Depends(get_notification_queue)]


def get_directory(db: DbSession, ctx: Ctx) -> SqlDirectory:
    return SqlDirectory(db, ctx.tenant_id)


Directory = Annotated[SqlDirectory, Depends(get_directory)]
