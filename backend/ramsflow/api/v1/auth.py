"""Authentication API endpoints."""

# Evaluated annotations: login is wrapped by the slowapi decorator.

import structlog
from fastapi import APIRouter, Request
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ramsflow.api.deps import CurrentUser, DbSession
from ramsflow.config.settings import get_settings
from ramsflow.core.errors import AuthError, ErrorCode
from ramsflow.core.rate_limit import auth_limit, limiter
from ramsflow.core.security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from ramsflow.db.models.user import User
from ramsflow.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    TokenResponse,
    UserOut,
)
from ramsflow.services.audit.logger import AuditLogger

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user: User, refresh_token: str | None = None) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(
            subject=user.id, role=user.role.name, extra_claims={"tenant_id": user.tenant_id}
        ),
        refresh_token=refresh_token or create_refresh_token(subject=user.id),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


@router.post("/login", response_model=TokenResponse, summary="Obtain access and refresh tokens")
@limiter.limit(auth_limit)
async def login(request: Request, body: LoginRequest, db: DbSession) -> TokenResponse:
    """Authenticate with username and password."""
    result = await db.execute(
        select(User)
        .options(selectinload(User.role))
        .where(User.username == body.username, User.deleted_at.is_(None))
    )
    user: User | None = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.password_hash):
        _log.warning("login_failed", username=body.username)
        raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS, "Invalid username or password")

    if not user.is_active:
        raise AuthError(ErrorCode.AUTH_USER_INACTIVE, "Account is deactivated")

    await AuditLogger(db).log(
        event_type="auth.login",
        tenant_id=user.tenant_id,
        actor_id=user.id,
        actor_username=user.username,
        entity_type="User",
        entity_id=user.id,
    )

    _log.info("login_success", username=user.username, role=user.role.name)
    return _token_response(user)


@router.post("/refresh", response_model=TokenResponse, summary="Refresh access token")
async def refresh_token(body: RefreshRequest, db: DbSession) -> TokenResponse:
    """Exchange a valid refresh token for a new access token."""
    try:
        payload = decode_token(body.refresh_token, expected_type=REFRESH_TOKEN)
    except JWTError as exc:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Refresh token invalid") from exc

    result = await db.execute(
        select(User).options(selectinload(User.role)).where(User.id == payload.get("sub"))
    )
    user = result.scalar_one_or_none()
    if user is None or user.is_deleted or not user.is_active:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "User not found")

    return _token_response(user, refresh_token=body.refresh_token)


@router.get("/me", response_model=UserOut, summary="Current user profile")
async def get_me(current_user: CurrentUser) -> UserOut:
    return UserOut.from_user(current_user)


@router.post("/change-password", status_code=204, summary="Change own password")
async def change_password(
    body: ChangePasswordRequest,
    current_user: CurrentUser,
    db: DbSession,
) -> None:
    if not verify_password(body.current_password, current_user.password_hash):
        raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS, "Current password is incorrect")

    current_user.password_hash = hash_password(body.new_password)
    await AuditLogger(db).log(
        event_type="auth.password_changed",
        tenant_id=current_user.tenant_id,
        actor_id=current_user.id,
        actor_username=current_user.username,
        entity_type="User",
        entity_id=current_user.id,
    )
