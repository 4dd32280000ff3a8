"""Admin user management endpoints, scoped to the admin's tenant."""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ramsflow.api.deps import AdminUser, Ctx, DbSession
from ramsflow.core.errors import ConflictError, ErrorCode, NotFoundError, ValidationError
from ramsflow.core.security import hash_password
from ramsflow.db.models.user import Role, User
from ramsflow.schemas.auth import CreateUserRequest, UserOut
from ramsflow.services.audit.logger import AuditLogger

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/users",
    response_model=list[UserOut],
    summary="List users in the tenant",
    dependencies=[AdminUser],
)
async def list_users(db: DbSession, ctx: Ctx) -> list[UserOut]:
    result = await db.execute(
        select(User)
        .options(selectinload(User.role))
        .where(User.tenant_id == ctx.tenant_id, User.deleted_at.is_(None))
        .order_by(User.created_at)
    )
    return [UserOut.from_user(u) for u in result.scalars().all()]


@router.post(
    "/users",
    response_model=UserOut,
    status_code=201,
    summary="Create a user in the tenant",
    dependencies=[AdminUser],
)
async def create_user(body: CreateUserRequest, db: DbSession, ctx: Ctx) -> UserOut:
    # Usernames are global since login does not name a tenant
    existing = await db.execute(select(User.id).where(User.username == body.username))
    if existing.first() is not None:
        raise ConflictError(ErrorCode.VALIDATION_ERROR, f"Username '{body.username}' is taken.")

    role = (await db.execute(select(Role).where(Role.name == body.role.value))).scalar_one_or_none()
    if role is None:
        raise ValidationError(f"Role '{body.role.value}' is not provisioned.")

    user = User(
        username=body.username,
        full_name=body.full_name,
        email=body.email,
        password_hash=hash_password(body.password),
        role_id=role.id,
        tenant_id=ctx.tenant_id,
        is_active=True,
    )
    user.role = role
    db.add(user)
    await db.flush()

    await AuditLogger(db).record(
        ctx, "user.created", "User", user.id, {"username": user.username, "role": role.name}
    )
    return UserOut.from_user(user)


@router.delete(
    "/users/{user_id}",
    status_code=204,
    summary="Deactivate a user",
    dependencies=[AdminUser],
)
async def deactivate_user(user_id: str, db: DbSession, ctx: Ctx) -> None:
    user = (
        await db.execute(select(User).where(User.id == user_id, User.tenant_id == ctx.tenant_id))
    ).scalar_one_or_none()
    if user is None or user.is_deleted:
        raise NotFoundError("User", user_id)
    if user.id == ctx.user_id:
        raise ValidationError("You cannot deactivate your own account.")

    user.soft_delete()
    user.is_active = False
    await AuditLogger(db).record(ctx, "user.deactivated", "User", user.id)
