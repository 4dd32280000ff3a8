"""Auth schemas: login, token response, user representations."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from ramsflow.db.models.user import RoleEnum


def _check_complexity(v: str) -> str:
    if not any(c.isupper() for c in v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=1, max_length=256)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class RefreshRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=12, max_length=256)

    @field_validator("new_password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_complexity(v)


class UserOut(BaseModel):
    id: str
    username: str
    full_name: str | None
    email: str | None
    role: str
    tenant_id: str
    is_active: bool

    @classmethod
    def from_user(cls, user) -> UserOut:
        """`user.role` must already be loaded."""
        return cls(
            id=user.id,
            username=user.username,
            full_name=user.full_name,
            email=user.email,
            role=user.role.name,
            tenant_id=user.tenant_id,
            is_active=user.is_active,
        )


class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100, pattern=r"^[a-zA-Z0-9_\-]+$")
    full_name: str | None = Field(default=None, max_length=200)
    email: str | None = Field(default=None, max_length=255)
    password: str = Field(..., min_length=12, max_length=256)
    role: RoleEnum = Field(..., description="Role name: admin | editor | reviewer | viewer")

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_complexity(v)
