"""
Directory lookups consumed by the RAMS services.

The services depend only on the protocols below. `SqlDirectory`
implements all three against the local users/employees/sites tables;
deployments that own those records elsewhere can supply their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ramsflow.db.models.directory import Employee, Site
from ramsflow.db.models.user import User


@dataclass(frozen=True, slots=True)
class Contact:
    name: str
    email: str | None


class UserDirectory(Protocol):
    async def get_user(self, user_id: str) -> Contact | None: ...


class EmployeeDirectory(Protocol):
    async def get_employee(self, employee_id: str) -> Contact | None: ...


class SiteDirectory(Protocol):
    async def get_site_name(self, site_id: str) -> str | None: ...


class SqlDirectory:
    """Directory backed by this service's own tables, scoped to one tenant."""

    def __init__(self, db: AsyncSession, tenant_id: str) -> None:
        self._db = db
        self._tenant_id = tenant_id

    async def get_user(self, user_id: str) -> Contact | None:
        result = await self._db.execute(
            select(User).where(User.id == user_id, User.tenant_id == self._tenant_id)
        )
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return Contact(name=user.display_name, email=user.email)

    async def get_employee(self, employee_id: str) -> Contact | None:
        result = await self._db.execute(
            select(Employee).where(
                Employee.id == employee_id,
                Employee.tenant_id == self._tenant_id,
                Employee.deleted_at.is_(None),
            )
        )
        employee = result.scalar_one_or_none()
        if employee is None:
            return None
        return Contact(name=employee.full_name, email=employee.email)

    async def get_site_name(self, site_id: str) -> str | None:
        result = await self._db.execute(
            select(Site.site_name).where(Site.id == site_id, Site.tenant_id == self._tenant_id)
        )
        return result.scalar_one_or_none()
