"""
RamsLibraryService: CRUD over the four reference libraries.

Codes are unique per tenant, soft-deleted entries included, matching the
table constraint. Deletion is soft; an inactive entry stays listable but
is ignored by the suggestion search.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel
from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ramsflow.core.context import RequestContext
from ramsflow.core.errors import ErrorCode, InvalidOperationError, NotFoundError
from ramsflow.db.models.library import (
    ControlHierarchy,
    ControlMeasureLibrary,
    HazardCategory,
    HazardLibrary,
    LegislationReference,
    SopReference,
)
from ramsflow.schemas.library import (
    ControlMeasureCreate,
    ControlMeasureUpdate,
    HazardCreate,
    HazardUpdate,
    LegislationCreate,
    LegislationUpdate,
    SopCreate,
    SopUpdate,
)

_log = structlog.get_logger(__name__)

EntryT = TypeVar("EntryT", HazardLibrary, ControlMeasureLibrary, LegislationReference, SopReference)


class _Library(Generic[EntryT]):
    """Tenant-scoped CRUD for one library table."""

    def __init__(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        model: type[EntryT],
        label: str,
        code_field: str = "code",
    ) -> None:
        self._db = db
        self._ctx = ctx
        self._model = model
        self._label = label
        self._code_field = code_field

    def base_query(self, include_inactive: bool = True) -> Select[tuple[EntryT]]:
        query = select(self._model).where(
            self._model.tenant_id == self._ctx.tenant_id,
            self._model.deleted_at.is_(None),
        )
        if not include_inactive:
            query = query.where(self._model.is_active.is_(True))
        return query

    def with_search(self, query: Select[tuple[EntryT]], search: str | None, *columns: Any):
        if not search or not search.strip():
            return query
        pattern = f"%{search.strip().lower()}%"
        return query.where(or_(*(func.lower(column).like(pattern) for column in columns)))

    async def fetch(self, query: Select[tuple[EntryT]]) -> Sequence[EntryT]:
        return list((await self._db.execute(query)).scalars().all())

    async def get(self, entry_id: str) -> EntryT:
        result = await self._db.execute(self.base_query().where(self._model.id == entry_id))
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError(self._label, entry_id)
        return entry

    async def code_exists(self, code: str, exclude_id: str | None = None) -> bool:
        code_column = getattr(self._model, self._code_field)
        query = select(self._model).where(
            self._model.tenant_id == self._ctx.tenant_id, code_column == code
        )
        if exclude_id is not None:
            query = query.where(self._model.id != exclude_id)
        return (await self._db.execute(query.limit(1))).first() is not None

    async def create(self, data: BaseModel) -> EntryT:
        values = data.model_dump()
        await self._ensure_code_free(values[self._code_field])
        entry = self._model(**values, tenant_id=self._ctx.tenant_id)
        self._db.add(entry)
        await self._db.flush()
        _log.info("library_entry_created", library=self._label, code=values[self._code_field])
        return entry

    async def update(self, entry_id: str, data: BaseModel) -> EntryT:
        entry = await self.get(entry_id)
        values = data.model_dump()
        await self._ensure_code_free(values[self._code_field], exclude_id=entry.id)
        for field, value in values.items():
            setattr(entry, field, value)
        await self._db.flush()
        return entry

    async def delete(self, entry_id: str) -> None:
        entry = await self.get(entry_id)
        entry.soft_delete()
        await self._db.flush()
        _log.info("library_entry_deleted", library=self._label, entry_id=entry_id)

    async def _ensure_code_free(self, code: str, exclude_id: str | None = None) -> None:
        if await self.code_exists(code, exclude_id=exclude_id):
            noun = "SOP ID" if self._code_field == "sop_id" else f"{self._label} code"
            raise InvalidOperationError(
                f"{noun} already exists",
                code=ErrorCode.LIB_CODE_EXISTS,
                detail={self._code_field: code},
            )


class RamsLibraryService:
    def __init__(self, db: AsyncSession, ctx: RequestContext) -> None:
        self.hazards = _Library(db, ctx, HazardLibrary, "Hazard")
        self.controls = _Library(db, ctx, ControlMeasureLibrary, "Control measure")
        self.legislation = _Library(db, ctx, LegislationReference, "Legislation")
        self.sops = _Library(db, ctx, SopReference, "SOP", code_field="sop_id")

    # ── Hazards ───────────────────────────────────────────────────────── #

    async def list_hazards(
        self,
        category: HazardCategory | None = None,
        search: str | None = None,
        include_inactive: bool = False,
    ) -> Sequence[HazardLibrary]:
        query = self.hazards.base_query(include_inactive)
        if category is not None:
            query = query.where(HazardLibrary.category == category)
        query = self.hazards.with_search(
            query,
            search,
            HazardLibrary.name,
            HazardLibrary.code,
            HazardLibrary.keywords,
            HazardLibrary.description,
        )
        return await self.hazards.fetch(query.order_by(HazardLibrary.sort_order, HazardLibrary.name))

    async def create_hazard(self, data: HazardCreate) -> HazardLibrary:
        return await self.hazards.create(data)

    async def update_hazard(self, hazard_id: str, data: HazardUpdate) -> HazardLibrary:
        return await self.hazards.update(hazard_id, data)

    # ── Control measures ──────────────────────────────────────────────── #

    async def list_controls(
        self,
        category: HazardCategory | None = None,
        hierarchy: ControlHierarchy | None = None,
        search: str | None = None,
        include_inactive: bool = False,
    ) -> Sequence[ControlMeasureLibrary]:
        query = self.controls.base_query(include_inactive)
        if category is not None:
            query = query.where(
                or_(
                    ControlMeasureLibrary.applicable_to_category.is_(None),
                    ControlMeasureLibrary.applicable_to_category == category,
                )
            )
        if hierarchy is not None:
            query = query.where(ControlMeasureLibrary.hierarchy == int(hierarchy))
        query = self.controls.with_search(
            query,
            search,
            ControlMeasureLibrary.name,
            ControlMeasureLibrary.code,
            ControlMeasureLibrary.keywords,
            ControlMeasureLibrary.description,
        )
        return await self.controls.fetch(
            query.order_by(
                ControlMeasureLibrary.hierarchy,
                ControlMeasureLibrary.sort_order,
                ControlMeasureLibrary.name,
            )
        )

    async def create_control(self, data: ControlMeasureCreate) -> ControlMeasureLibrary:
        return await self.controls.create(data)

    async def update_control(self, control_id: str, data: ControlMeasureUpdate) -> ControlMeasureLibrary:
        return await self.controls.update(control_id, data)

    # ── Legislation ───────────────────────────────────────────────────── #

    async def list_legislation(
        self,
        jurisdiction: str | None = None,
        search: str | None = None,
        include_inactive: bool = False,
    ) -> Sequence[LegislationReference]:
        query = self.legislation.base_query(include_inactive)
        if jurisdiction:
            query = query.where(LegislationReference.jurisdiction == jurisdiction)
        query = self.legislation.with_search(
            query,
            search,
            LegislationReference.name,
            LegislationReference.code,
            LegislationReference.short_name,
            LegislationReference.keywords,
        )
        return await self.legislation.fetch(
            query.order_by(LegislationReference.sort_order, LegislationReference.name)
        )

    async def create_legislation(self, data: LegislationCreate) -> LegislationReference:
        return await self.legislation.create(data)

    async def update_legislation(
        self, legislation_id: str, data: LegislationUpdate
    ) -> LegislationReference:
        return await self.legislation.update(legislation_id, data)

    # ── SOPs ──────────────────────────────────────────────────────────── #

    async def list_sops(
        self, search: str | None = None, include_inactive: bool = False
    ) -> Sequence[SopReference]:
        query = self.sops.with_search(
            self.sops.base_query(include_inactive),
            search,
            SopReference.sop_id,
            SopReference.topic,
            SopReference.task_keywords,
        )
        return await self.sops.fetch(query.order_by(SopReference.sort_order, SopReference.topic))

    async def create_sop(self, data: SopCreate) -> SopReference:
        return await self.sops.create(data)

    async def update_sop(self, sop_entry_id: str, data: SopUpdate) -> SopReference:
        return await self.sops.update(sop_entry_id, data)
