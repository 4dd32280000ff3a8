"""RAMS reference library endpoints: hazards, controls, legislation and SOPs."""

from __future__ import annotations

from enum import StrEnum

from fastapi import APIRouter, Query
from pydantic import BaseModel

from ramsflow.api.deps import AdminUser, Ctx, DbSession, EditorUser
from ramsflow.db.models.library import ControlHierarchy, HazardCategory
from ramsflow.schemas.library import (
    ControlMeasureCreate,
    ControlMeasureOut,
    ControlMeasureUpdate,
    HazardCreate,
    HazardOut,
    HazardUpdate,
    LegislationCreate,
    LegislationOut,
    LegislationUpdate,
    SopCreate,
    SopOut,
    SopUpdate,
)
from ramsflow.services.library.seed import seed_defaults
from ramsflow.services.library.service import RamsLibraryService

router = APIRouter(prefix="/rams/library", tags=["rams-library"])


class LibraryName(StrEnum):
    HAZARDS = "hazards"
    CONTROLS = "controls"
    LEGISLATION = "legislation"
    SOPS = "sops"


class CodeExistsResult(BaseModel):
    exists: bool


class SeedResult(BaseModel):
    created: int


@router.get(
    "/{library}/code-exists",
    response_model=CodeExistsResult,
    summary="Check whether a code (or SOP ID) is already used in a library",
)
async def code_exists(
    library: LibraryName,
    db: DbSession,
    ctx: Ctx,
    code: str = Query(..., min_length=1),
    exclude_id: str | None = Query(default=None),
) -> CodeExistsResult:
    entries = getattr(RamsLibraryService(db, ctx), library.value)
    return CodeExistsResult(exists=await entries.code_exists(code, exclude_id))


@router.post(
    "/seed",
    response_model=SeedResult,
    summary="Load the default construction library into empty libraries",
    dependencies=[AdminUser],
)
async def seed_library(db: DbSession, ctx: Ctx) -> SeedResult:
    return SeedResult(created=await seed_defaults(db, ctx.tenant_id))


# ── Hazards ───────────────────────────────────────────────────────────── #


@router.get("/hazards", response_model=list[HazardOut], summary="List hazards")
async def list_hazards(
    db: DbSession,
    ctx: Ctx,
    category: HazardCategory | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    include_inactive: bool = Query(default=False),
) -> list[HazardOut]:
    hazards = await RamsLibraryService(db, ctx).list_hazards(category, search, include_inactive)
    return [HazardOut.model_validate(h) for h in hazards]


@router.get("/hazards/{hazard_id}", response_model=HazardOut, summary="Get a hazard")
async def get_hazard(hazard_id: str, db: DbSession, ctx: Ctx) -> HazardOut:
    return HazardOut.model_validate(await RamsLibraryService(db, ctx).hazards.get(hazard_id))


@router.post(
    "/hazards", response_model=HazardOut, status_code=201, summary="Create a hazard",
    dependencies=[EditorUser],
)
async def create_hazard(body: HazardCreate, db: DbSession, ctx: Ctx) -> HazardOut:
    return HazardOut.model_validate(await RamsLibraryService(db, ctx).create_hazard(body))


@router.put(
    "/hazards/{hazard_id}", response_model=HazardOut, summary="Update a hazard",
    dependencies=[EditorUser],
)
async def update_hazard(hazard_id: str, body: HazardUpdate, db: DbSession, ctx: Ctx) -> HazardOut:
    return HazardOut.model_validate(await RamsLibraryService(db, ctx).update_hazard(hazard_id, body))


@router.delete(
    "/hazards/{hazard_id}", status_code=204, summary="Delete a hazard", dependencies=[EditorUser]
)
async def delete_hazard(hazard_id: str, db: DbSession, ctx: Ctx) -> None:
    await RamsLibraryService(db, ctx).hazards.delete(hazard_id)


# ── Control measures ──────────────────────────────────────────────────── #


@router.get("/controls", response_model=list[ControlMeasureOut], summary="List control measures")
async def list_controls(
    db: DbSession,
    ctx: Ctx,
    category: HazardCategory | None = Query(default=None),
    hierarchy: ControlHierarchy | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    include_inactive: bool = Query(default=False),
) -> list[ControlMeasureOut]:
    controls = await RamsLibraryService(db, ctx).list_controls(
        category, hierarchy, search, include_inactive
    )
    return [ControlMeasureOut.model_validate(c) for c in controls]


@router.get("/controls/{control_id}", response_model=ControlMeasureOut, summary="Get a control measure")
async def get_control(control_id: str, db: DbSession, ctx: Ctx) -> ControlMeasureOut:
    return ControlMeasureOut.model_validate(await RamsLibraryService(db, ctx).controls.get(control_id))


@router.post(
    "/controls", response_model=ControlMeasureOut, status_code=201,
    summary="Create a control measure", dependencies=[EditorUser],
)
async def create_control(body: ControlMeasureCreate, db: DbSession, ctx: Ctx) -> ControlMeasureOut:
    return ControlMeasureOut.model_validate(await RamsLibraryService(db, ctx).create_control(body))


@router.put(
    "/controls/{control_id}", response_model=ControlMeasureOut,
    summary="Update a control measure", dependencies=[EditorUser],
)
async def update_control(
    control_id: str, body: ControlMeasureUpdate, db: DbSession, ctx: Ctx
) -> ControlMeasureOut:
    control = await RamsLibraryService(db, ctx).update_control(control_id, body)
    return ControlMeasureOut.model_validate(control)


@router.delete(
    "/controls/{control_id}", status_code=204, summary="Delete a control measure",
    dependencies=[EditorUser],
)
async def delete_control(control_id: str, db: DbSession, ctx: Ctx) -> None:
    await RamsLibraryService(db, ctx).controls.delete(control_id)


# ── Legislation ───────────────────────────────────────────────────────── #


@router.get("/legislation", response_model=list[LegislationOut], summary="List legislation")
async def list_legislation(
    db: DbSession,
    ctx: Ctx,
    jurisdiction: str | None = Query(default=None, max_length=50),
    search: str | None = Query(default=None, max_length=200),
    include_inactive: bool = Query(default=False),
) -> list[LegislationOut]:
    entries = await RamsLibraryService(db, ctx).list_legislation(jurisdiction, search, include_inactive)
    return [LegislationOut.model_validate(e) for e in entries]


@router.get(
    "/legislation/{legislation_id}", response_model=LegislationOut, summary="Get a legislation entry"
)
async def get_legislation(legislation_id: str, db: DbSession, ctx: Ctx) -> LegislationOut:
    entry = await RamsLibraryService(db, ctx).legislation.get(legislation_id)
    return LegislationOut.model_validate(entry)


@router.post(
    "/legislation", response_model=LegislationOut, status_code=201,
    summary="Create a legislation entry", dependencies=[EditorUser],
)
async def create_legislation(body: LegislationCreate, db: DbSession, ctx: Ctx) -> LegislationOut:
    return LegislationOut.model_validate(await RamsLibraryService(db, ctx).create_legislation(body))


@router.put(
    "/legislation/{legislation_id}", response_model=LegislationOut,
    summary="Update a legislation entry", dependencies=[EditorUser],
)
async def update_legislation(
    legislation_id: str, body: LegislationUpdate, db: DbSession, ctx: Ctx
) -> LegislationOut:
    entry = await RamsLibraryService(db, ctx).update_legislation(legislation_id, body)
    return LegislationOut.model_validate(entry)


@router.delete(
    "/legislation/{legislation_id}", status_code=204, summary="Delete a legislation entry",
    dependencies=[EditorUser],
)
async def delete_legislation(legislation_id: str, db: DbSession, ctx: Ctx) -> None:
    await RamsLibraryService(db, ctx).legislation.delete(legislation_id)


# ── SOPs ──────────────────────────────────────────────────────────────── #


@router.get("/sops", response_model=list[SopOut], summary="List SOPs")
async def list_sops(
    db: DbSession,
    ctx: Ctx,
    search: str | None = Query(default=None, max_length=200),
    include_inactive: bool = Query(default=False),
) -> list[SopOut]:
    sops = await RamsLibraryService(db, ctx).list_sops(search, include_inactive)
    return [SopOut.model_validate(s) for s in sops]


@router.get("/sops/{sop_entry_id}", response_model=SopOut, summary="Get an SOP")
async def get_sop(sop_entry_id: str, db: DbSession, ctx: Ctx) -> SopOut:
    return SopOut.model_validate(await RamsLibraryService(db, ctx).sops.get(sop_entry_id))


@router.post(
    "/sops", response_model=SopOut, status_code=201, summary="Create an SOP",
    dependencies=[EditorUser],
)
async def create_sop(body: SopCreate, db: DbSession, ctx: Ctx) -> SopOut:
    return SopOut.model_validate(await RamsLibraryService(db, ctx).create_sop(body))


@router.put(
    "/sops/{sop_entry_id}", response_model=SopOut, summary="Update an SOP",
    dependencies=[EditorUser],
)
async def update_sop(sop_entry_id: str, body: SopUpdate, db: DbSession, ctx: Ctx) -> SopOut:
    return SopOut.model_validate(await RamsLibraryService(db, ctx).update_sop(sop_entry_id, body))


@router.delete(
    "/sops/{sop_entry_id}", status_code=204, summary="Delete an SOP", dependencies=[EditorUser]
)
async def delete_sop(sop_entry_id: str, db: DbSession, ctx: Ctx) -> None:
    await RamsLibraryService(db, ctx).sops.delete(sop_entry_id)
