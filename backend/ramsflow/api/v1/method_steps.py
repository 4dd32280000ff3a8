"""Numbered work-procedure steps of a RAMS document."""

from __future__ import annotations

from fastapi import APIRouter, Query

from ramsflow.api.deps import Ctx, DbSession, EditorUser
from ramsflow.schemas.rams import MethodStepCreate, MethodStepOut, MethodStepUpdate, ReorderRequest
from ramsflow.services.rams.method_steps import MethodStepService, to_out

router = APIRouter(prefix="/rams/{document_id}/method-steps", tags=["rams"])


@router.get("", response_model=list[MethodStepOut], summary="List method steps by number")
async def list_method_steps(document_id: str, db: DbSession, ctx: Ctx) -> list[MethodStepOut]:
    return [to_out(s) for s in await MethodStepService(db, ctx).list_all(document_id)]


@router.get("/{step_id}", response_model=MethodStepOut, summary="Get a method step")
async def get_method_step(document_id: str, step_id: str, db: DbSession, ctx: Ctx) -> MethodStepOut:
    return to_out(await MethodStepService(db, ctx).get(document_id, step_id))


@router.post(
    "",
    response_model=MethodStepOut,
    status_code=201,
    summary="Add a method step (appended unless step_number is given)",
    dependencies=[EditorUser],
)
async def create_method_step(
    document_id: str, body: MethodStepCreate, db: DbSession, ctx: Ctx
) -> MethodStepOut:
    return to_out(await MethodStepService(db, ctx).create(document_id, body))


@router.post(
    "/insert-at",
    response_model=MethodStepOut,
    status_code=201,
    summary="Insert a step at a 1-based position, shifting later steps down",
    dependencies=[EditorUser],
)
async def insert_method_step(
    document_id: str,
    body: MethodStepCreate,
    db: DbSession,
    ctx: Ctx,
    position: int = Query(...),
) -> MethodStepOut:
    return to_out(await MethodStepService(db, ctx).insert_at(document_id, position, body))


@router.post(
    "/reorder",
    response_model=list[MethodStepOut],
    summary="Renumber steps 1..N in the given order",
    dependencies=[EditorUser],
)
async def reorder_method_steps(
    document_id: str, body: ReorderRequest, db: DbSession, ctx: Ctx
) -> list[MethodStepOut]:
    steps = await MethodStepService(db, ctx).reorder(document_id, body.ordered_ids)
    return [to_out(s) for s in steps]


@router.put(
    "/{step_id}",
    response_model=MethodStepOut,
    summary="Update a method step",
    dependencies=[EditorUser],
)
async def update_method_step(
    document_id: str, step_id: str, body: MethodStepUpdate, db: DbSession, ctx: Ctx
) -> MethodStepOut:
    return to_out(await MethodStepService(db, ctx).update(document_id, step_id, body))


@router.delete(
    "/{step_id}",
    status_code=204,
    summary="Delete a step and close the numbering gap",
    dependencies=[EditorUser],
)
async def delete_method_step(document_id: str, step_id: str, db: DbSession, ctx: Ctx) -> None:
    await MethodStepService(db, ctx).delete(document_id, step_id)
