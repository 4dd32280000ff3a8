"""Risk assessment lines of a RAMS document."""

from __future__ import annotations

from fastapi import APIRouter, Query

from ramsflow.api.deps import Ctx, DbSession, EditorUser
from ramsflow.schemas.rams import (
    ReorderRequest,
    RiskAssessmentCreate,
    RiskAssessmentOut,
    RiskAssessmentUpdate,
)
from ramsflow.services.rams.risk_assessments import RiskAssessmentService

router = APIRouter(prefix="/rams/{document_id}/risk-assessments", tags=["rams"])


@router.get("", response_model=list[RiskAssessmentOut], summary="List risk assessments in order")
async def list_risk_assessments(document_id: str, db: DbSession, ctx: Ctx) -> list[RiskAssessmentOut]:
    risks = await RiskAssessmentService(db, ctx).list_all(document_id)
    return [RiskAssessmentOut.model_validate(r) for r in risks]


@router.get("/{risk_assessment_id}", response_model=RiskAssessmentOut, summary="Get a risk assessment")
async def get_risk_assessment(
    document_id: str, risk_assessment_id: str, db: DbSession, ctx: Ctx
) -> RiskAssessmentOut:
    risk = await RiskAssessmentService(db, ctx).get(document_id, risk_assessment_id)
    return RiskAssessmentOut.model_validate(risk)


@router.post(
    "",
    response_model=RiskAssessmentOut,
    status_code=201,
    summary="Add a risk assessment (appended unless sort_order is given)",
    dependencies=[EditorUser],
)
async def create_risk_assessment(
    document_id: str, body: RiskAssessmentCreate, db: DbSession, ctx: Ctx
) -> RiskAssessmentOut:
    risk = await RiskAssessmentService(db, ctx).create(document_id, body)
    return RiskAssessmentOut.model_validate(risk)


@router.post(
    "/insert-at",
    response_model=RiskAssessmentOut,
    status_code=201,
    summary="Insert a risk assessment at a 1-based position",
    dependencies=[EditorUser],
)
async def insert_risk_assessment(
    document_id: str,
    body: RiskAssessmentCreate,
    db: DbSession,
    ctx: Ctx,
    position: int = Query(...),
) -> RiskAssessmentOut:
    risk = await RiskAssessmentService(db, ctx).insert_at(document_id, position, body)
    return RiskAssessmentOut.model_validate(risk)


@router.post(
    "/reorder",
    response_model=list[RiskAssessmentOut],
    summary="Renumber risk assessments in the given order",
    dependencies=[EditorUser],
)
async def reorder_risk_assessments(
    document_id: str, body: ReorderRequest, db: DbSession, ctx: Ctx
) -> list[RiskAssessmentOut]:
    risks = await RiskAssessmentService(db, ctx).reorder(document_id, body.ordered_ids)
    return [RiskAssessmentOut.model_validate(r) for r in risks]


@router.put(
    "/{risk_assessment_id}",
    response_model=RiskAssessmentOut,
    summary="Update a risk assessment",
    dependencies=[EditorUser],
)
async def update_risk_assessment(
    document_id: str,
    risk_assessment_id: str,
    body: RiskAssessmentUpdate,
    db: DbSession,
    ctx: Ctx,
) -> RiskAssessmentOut:
    risk = await RiskAssessmentService(db, ctx).update(document_id, risk_assessment_id, body)
    return RiskAssessmentOut.model_validate(risk)


@router.delete(
    "/{risk_assessment_id}",
    status_code=204,
    summary="Delete a risk assessment and unlink its method steps",
    dependencies=[EditorUser],
)
async def delete_risk_assessment(
    document_id: str, risk_assessment_id: str, db: DbSession, ctx: Ctx
) -> None:
    await RiskAssessmentService(db, ctx).delete(document_id, risk_assessment_id)
