"""Audit trail API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query
from sqlalchemy import func, select

from ramsflow.api.deps import AdminUser, Ctx, DbSession
from ramsflow.db.models.audit import AuditEvent
from ramsflow.schemas.audit import AuditEventOut, AuditListResponse, ChainVerificationResult
from ramsflow.services.audit.logger import AuditLogger

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get(
    "",
    response_model=AuditListResponse,
    summary="List audit events for the caller's tenant",
    dependencies=[AdminUser],
)
async def list_audit_events(
    db: DbSession,
    ctx: Ctx,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    event_type: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    actor_id: str | None = Query(default=None),
) -> AuditListResponse:
    query = select(AuditEvent).where(AuditEvent.tenant_id == ctx.tenant_id)
    if event_type:
        query = query.where(AuditEvent.event_type == event_type)
    if entity_type:
        query = query.where(AuditEvent.entity_type == entity_type)
    if entity_id:
        query = query.where(AuditEvent.entity_id == entity_id)
    if actor_id:
        query = query.where(AuditEvent.actor_id == actor_id)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(AuditEvent.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return AuditListResponse(
        items=[AuditEventOut.model_validate(e) for e in result.scalars().all()],
        total=total or 0,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/verify",
    response_model=ChainVerificationResult,
    summary="Verify audit hash chain integrity",
    dependencies=[AdminUser],
)
async def verify_chain(db: DbSession) -> ChainVerificationResult:
    """
    Verify the hash chain across all tenants.

    The chain is global, so a break anywhere is reported regardless of
    which tenant owns the event.
    """
    total = await db.scalar(select(func.count()).select_from(AuditEvent)) or 0
    is_valid, broken_at = await AuditLogger.verify_chain(db)

    return ChainVerificationResult(
        is_valid=is_valid,
        total_events=total,
        first_broken_at=broken_at,
        message="Chain is intact." if is_valid else f"Chain broken at event {broken_at}.",
    )
