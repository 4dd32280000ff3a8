"""RiskAssessmentService: risk assessment lines of a RAMS document."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from ramsflow.core.context import RequestContext
from ramsflow.core.errors import NotFoundError
from ramsflow.db.models.rams import MethodStep, RiskAssessment
from ramsflow.schemas.rams import RiskAssessmentCreate, RiskAssessmentUpdate
from ramsflow.services.audit.logger import AuditLogger
from ramsflow.services.rams import ordering
from ramsflow.services.rams.documents import load_document, load_editable_document

_log = structlog.get_logger(__name__)


class RiskAssessmentService:
    def __init__(self, db: AsyncSession, ctx: RequestContext) -> None:
        self._db = db
        self._ctx = ctx
        self._audit = AuditLogger(db)

    async def list_all(self, document_id: str) -> Sequence[RiskAssessment]:
        await load_document(self._db, self._ctx, document_id)
        return await self._siblings(document_id)

    async def get(self, document_id: str, risk_assessment_id: str) -> RiskAssessment:
        await load_document(self._db, self._ctx, document_id)
        return await self._load(document_id, risk_assessment_id)

    async def create(self, document_id: str, data: RiskAssessmentCreate) -> RiskAssessment:
        await load_editable_document(self._db, self._ctx, document_id)
        sort_order = data.sort_order
        if sort_order is None:
            sort_order = ordering.next_position(await self._siblings(document_id), "sort_order")

        fields = data.model_dump(exclude={"sort_order", "is_ai_generated"})
        risk = RiskAssessment(
            **fields,
            rams_document_id=document_id,
            tenant_id=self._ctx.tenant_id,
            sort_order=sort_order,
            is_ai_generated=data.is_ai_generated,
            ai_generated_at=datetime.now(UTC) if data.is_ai_generated else None,
        )
        self._db.add(risk)
        await self._db.flush()

        await self._audit.record(
            self._ctx, "rams.risk_assessment.created", "RiskAssessment", risk.id,
            {"rams_document_id": document_id},
        )
        return risk

    async def insert_at(
        self, document_id: str, position: int, data: RiskAssessmentCreate
    ) -> RiskAssessment:
        await load_editable_document(self._db, self._ctx, document_id)
        ordering.validate_position(position)

        siblings = await self._siblings(document_id)
        ordering.shift_from(siblings, "sort_order", position)
        return await self.create(document_id, data.model_copy(update={"sort_order": position}))

    async def update(
        self, document_id: str, risk_assessment_id: str, data: RiskAssessmentUpdate
    ) -> RiskAssessment:
        await load_editable_document(self._db, self._ctx, document_id)
        risk = await self._load(document_id, risk_assessment_id)

        for field, value in data.model_dump(exclude={"sort_order"}).items():
            setattr(risk, field, value)
        if data.sort_order is not None:
            risk.sort_order = data.sort_order
        # A manual edit means the content is no longer the AI's
        risk.is_ai_generated = False
        await self._db.flush()

        await self._audit.record(
            self._ctx, "rams.risk_assessment.updated", "RiskAssessment", risk.id
        )
        return risk

    async def delete(self, document_id: str, risk_assessment_id: str) -> None:
        await load_editable_document(self._db, self._ctx, document_id)
        risk = await self._load(document_id, risk_assessment_id)

        await self._db.execute(
            sa_update(MethodStep)
            .where(MethodStep.linked_risk_assessment_id == risk.id)
            .values(linked_risk_assessment_id=None)
        )
        await self._db.delete(risk)
        await self._db.flush()

        await self._audit.record(
            self._ctx, "rams.risk_assessment.deleted", "RiskAssessment", risk_assessment_id,
            {"rams_document_id": document_id},
        )

    async def reorder(self, document_id: str, ordered_ids: Sequence[str]) -> Sequence[RiskAssessment]:
        await load_editable_document(self._db, self._ctx, document_id)
        siblings = await self._siblings(document_id)
        ordering.apply_order(siblings, "sort_order", ordered_ids, "risk assessment")
        await self._db.flush()
        _log.info("risk_assessments_reordered", rams_document_id=document_id, count=len(siblings))
        return sorted(siblings, key=lambda r: r.sort_order)

    async def _siblings(self, document_id: str) -> Sequence[RiskAssessment]:
        result = await self._db.execute(
            select(RiskAssessment)
            .where(RiskAssessment.rams_document_id == document_id)
            .order_by(RiskAssessment.sort_order, RiskAssessment.created_at)
        )
        return list(result.scalars().all())

    async def _load(self, document_id: str, risk_assessment_id: str) -> RiskAssessment:
        result = await self._db.execute(
            select(RiskAssessment).where(
                RiskAssessment.id == risk_assessment_id,
                RiskAssessment.rams_document_id == document_id,
            )
        )
        risk = result.scalar_one_or_none()
        if risk is None:
            raise NotFoundError("Risk assessment", risk_assessment_id)
        return risk
