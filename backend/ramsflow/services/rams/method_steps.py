"""
MethodStepService: numbered work-procedure steps of a RAMS document.

Step numbers stay contiguous: deleting a step compacts the remainder to
1..N, inserting at a position shifts later steps down.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ramsflow.core.context import RequestContext
from ramsflow.core.errors import ErrorCode, InvalidOperationError, NotFoundError
from ramsflow.db.models.rams import MethodStep, RiskAssessment
from ramsflow.schemas.rams import MethodStepCreate, MethodStepOut, MethodStepUpdate
from ramsflow.services.audit.logger import AuditLogger
from ramsflow.services.rams import ordering
from ramsflow.services.rams.documents import load_document, load_editable_document

_log = structlog.get_logger(__name__)


def to_out(step: MethodStep) -> MethodStepOut:
    """Serialise a step; `linked_risk_assessment` must already be loaded."""
    out = MethodStepOut.model_validate(step)
    linked = step.linked_risk_assessment
    if linked is not None:
        out.linked_risk_assessment_summary = f"{linked.task_activity} - {linked.hazard_identified}"
    return out


class MethodStepService:
    def __init__(self, db: AsyncSession, ctx: RequestContext) -> None:
        self._db = db
        self._ctx = ctx
        self._audit = AuditLogger(db)

    async def list_all(self, document_id: str) -> Sequence[MethodStep]:
        await load_document(self._db, self._ctx, document_id)
        return await self._siblings(document_id)

    async def get(self, document_id: str, step_id: str) -> MethodStep:
        await load_document(self._db, self._ctx, document_id)
        return await self._load(document_id, step_id)

    async def create(self, document_id: str, data: MethodStepCreate) -> MethodStep:
        await load_editable_document(self._db, self._ctx, document_id)
        await self._validate_link(document_id, data.linked_risk_assessment_id)
        step_number = data.step_number
        if step_number is None:
            step_number = ordering.next_position(await self._siblings(document_id), "step_number")

        step = MethodStep(
            **data.model_dump(exclude={"step_number"}),
            rams_document_id=document_id,
            tenant_id=self._ctx.tenant_id,
            step_number=step_number,
        )
        self._db.add(step)
        await self._db.flush()

        await self._audit.record(
            self._ctx, "rams.method_step.created", "MethodStep", step.id,
            {"rams_document_id": document_id, "step_number": step.step_number},
        )
        return await self._load(document_id, step.id)

    async def insert_at(self, document_id: str, position: int, data: MethodStepCreate) -> MethodStep:
        await load_editable_document(self._db, self._ctx, document_id)
        ordering.validate_position(position)
        await self._validate_link(document_id, data.linked_risk_assessment_id)

        siblings = await self._siblings(document_id)
        ordering.shift_from(siblings, "step_number", position)
        return await self.create(document_id, data.model_copy(update={"step_number": position}))

    async def update(self, document_id: str, step_id: str, data: MethodStepUpdate) -> MethodStep:
        await load_editable_document(self._db, self._ctx, document_id)
        step = await self._load(document_id, step_id)
        await self._validate_link(document_id, data.linked_risk_assessment_id)

        for field, value in data.model_dump(exclude={"step_number"}).items():
            setattr(step, field, value)
        if data.step_number is not None:
            step.step_number = data.step_number
        await self._db.flush()

        await self._audit.record(self._ctx, "rams.method_step.updated", "MethodStep", step.id)
        return await self._load(document_id, step.id)

    async def delete(self, document_id: str, step_id: str) -> None:
        await load_editable_document(self._db, self._ctx, document_id)
        step = await self._load(document_id, step_id)

        await self._db.delete(step)
        await self._db.flush()
        await self._renumber(document_id)

        await self._audit.record(
            self._ctx, "rams.method_step.deleted", "MethodStep", step_id,
            {"rams_document_id": document_id},
        )

    async def reorder(self, document_id: str, ordered_ids: Sequence[str]) -> Sequence[MethodStep]:
        await load_editable_document(self._db, self._ctx, document_id)
        siblings = await self._siblings(document_id)
        ordering.apply_order(siblings, "step_number", ordered_ids, "method step")
        await self._db.flush()
        _log.info("method_steps_reordered", rams_document_id=document_id, count=len(siblings))
        return sorted(siblings, key=lambda s: s.step_number)

    async def _renumber(self, document_id: str) -> None:
        siblings = await self._siblings(document_id)
        ordering.renumber(siblings, "step_number")
        await self._db.flush()

    async def _validate_link(self, document_id: str, risk_assessment_id: str | None) -> None:
        if risk_assessment_id is None:
            return
        found = await self._db.scalar(
            select(RiskAssessment.id).where(
                RiskAssessment.id == risk_assessment_id,
                RiskAssessment.rams_document_id == document_id,
            )
        )
        if found is None:
            raise InvalidOperationError(
                "Invalid linked risk assessment",
                code=ErrorCode.RAMS_INVALID_LINK,
                detail={"linked_risk_assessment_id": risk_assessment_id},
            )

    async def _siblings(self, document_id: str) -> Sequence[MethodStep]:
        result = await self._db.execute(
            select(MethodStep)
            .options(selectinload(MethodStep.linked_risk_assessment))
            .where(MethodStep.rams_document_id == document_id)
            .order_by(MethodStep.step_number, MethodStep.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _load(self, document_id: str, step_id: str) -> MethodStep:
        query = (
            select(MethodStep)
            .options(selectinload(MethodStep.linked_risk_assessment))
            .where(MethodStep.id == step_id, MethodStep.rams_document_id == document_id)
            .execution_options(populate_existing=True)
        )
        step = (await self._db.execute(query)).scalar_one_or_none()
        if step is None:
            raise NotFoundError("Method step", step_id)
        return step
