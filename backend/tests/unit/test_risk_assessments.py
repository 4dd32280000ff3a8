"""Unit tests for RiskAssessmentService."""

import pytest

from ramsflow.core.errors import ErrorCode, InvalidOperationError, NotFoundError
from ramsflow.db.models.rams import MethodStep, RamsStatus, RiskLevel
from ramsflow.schemas.rams import RiskAssessmentCreate, RiskAssessmentUpdate
from ramsflow.services.rams.risk_assessments import RiskAssessmentService

pytestmark = pytest.mark.asyncio


def _payload(task: str = "Excavation", **overrides) -> RiskAssessmentCreate:
    fields = {
        "task_activity": task,
        "hazard_identified": "Collapse of trench sides",
        "initial_likelihood": 4,
        "initial_severity": 5,
        "residual_likelihood": 2,
        "residual_severity": 2,
    }
    fields.update(overrides)
    return RiskAssessmentCreate(**fields)


def _orders(risks) -> list[tuple[str, int]]:
    return [(r.task_activity, r.sort_order) for r in risks]


async def test_create_appends_after_last(db_session, ctx, document_factory):
    document = await document_factory("RAMS-R", risks=2)
    risk = await RiskAssessmentService(db_session, ctx).create(document.id, _payload())
    assert risk.sort_order == 3
    assert risk.initial_risk_rating == 20
    assert risk.initial_risk_level == RiskLevel.HIGH
    assert risk.residual_risk_level == RiskLevel.LOW
    assert risk.is_ai_generated is False
    assert risk.ai_generated_at is None


async def test_create_ai_generated_is_stamped(db_session, ctx, draft_document):
    risk = await RiskAssessmentService(db_session, ctx).create(
        draft_document.id, _payload(is_ai_generated=True)
    )
    assert risk.is_ai_generated is True
    assert risk.ai_generated_at is not None


async def test_create_on_pending_document_is_refused(db_session, ctx, document_factory):
    document = await document_factory("RAMS-P", status=RamsStatus.PENDING_REVIEW)
    with pytest.raises(InvalidOperationError) as exc_info:
        await RiskAssessmentService(db_session, ctx).create(document.id, _payload())
    assert exc_info.value.code == ErrorCode.RAMS_INVALID_STATUS


async def test_create_on_rejected_document_is_allowed(db_session, ctx, document_factory):
    document = await document_factory("RAMS-R", status=RamsStatus.REJECTED)
    risk = await RiskAssessmentService(db_session, ctx).create(document.id, _payload())
    assert risk.sort_order == 1


async def test_insert_at_shifts_later_rows(db_session, ctx, document_factory):
    document = await document_factory("RAMS-R", risks=3)
    service = RiskAssessmentService(db_session, ctx)
    await service.insert_at(document.id, 2, _payload("Inserted"))

    risks = await service.list_all(document.id)
    assert _orders(risks) == [("Task 1", 1), ("Inserted", 2), ("Task 2", 3), ("Task 3", 4)]


async def test_insert_at_invalid_position(db_session, ctx, draft_document):
    with pytest.raises(InvalidOperationError) as exc_info:
        await RiskAssessmentService(db_session, ctx).insert_at(draft_document.id, 0, _payload())
    assert exc_info.value.code == ErrorCode.RAMS_INVALID_POSITION


async def test_update_clears_ai_flag(db_session, ctx, draft_document):
    service = RiskAssessmentService(db_session, ctx)
    risk = await service.create(draft_document.id, _payload(is_ai_generated=True))
    updated = await service.update(
        draft_document.id,
        risk.id,
        RiskAssessmentUpdate(task_activity="Excavation", hazard_identified="Buried services"),
    )
    assert updated.hazard_identified == "Buried services"
    assert updated.is_ai_generated is False
    assert updated.sort_order == 1


async def test_delete_unlinks_method_steps(db_session, ctx, document_factory):
    document = await document_factory("RAMS-R", risks=1)
    service = RiskAssessmentService(db_session, ctx)
    [risk] = await service.list_all(document.id)
    step = MethodStep(
        tenant_id=ctx.tenant_id,
        rams_document_id=document.id,
        step_number=1,
        step_title="Dig",
        linked_risk_assessment_id=risk.id,
    )
    db_session.add(step)
    await db_session.flush()

    await service.delete(document.id, risk.id)

    await db_session.refresh(step)
    assert step.linked_risk_assessment_id is None
    assert await service.list_all(document.id) == []


async def test_get_from_other_document_is_not_found(db_session, ctx, document_factory):
    first = await document_factory("RAMS-1", risks=1)
    second = await document_factory("RAMS-2")
    [risk] = await RiskAssessmentService(db_session, ctx).list_all(first.id)
    with pytest.raises(NotFoundError):
        await RiskAssessmentService(db_session, ctx).get(second.id, risk.id)


async def test_reorder(db_session, ctx, document_factory):
    document = await document_factory("RAMS-R", risks=3)
    service = RiskAssessmentService(db_session, ctx)
    risks = await service.list_all(document.id)

    reordered = await service.reorder(document.id, [risks[2].id, risks[0].id])
    assert _orders(reordered) == [("Task 3", 1), ("Task 1", 2), ("Task 2", 3)]


async def test_reorder_rejects_foreign_ids(db_session, ctx, document_factory):
    document = await document_factory("RAMS-R", risks=2)
    other = await document_factory("RAMS-O", risks=1)
    service = RiskAssessmentService(db_session, ctx)
    [foreign] = await service.list_all(other.id)

    with pytest.raises(InvalidOperationError) as exc_info:
        await service.reorder(document.id, [foreign.id])
    assert exc_info.value.code == ErrorCode.RAMS_INVALID_ORDER


async def test_list_in_other_tenant_is_not_found(db_session, other_tenant_ctx, complete_document):
    with pytest.raises(NotFoundError):
        await RiskAssessmentService(db_session, other_tenant_ctx).list_all(complete_document.id)
