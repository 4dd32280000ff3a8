"""Unit tests for RamsDocumentService (CRUD, workflow, staged notifications)."""

import pytest
from sqlalchemy import select

from ramsflow.core.errors import ErrorCode, InvalidOperationError, NotFoundError
from ramsflow.db.models.audit import AuditEvent
from ramsflow.db.models.directory import Site
from ramsflow.db.models.notification import NotificationType
from ramsflow.db.models.rams import ProjectType, RamsDocument, RamsStatus
from ramsflow.schemas.rams import RamsDocumentCreate, RamsDocumentUpdate
from ramsflow.services.directory import SqlDirectory
from ramsflow.services.notifications.events import NotificationQueue
from ramsflow.services.rams.documents import RamsDocumentService

pytestmark = pytest.mark.asyncio


def _create_payload(**overrides) -> RamsDocumentCreate:
    fields = {
        "project_name": "Basement Waterproofing",
        "project_reference": "RAMS-100",
        "project_type": ProjectType.RASCOTANK_NEW_BUILD,
        "client_name": "Acme Homes",
    }
    fields.update(overrides)
    return RamsDocumentCreate(**fields)


# ─── Create / update / delete ─────────────────────────────────────────────────


async def test_create_starts_in_draft(db_session, ctx):
    document = await RamsDocumentService(db_session, ctx).create(_create_payload())
    assert document.status == RamsStatus.DRAFT
    assert document.tenant_id == ctx.tenant_id
    assert document.created_by == ctx.user_id

    events = (await db_session.execute(select(AuditEvent.event_type))).scalars().all()
    assert "rams.created" in events


async def test_create_duplicate_reference_conflicts(db_session, ctx, draft_document):
    with pytest.raises(InvalidOperationError) as exc_info:
        await RamsDocumentService(db_session, ctx).create(
            _create_payload(project_reference=draft_document.project_reference)
        )
    assert exc_info.value.code == ErrorCode.RAMS_REFERENCE_EXISTS
    assert exc_info.value.http_status == 409


async def test_reference_may_repeat_in_another_tenant(db_session, other_tenant_ctx, draft_document):
    document = await RamsDocumentService(db_session, other_tenant_ctx).create(
        _create_payload(project_reference=draft_document.project_reference)
    )
    assert document.tenant_id == other_tenant_ctx.tenant_id


async def test_reference_of_deleted_document_is_reusable(db_session, ctx, draft_document):
    service = RamsDocumentService(db_session, ctx)
    await service.delete(draft_document.id)
    document = await service.create(_create_payload(project_reference="RAMS-001"))
    assert document.id != draft_document.id


async def test_update_replaces_fields(db_session, ctx, draft_document):
    updated = await RamsDocumentService(db_session, ctx).update(
        draft_document.id,
        RamsDocumentUpdate(project_name="Renamed", project_reference="RAMS-001", site_address="1 Main St"),
    )
    assert updated.project_name == "Renamed"
    assert updated.site_address == "1 Main St"
    assert updated.proposed_end_date is None


async def test_update_pending_document_is_refused(db_session, document_factory, ctx):
    document = await document_factory("RAMS-P", status=RamsStatus.PENDING_REVIEW)
    with pytest.raises(InvalidOperationError) as exc_info:
        await RamsDocumentService(db_session, ctx).update(
            document.id, RamsDocumentUpdate(project_name="x", project_reference="RAMS-P")
        )
    assert exc_info.value.code == ErrorCode.RAMS_INVALID_STATUS


async def test_update_to_taken_reference_conflicts(db_session, ctx, document_factory):
    await document_factory("RAMS-A")
    second = await document_factory("RAMS-B")
    with pytest.raises(InvalidOperationError) as exc_info:
        await RamsDocumentService(db_session, ctx).update(
            second.id, RamsDocumentUpdate(project_name="B", project_reference="RAMS-A")
        )
    assert exc_info.value.code == ErrorCode.RAMS_REFERENCE_EXISTS


async def test_delete_is_soft(db_session, ctx, draft_document):
    service = RamsDocumentService(db_session, ctx)
    await service.delete(draft_document.id)

    row = await db_session.get(RamsDocument, draft_document.id)
    assert row.deleted_at is not None
    with pytest.raises(NotFoundError):
        await service.get(draft_document.id)


async def test_delete_rejected_document_is_refused(db_session, ctx, document_factory):
    document = await document_factory("RAMS-R", status=RamsStatus.REJECTED)
    with pytest.raises(InvalidOperationError, match="Draft status"):
        await RamsDocumentService(db_session, ctx).delete(document.id)


async def test_get_other_tenant_is_not_found(db_session, other_tenant_ctx, draft_document):
    with pytest.raises(NotFoundError):
        await RamsDocumentService(db_session, other_tenant_ctx).get(draft_document.id)


# ─── Queries ──────────────────────────────────────────────────────────────────


async def test_list_filters_and_paginates(db_session, ctx, document_factory):
    await document_factory("RAMS-1", project_name="Car park deck", project_type=ProjectType.CAR_PARK_COATING)
    await document_factory("RAMS-2", project_name="Gas membrane", status=RamsStatus.APPROVED)
    await document_factory("RAMS-3", project_name="Car park ramp", client_name="Acme")
    service = RamsDocumentService(db_session, ctx)

    page = await service.list_documents(search="car park", sort_by="projectReference", sort_descending=False)
    assert page.total == 2
    assert [i.project_reference for i in page.items] == ["RAMS-1", "RAMS-3"]

    approved = await service.list_documents(status=RamsStatus.APPROVED)
    assert [i.project_reference for i in approved.items] == ["RAMS-2"]

    typed = await service.list_documents(project_type=ProjectType.CAR_PARK_COATING)
    assert typed.total == 1

    second_page = await service.list_documents(sort_by="projectreference", sort_descending=False, page=2, page_size=2)
    assert second_page.total == 3
    assert [i.project_reference for i in second_page.items] == ["RAMS-3"]


async def test_list_excludes_deleted_and_other_tenants(db_session, ctx, other_tenant_ctx, document_factory):
    await document_factory("RAMS-1")
    await document_factory("RAMS-X", context=other_tenant_ctx)
    gone = await document_factory("RAMS-2")
    await RamsDocumentService(db_session, ctx).delete(gone.id)

    page = await RamsDocumentService(db_session, ctx).list_documents()
    assert [i.project_reference for i in page.items] == ["RAMS-1"]


async def test_detail_counts_children_and_actions(db_session, ctx, complete_document):
    detail = await RamsDocumentService(db_session, ctx).get_detail(complete_document.id)
    assert detail.risk_assessment_count == 1
    assert detail.method_step_count == 1
    assert detail.allowed_actions == ["edit", "delete", "submit"]


# ─── Workflow ─────────────────────────────────────────────────────────────────


async def test_submit_moves_to_pending_review(db_session, ctx, complete_document):
    document = await RamsDocumentService(db_session, ctx).submit(complete_document.id)
    assert document.status == RamsStatus.PENDING_REVIEW


async def test_submit_without_children_is_refused(db_session, ctx, draft_document):
    with pytest.raises(InvalidOperationError) as exc_info:
        await RamsDocumentService(db_session, ctx).submit(draft_document.id)
    assert exc_info.value.code == ErrorCode.RAMS_INCOMPLETE
    assert draft_document.status == RamsStatus.DRAFT


async def test_submit_twice_is_refused(db_session, ctx, complete_document):
    service = RamsDocumentService(db_session, ctx)
    await service.submit(complete_document.id)
    with pytest.raises(InvalidOperationError) as exc_info:
        await service.submit(complete_document.id)
    assert exc_info.value.code == ErrorCode.RAMS_INVALID_STATUS


async def test_approve_records_approver(db_session, ctx, document_factory):
    document = await document_factory("RAMS-P", status=RamsStatus.PENDING_REVIEW)
    approved = await RamsDocumentService(db_session, ctx).approve(document.id, "  Looks good ")
    assert approved.status == RamsStatus.APPROVED
    assert approved.approved_by_id == ctx.user_id
    assert approved.date_approved is not None
    assert approved.approval_comments == "Looks good"


async def test_approve_draft_is_refused(db_session, ctx, draft_document):
    with pytest.raises(InvalidOperationError):
        await RamsDocumentService(db_session, ctx).approve(draft_document.id)


async def test_reject_requires_comments(db_session, ctx, document_factory):
    document = await document_factory("RAMS-P", status=RamsStatus.PENDING_REVIEW)
    with pytest.raises(InvalidOperationError) as exc_info:
        await RamsDocumentService(db_session, ctx).reject(document.id, "   ")
    assert exc_info.value.code == ErrorCode.RAMS_COMMENTS_REQUIRED
    assert document.status == RamsStatus.PENDING_REVIEW


async def test_reject_checks_status_before_comments(db_session, ctx, draft_document):
    with pytest.raises(InvalidOperationError) as exc_info:
        await RamsDocumentService(db_session, ctx).reject(draft_document.id, None)
    assert exc_info.value.code == ErrorCode.RAMS_INVALID_STATUS


async def test_rejected_document_can_be_edited_and_resubmitted(db_session, ctx, document_factory):
    document = await document_factory("RAMS-P", status=RamsStatus.PENDING_REVIEW, risks=1, steps=1)
    service = RamsDocumentService(db_session, ctx)
    await service.reject(document.id, "Add a rescue plan")
    assert document.approval_comments == "Add a rescue plan"

    await service.update(document.id, RamsDocumentUpdate(project_name="Fixed", project_reference="RAMS-P"))
    resubmitted = await service.submit(document.id)
    assert resubmitted.status == RamsStatus.PENDING_REVIEW


# ─── Staged notifications ─────────────────────────────────────────────────────


async def test_notifications_publish_only_after_commit(db_session, ctx, complete_document):
    queue = NotificationQueue()
    await RamsDocumentService(db_session, ctx, notifications=queue).submit(complete_document.id)
    assert queue.qsize() == 0

    await db_session.commit()
    [event] = queue.drain_nowait()
    assert event.notification_type == NotificationType.SUBMIT
    assert event.rams_document_id == complete_document.id
    assert event.tenant_id == ctx.tenant_id
    assert event.triggered_by_user_name == "Alice Author"


async def test_notifications_discarded_on_rollback(db_session, ctx, complete_document):
    queue = NotificationQueue()
    await RamsDocumentService(db_session, ctx, notifications=queue).submit(complete_document.id)
    await db_session.rollback()
    assert queue.drain_nowait() == []


async def test_rejection_event_carries_comments(db_session, ctx, document_factory):
    document = await document_factory("RAMS-P", status=RamsStatus.PENDING_REVIEW)
    queue = NotificationQueue()
    await RamsDocumentService(db_session, ctx, notifications=queue).reject(document.id, " Missing PPE ")
    await db_session.commit()
    [event] = queue.drain_nowait()
    assert event.notification_type == NotificationType.REJECT
    assert event.comments == "Missing PPE"


async def test_detail_resolves_safety_officer_and_site(db_session, ctx, safety_officer, document_factory):
    site = Site(tenant_id=ctx.tenant_id, site_name="Riverside Depot")
    db_session.add(site)
    await db_session.flush()
    document = await document_factory("RAMS-S", safety_officer_id=safety_officer.id, site_id=site.id)

    directory = SqlDirectory(db_session, ctx.tenant_id)
    detail = await RamsDocumentService(
        db_session, ctx, employees=directory, sites=directory
    ).get_detail(document.id)
    assert detail.safety_officer_name == "Sam Safety"
    assert detail.site_name == "Riverside Depot"
