"""Unit tests for RamsDashboardService aggregates."""

from datetime import UTC, date, datetime

import pytest

from ramsflow.db.models.rams import ProjectType, RamsStatus
from ramsflow.services.directory import SqlDirectory
from ramsflow.services.reporting.dashboard import RamsDashboardService

pytestmark = pytest.mark.asyncio

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


def _at(month: int, day: int) -> datetime:
    return datetime(2026, month, day, 9, 0, tzinfo=UTC)


# ─── Dashboard ────────────────────────────────────────────────────────────────


async def test_empty_dashboard(db_session, ctx):
    dashboard = await RamsDashboardService(db_session, ctx).get_dashboard(now=NOW)

    assert dashboard.summary.total_documents == 0
    assert dashboard.status_counts == []
    assert [r.risk_level for r in dashboard.risk_distribution] == ["High", "Medium", "Low"]
    assert len(dashboard.monthly_trends) == 6
    assert dashboard.approval_metrics.average_approval_days == 0.0


async def test_summary_and_breakdowns(db_session, ctx, document_factory):
    await document_factory("RAMS-1", risks=2, created_at=_at(3, 2))
    await document_factory("RAMS-2", created_at=_at(3, 5))
    await document_factory(
        "RAMS-3",
        status=RamsStatus.APPROVED,
        risks=1,
        project_type=ProjectType.CAR_PARK_COATING,
        created_at=_at(3, 1),
        date_approved=_at(3, 5),
    )
    await document_factory("RAMS-4", status=RamsStatus.REJECTED, created_at=_at(1, 10), updated_at=_at(1, 20))
    deleted = await document_factory("RAMS-GONE", created_at=_at(3, 1))
    deleted.deleted_at = NOW
    await db_session.flush()

    dashboard = await RamsDashboardService(db_session, ctx).get_dashboard(now=NOW)
    summary = dashboard.summary

    assert summary.total_documents == 4
    assert (summary.draft_documents, summary.approved_documents, summary.rejected_documents) == (2, 1, 1)
    assert summary.total_risk_assessments == 3
    assert (summary.high_risk_count, summary.medium_risk_count, summary.low_risk_count) == (0, 0, 3)
    assert summary.documents_this_month == 3
    assert summary.approvals_this_month == 1

    assert dashboard.status_counts[0].status == "Draft"
    assert dashboard.status_counts[0].percentage == 50.0
    assert {c.project_type: c.count for c in dashboard.project_type_counts} == {
        "Other": 3,
        "Car Park Coating": 1,
    }
    medium = next(r for r in dashboard.risk_distribution if r.risk_level == "Medium")
    assert (medium.initial_count, medium.residual_count) == (3, 0)


async def test_monthly_trends_cover_last_six_months(db_session, ctx, document_factory):
    await document_factory("RAMS-JAN", status=RamsStatus.REJECTED, created_at=_at(1, 3), updated_at=_at(1, 9))
    await document_factory("RAMS-OLD", created_at=datetime(2025, 6, 1, tzinfo=UTC))

    trends = (await RamsDashboardService(db_session, ctx).get_dashboard(now=NOW)).monthly_trends

    assert [(t.month, t.year) for t in trends] == [
        ("Oct", 2025),
        ("Nov", 2025),
        ("Dec", 2025),
        ("Jan", 2026),
        ("Feb", 2026),
        ("Mar", 2026),
    ]
    january = trends[3]
    assert (january.created, january.approved, january.rejected) == (1, 0, 1)
    assert sum(t.created for t in trends) == 1


async def test_approval_metrics(db_session, ctx, document_factory):
    await document_factory(
        "RAMS-FAST", status=RamsStatus.APPROVED, created_at=_at(3, 1), date_approved=_at(3, 3)
    )
    await document_factory(
        "RAMS-SLOW", status=RamsStatus.APPROVED, created_at=_at(2, 1), date_approved=_at(2, 11)
    )
    await document_factory("RAMS-NO", status=RamsStatus.REJECTED, created_at=_at(3, 1), updated_at=_at(3, 10))
    await document_factory("RAMS-D", created_at=_at(3, 1))

    metrics = (await RamsDashboardService(db_session, ctx).get_dashboard(now=NOW)).approval_metrics

    assert metrics.average_approval_days == 6.0
    assert (metrics.fastest_approval_days, metrics.slowest_approval_days) == (2, 10)
    assert metrics.average_rejection_rate == 25.0
    assert metrics.total_approved_last_30_days == 1
    assert metrics.total_rejected_last_30_days == 1


async def test_dashboard_is_tenant_scoped(db_session, ctx, other_tenant_ctx, document_factory):
    await document_factory("RAMS-1")
    dashboard = await RamsDashboardService(db_session, other_tenant_ctx).get_dashboard(now=NOW)
    assert dashboard.summary.total_documents == 0


# ─── Pending approvals ────────────────────────────────────────────────────────


async def test_pending_approvals_oldest_first(db_session, ctx, document_factory):
    await document_factory("RAMS-NEW", status=RamsStatus.PENDING_REVIEW, risks=1, updated_at=_at(3, 14))
    await document_factory("RAMS-OLD", status=RamsStatus.PENDING_REVIEW, updated_at=_at(3, 1))
    await document_factory("RAMS-DRAFT")

    items = await RamsDashboardService(db_session, ctx).get_pending_approvals(now=NOW)

    assert [i.project_reference for i in items] == ["RAMS-OLD", "RAMS-NEW"]
    assert items[0].days_pending == 14
    assert items[1].risk_assessment_count == 1
    assert items[1].high_risk_count == 0
    assert items[1].project_type == "Other"


# ─── Overdue ──────────────────────────────────────────────────────────────────


async def test_overdue_documents(db_session, ctx, safety_officer, document_factory):
    await document_factory("RAMS-LATE", proposed_end_date=date(2026, 3, 10), safety_officer_id=safety_officer.id)
    await document_factory(
        "RAMS-LATER", status=RamsStatus.PENDING_REVIEW, proposed_end_date=date(2026, 2, 1)
    )
    await document_factory("RAMS-DONE", status=RamsStatus.APPROVED, proposed_end_date=date(2026, 1, 1))
    await document_factory("RAMS-FUTURE", proposed_end_date=date(2026, 4, 1))
    await document_factory("RAMS-TODAY", proposed_end_date=date(2026, 3, 15))
    await document_factory("RAMS-OPEN")

    service = RamsDashboardService(db_session, ctx, employees=SqlDirectory(db_session, ctx.tenant_id))
    items = await service.get_overdue_documents(today=date(2026, 3, 15))

    assert [i.project_reference for i in items] == ["RAMS-LATER", "RAMS-LATE"]
    assert items[0].days_overdue == 42
    assert items[0].status == "PendingReview"
    assert items[1].safety_officer_name == "Sam Safety"
    assert items[0].safety_officer_name is None


async def test_dashboard_lists_are_capped(db_session, ctx, document_factory):
    for index in range(12):
        await document_factory(f"RAMS-{index:02d}", status=RamsStatus.PENDING_REVIEW)

    dashboard = await RamsDashboardService(db_session, ctx).get_dashboard(now=NOW)
    assert dashboard.summary.pending_review_documents == 12
    assert len(dashboard.pending_approvals) == 10
