"""
RamsDashboardService: read-only aggregates over a tenant's RAMS documents.

Everything is computed in Python over one load of the tenant's live
documents and their risk assessments.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import UTC, date, datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ramsflow.core.context import RequestContext
from ramsflow.db.base import utcnow
from ramsflow.db.models.rams import ProjectType, RamsDocument, RamsStatus, RiskLevel
from ramsflow.schemas.dashboard import (
    ApprovalMetrics,
    DashboardOut,
    MonthlyTrend,
    OverdueDocument,
    PendingApproval,
    ProjectTypeCount,
    RiskDistribution,
    StatusCount,
    SummaryStats,
)
from ramsflow.services.directory import EmployeeDirectory

_log = structlog.get_logger(__name__)

DASHBOARD_LIST_LIMIT = 10
TREND_MONTHS = 6
OVERDUE_STATUSES = (RamsStatus.DRAFT, RamsStatus.PENDING_REVIEW, RamsStatus.REJECTED)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _month_start(year: int, month: int, offset: int) -> datetime:
    index = year * 12 + (month - 1) + offset
    return datetime(index // 12, index % 12 + 1, 1, tzinfo=UTC)


def _percentage(count: int, total: int) -> float:
    return round(count / total * 100, 1) if total else 0.0


def _in_window(value: datetime | None, start: datetime, end: datetime | None = None) -> bool:
    value = as_utc(value)
    if value is None or value < start:
        return False
    return end is None or value < end


class RamsDashboardService:
    def __init__(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        employees: EmployeeDirectory | None = None,
    ) -> None:
        self._db = db
        self._ctx = ctx
        self._employees = employees

    async def _documents(self, *criteria) -> Sequence[RamsDocument]:
        query = (
            select(RamsDocument)
            .options(selectinload(RamsDocument.risk_assessments))
            .where(
                RamsDocument.tenant_id == self._ctx.tenant_id,
                RamsDocument.deleted_at.is_(None),
                *criteria,
            )
        )
        return list((await self._db.execute(query)).scalars().all())

    async def get_dashboard(self, now: datetime | None = None) -> DashboardOut:
        now = now or utcnow()
        documents = await self._documents()
        risk_assessments = [ra for doc in documents for ra in doc.risk_assessments]
        month_start = _month_start(now.year, now.month, 0)

        status_totals = Counter(doc.status for doc in documents)
        residual_levels = Counter(ra.residual_risk_level for ra in risk_assessments)
        initial_levels = Counter(ra.initial_risk_level for ra in risk_assessments)

        summary = SummaryStats(
            total_documents=len(documents),
            draft_documents=status_totals[RamsStatus.DRAFT],
            pending_review_documents=status_totals[RamsStatus.PENDING_REVIEW],
            approved_documents=status_totals[RamsStatus.APPROVED],
            rejected_documents=status_totals[RamsStatus.REJECTED],
            archived_documents=status_totals[RamsStatus.ARCHIVED],
            total_risk_assessments=len(risk_assessments),
            high_risk_count=residual_levels[RiskLevel.HIGH],
            medium_risk_count=residual_levels[RiskLevel.MEDIUM],
            low_risk_count=residual_levels[RiskLevel.LOW],
            documents_this_month=sum(1 for d in documents if _in_window(d.created_at, month_start)),
            approvals_this_month=sum(1 for d in documents if _in_window(d.date_approved, month_start)),
        )

        status_counts = [
            StatusCount(
                status=status.value,
                count=status_totals[status],
                percentage=_percentage(status_totals[status], len(documents)),
            )
            for status in RamsStatus
            if status_totals[status]
        ]
        status_counts.sort(key=lambda item: -item.count)

        type_totals = Counter(doc.project_type for doc in documents)
        project_type_counts = [
            ProjectTypeCount(
                project_type=project_type.display,
                count=type_totals[project_type],
                percentage=_percentage(type_totals[project_type], len(documents)),
            )
            for project_type in ProjectType
            if type_totals[project_type]
        ]
        project_type_counts.sort(key=lambda item: -item.count)

        risk_distribution = [
            RiskDistribution(
                risk_level=level.value,
                initial_count=initial_levels[level],
                residual_count=residual_levels[level],
            )
            for level in (RiskLevel.HIGH, RiskLevel.MEDIUM, RiskLevel.LOW)
        ]

        pending = await self.get_pending_approvals(now)
        overdue = await self.get_overdue_documents(now.date())

        return DashboardOut(
            summary=summary,
            status_counts=status_counts,
            project_type_counts=project_type_counts,
            risk_distribution=risk_distribution,
            monthly_trends=self._monthly_trends(documents, now),
            pending_approvals=pending[:DASHBOARD_LIST_LIMIT],
            overdue_documents=overdue[:DASHBOARD_LIST_LIMIT],
            approval_metrics=self._approval_metrics(documents, now),
        )

    async def get_pending_approvals(self, now: datetime | None = None) -> list[PendingApproval]:
        now = now or utcnow()
        documents = await self._documents(RamsDocument.status == RamsStatus.PENDING_REVIEW)
        items = []
        for doc in sorted(documents, key=lambda d: as_utc(d.updated_at or d.created_at)):
            submitted_at = as_utc(doc.updated_at or doc.created_at)
            items.append(
                PendingApproval(
                    id=doc.id,
                    project_reference=doc.project_reference,
                    project_name=doc.project_name,
                    project_type=doc.project_type.display,
                    client_name=doc.client_name,
                    submitted_at=submitted_at,
                    days_pending=max((now - submitted_at).days, 0),
                    risk_assessment_count=len(doc.risk_assessments),
                    high_risk_count=sum(
                        1 for ra in doc.risk_assessments if ra.residual_risk_level == RiskLevel.HIGH
                    ),
                )
            )
        return items

    async def get_overdue_documents(self, today: date | None = None) -> list[OverdueDocument]:
        today = today or utcnow().date()
        documents = await self._documents(
            RamsDocument.proposed_end_date.is_not(None),
            RamsDocument.proposed_end_date < today,
            RamsDocument.status.in_(OVERDUE_STATUSES),
        )
        items = []
        for doc in sorted(documents, key=lambda d: d.proposed_end_date):
            officer_name = None
            if doc.safety_officer_id and self._employees is not None:
                officer = await self._employees.get_employee(doc.safety_officer_id)
                officer_name = officer.name if officer else None
            items.append(
                OverdueDocument(
                    id=doc.id,
                    project_reference=doc.project_reference,
                    project_name=doc.project_name,
                    status=doc.status.value,
                    proposed_end_date=doc.proposed_end_date,
                    days_overdue=(today - doc.proposed_end_date).days,
                    safety_officer_name=officer_name,
                )
            )
        return items

    @staticmethod
    def _monthly_trends(documents: Sequence[RamsDocument], now: datetime) -> list[MonthlyTrend]:
        trends = []
        for offset in range(-(TREND_MONTHS - 1), 1):
            start = _month_start(now.year, now.month, offset)
            end = _month_start(now.year, now.month, offset + 1)
            trends.append(
                MonthlyTrend(
                    month=start.strftime("%b"),
                    year=start.year,
                    created=sum(1 for d in documents if _in_window(d.created_at, start, end)),
                    approved=sum(1 for d in documents if _in_window(d.date_approved, start, end)),
                    rejected=sum(
                        1
                        for d in documents
                        if d.status == RamsStatus.REJECTED and _in_window(d.updated_at, start, end)
                    ),
                )
            )
        return trends

    @staticmethod
    def _approval_metrics(documents: Sequence[RamsDocument], now: datetime) -> ApprovalMetrics:
        cutoff = now - timedelta(days=30)
        approval_days = [
            (as_utc(d.date_approved) - as_utc(d.created_at)).total_seconds() / 86400
            for d in documents
            if d.date_approved is not None and d.created_at is not None
        ]
        approval_days = [days for days in approval_days if days >= 0]
        rejected = sum(1 for d in documents if d.status == RamsStatus.REJECTED)

        return ApprovalMetrics(
            average_approval_days=round(sum(approval_days) / len(approval_days), 1) if approval_days else 0.0,
            average_rejection_rate=_percentage(rejected, len(documents)),
            fastest_approval_days=int(min(approval_days)) if approval_days else 0,
            slowest_approval_days=int(max(approval_days)) if approval_days else 0,
            total_approved_last_30_days=sum(1 for d in documents if _in_window(d.date_approved, cutoff)),
            total_rejected_last_30_days=sum(
                1
                for d in documents
                if d.status == RamsStatus.REJECTED and _in_window(d.updated_at, cutoff)
            ),
        )
