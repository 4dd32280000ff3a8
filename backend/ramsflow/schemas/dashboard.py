"""Dashboard and export schemas."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from ramsflow.db.models.rams import ProjectType, RamsStatus


class SummaryStats(BaseModel):
    total_documents: int = 0
    draft_documents: int = 0
    pending_review_documents: int = 0
    approved_documents: int = 0
    rejected_documents: int = 0
    archived_documents: int = 0
    total_risk_assessments: int = 0
    high_risk_count: int = 0
    medium_risk_count: int = 0
    low_risk_count: int = 0
    documents_this_month: int = 0
    approvals_this_month: int = 0


class StatusCount(BaseModel):
    status: str
    count: int
    percentage: float


class ProjectTypeCount(BaseModel):
    project_type: str
    count: int
    percentage: float


class RiskDistribution(BaseModel):
    risk_level: str
    initial_count: int
    residual_count: int


class MonthlyTrend(BaseModel):
    month: str
    year: int
    created: int
    approved: int
    rejected: int


class PendingApproval(BaseModel):
    id: str
    project_reference: str
    project_name: str
    project_type: str
    client_name: str | None
    submitted_at: datetime
    days_pending: int
    risk_assessment_count: int
    high_risk_count: int


class OverdueDocument(BaseModel):
    id: str
    project_reference: str
    project_name: str
    status: str
    proposed_end_date: date | None
    days_overdue: int
    safety_officer_name: str | None = None


class ApprovalMetrics(BaseModel):
    average_approval_days: float = 0.0
    average_rejection_rate: float = 0.0
    fastest_approval_days: int = 0
    slowest_approval_days: int = 0
    total_approved_last_30_days: int = 0
    total_rejected_last_30_days: int = 0


class DashboardOut(BaseModel):
    summary: SummaryStats
    status_counts: list[StatusCount]
    project_type_counts: list[ProjectTypeCount]
    risk_distribution: list[RiskDistribution]
    monthly_trends: list[MonthlyTrend]
    pending_approvals: list[PendingApproval]
    overdue_documents: list[OverdueDocument]
    approval_metrics: ApprovalMetrics


class ExportFilter(BaseModel):
    date_from: date | None = None
    date_to: date | None = None
    status: RamsStatus | None = None
    project_type: ProjectType | None = None
    include_risk_assessments: bool = True
    include_method_steps: bool = True
