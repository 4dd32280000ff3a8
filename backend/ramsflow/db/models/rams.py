"""
RAMS document aggregate: documents, risk assessments and method steps.

RamsStatus drives the approval workflow (see services.rams.workflow).
Children are ordered per document: risk assessments by sort_order,
method steps by step_number, both 1-based. Children are removed with
the document or deleted outright; only the document itself is soft-deleted.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy import (
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ramsflow.db.base import (
    Base,
    SoftDeleteMixin,
    TenantMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


class RamsStatus(StrEnum):
    DRAFT = "Draft"
    PENDING_REVIEW = "PendingReview"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    ARCHIVED = "Archived"


class ProjectType(StrEnum):
    REMEDIAL_INJECTION = "RemedialInjection"
    RASCOTANK_NEW_BUILD = "RascotankNewBuild"
    CAR_PARK_COATING = "CarParkCoating"
    GROUND_GAS_BARRIER = "GroundGasBarrier"
    OTHER = "Other"

    @property
    def display(self) -> str:
        return _PROJECT_TYPE_LABELS[self]


_PROJECT_TYPE_LABELS = {
    ProjectType.REMEDIAL_INJECTION: "Remedial Injection",
    ProjectType.RASCOTANK_NEW_BUILD: "Rascotank New Build",
    ProjectType.CAR_PARK_COATING: "Car Park Coating",
    ProjectType.GROUND_GAS_BARRIER: "Ground Gas Barrier",
    ProjectType.OTHER: "Other",
}


class RiskLevel(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


def risk_level_for(rating: int) -> RiskLevel:
    """Band a likelihood x severity rating (1-25)."""
    if rating <= 4:
        return RiskLevel.LOW
    if rating <= 12:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


class RamsDocument(Base, UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, TenantMixin):
    """A Risk Assessment and Method Statement for one project."""

    __tablename__ = "rams_documents"
    __table_args__ = (
        Index("ix_rams_documents_tenant_reference", "tenant_id", "project_reference"),
    )

    project_name: Mapped[str] = mapped_column(String(200), nullable=False)
    project_reference: Mapped[str] = mapped_column(String(50), nullable=False)
    project_type: Mapped[ProjectType] = mapped_column(
        SAEnum(ProjectType, name="rams_project_type", native_enum=False),
        nullable=False,
        default=ProjectType.OTHER,
    )
    client_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    site_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    area_of_activity: Mapped[str | None] = mapped_column(String(500), nullable=True)
    proposed_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    proposed_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    safety_officer_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    site_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    proposal_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    method_statement_body: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[RamsStatus] = mapped_column(
        SAEnum(RamsStatus, name="rams_status", native_enum=False),
        nullable=False,
        default=RamsStatus.DRAFT,
        index=True,
    )
    date_approved: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    approval_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    generated_pdf_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    risk_assessments: Mapped[list[RiskAssessment]] = relationship(
        "RiskAssessment",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="RiskAssessment.sort_order",
    )
    method_steps: Mapped[list[MethodStep]] = relationship(
        "MethodStep",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="MethodStep.step_number",
    )

    def __repr__(self) -> str:
        return f"<RamsDocument {self.project_reference} [{self.status}]>"


class RiskAssessment(Base, UUIDPrimaryKeyMixin, TimestampMixin, TenantMixin):
    """One hazard line of a RAMS document with initial and residual ratings."""

    __tablename__ = "rams_risk_assessments"

    rams_document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rams_documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_activity: Mapped[str] = mapped_column(String(500), nullable=False)
    location_area: Mapped[str | None] = mapped_column(String(200), nullable=True)
    hazard_identified: Mapped[str] = mapped_column(Text, nullable=False)
    who_at_risk: Mapped[str | None] = mapped_column(String(500), nullable=True)

    initial_likelihood: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    initial_severity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    control_measures: Mapped[str | None] = mapped_column(Text, nullable=True)
    relevant_legislation: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_sops: Mapped[str | None] = mapped_column(Text, nullable=True)
    residual_likelihood: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    residual_severity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_ai_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ai_generated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    document: Mapped[RamsDocument] = relationship("RamsDocument", back_populates="risk_assessments")

    @property
    def initial_risk_rating(self) -> int:
        return self.initial_likelihood * self.initial_severity

    @property
    def initial_risk_level(self) -> RiskLevel:
        return risk_level_for(self.initial_risk_rating)

    @property
    def residual_risk_rating(self) -> int:
        return self.residual_likelihood * self.residual_severity

    @property
    def residual_risk_level(self) -> RiskLevel:
        return risk_level_for(self.residual_risk_rating)

    def __repr__(self) -> str:
        return f"<RiskAssessment #{self.sort_order} {self.task_activity[:30]!r}>"


class MethodStep(Base, UUIDPrimaryKeyMixin, TimestampMixin, TenantMixin):
    """One numbered step of the work procedure."""

    __tablename__ = "rams_method_steps"

    rams_document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rams_documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    step_title: Mapped[str] = mapped_column(String(200), nullable=False)
    detailed_procedure: Mapped[str | None] = mapped_column(Text, nullable=True)
    linked_risk_assessment_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("rams_risk_assessments.id", ondelete="SET NULL"),
        nullable=True,
    )
    required_permits: Mapped[str | None] = mapped_column(String(500), nullable=True)
    requires_signoff: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    signoff_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    document: Mapped[RamsDocument] = relationship("RamsDocument", back_populates="method_steps")
    linked_risk_assessment: Mapped[RiskAssessment | None] = relationship("RiskAssessment")

    def __repr__(self) -> str:
        return f"<MethodStep {self.step_number} {self.step_title!r}>"
