"""RAMS document, risk assessment and method step schemas."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from ramsflow.db.models.rams import ProjectType, RamsStatus, RiskLevel

_Rating = Field(default=1, ge=1, le=5)


# ── Documents ─────────────────────────────────────────────────────────── #


class RamsDocumentBase(BaseModel):
    project_name: str = Field(..., min_length=1, max_length=200)
    project_reference: str = Field(..., min_length=1, max_length=50)
    project_type: ProjectType = ProjectType.OTHER
    client_name: str | None = Field(default=None, max_length=200)
    site_address: str | None = Field(default=None, max_length=500)
    area_of_activity: str | None = Field(default=None, max_length=500)
    proposed_start_date: date | None = None
    proposed_end_date: date | None = None
    safety_officer_id: str | None = None
    site_id: str | None = None
    proposal_id: str | None = None
    method_statement_body: str | None = None

    @model_validator(mode="after")
    def end_not_before_start(self) -> RamsDocumentBase:
        if (
            self.proposed_start_date
            and self.proposed_end_date
            and self.proposed_end_date < self.proposed_start_date
        ):
            raise ValueError("proposed_end_date must not be before proposed_start_date")
        return self


class RamsDocumentCreate(RamsDocumentBase):
    pass


class RamsDocumentUpdate(RamsDocumentBase):
    pass


class RamsDocumentOut(RamsDocumentBase):
    id: str
    status: RamsStatus
    date_approved: datetime | None
    approved_by_id: str | None
    approval_comments: str | None
    generated_pdf_url: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RamsDocumentDetail(RamsDocumentOut):
    safety_officer_name: str | None = None
    site_name: str | None = None
    risk_assessment_count: int = 0
    method_step_count: int = 0
    allowed_actions: list[str] = Field(default_factory=list)


class RamsDocumentListItem(BaseModel):
    id: str
    project_reference: str
    project_name: str
    project_type: ProjectType
    client_name: str | None
    status: RamsStatus
    proposed_start_date: date | None
    proposed_end_date: date | None
    created_at: datetime

    model_config = {"from_attributes": True}


class RamsDocumentListResponse(BaseModel):
    items: list[RamsDocumentListItem]
    total: int
    page: int
    page_size: int


class ApproveRequest(BaseModel):
    comments: str | None = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    # Blank comments are rejected by the workflow, not here, so the
    # error surfaces as an invalid-operation failure.
    comments: str | None = Field(default=None, max_length=2000)


# ── Risk assessments ──────────────────────────────────────────────────── #


class RiskAssessmentBase(BaseModel):
    task_activity: str = Field(..., min_length=1, max_length=500)
    location_area: str | None = Field(default=None, max_length=200)
    hazard_identified: str = Field(..., min_length=1)
    who_at_risk: str | None = Field(default=None, max_length=500)
    initial_likelihood: int = _Rating
    initial_severity: int = _Rating
    control_measures: str | None = None
    relevant_legislation: str | None = None
    reference_sops: str | None = None
    residual_likelihood: int = _Rating
    residual_severity: int = _Rating


class RiskAssessmentCreate(RiskAssessmentBase):
    sort_order: int | None = Field(default=None, ge=1)
    is_ai_generated: bool = False


class RiskAssessmentUpdate(RiskAssessmentBase):
    sort_order: int | None = Field(default=None, ge=1)


class RiskAssessmentOut(RiskAssessmentBase):
    id: str
    rams_document_id: str
    sort_order: int
    initial_risk_rating: int
    initial_risk_level: RiskLevel
    residual_risk_rating: int
    residual_risk_level: RiskLevel
    is_ai_generated: bool
    ai_generated_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Method steps ──────────────────────────────────────────────────────── #


class MethodStepBase(BaseModel):
    step_title: str = Field(..., min_length=1, max_length=200)
    detailed_procedure: str | None = None
    linked_risk_assessment_id: str | None = None
    required_permits: str | None = Field(default=None, max_length=500)
    requires_signoff: bool = False
    signoff_url: str | None = Field(default=None, max_length=500)


class MethodStepCreate(MethodStepBase):
    step_number: int | None = Field(default=None, ge=1)


class MethodStepUpdate(MethodStepBase):
    step_number: int | None = Field(default=None, ge=1)


class MethodStepOut(MethodStepBase):
    id: str
    rams_document_id: str
    step_number: int
    linked_risk_assessment_summary: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Ordering ──────────────────────────────────────────────────────────── #


class ReorderRequest(BaseModel):
    ordered_ids: list[str] = Field(..., min_length=1)