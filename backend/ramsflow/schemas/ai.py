"""AI control-measure suggestion schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ControlMeasureSuggestionRequest(BaseModel):
    task_activity: str = Field(..., min_length=1, max_length=500)
    hazard_identified: str = Field(default="", max_length=2000)
    location_area: str | None = Field(default=None, max_length=200)
    who_at_risk: str | None = Field(default=None, max_length=500)
    project_type: str | None = Field(default=None, max_length=100)
    initial_likelihood: int | None = Field(default=None, ge=1, le=5)
    initial_severity: int | None = Field(default=None, ge=1, le=5)


class HazardMatch(BaseModel):
    id: str
    code: str
    name: str
    description: str | None
    category: str
    default_likelihood: int
    default_severity: int
    match_score: float


class ControlMatch(BaseModel):
    id: str
    code: str
    name: str
    description: str
    hierarchy: str
    likelihood_reduction: int
    severity_reduction: int
    match_score: float


class LegislationMatch(BaseModel):
    id: str
    code: str
    name: str
    short_name: str | None
    match_score: float


class SopMatch(BaseModel):
    id: str
    sop_id: str
    topic: str
    policy_snippet: str | None
    match_score: float


class ControlMeasureSuggestionResponse(BaseModel):
    success: bool
    matched_hazards: list[HazardMatch] = []
    suggested_controls: list[ControlMatch] = []
    relevant_legislation: list[LegislationMatch] = []
    relevant_sops: list[SopMatch] = []
    ai_generated_control_measures: str | None = None
    ai_generated_legislation: str | None = None
    suggested_residual_likelihood: int | None = None
    suggested_residual_severity: int | None = None
    parse_warnings: list[str] = []
    used_ai: bool = False
    audit_log_id: str | None = None
    error_message: str | None = None


class AcceptSuggestionRequest(BaseModel):
    audit_log_id: str
    accepted: bool = True
