"""Reference library schemas: hazards, control measures, legislation, SOPs."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ramsflow.db.models.library import ControlHierarchy, HazardCategory


class _Ordering(BaseModel):
    sort_order: int = Field(default=0, ge=0)


class _Activation(BaseModel):
    is_active: bool = True


# ── Hazards ───────────────────────────────────────────────────────────── #


class HazardCreate(_Ordering):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    category: HazardCategory = HazardCategory.OTHER
    keywords: str | None = Field(default=None, max_length=500)
    default_likelihood: int = Field(default=3, ge=1, le=5)
    default_severity: int = Field(default=3, ge=1, le=5)
    typical_who_at_risk: str | None = Field(default=None, max_length=500)


class HazardUpdate(HazardCreate, _Activation):
    pass


class HazardOut(HazardUpdate):
    id: str

    model_config = {"from_attributes": True}


# ── Control measures ──────────────────────────────────────────────────── #


class ControlMeasureCreate(_Ordering):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    hierarchy: ControlHierarchy = ControlHierarchy.PPE
    applicable_to_category: HazardCategory | None = None
    keywords: str | None = Field(default=None, max_length=500)
    typical_likelihood_reduction: int = Field(default=0, ge=0, le=4)
    typical_severity_reduction: int = Field(default=0, ge=0, le=4)


class ControlMeasureUpdate(ControlMeasureCreate, _Activation):
    pass


class ControlMeasureOut(ControlMeasureUpdate):
    id: str

    model_config = {"from_attributes": True}


# ── Legislation ───────────────────────────────────────────────────────── #


class LegislationCreate(_Ordering):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=300)
    short_name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    jurisdiction: str | None = Field(default=None, max_length=50)
    keywords: str | None = Field(default=None, max_length=500)
    document_url: str | None = Field(default=None, max_length=500)
    applicable_categories: str | None = Field(default=None, max_length=500)


class LegislationUpdate(LegislationCreate, _Activation):
    pass


class LegislationOut(LegislationUpdate):
    id: str

    model_config = {"from_attributes": True}


# ── SOPs ──────────────────────────────────────────────────────────────── #


class SopCreate(_Ordering):
    sop_id: str = Field(..., min_length=1, max_length=50)
    topic: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    task_keywords: str | None = Field(default=None, max_length=500)
    policy_snippet: str | None = None
    procedure_details: str | None = None
    applicable_legislation: str | None = Field(default=None, max_length=500)
    document_url: str | None = Field(default=None, max_length=500)


class SopUpdate(SopCreate, _Activation):
    pass


class SopOut(SopUpdate):
    id: str

    model_config = {"from_attributes": True}
