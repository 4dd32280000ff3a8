"""
RAMS reference libraries: hazards, control measures, legislation and SOPs.

Each library is tenant-scoped with a per-tenant unique code. Entries are
searched by the suggestion service; `keywords` holds a comma-separated
list of search terms.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum

from sqlalchemy import Boolean, Integer, String, Text, UniqueConstraint
from sqlalchemy import (
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from ramsflow.db.base import (
    Base,
    SoftDeleteMixin,
    TenantMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


class HazardCategory(StrEnum):
    PHYSICAL = "Physical"
    CHEMICAL = "Chemical"
    BIOLOGICAL = "Biological"
    ERGONOMIC = "Ergonomic"
    PSYCHOLOGICAL = "Psychological"
    ENVIRONMENTAL = "Environmental"
    ELECTRICAL = "Electrical"
    FIRE = "Fire"
    WORKING_AT_HEIGHT = "WorkingAtHeight"
    MANUAL_HANDLING = "ManualHandling"
    MACHINERY_EQUIPMENT = "MachineryEquipment"
    OTHER = "Other"


class ControlHierarchy(IntEnum):
    """Hierarchy of controls; lower values are preferred."""

    ELIMINATION = 0
    SUBSTITUTION = 1
    ENGINEERING = 2
    ADMINISTRATIVE = 3
    PPE = 4

    @property
    def label(self) -> str:
        return _HIERARCHY_LABELS[self]


_HIERARCHY_LABELS = {
    ControlHierarchy.ELIMINATION: "Elimination",
    ControlHierarchy.SUBSTITUTION: "Substitution",
    ControlHierarchy.ENGINEERING: "Engineering Controls",
    ControlHierarchy.ADMINISTRATIVE: "Administrative Controls",
    ControlHierarchy.PPE: "PPE",
}


class _LibraryEntry(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, TenantMixin):
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class HazardLibrary(Base, _LibraryEntry):
    __tablename__ = "rams_hazard_library"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_rams_hazard_code"),)

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[HazardCategory] = mapped_column(
        SAEnum(HazardCategory, name="rams_hazard_category", native_enum=False),
        nullable=False,
        default=HazardCategory.OTHER,
    )
    keywords: Mapped[str | None] = mapped_column(String(500), nullable=True)
    default_likelihood: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    default_severity: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    typical_who_at_risk: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<HazardLibrary {self.code} {self.name!r}>"


class ControlMeasureLibrary(Base, _LibraryEntry):
    __tablename__ = "rams_control_measure_library"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_rams_control_code"),)

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Stored as the ControlHierarchy integer so ORDER BY follows the hierarchy
    hierarchy: Mapped[int] = mapped_column(Integer, nullable=False, default=ControlHierarchy.PPE)
    applicable_to_category: Mapped[HazardCategory | None] = mapped_column(
        SAEnum(HazardCategory, name="rams_hazard_category", native_enum=False),
        nullable=True,
    )
    keywords: Mapped[str | None] = mapped_column(String(500), nullable=True)
    typical_likelihood_reduction: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    typical_severity_reduction: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ControlMeasureLibrary {self.code} {self.name!r}>"


class LegislationReference(Base, _LibraryEntry):
    __tablename__ = "rams_legislation_references"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_rams_legislation_code"),)

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    short_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    jurisdiction: Mapped[str | None] = mapped_column(String(50), nullable=True)
    keywords: Mapped[str | None] = mapped_column(String(500), nullable=True)
    document_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    applicable_categories: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<LegislationReference {self.code}>"


class SopReference(Base, _LibraryEntry):
    __tablename__ = "rams_sop_references"
    __table_args__ = (UniqueConstraint("tenant_id", "sop_id", name="uq_rams_sop_id"),)

    sop_id: Mapped[str] = mapped_column(String(50), nullable=False)
    topic: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    task_keywords: Mapped[str | None] = mapped_column(String(500), nullable=True)
    policy_snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    procedure_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    applicable_legislation: Mapped[str | None] = mapped_column(String(500), nullable=True)
    document_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<SopReference {self.sop_id} {self.topic!r}>"
