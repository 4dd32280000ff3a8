"""Database model registry. Import all models here so Alembic can discover them."""

from ramsflow.db.models.audit import AuditEvent
from ramsflow.db.models.directory import Employee, Site
from ramsflow.db.models.library import (
    ControlHierarchy,
    ControlMeasureLibrary,
    HazardCategory,
    HazardLibrary,
    LegislationReference,
    SopReference,
)
from ramsflow.db.models.mcp_audit import McpAuditLog
from ramsflow.db.models.notification import NotificationLog, NotificationType
from ramsflow.db.models.rams import (
    MethodStep,
    ProjectType,
    RamsDocument,
    RamsStatus,
    RiskAssessment,
    RiskLevel,
)
from ramsflow.db.models.user import Role, RoleEnum, User

__all__ = [
    "AuditEvent",
    "ControlHierarchy",
    "ControlMeasureLibrary",
    "Employee",
    "HazardCategory",
    "HazardLibrary",
    "LegislationReference",
    "McpAuditLog",
    "MethodStep",
    "NotificationLog",
    "NotificationType",
    "ProjectType",
    "RamsDocument",
    "RamsStatus",
    "RiskAssessment",
    "RiskLevel",
    "Role",
    "RoleEnum",
    "Site",
    "SopReference",
    "User",
]
