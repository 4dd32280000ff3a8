"""Initial RAMS schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from ramsflow.db.models.library import HazardCategory
from ramsflow.db.models.notification import NotificationType
from ramsflow.db.models.rams import ProjectType, RamsStatus

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _hazard_category() -> sa.Enum:
    return sa.Enum(HazardCategory, name="rams_hazard_category", native_enum=False)


def _library_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True, index=True),
        *_timestamps(),
    ]


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True, index=True),
        sa.Column("description", sa.String(255), nullable=False, server_default=""),
        *_timestamps(),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column("username", sa.String(100), nullable=False, index=True),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("email", sa.String(255), nullable=True, index=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "role_id",
            sa.String(36),
            sa.ForeignKey("roles.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True, index=True),
        *_timestamps(),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True, index=True),
        *_timestamps(),
    )

    op.create_table(
        "sites",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column("site_name", sa.String(200), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True, index=True),
        *_timestamps(),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("tenant_id", sa.String(36), nullable=True, index=True),
        sa.Column("actor_id", sa.String(36), nullable=True, index=True),
        sa.Column("actor_username", sa.String(100), nullable=True),
        sa.Column("entity_type", sa.String(100), nullable=True),
        sa.Column("entity_id", sa.String(36), nullable=True),
        sa.Column("correlation_id", sa.String(36), nullable=True, index=True),
        sa.Column("payload_json", sa.Text, nullable=True),
        sa.Column("event_hash", sa.String(64), nullable=False),
        sa.Column("prev_hash", sa.String(64), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("event_hash", name="uq_audit_event_hash"),
    )
    op.create_index(
        "ix_audit_events_actor_entity",
        "audit_events",
        ["actor_id", "entity_type", "entity_id"],
    )

    op.create_table(
        "rams_documents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column("project_name", sa.String(200), nullable=False),
        sa.Column("project_reference", sa.String(50), nullable=False),
        sa.Column(
            "project_type",
            sa.Enum(ProjectType, name="rams_project_type", native_enum=False),
            nullable=False,
        ),
        sa.Column("client_name", sa.String(200), nullable=True),
        sa.Column("site_address", sa.String(500), nullable=True),
        sa.Column("area_of_activity", sa.String(500), nullable=True),
        sa.Column("proposed_start_date", sa.Date, nullable=True),
        sa.Column("proposed_end_date", sa.Date, nullable=True),
        sa.Column("safety_officer_id", sa.String(36), nullable=True),
        sa.Column("site_id", sa.String(36), nullable=True),
        sa.Column("proposal_id", sa.String(36), nullable=True),
        sa.Column("method_statement_body", sa.Text, nullable=True),
        sa.Column(
            "status",
            sa.Enum(RamsStatus, name="rams_status", native_enum=False),
            nullable=False,
            index=True,
        ),
        sa.Column("date_approved", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by_id", sa.String(36), nullable=True),
        sa.Column("approval_comments", sa.Text, nullable=True),
        sa.Column("generated_pdf_url", sa.String(500), nullable=True),
        sa.Column(
            "created_by",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True, index=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_rams_documents_tenant_reference",
        "rams_documents",
        ["tenant_id", "project_reference"],
    )

    op.create_table(
        "rams_risk_assessments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column(
            "rams_document_id",
            sa.String(36),
            sa.ForeignKey("rams_documents.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("task_activity", sa.String(500), nullable=False),
        sa.Column("location_area", sa.String(200), nullable=True),
        sa.Column("hazard_identified", sa.Text, nullable=False),
        sa.Column("who_at_risk", sa.String(500), nullable=True),
        sa.Column("initial_likelihood", sa.Integer, nullable=False, server_default="1"),
        sa.Column("initial_severity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("control_measures", sa.Text, nullable=True),
        sa.Column("relevant_legislation", sa.Text, nullable=True),
        sa.Column("reference_sops", sa.Text, nullable=True),
        sa.Column("residual_likelihood", sa.Integer, nullable=False, server_default="1"),
        sa.Column("residual_severity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="1"),
        sa.Column("is_ai_generated", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("ai_generated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "rams_method_steps",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column(
            "rams_document_id",
            sa.String(36),
            sa.ForeignKey("rams_documents.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("step_number", sa.Integer, nullable=False),
        sa.Column("step_title", sa.String(200), nullable=False),
        sa.Column("detailed_procedure", sa.Text, nullable=True),
        sa.Column(
            "linked_risk_assessment_id",
            sa.String(36),
            sa.ForeignKey("rams_risk_assessments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("required_permits", sa.String(500), nullable=True),
        sa.Column("requires_signoff", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("signoff_url", sa.String(500), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "rams_hazard_library",
        *_library_columns(),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("category", _hazard_category(), nullable=False),
        sa.Column("keywords", sa.String(500), nullable=True),
        sa.Column("default_likelihood", sa.Integer, nullable=False, server_default="3"),
        sa.Column("default_severity", sa.Integer, nullable=False, server_default="3"),
        sa.Column("typical_who_at_risk", sa.String(500), nullable=True),
        sa.UniqueConstraint("tenant_id", "code", name="uq_rams_hazard_code"),
    )

    op.create_table(
        "rams_control_measure_library",
        *_library_columns(),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("hierarchy", sa.Integer, nullable=False, server_default="4"),
        sa.Column("applicable_to_category", _hazard_category(), nullable=True),
        sa.Column("keywords", sa.String(500), nullable=True),
        sa.Column("typical_likelihood_reduction", sa.Integer, nullable=False, server_default="0"),
        sa.Column("typical_severity_reduction", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("tenant_id", "code", name="uq_rams_control_code"),
    )

    op.create_table(
        "rams_legislation_references",
        *_library_columns(),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("short_name", sa.String(100), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("jurisdiction", sa.String(50), nullable=True),
        sa.Column("keywords", sa.String(500), nullable=True),
        sa.Column("document_url", sa.String(500), nullable=True),
        sa.Column("applicable_categories", sa.String(500), nullable=True),
        sa.UniqueConstraint("tenant_id", "code", name="uq_rams_legislation_code"),
    )

    op.create_table(
        "rams_sop_references",
        *_library_columns(),
        sa.Column("sop_id", sa.String(50), nullable=False),
        sa.Column("topic", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("task_keywords", sa.String(500), nullable=True),
        sa.Column("policy_snippet", sa.Text, nullable=True),
        sa.Column("procedure_details", sa.Text, nullable=True),
        sa.Column("applicable_legislation", sa.String(500), nullable=True),
        sa.Column("document_url", sa.String(500), nullable=True),
        sa.UniqueConstraint("tenant_id", "sop_id", name="uq_rams_sop_id"),
    )

    op.create_table(
        "rams_mcp_audit_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column("rams_document_id", sa.String(36), nullable=True, index=True),
        sa.Column("risk_assessment_id", sa.String(36), nullable=True),
        sa.Column("request_type", sa.String(50), nullable=False),
        sa.Column("input_prompt", sa.Text, nullable=False),
        sa.Column("input_context", sa.Text, nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ai_response", sa.Text, nullable=True),
        sa.Column("extracted_content", sa.Text, nullable=True),
        sa.Column("parse_warnings", sa.Text, nullable=True),
        sa.Column("model_used", sa.String(100), nullable=True),
        sa.Column("input_tokens", sa.Integer, nullable=True),
        sa.Column("output_tokens", sa.Integer, nullable=True),
        sa.Column("response_time_ms", sa.Integer, nullable=True),
        sa.Column("is_success", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("was_accepted", sa.Boolean, nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "rams_notification_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False, index=True),
        sa.Column("rams_document_id", sa.String(36), nullable=True, index=True),
        sa.Column(
            "notification_type",
            sa.Enum(NotificationType, name="rams_notification_type", native_enum=False),
            nullable=False,
        ),
        sa.Column("recipient_email", sa.String(255), nullable=False),
        sa.Column("recipient_name", sa.String(200), nullable=True),
        sa.Column("subject", sa.String(500), nullable=False),
        sa.Column("body_preview", sa.String(1000), nullable=True),
        sa.Column("attempted_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("was_sent", sa.Boolean, nullable=False, server_default=sa.false(), index=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("triggered_by_user_id", sa.String(36), nullable=True),
        sa.Column("triggered_by_user_name", sa.String(200), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    for table in (
        "rams_notification_logs",
        "rams_mcp_audit_logs",
        "rams_sop_references",
        "rams_legislation_references",
        "rams_control_measure_library",
        "rams_hazard_library",
        "rams_method_steps",
        "rams_risk_assessments",
        "rams_documents",
        "audit_events",
        "sites",
        "employees",
        "users",
        "roles",
    ):
        op.drop_table(table)
