"""
RamsEmailTemplateService: renders the RAMS workflow e-mails.

Templates live beside this module in templates/. Each message has an
HTML and a plain-text variant; only the HTML variant is autoescaped.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from ramsflow.config.settings import Settings, get_settings
from ramsflow.db.base import utcnow
from ramsflow.schemas.dashboard import OverdueDocument, PendingApproval

_TEMPLATE_DIR = Path(__file__).parent / "templates"


@dataclass(frozen=True)
class EmailTemplate:
    template_name: str
    subject: str
    html_body: str
    plain_text_body: str


def badge_colours(days_pending: int) -> tuple[str, str]:
    """(background, text) colour for a days-pending badge."""
    if days_pending > 7:
        return "#dc3545", "#fff"
    if days_pending > 3:
        return "#ffc107", "#000"
    return "#6c757d", "#fff"


class RamsEmailTemplateService:
    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._base_url = settings.rams_base_url
        self._company_name = settings.rams_company_name
        self._env = Environment(
            loader=FileSystemLoader(str(_TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._env.globals["badge_colours"] = badge_colours

    def document_url(self, document_id: str) -> str:
        return f"{self._base_url}/rams/{document_id}"

    @property
    def dashboard_url(self) -> str:
        return f"{self._base_url}/rams/dashboard"

    def _render(self, name: str, template_name: str, subject: str, **context) -> EmailTemplate:
        context.setdefault("company_name", self._company_name)
        context.setdefault("base_url", self._base_url)
        return EmailTemplate(
            template_name=template_name,
            subject=subject,
            html_body=self._env.get_template(f"{name}.html").render(**context),
            plain_text_body=self._env.get_template(f"{name}.txt").render(**context),
        )

    def submit_template(
        self,
        project_reference: str,
        project_name: str,
        submitted_by: str,
        document_url: str,
        risk_count: int,
        high_risk_count: int,
    ) -> EmailTemplate:
        return self._render(
            "rams_submit",
            "RamsSubmit",
            f"RAMS Submitted for Review: {project_reference} - {project_name}",
            project_reference=project_reference,
            project_name=project_name,
            submitted_by=submitted_by,
            document_url=document_url,
            risk_count=risk_count,
            high_risk_count=high_risk_count,
        )

    def approval_template(
        self,
        project_reference: str,
        project_name: str,
        approved_by: str,
        document_url: str,
        approved_at: datetime | None = None,
    ) -> EmailTemplate:
        return self._render(
            "rams_approval",
            "RamsApproval",
            f"RAMS Approved: {project_reference} - {project_name}",
            project_reference=project_reference,
            project_name=project_name,
            approved_by=approved_by,
            document_url=document_url,
            approved_at=approved_at or utcnow(),
        )

    def rejection_template(
        self,
        project_reference: str,
        project_name: str,
        rejected_by: str,
        comments: str | None,
        document_url: str,
    ) -> EmailTemplate:
        return self._render(
            "rams_rejection",
            "RamsRejection",
            f"RAMS Rejected: {project_reference} - {project_name}",
            project_reference=project_reference,
            project_name=project_name,
            rejected_by=rejected_by,
            comments=(comments or "").strip() or None,
            document_url=document_url,
        )

    def daily_digest_template(
        self,
        pending: Sequence[PendingApproval],
        overdue: Sequence[OverdueDocument],
        generated_at: datetime | None = None,
    ) -> EmailTemplate:
        return self._render(
            "rams_daily_digest",
            "RamsDailyDigest",
            f"RAMS Daily Digest: {len(pending)} Pending, {len(overdue)} Overdue",
            pending=list(pending),
            overdue=list(overdue),
            dashboard_url=self.dashboard_url,
            generated_at=generated_at or utcnow(),
        )

    def test_template(self) -> EmailTemplate:
        return self._render(
            "rams_test",
            "RamsTest",
            "RAMS Notification Test - Configuration Verified",
            generated_at=utcnow(),
        )
