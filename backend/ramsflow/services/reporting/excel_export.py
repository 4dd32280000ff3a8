"""Excel export of RAMS documents.

Generates a workbook with:
- RAMS Documents (one row per document, status colour-coded)
- Risk Assessments and Method Steps (optional, one row per child)
- Summary (status and residual-risk breakdown)
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta
from io import BytesIO

import structlog
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ramsflow.core.context import RequestContext
from ramsflow.db.base import utcnow
from ramsflow.db.models.rams import RamsDocument, RamsStatus, RiskLevel
from ramsflow.schemas.dashboard import ExportFilter
from ramsflow.services.directory import EmployeeDirectory, SiteDirectory
from ramsflow.services.reporting.dashboard import as_utc

_log = structlog.get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_WHITE = "FFFFFF"
_STATUS_FILLS = {
    RamsStatus.DRAFT: ("D3D3D3", None),
    RamsStatus.PENDING_REVIEW: ("FFA500", None),
    RamsStatus.APPROVED: ("008000", _WHITE),
    RamsStatus.REJECTED: ("FF0000", _WHITE),
    RamsStatus.ARCHIVED: ("A9A9A9", _WHITE),
}
_RISK_FILLS = {
    RiskLevel.HIGH: ("FF0000", _WHITE),
    RiskLevel.MEDIUM: ("FFA500", None),
    RiskLevel.LOW: ("008000", _WHITE),
}


def _paint(cell, fill: tuple[str, str | None]) -> None:
    background, font_colour = fill
    cell.fill = PatternFill(start_color=background, end_color=background, fill_type="solid")
    if font_colour:
        cell.font = Font(color=font_colour)


def _write_header(ws: Worksheet, headers: Sequence[str], colour: str) -> None:
    fill = PatternFill(start_color=colour, end_color=colour, fill_type="solid")
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = Font(bold=True)
        cell.fill = fill


def _autosize(ws: Worksheet, max_width: int = 50) -> None:
    for column_cells in ws.columns:
        length = max((len(str(cell.value)) for cell in column_cells if cell.value is not None), default=0)
        ws.column_dimensions[get_column_letter(column_cells[0].column)].width = min(length + 2, max_width)


def _fmt_date(value) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def _fmt_datetime(value: datetime | None) -> str:
    value = as_utc(value)
    return value.strftime("%d/%m/%Y %H:%M") if value else ""


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


async def load_export_documents(
    db: AsyncSession, ctx: RequestContext, filters: ExportFilter
) -> list[RamsDocument]:
    query = (
        select(RamsDocument)
        .options(
            selectinload(RamsDocument.risk_assessments),
            selectinload(RamsDocument.method_steps),
        )
        .where(RamsDocument.tenant_id == ctx.tenant_id, RamsDocument.deleted_at.is_(None))
    )
    if filters.date_from is not None:
        query = query.where(RamsDocument.created_at >= _day_start(filters.date_from))
    if filters.date_to is not None:
        query = query.where(RamsDocument.created_at < _day_start(filters.date_to + timedelta(days=1)))
    if filters.status is not None:
        query = query.where(RamsDocument.status == filters.status)
    if filters.project_type is not None:
        query = query.where(RamsDocument.project_type == filters.project_type)
    result = await db.execute(query.order_by(RamsDocument.created_at.desc()))
    return list(result.scalars().all())


async def generate_rams_excel(
    db: AsyncSession,
    ctx: RequestContext,
    filters: ExportFilter,
    employees: EmployeeDirectory | None = None,
    sites: SiteDirectory | None = None,
) -> BytesIO:
    """Build the export workbook and return it as an in-memory .xlsx."""
    documents = await load_export_documents(db, ctx, filters)

    site_names: dict[str, str] = {}
    officer_names: dict[str, str] = {}
    for doc in documents:
        if sites is not None and doc.site_id and doc.site_id not in site_names:
            site_names[doc.site_id] = await sites.get_site_name(doc.site_id) or ""
        if employees is not None and doc.safety_officer_id and doc.safety_officer_id not in officer_names:
            officer = await employees.get_employee(doc.safety_officer_id)
            officer_names[doc.safety_officer_id] = officer.name if officer else ""

    wb = Workbook()
    wb.remove(wb.active)

    _documents_sheet(wb, documents, site_names, officer_names)
    if filters.include_risk_assessments:
        _risk_assessments_sheet(wb, documents)
    if filters.include_method_steps:
        _method_steps_sheet(wb, documents)
    _summary_sheet(wb, documents)

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    _log.info("rams_excel_exported", documents=len(documents))
    return output


def _documents_sheet(
    wb: Workbook,
    documents: Sequence[RamsDocument],
    site_names: dict[str, str],
    officer_names: dict[str, str],
) -> None:
    ws = wb.create_sheet("RAMS Documents")
    _write_header(
        ws,
        [
            "Reference", "Project Name", "Project Type", "Client", "Site", "Site Address",
            "Status", "Start Date", "End Date", "Safety Officer", "Date Approved",
            "Risk Assessments", "High Risks", "Method Steps", "Created", "Modified",
        ],
        "ADD8E6",
    )  # fmt: skip
    for row, doc in enumerate(documents, 2):
        values = [
            doc.project_reference,
            doc.project_name,
            doc.project_type.display,
            doc.client_name or "",
            site_names.get(doc.site_id or "", ""),
            doc.site_address or "",
            doc.status.value,
            _fmt_date(doc.proposed_start_date),
            _fmt_date(doc.proposed_end_date),
            officer_names.get(doc.safety_officer_id or "", ""),
            _fmt_date(doc.date_approved),
            len(doc.risk_assessments),
            sum(1 for ra in doc.risk_assessments if ra.residual_risk_level == RiskLevel.HIGH),
            len(doc.method_steps),
            _fmt_datetime(doc.created_at),
            _fmt_datetime(doc.updated_at),
        ]
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=value)
        _paint(ws.cell(row=row, column=7), _STATUS_FILLS[doc.status])
    _autosize(ws)


def _risk_assessments_sheet(wb: Workbook, documents: Sequence[RamsDocument]) -> None:
    ws = wb.create_sheet("Risk Assessments")
    _write_header(
        ws,
        [
            "Document Ref", "Project Name", "Task/Activity", "Location", "Hazard", "Who at Risk",
            "Initial L", "Initial S", "Initial Rating", "Initial Level",
            "Control Measures", "Legislation",
            "Residual L", "Residual S", "Residual Rating", "Residual Level",
            "AI Generated",
        ],
        "90EE90",
    )  # fmt: skip
    row = 2
    for doc in documents:
        for ra in sorted(doc.risk_assessments, key=lambda item: item.sort_order):
            values = [
                doc.project_reference,
                doc.project_name,
                ra.task_activity,
                ra.location_area or "",
                ra.hazard_identified,
                ra.who_at_risk or "",
                ra.initial_likelihood,
                ra.initial_severity,
                ra.initial_risk_rating,
                ra.initial_risk_level.value,
                ra.control_measures or "",
                ra.relevant_legislation or "",
                ra.residual_likelihood,
                ra.residual_severity,
                ra.residual_risk_rating,
                ra.residual_risk_level.value,
                "Yes" if ra.is_ai_generated else "No",
            ]
            for col, value in enumerate(values, 1):
                ws.cell(row=row, column=col, value=value)
            _paint(ws.cell(row=row, column=10), _RISK_FILLS[ra.initial_risk_level])
            _paint(ws.cell(row=row, column=16), _RISK_FILLS[ra.residual_risk_level])
            row += 1
    _autosize(ws)
    ws.column_dimensions["K"].width = 50


def _method_steps_sheet(wb: Workbook, documents: Sequence[RamsDocument]) -> None:
    ws = wb.create_sheet("Method Steps")
    _write_header(
        ws,
        ["Document Ref", "Project Name", "Step #", "Title", "Procedure", "Required Permits", "Requires Sign-off"],
        "FFFFE0",
    )
    row = 2
    for doc in documents:
        for step in sorted(doc.method_steps, key=lambda item: item.step_number):
            values = [
                doc.project_reference,
                doc.project_name,
                step.step_number,
                step.step_title,
                step.detailed_procedure or "",
                step.required_permits or "",
                "Yes" if step.requires_signoff else "No",
            ]
            for col, value in enumerate(values, 1):
                ws.cell(row=row, column=col, value=value)
            row += 1
    _autosize(ws)
    ws.column_dimensions["E"].width = 60


def _summary_sheet(wb: Workbook, documents: Sequence[RamsDocument]) -> None:
    ws = wb.create_sheet("Summary")
    ws["A1"] = "RAMS Export Summary"
    ws["A1"].font = Font(bold=True, size=14)
    ws["A3"] = "Export Date:"
    ws["B3"] = utcnow().strftime("%d/%m/%Y %H:%M")
    ws["A5"] = "Total Documents:"
    ws["A5"].font = Font(bold=True)
    ws["B5"] = len(documents)
    ws["A7"] = "Status Breakdown:"
    ws["A7"].font = Font(bold=True)

    row = 8
    for status, count in Counter(doc.status for doc in documents).most_common():
        ws.cell(row=row, column=2, value=status.value)
        ws.cell(row=row, column=3, value=count)
        _paint(ws.cell(row=row, column=2), _STATUS_FILLS[status])
        row += 1

    row += 2
    ws.cell(row=row, column=1, value="Risk Assessment Summary:").font = Font(bold=True)
    risks = [ra for doc in documents for ra in doc.risk_assessments]
    residual = Counter(ra.residual_risk_level for ra in risks)
    row += 1
    ws.cell(row=row, column=2, value="Total Risk Assessments:")
    ws.cell(row=row, column=3, value=len(risks))
    for label, level in (
        ("High Risk (Residual):", RiskLevel.HIGH),
        ("Medium Risk (Residual):", RiskLevel.MEDIUM),
        ("Low Risk (Residual):", RiskLevel.LOW),
    ):
        row += 1
        ws.cell(row=row, column=2, value=label)
        ws.cell(row=row, column=3, value=residual[level])
        _paint(ws.cell(row=row, column=3), _RISK_FILLS[level])
    _autosize(ws)
