"""PDF export of a single RAMS document.

Generates an A4 document using ReportLab, including:
- Header with company and document reference
- Project details
- Risk assessment table with coloured risk badges
- Method statement and work procedure steps
- Sign-off block and worker acknowledgement sheet
"""

from __future__ import annotations

from io import BytesIO
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ramsflow.config.settings import Settings, get_settings
from ramsflow.core.context import RequestContext
from ramsflow.core.errors import NotFoundError
from ramsflow.db.base import utcnow
from ramsflow.db.models.rams import MethodStep, RamsDocument, RiskAssessment, RiskLevel
from ramsflow.services.directory import EmployeeDirectory
from ramsflow.services.reporting.dashboard import as_utc

_log = structlog.get_logger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
WORKER_ACKNOWLEDGEMENT_ROWS = 6

PRIMARY = colors.HexColor("#1e3a5f")
GRID = colors.HexColor("#bdbdbd")
LIGHT = colors.HexColor("#eeeeee")
RISK_COLOURS = {
    RiskLevel.LOW: colors.HexColor("#28a745"),
    RiskLevel.MEDIUM: colors.HexColor("#fd7e14"),
    RiskLevel.HIGH: colors.HexColor("#dc3545"),
}

# Styles
styles = getSampleStyleSheet()
title_style = ParagraphStyle(
    "RamsTitle",
    parent=styles["Heading1"],
    fontSize=16,
    leading=20,
    alignment=2,
    textColor=PRIMARY,
)
company_style = ParagraphStyle(
    "RamsCompany",
    parent=styles["Heading2"],
    fontSize=14,
    textColor=PRIMARY,
)
section_style = ParagraphStyle(
    "RamsSection",
    parent=styles["Heading3"],
    fontSize=11,
    spaceBefore=12,
    spaceAfter=6,
    textColor=PRIMARY,
)
normal_style = ParagraphStyle("RamsNormal", parent=styles["Normal"], fontSize=9, leading=12)
small_style = ParagraphStyle(
    "RamsSmall", parent=normal_style, fontSize=8, leading=10, textColor=colors.HexColor("#616161")
)
header_cell_style = ParagraphStyle(
    "RamsHeaderCell", parent=normal_style, fontName="Helvetica-Bold", textColor=colors.white
)
badge_style = ParagraphStyle(
    "RamsBadge",
    parent=normal_style,
    fontName="Helvetica-Bold",
    fontSize=11,
    alignment=1,
    textColor=colors.white,
)


def _p(text: str | None, style: ParagraphStyle = normal_style, default: str = "-") -> Paragraph:
    """Paragraph with markup-safe text; newlines become line breaks."""
    value = escape(text) if text else default
    return Paragraph(value.replace("\n", "<br/>"), style)


def _fmt_date(value) -> str | None:
    return value.strftime("%d %b %Y") if value else None


async def load_pdf_document(db: AsyncSession, ctx: RequestContext, document_id: str) -> RamsDocument:
    result = await db.execute(
        select(RamsDocument)
        .options(
            selectinload(RamsDocument.risk_assessments),
            selectinload(RamsDocument.method_steps).selectinload(MethodStep.linked_risk_assessment),
        )
        .where(
            RamsDocument.id == document_id,
            RamsDocument.tenant_id == ctx.tenant_id,
            RamsDocument.deleted_at.is_(None),
        )
    )
    document = result.scalar_one_or_none()
    if document is None:
        raise NotFoundError("RAMS document", document_id)
    return document


async def generate_rams_pdf(
    db: AsyncSession,
    ctx: RequestContext,
    document_id: str,
    employees: EmployeeDirectory | None = None,
    settings: Settings | None = None,
) -> BytesIO:
    """Render one RAMS document to PDF and return the in-memory file."""
    settings = settings or get_settings()
    document = await load_pdf_document(db, ctx, document_id)

    safety_officer_name = None
    if document.safety_officer_id and employees is not None:
        officer = await employees.get_employee(document.safety_officer_id)
        safety_officer_name = officer.name if officer else None

    generated_at = utcnow().strftime("%d %b %Y %H:%M")
    company = settings.rams_company_name

    def draw_footer(canvas, doc) -> None:
        canvas.saveState()
        canvas.setFont("Helvetica", 7)
        canvas.setFillColor(colors.grey)
        canvas.drawString(20 * mm, 10 * mm, f"Page {doc.page}")
        canvas.drawCentredString(A4[0] / 2, 10 * mm, company)
        canvas.drawRightString(A4[0] - 20 * mm, 10 * mm, f"Generated: {generated_at}")
        canvas.restoreState()

    buffer = BytesIO()
    pdf = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=20 * mm,
        leftMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=f"RAMS {document.project_reference}",
    )
    width = pdf.width

    elements = []
    elements.extend(_header(document, company, width))
    elements.extend(_project_details(document, safety_officer_name, width))
    elements.extend(_risk_assessments(document.risk_assessments, width))
    elements.extend(_method_statement(document, width))
    elements.extend(_signoff(document, width))
    elements.extend(_worker_acknowledgement(width))

    pdf.build(elements, onFirstPage=draw_footer, onLaterPages=draw_footer)
    buffer.seek(0)
    _log.info("rams_pdf_exported", rams_document_id=document.id)
    return buffer


def _header(document: RamsDocument, company: str, width: float) -> list:
    banner = Table(
        [[_p(company, company_style), Paragraph("RISK ASSESSMENT<br/>AND METHOD STATEMENT<br/>(RAMS)", title_style)]],
        colWidths=[width * 0.5, width * 0.5],
    )
    banner.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "MIDDLE")]))

    reference = Table(
        [
            [
                _p(f"Reference: {document.project_reference}", normal_style),
                _p(f"Status: {document.status.value}", normal_style),
            ],
            [
                _p(f"Project: {document.project_name}", normal_style),
                _p(f"Approved: {_fmt_date(as_utc(document.date_approved)) or '-'}", normal_style),
            ],
        ],
        colWidths=[width * 0.6, width * 0.4],
    )
    reference.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, -1), LIGHT),
                ("LINEABOVE", (0, 0), (-1, 0), 1.5, PRIMARY),
            ]
        )
    )
    return [banner, Spacer(1, 4 * mm), reference, Spacer(1, 4 * mm)]


def _project_details(document: RamsDocument, safety_officer_name: str | None, width: float) -> list:
    label = ParagraphStyle("RamsLabel", parent=normal_style, fontName="Helvetica-Bold")
    rows = [
        [_p("Project Name", label), _p(document.project_name), _p("Reference", label), _p(document.project_reference)],
        [_p("Project Type", label), _p(document.project_type.display), _p("Client", label), _p(document.client_name)],
        [_p("Start Date", label), _p(_fmt_date(document.proposed_start_date)),
         _p("End Date", label), _p(_fmt_date(document.proposed_end_date))],
        [_p("Site Address", label), _p(document.site_address), "", ""],
        [_p("Area of Activity", label), _p(document.area_of_activity), "", ""],
        [_p("Safety Officer", label), _p(safety_officer_name), "", ""],
    ]  # fmt: skip
    table = Table(rows, colWidths=[width / 6, width / 3, width / 6, width / 3])
    table.setStyle(
        TableStyle(
            [
                ("GRID", (0, 0), (-1, -1), 0.5, GRID),
                ("BACKGROUND", (0, 0), (0, -1), LIGHT),
                ("BACKGROUND", (2, 0), (2, 2), LIGHT),
                ("SPAN", (1, 3), (3, 3)),
                ("SPAN", (1, 4), (3, 4)),
                ("SPAN", (1, 5), (3, 5)),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    return [Paragraph("PROJECT DETAILS", section_style), table]


def _legend(width: float) -> Table:
    cells = []
    commands = [("VALIGN", (0, 0), (-1, -1), "MIDDLE")]
    for index, (level, label) in enumerate(
        ((RiskLevel.LOW, "Low (1-4)"), (RiskLevel.MEDIUM, "Medium (5-12)"), (RiskLevel.HIGH, "High (13-25)"))
    ):
        cells.extend(["", _p(label, small_style)])
        commands.append(("BACKGROUND", (index * 2, 0), (index * 2, 0), RISK_COLOURS[level]))
    legend = Table([cells], colWidths=[4 * mm, 26 * mm] * 3, hAlign="RIGHT")
    legend.setStyle(TableStyle(commands))
    return legend


def _risk_badge(rating: int, likelihood: int, severity: int) -> list:
    return [
        Paragraph(str(rating), badge_style),
        Paragraph(f"L{likelihood} x S{severity}", ParagraphStyle("RamsBadgeSub", parent=small_style,
                                                                  alignment=1)),
    ]


def _risk_assessments(risks: list[RiskAssessment], width: float) -> list:
    elements: list = [Paragraph("RISK ASSESSMENT", section_style), _legend(width), Spacer(1, 2 * mm)]
    if not risks:
        elements.append(_p("No risk assessments defined.", small_style))
        return elements

    rows = [
        [
            Paragraph("#", header_cell_style),
            Paragraph("Task / Hazard", header_cell_style),
            Paragraph("Initial", header_cell_style),
            Paragraph("Control Measures", header_cell_style),
            Paragraph("Residual", header_cell_style),
        ]
    ]
    commands = [
        ("BACKGROUND", (0, 0), (-1, 0), PRIMARY),
        ("GRID", (0, 0), (-1, -1), 0.5, GRID),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("VALIGN", (2, 1), (2, -1), "MIDDLE"),
        ("VALIGN", (4, 1), (4, -1), "MIDDLE"),
    ]
    for number, risk in enumerate(risks, 1):
        task = [_p(risk.task_activity, ParagraphStyle("RamsTask", parent=normal_style, fontName="Helvetica-Bold"))]
        if risk.location_area:
            task.append(_p(f"Location: {risk.location_area}", small_style))
        task.append(_p(f"Hazard: {risk.hazard_identified}"))
        if risk.who_at_risk:
            task.append(_p(f"At Risk: {risk.who_at_risk}", small_style))

        controls = [_p(risk.control_measures)]
        if risk.relevant_legislation:
            controls.append(_p(f"Legislation: {risk.relevant_legislation}", small_style))

        rows.append(
            [
                _p(str(number)),
                task,
                _risk_badge(risk.initial_risk_rating, risk.initial_likelihood, risk.initial_severity),
                controls,
                _risk_badge(risk.residual_risk_rating, risk.residual_likelihood, risk.residual_severity),
            ]
        )
        commands.append(("BACKGROUND", (2, number), (2, number), RISK_COLOURS[risk.initial_risk_level]))
        commands.append(("BACKGROUND", (4, number), (4, number), RISK_COLOURS[risk.residual_risk_level]))

    fixed = 10 * mm + 2 * 22 * mm
    table = Table(
        rows,
        colWidths=[10 * mm, (width - fixed) * 0.4, 22 * mm, (width - fixed) * 0.6, 22 * mm],
        repeatRows=1,
    )
    table.setStyle(TableStyle(commands))
    elements.append(table)
    return elements


def _method_statement(document: RamsDocument, width: float) -> list:
    elements: list = [Paragraph("METHOD STATEMENT", section_style)]
    if document.method_statement_body:
        elements.append(_p(document.method_statement_body))
        elements.append(Spacer(1, 3 * mm))

    steps = document.method_steps
    if not steps:
        elements.append(_p("No method steps defined.", small_style))
        return elements

    elements.append(
        Paragraph("Work Procedure Steps:", ParagraphStyle("RamsBold", parent=normal_style, fontName="Helvetica-Bold"))
    )
    rows = [
        [
            Paragraph("Step", header_cell_style),
            Paragraph("Title", header_cell_style),
            Paragraph("Procedure", header_cell_style),
            Paragraph("Notes", header_cell_style),
        ]
    ]
    for step in steps:
        notes = []
        if step.linked_risk_assessment is not None:
            notes.append(_p(f"Risk: {step.linked_risk_assessment.task_activity}", small_style))
        if step.required_permits:
            notes.append(_p(f"Permits: {step.required_permits}", small_style))
        if step.requires_signoff:
            notes.append(_p("Requires Sign-off", small_style))
        rows.append([_p(str(step.step_number)), _p(step.step_title), _p(step.detailed_procedure), notes or ""])

    remaining = width - 14 * mm
    table = Table(rows, colWidths=[14 * mm, remaining * 0.25, remaining * 0.5, remaining * 0.25], repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), PRIMARY),
                ("GRID", (0, 0), (-1, -1), 0.5, GRID),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    elements.append(table)
    return elements


def _signoff(document: RamsDocument, width: float) -> list:
    blank = "Name: ____________________<br/><br/>Signature: ________________<br/><br/>Date: ____________________"
    approved = blank
    if document.date_approved:
        approved = (
            "Name: ____________________<br/><br/>Signature: ________________<br/><br/>"
            f"Date: {_fmt_date(as_utc(document.date_approved))}"
        )
    bold = ParagraphStyle("RamsSignoffLabel", parent=normal_style, fontName="Helvetica-Bold")
    rows = [
        [Paragraph("Prepared By:", bold), Paragraph("Reviewed By:", bold), Paragraph("Approved By:", bold)],
        [Paragraph(blank, small_style), Paragraph(blank, small_style), Paragraph(approved, small_style)],
    ]
    table = Table(rows, colWidths=[width / 3] * 3)
    table.setStyle(
        TableStyle(
            [
                ("BOX", (0, 0), (0, -1), 0.5, GRID),
                ("BOX", (1, 0), (1, -1), 0.5, GRID),
                ("BOX", (2, 0), (2, -1), 0.5, GRID),
                ("TOPPADDING", (0, 0), (-1, -1), 6),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    return [Paragraph("SIGN-OFF", section_style), table]


def _worker_acknowledgement(width: float) -> list:
    bold = ParagraphStyle("RamsAckHeader", parent=normal_style, fontName="Helvetica-Bold")
    rows = [[Paragraph("#", bold), Paragraph("Name (Print)", bold), Paragraph("Signature", bold), Paragraph("Date", bold)]]
    rows.extend([[str(i), "", "", ""] for i in range(1, WORKER_ACKNOWLEDGEMENT_ROWS + 1)])
    remaining = width - 10 * mm
    table = Table(
        rows,
        colWidths=[10 * mm, remaining * 0.4, remaining * 0.4, remaining * 0.2],
        rowHeights=[None] + [9 * mm] * WORKER_ACKNOWLEDGEMENT_ROWS,
    )
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), LIGHT),
                ("GRID", (0, 0), (-1, -1), 0.5, GRID),
                ("ALIGN", (0, 0), (0, -1), "CENTER"),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    return [
        Paragraph("WORKER ACKNOWLEDGMENT", section_style),
        _p(
            "I confirm that I have read, understood, and will comply with this "
            "Risk Assessment and Method Statement."
        ),
        Spacer(1, 2 * mm),
        table,
    ]
