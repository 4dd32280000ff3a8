"""Unit tests for the Excel and PDF exports."""

from datetime import UTC, date, datetime

import pytest
from openpyxl import load_workbook

from ramsflow.core.errors import NotFoundError
from ramsflow.db.models.rams import RamsStatus
from ramsflow.schemas.dashboard import ExportFilter
from ramsflow.services.directory import SqlDirectory
from ramsflow.services.reporting.excel_export import generate_rams_excel
from ramsflow.services.reporting.pdf_export import generate_rams_pdf

pytestmark = pytest.mark.asyncio


async def _workbook(db_session, ctx, **filters):
    directory = SqlDirectory(db_session, ctx.tenant_id)
    output = await generate_rams_excel(
        db_session, ctx, ExportFilter(**filters), employees=directory, sites=directory
    )
    return load_workbook(output)


def _column(ws, header: str) -> list:
    headers = [cell.value for cell in ws[1]]
    index = headers.index(header)
    return [row[index] for row in ws.iter_rows(min_row=2, values_only=True)]


# ─── Excel ────────────────────────────────────────────────────────────────────


async def test_excel_has_all_sheets(db_session, ctx, safety_officer, document_factory):
    await document_factory("RAMS-1", risks=2, steps=3, safety_officer_id=safety_officer.id)
    await document_factory("RAMS-2", status=RamsStatus.APPROVED, risks=1)

    wb = await _workbook(db_session, ctx)

    assert wb.sheetnames == ["RAMS Documents", "Risk Assessments", "Method Steps", "Summary"]
    documents = wb["RAMS Documents"]
    assert sorted(_column(documents, "Reference")) == ["RAMS-1", "RAMS-2"]
    assert "Sam Safety" in _column(documents, "Safety Officer")
    assert sorted(_column(documents, "Status")) == ["Approved", "Draft"]

    risks = wb["Risk Assessments"]
    assert len(_column(risks, "Hazard")) == 3
    assert set(_column(risks, "Initial Rating")) == {12}
    assert set(_column(risks, "Residual Level")) == {"Low"}
    assert set(_column(risks, "AI Generated")) == {"No"}

    steps = wb["Method Steps"]
    assert _column(steps, "Title") == ["Step 1", "Step 2", "Step 3"]

    summary = wb["Summary"]
    assert summary["A1"].value == "RAMS Export Summary"
    assert summary["B5"].value == 2


async def test_excel_optional_sheets_can_be_skipped(db_session, ctx, complete_document):
    wb = await _workbook(db_session, ctx, include_risk_assessments=False, include_method_steps=False)
    assert wb.sheetnames == ["RAMS Documents", "Summary"]


async def test_excel_filters(db_session, ctx, document_factory):
    await document_factory("RAMS-D", created_at=datetime(2026, 1, 5, 10, tzinfo=UTC))
    await document_factory(
        "RAMS-A", status=RamsStatus.APPROVED, created_at=datetime(2026, 2, 5, 10, tzinfo=UTC)
    )

    by_status = await _workbook(db_session, ctx, status=RamsStatus.APPROVED)
    assert _column(by_status["RAMS Documents"], "Reference") == ["RAMS-A"]

    by_date = await _workbook(db_session, ctx, date_from=date(2026, 1, 1), date_to=date(2026, 1, 31))
    assert _column(by_date["RAMS Documents"], "Reference") == ["RAMS-D"]


async def test_excel_excludes_deleted_and_other_tenants(
    db_session, ctx, other_tenant_ctx, document_factory
):
    await document_factory("RAMS-MINE")
    gone = await document_factory("RAMS-GONE")
    gone.deleted_at = datetime(2026, 1, 1, tzinfo=UTC)
    await document_factory("RAMS-THEIRS", context=other_tenant_ctx)
    await db_session.flush()

    wb = await _workbook(db_session, ctx)
    assert _column(wb["RAMS Documents"], "Reference") == ["RAMS-MINE"]


async def test_excel_with_no_documents(db_session, ctx):
    wb = await _workbook(db_session, ctx)
    assert wb["RAMS Documents"].max_row == 1
    assert wb["Summary"]["B5"].value == 0


# ─── PDF ──────────────────────────────────────────────────────────────────────


async def test_pdf_renders(db_session, ctx, safety_officer, document_factory):
    document = await document_factory(
        "RAMS-PDF",
        risks=3,
        steps=2,
        safety_officer_id=safety_officer.id,
        proposed_start_date=date(2026, 4, 1),
        client_name="Tom & Jerry <Ltd>",
    )
    output = await generate_rams_pdf(
        db_session, ctx, document.id, employees=SqlDirectory(db_session, ctx.tenant_id)
    )
    content = output.getvalue()
    assert content.startswith(b"%PDF")
    assert len(content) > 1000


async def test_pdf_for_empty_document(db_session, ctx, draft_document):
    output = await generate_rams_pdf(db_session, ctx, draft_document.id)
    assert output.getvalue().startswith(b"%PDF")


async def test_pdf_missing_document(db_session, ctx):
    with pytest.raises(NotFoundError):
        await generate_rams_pdf(db_session, ctx, "missing")


async def test_pdf_other_tenant_is_not_found(db_session, other_tenant_ctx, draft_document):
    with pytest.raises(NotFoundError):
        await generate_rams_pdf(db_session, other_tenant_ctx, draft_document.id)
