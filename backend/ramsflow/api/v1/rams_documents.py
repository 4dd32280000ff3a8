"""RAMS document endpoints: CRUD, approval workflow and exports."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ramsflow.api.deps import Ctx, DbSession, Directory, EditorUser, Notifications, ReviewerUser
from ramsflow.core.context import RequestContext
from ramsflow.db.base import utcnow
from ramsflow.db.models.rams import ProjectType, RamsStatus
from ramsflow.schemas.dashboard import ExportFilter
from ramsflow.schemas.rams import (
    ApproveRequest,
    RamsDocumentCreate,
    RamsDocumentDetail,
    RamsDocumentListResponse,
    RamsDocumentOut,
    RamsDocumentUpdate,
    RejectRequest,
)
from ramsflow.services.directory import SqlDirectory
from ramsflow.services.notifications.events import NotificationQueue
from ramsflow.services.rams.documents import RamsDocumentService
from ramsflow.services.reporting.excel_export import XLSX_MEDIA_TYPE, generate_rams_excel
from ramsflow.services.reporting.pdf_export import PDF_MEDIA_TYPE, generate_rams_pdf

router = APIRouter(prefix="/rams", tags=["rams"])


def _service(
    db: AsyncSession,
    ctx: RequestContext,
    notifications: NotificationQueue | None = None,
    directory: SqlDirectory | None = None,
) -> RamsDocumentService:
    return RamsDocumentService(
        db, ctx, notifications=notifications, employees=directory, sites=directory
    )


def _attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("", response_model=RamsDocumentListResponse, summary="List RAMS documents")
async def list_documents(
    db: DbSession,
    ctx: Ctx,
    search: str | None = Query(default=None, max_length=200),
    status: RamsStatus | None = Query(default=None),
    project_type: ProjectType | None = Query(default=None),
    sort_by: str | None = Query(default=None, description="projectname, projectreference, status, proposedstartdate or createdat"),
    sort_descending: bool = Query(default=True),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> RamsDocumentListResponse:
    return await _service(db, ctx).list_documents(
        search=search,
        status=status,
        project_type=project_type,
        sort_by=sort_by,
        sort_descending=sort_descending,
        page=page,
        page_size=page_size,
    )


@router.post(
    "",
    response_model=RamsDocumentOut,
    status_code=201,
    summary="Create a draft RAMS document",
    dependencies=[EditorUser],
)
async def create_document(body: RamsDocumentCreate, db: DbSession, ctx: Ctx) -> RamsDocumentOut:
    document = await _service(db, ctx).create(body)
    return RamsDocumentOut.model_validate(document)


@router.get(
    "/export/excel",
    summary="Export RAMS documents to an Excel workbook",
    response_class=Response,
)
async def export_excel(
    filters: Annotated[ExportFilter, Query()],
    db: DbSession,
    ctx: Ctx,
    directory: Directory,
) -> Response:
    buffer = await generate_rams_excel(db, ctx, filters, employees=directory, sites=directory)
    filename = f"RAMS_Export_{utcnow():%Y%m%d_%H%M%S}.xlsx"
    return _attachment(buffer.getvalue(), XLSX_MEDIA_TYPE, filename)


@router.get("/{document_id}", response_model=RamsDocumentDetail, summary="Get a RAMS document")
async def get_document(
    document_id: str, db: DbSession, ctx: Ctx, directory: Directory
) -> RamsDocumentDetail:
    return await _service(db, ctx, directory=directory).get_detail(document_id)


@router.put(
    "/{document_id}",
    response_model=RamsDocumentOut,
    summary="Update a Draft or Rejected document",
    dependencies=[EditorUser],
)
async def update_document(
    document_id: str, body: RamsDocumentUpdate, db: DbSession, ctx: Ctx
) -> RamsDocumentOut:
    document = await _service(db, ctx).update(document_id, body)
    return RamsDocumentOut.model_validate(document)


@router.delete(
    "/{document_id}",
    status_code=204,
    summary="Soft-delete a Draft document",
    dependencies=[EditorUser],
)
async def delete_document(document_id: str, db: DbSession, ctx: Ctx) -> None:
    await _service(db, ctx).delete(document_id)


# ── Workflow ──────────────────────────────────────────────────────────── #


@router.post(
    "/{document_id}/submit",
    response_model=RamsDocumentOut,
    summary="Submit for review",
    dependencies=[EditorUser],
)
async def submit_document(
    document_id: str, db: DbSession, ctx: Ctx, notifications: Notifications
) -> RamsDocumentOut:
    document = await _service(db, ctx, notifications).submit(document_id)
    return RamsDocumentOut.model_validate(document)


@router.post(
    "/{document_id}/approve",
    response_model=RamsDocumentOut,
    summary="Approve a document pending review",
    dependencies=[ReviewerUser],
)
async def approve_document(
    document_id: str,
    db: DbSession,
    ctx: Ctx,
    notifications: Notifications,
    body: ApproveRequest | None = None,
) -> RamsDocumentOut:
    comments = body.comments if body else None
    document = await _service(db, ctx, notifications).approve(document_id, comments)
    return RamsDocumentOut.model_validate(document)


@router.post(
    "/{document_id}/reject",
    response_model=RamsDocumentOut,
    summary="Reject a document pending review",
    dependencies=[ReviewerUser],
)
async def reject_document(
    document_id: str,
    body: RejectRequest,
    db: DbSession,
    ctx: Ctx,
    notifications: Notifications,
) -> RamsDocumentOut:
    document = await _service(db, ctx, notifications).reject(document_id, body.comments)
    return RamsDocumentOut.model_validate(document)


@router.get(
    "/{document_id}/export/pdf",
    summary="Export a RAMS document to PDF",
    response_class=Response,
)
async def export_pdf(document_id: str, db: DbSession, ctx: Ctx, directory: Directory) -> Response:
    buffer = await generate_rams_pdf(db, ctx, document_id, employees=directory)
    return _attachment(buffer.getvalue(), PDF_MEDIA_TYPE, f"RAMS_{document_id}.pdf")
