"""
RamsDocumentService: document CRUD and the approval workflow.

Status changes go through DocumentWorkflow. Notifications are staged
on the session and only leave the process after the caller commits.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ramsflow.core.context import RequestContext
from ramsflow.core.errors import ErrorCode, InvalidOperationError, NotFoundError
from ramsflow.db.models.notification import NotificationType
from ramsflow.db.models.rams import MethodStep, ProjectType, RamsDocument, RamsStatus, RiskAssessment
from ramsflow.schemas.rams import (
    RamsDocumentCreate,
    RamsDocumentDetail,
    RamsDocumentListItem,
    RamsDocumentListResponse,
    RamsDocumentUpdate,
)
from ramsflow.services.audit.logger import AuditLogger
from ramsflow.services.directory import EmployeeDirectory, SiteDirectory
from ramsflow.services.notifications.events import NotificationEvent, NotificationQueue
from ramsflow.services.rams.workflow import DocumentWorkflow, WorkflowAction

_log = structlog.get_logger(__name__)

_SORT_COLUMNS = {
    "projectname": RamsDocument.project_name,
    "projectreference": RamsDocument.project_reference,
    "status": RamsDocument.status,
    "proposedstartdate": RamsDocument.proposed_start_date,
    "createdat": RamsDocument.created_at,
}


async def load_document(db: AsyncSession, ctx: RequestContext, document_id: str) -> RamsDocument:
    """Fetch a live document in the caller's tenant or raise NotFoundError."""
    result = await db.execute(
        select(RamsDocument).where(
            RamsDocument.id == document_id,
            RamsDocument.tenant_id == ctx.tenant_id,
            RamsDocument.deleted_at.is_(None),
        )
    )
    document = result.scalar_one_or_none()
    if document is None:
        raise NotFoundError("RAMS document", document_id)
    return document


async def load_editable_document(
    db: AsyncSession, ctx: RequestContext, document_id: str
) -> RamsDocument:
    """Fetch a document whose fields and children may currently be changed."""
    document = await load_document(db, ctx, document_id)
    DocumentWorkflow.ensure(document.status, WorkflowAction.EDIT)
    return document


async def count_children(db: AsyncSession, document_id: str) -> tuple[int, int]:
    ra_count = await db.scalar(
        select(func.count()).select_from(RiskAssessment).where(
            RiskAssessment.rams_document_id == document_id
        )
    )
    step_count = await db.scalar(
        select(func.count()).select_from(MethodStep).where(
            MethodStep.rams_document_id == document_id
        )
    )
    return ra_count or 0, step_count or 0


class RamsDocumentService:
    def __init__(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        notifications: NotificationQueue | None = None,
        employees: EmployeeDirectory | None = None,
        sites: SiteDirectory | None = None,
    ) -> None:
        self._db = db
        self._ctx = ctx
        self._notifications = notifications
        self._employees = employees
        self._sites = sites
        self._audit = AuditLogger(db)

    # ── Queries ───────────────────────────────────────────────────────── #

    async def list_documents(
        self,
        search: str | None = None,
        status: RamsStatus | None = None,
        project_type: ProjectType | None = None,
        sort_by: str | None = None,
        sort_descending: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> RamsDocumentListResponse:
        query = select(RamsDocument).where(
            RamsDocument.tenant_id == self._ctx.tenant_id,
            RamsDocument.deleted_at.is_(None),
        )
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(RamsDocument.project_name).like(pattern),
                    func.lower(RamsDocument.project_reference).like(pattern),
                    func.lower(RamsDocument.client_name).like(pattern),
                )
            )
        if status is not None:
            query = query.where(RamsDocument.status == status)
        if project_type is not None:
            query = query.where(RamsDocument.project_type == project_type)

        total = await self._db.scalar(select(func.count()).select_from(query.subquery())) or 0

        column = _SORT_COLUMNS.get((sort_by or "createdat").lower(), RamsDocument.created_at)
        query = query.order_by(column.desc() if sort_descending else column.asc())

        result = await self._db.execute(query.offset((page - 1) * page_size).limit(page_size))
        items = [RamsDocumentListItem.model_validate(d) for d in result.scalars().all()]
        return RamsDocumentListResponse(items=items, total=total, page=page, page_size=page_size)

    async def get(self, document_id: str) -> RamsDocument:
        return await load_document(self._db, self._ctx, document_id)

    async def get_detail(self, document_id: str) -> RamsDocumentDetail:
        document = await load_document(self._db, self._ctx, document_id)
        ra_count, step_count = await count_children(self._db, document.id)

        safety_officer_name = None
        if document.safety_officer_id and self._employees is not None:
            officer = await self._employees.get_employee(document.safety_officer_id)
            safety_officer_name = officer.name if officer else None

        site_name = None
        if document.site_id and self._sites is not None:
            site_name = await self._sites.get_site_name(document.site_id)

        detail = RamsDocumentDetail.model_validate(document)
        return detail.model_copy(
            update={
                "safety_officer_name": safety_officer_name,
                "site_name": site_name,
                "risk_assessment_count": ra_count,
                "method_step_count": step_count,
                "allowed_actions": [a.value for a in DocumentWorkflow.allowed_actions(document.status)],
            }
        )

    # ── Mutations ─────────────────────────────────────────────────────── #

    async def create(self, data: RamsDocumentCreate) -> RamsDocument:
        await self._ensure_reference_available(data.project_reference)

        document = RamsDocument(
            **data.model_dump(),
            tenant_id=self._ctx.tenant_id,
            status=RamsStatus.DRAFT,
            created_by=self._ctx.user_id,
        )
        self._db.add(document)
        await self._db.flush()

        await self._audit.record(
            self._ctx,
            "rams.created",
            "RamsDocument",
            document.id,
            {"project_reference": document.project_reference},
        )
        _log.info("rams_document_created", rams_document_id=document.id,
                  project_reference=document.project_reference)
        return document

    async def update(self, document_id: str, data: RamsDocumentUpdate) -> RamsDocument:
        document = await load_editable_document(self._db, self._ctx, document_id)
        if data.project_reference != document.project_reference:
            await self._ensure_reference_available(data.project_reference, exclude_id=document.id)

        for field, value in data.model_dump().items():
            setattr(document, field, value)
        await self._db.flush()

        await self._audit.record(self._ctx, "rams.updated", "RamsDocument", document.id)
        return document

    async def delete(self, document_id: str) -> None:
        document = await load_document(self._db, self._ctx, document_id)
        DocumentWorkflow.ensure(document.status, WorkflowAction.DELETE)

        document.soft_delete()
        await self._db.flush()

        await self._audit.record(
            self._ctx,
            "rams.deleted",
            "RamsDocument",
            document.id,
            {"project_reference": document.project_reference},
        )
        _log.info("rams_document_deleted", rams_document_id=document.id)

    async def submit(self, document_id: str) -> RamsDocument:
        document = await load_document(self._db, self._ctx, document_id)
        target = DocumentWorkflow.ensure(document.status, WorkflowAction.SUBMIT)
        ra_count, step_count = await count_children(self._db, document.id)
        DocumentWorkflow.ensure_submittable(ra_count, step_count)

        previous = document.status
        document.status = target
        await self._db.flush()

        await self._audit.record(
            self._ctx,
            "rams.submitted",
            "RamsDocument",
            document.id,
            {"from_status": previous.value},
        )
        self._stage_notification(NotificationType.SUBMIT, document)
        _log.info("rams_document_submitted", rams_document_id=document.id,
                  from_status=previous.value)
        return document

    async def approve(self, document_id: str, comments: str | None = None) -> RamsDocument:
        document = await load_document(self._db, self._ctx, document_id)
        target = DocumentWorkflow.ensure(document.status, WorkflowAction.APPROVE)

        document.status = target
        document.date_approved = datetime.now(UTC)
        document.approved_by_id = self._ctx.user_id
        document.approval_comments = comments.strip() if comments and comments.strip() else None
        await self._db.flush()

        await self._audit.record(self._ctx, "rams.approved", "RamsDocument", document.id)
        self._stage_notification(NotificationType.APPROVE, document)
        _log.info("rams_document_approved", rams_document_id=document.id)
        return document

    async def reject(self, document_id: str, comments: str | None) -> RamsDocument:
        document = await load_document(self._db, self._ctx, document_id)
        target = DocumentWorkflow.ensure(document.status, WorkflowAction.REJECT)
        cleaned = DocumentWorkflow.ensure_rejection_comments(comments)

        document.status = target
        document.approval_comments = cleaned
        await self._db.flush()

        await self._audit.record(
            self._ctx, "rams.rejected", "RamsDocument", document.id, {"comments": cleaned}
        )
        self._stage_notification(NotificationType.REJECT, document, comments=cleaned)
        _log.info("rams_document_rejected", rams_document_id=document.id)
        return document

    # ── Helpers ───────────────────────────────────────────────────────── #

    async def _ensure_reference_available(
        self, reference: str, exclude_id: str | None = None
    ) -> None:
        query = select(RamsDocument.id).where(
            RamsDocument.tenant_id == self._ctx.tenant_id,
            RamsDocument.project_reference == reference,
            RamsDocument.deleted_at.is_(None),
        )
        if exclude_id is not None:
            query = query.where(RamsDocument.id != exclude_id)
        if (await self._db.execute(query.limit(1))).first() is not None:
            raise InvalidOperationError(
                "Project reference already exists",
                code=ErrorCode.RAMS_REFERENCE_EXISTS,
                detail={"project_reference": reference},
            )

    def _stage_notification(
        self,
        notification_type: NotificationType,
        document: RamsDocument,
        comments: str | None = None,
    ) -> None:
        if self._notifications is None:
            return
        self._notifications.stage(
            self._db,
            NotificationEvent(
                notification_type=notification_type,
                tenant_id=self._ctx.tenant_id,
                rams_document_id=document.id,
                triggered_by_user_id=self._ctx.user_id,
                triggered_by_user_name=self._ctx.user_name,
                comments=comments,
            ),
        )
