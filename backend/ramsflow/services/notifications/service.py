"""
RamsNotificationService: resolves recipients, renders and sends RAMS
workflow e-mails, and records every attempt in NotificationLog.

Send failures are logged and recorded, never raised: a broken mail
server must not undo a submit or an approval.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ramsflow.config.settings import Settings, get_settings
from ramsflow.core.context import RequestContext
from ramsflow.core.metrics import NOTIFICATIONS
from ramsflow.db.base import utcnow
from ramsflow.db.models.notification import (
    MAX_NOTIFICATION_RETRIES,
    NotificationLog,
    NotificationType,
)
from ramsflow.db.models.rams import RamsDocument, RiskLevel
from ramsflow.schemas.notification import NotificationHistoryItem
from ramsflow.services.directory import EmployeeDirectory, SqlDirectory, UserDirectory
from ramsflow.services.notifications.events import NotificationEvent
from ramsflow.services.notifications.sender import EmailSender, build_email_sender
from ramsflow.services.notifications.templates import EmailTemplate, RamsEmailTemplateService
from ramsflow.services.reporting.dashboard import RamsDashboardService

_log = structlog.get_logger(__name__)

RETRY_BATCH_SIZE = 10
HISTORY_LIMIT = 50


class RamsNotificationService:
    def __init__(
        self,
        db: AsyncSession,
        tenant_id: str,
        sender: EmailSender | None = None,
        templates: RamsEmailTemplateService | None = None,
        settings: Settings | None = None,
        users: UserDirectory | None = None,
        employees: EmployeeDirectory | None = None,
    ) -> None:
        self._db = db
        self._tenant_id = tenant_id
        self._settings = settings or get_settings()
        self._sender = sender or build_email_sender(self._settings)
        self._templates = templates or RamsEmailTemplateService(self._settings)
        directory = SqlDirectory(db, tenant_id)
        self._users = users or directory
        self._employees = employees or directory

    def _enabled(self, flag: bool) -> bool:
        return self._settings.notifications_enabled and flag

    async def handle(self, notification: NotificationEvent) -> None:
        """Entry point for the background dispatcher."""
        match notification.notification_type:
            case NotificationType.SUBMIT:
                await self.send_submit(
                    notification.rams_document_id,
                    notification.triggered_by_user_id,
                    notification.triggered_by_user_name,
                )
            case NotificationType.APPROVE:
                await self.send_approval(
                    notification.rams_document_id,
                    notification.triggered_by_user_id,
                    notification.triggered_by_user_name,
                )
            case NotificationType.REJECT:
                await self.send_rejection(
                    notification.rams_document_id,
                    notification.triggered_by_user_id,
                    notification.triggered_by_user_name,
                    notification.comments,
                )
            case _:
                _log.warning(
                    "notification_type_not_dispatchable",
                    notification_type=notification.notification_type.value,
                )

    # ── Workflow e-mails ──────────────────────────────────────────────── #

    async def send_submit(
        self,
        document_id: str,
        submitted_by_id: str | None,
        submitted_by_name: str | None,
    ) -> None:
        if not self._enabled(self._settings.notify_on_submit):
            _log.debug("notification_disabled", notification_type="Submit")
            return

        document = await self._load_document(document_id)
        if document is None:
            _log.warning("notification_document_missing", notification_type="Submit", rams_document_id=document_id)
            return

        recipient_email = None
        recipient_name = "Safety Officer"
        if document.safety_officer_id:
            officer = await self._employees.get_employee(document.safety_officer_id)
            if officer is not None and officer.email:
                recipient_email = officer.email
                recipient_name = officer.name

        if not recipient_email:
            if not self._settings.rams_approver_emails:
                _log.warning(
                    "notification_no_recipient",
                    notification_type="Submit",
                    rams_document_id=document_id,
                    reason="no safety officer email and no approver emails configured",
                )
                return
            recipient_email = self._settings.rams_approver_emails[0]
            recipient_name = "RAMS Approver"

        high_risk_count = sum(
            1 for ra in document.risk_assessments if ra.residual_risk_level == RiskLevel.HIGH
        )
        template = self._templates.submit_template(
            document.project_reference,
            document.project_name,
            submitted_by_name or "Unknown",
            self._templates.document_url(document.id),
            len(document.risk_assessments),
            high_risk_count,
        )
        await self._send_and_log(
            document.id,
            NotificationType.SUBMIT,
            recipient_email,
            recipient_name,
            template,
            submitted_by_id,
            submitted_by_name,
        )

    async def send_approval(
        self,
        document_id: str,
        approved_by_id: str | None,
        approved_by_name: str | None,
    ) -> None:
        if not self._enabled(self._settings.notify_on_approve):
            _log.debug("notification_disabled", notification_type="Approve")
            return

        document = await self._load_document(document_id)
        if document is None:
            _log.warning("notification_document_missing", notification_type="Approve", rams_document_id=document_id)
            return

        creator_email = await self._creator_email(document)
        if not creator_email:
            _log.warning("notification_no_recipient", notification_type="Approve", rams_document_id=document_id)
            return

        template = self._templates.approval_template(
            document.project_reference,
            document.project_name,
            approved_by_name or "Unknown",
            self._templates.document_url(document.id),
            approved_at=document.date_approved,
        )
        await self._send_and_log(
            document.id,
            NotificationType.APPROVE,
            creator_email,
            "Document Creator",
            template,
            approved_by_id,
            approved_by_name,
        )

    async def send_rejection(
        self,
        document_id: str,
        rejected_by_id: str | None,
        rejected_by_name: str | None,
        comments: str | None,
    ) -> None:
        if not self._enabled(self._settings.notify_on_reject):
            _log.debug("notification_disabled", notification_type="Reject")
            return

        document = await self._load_document(document_id)
        if document is None:
            _log.warning("notification_document_missing", notification_type="Reject", rams_document_id=document_id)
            return

        creator_email = await self._creator_email(document)
        if not creator_email:
            _log.warning("notification_no_recipient", notification_type="Reject", rams_document_id=document_id)
            return

        template = self._templates.rejection_template(
            document.project_reference,
            document.project_name,
            rejected_by_name or "Unknown",
            comments,
            self._templates.document_url(document.id),
        )
        await self._send_and_log(
            document.id,
            NotificationType.REJECT,
            creator_email,
            "Document Creator",
            template,
            rejected_by_id,
            rejected_by_name,
        )

    async def send_daily_digest(self) -> int:
        """Send the pending/overdue digest. Returns the number of recipients attempted."""
        if not self._enabled(self._settings.daily_digest_enabled):
            _log.debug("notification_disabled", notification_type="DailyDigest")
            return 0

        recipients = self._settings.rams_digest_recipients
        if not recipients:
            _log.info("daily_digest_skipped", reason="no recipients configured")
            return 0

        dashboard = RamsDashboardService(
            self._db, RequestContext.system(self._tenant_id), employees=self._employees
        )
        pending = await dashboard.get_pending_approvals()
        overdue = await dashboard.get_overdue_documents()
        if not pending and not overdue:
            _log.info("daily_digest_skipped", reason="nothing pending or overdue")
            return 0

        template = self._templates.daily_digest_template(pending, overdue)
        for recipient in recipients:
            await self._send_and_log(
                None,
                NotificationType.DAILY_DIGEST,
                recipient,
                "Digest Recipient",
                template,
                None,
                "System",
            )

        _log.info(
            "daily_digest_sent",
            recipients=len(recipients),
            pending=len(pending),
            overdue=len(overdue),
        )
        return len(recipients)

    async def send_test(self, email: str) -> bool:
        sent = await self._send_and_log(
            None,
            NotificationType.TEST,
            email,
            "Test Recipient",
            self._templates.test_template(),
            None,
            "System",
        )
        if sent:
            _log.info("test_notification_sent", to=email)
        return sent

    # ── Log maintenance ───────────────────────────────────────────────── #

    async def retry_failed(self) -> int:
        """
        Bump the retry counter on the oldest unsent rows.

        The message body is not stored, so nothing is re-sent; this is
        bookkeeping only. Returns the number of rows touched.
        """
        result = await self._db.execute(
            select(NotificationLog)
            .where(
                NotificationLog.tenant_id == self._tenant_id,
                NotificationLog.was_sent.is_(False),
                NotificationLog.retry_count < MAX_NOTIFICATION_RETRIES,
            )
            .order_by(NotificationLog.attempted_at)
            .limit(RETRY_BATCH_SIZE)
        )
        failed = list(result.scalars().all())
        if not failed:
            _log.debug("notification_retry_nothing_to_do")
            return 0

        for row in failed:
            row.retry_count += 1
            row.attempted_at = utcnow()
            _log.info(
                "notification_retry_recorded",
                notification_id=row.id,
                retry_count=row.retry_count,
                to=row.recipient_email,
            )
        await self._db.flush()
        return len(failed)

    async def history(
        self, document_id: str | None = None, limit: int = HISTORY_LIMIT
    ) -> list[NotificationHistoryItem]:
        query = select(NotificationLog).where(NotificationLog.tenant_id == self._tenant_id)
        if document_id is not None:
            query = query.where(NotificationLog.rams_document_id == document_id)
        rows: Sequence[NotificationLog] = (
            await self._db.execute(query.order_by(NotificationLog.attempted_at.desc()).limit(limit))
        ).scalars().all()

        doc_ids = {row.rams_document_id for row in rows if row.rams_document_id}
        documents: dict[str, tuple[str, str]] = {}
        if doc_ids:
            result = await self._db.execute(
                select(RamsDocument.id, RamsDocument.project_reference, RamsDocument.project_name).where(
                    RamsDocument.id.in_(doc_ids)
                )
            )
            documents = {row.id: (row.project_reference, row.project_name) for row in result}

        items = []
        for row in rows:
            reference, name = documents.get(row.rams_document_id or "", ("", ""))
            items.append(
                NotificationHistoryItem(
                    id=row.id,
                    document_id=row.rams_document_id,
                    project_reference=reference,
                    project_name=name,
                    notification_type=row.notification_type,
                    recipient_email=row.recipient_email,
                    recipient_name=row.recipient_name,
                    subject=row.subject,
                    body_preview=row.body_preview,
                    attempted_at=row.attempted_at,
                    was_sent=row.was_sent,
                    error_message=row.error_message,
                    retry_count=row.retry_count,
                    triggered_by_user_name=row.triggered_by_user_name,
                )
            )
        return items

    # ── Internals ─────────────────────────────────────────────────────── #

    async def _load_document(self, document_id: str) -> RamsDocument | None:
        result = await self._db.execute(
            select(RamsDocument)
            .options(selectinload(RamsDocument.risk_assessments))
            .where(
                RamsDocument.id == document_id,
                RamsDocument.tenant_id == self._tenant_id,
                RamsDocument.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def _creator_email(self, document: RamsDocument) -> str | None:
        if not document.created_by:
            return None
        creator = await self._users.get_user(document.created_by)
        return creator.email if creator else None

    async def _send_and_log(
        self,
        document_id: str | None,
        notification_type: NotificationType,
        recipient_email: str,
        recipient_name: str,
        template: EmailTemplate,
        triggered_by_user_id: str | None,
        triggered_by_user_name: str | None,
    ) -> bool:
        error_message = None
        try:
            await self._sender.send(
                recipient_email, template.subject, template.html_body, template.plain_text_body
            )
            _log.info(
                "notification_sent",
                notification_type=notification_type.value,
                rams_document_id=document_id,
                to=recipient_email,
            )
        except Exception as exc:
            error_message = str(exc)
            _log.error(
                "notification_send_failed",
                notification_type=notification_type.value,
                rams_document_id=document_id,
                to=recipient_email,
                error=error_message,
            )

        NOTIFICATIONS.labels(
            notification_type=notification_type.value,
            outcome="sent" if error_message is None else "failed",
        ).inc()
        await self._record(
            document_id,
            notification_type,
            recipient_email,
            recipient_name,
            template.subject,
            error_message is None,
            error_message,
            triggered_by_user_id,
            triggered_by_user_name,
        )
        return error_message is None

    async def _record(
        self,
        document_id: str | None,
        notification_type: NotificationType,
        recipient_email: str,
        recipient_name: str | None,
        subject: str,
        was_sent: bool,
        error_message: str | None,
        triggered_by_user_id: str | None,
        triggered_by_user_name: str | None,
    ) -> NotificationLog:
        row = NotificationLog(
            tenant_id=self._tenant_id,
            rams_document_id=document_id,
            notification_type=notification_type,
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            subject=subject,
            body_preview=f"[{notification_type.value}] {subject}"[:1000],
            attempted_at=utcnow(),
            was_sent=was_sent,
            error_message=error_message,
            retry_count=0,
            triggered_by_user_id=triggered_by_user_id,
            triggered_by_user_name=triggered_by_user_name,
        )
        self._db.add(row)
        await self._db.flush()
        return row
