"""RAMS notification history and admin actions."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ramsflow.api.deps import AdminUser, Ctx, DbSession, Directory
from ramsflow.core.context import RequestContext
from ramsflow.schemas.notification import (
    NotificationHistoryItem,
    NotificationRunResult,
    TestNotificationRequest,
    TestNotificationResult,
)
from ramsflow.services.directory import SqlDirectory
from ramsflow.services.notifications.sender import EmailSender
from ramsflow.services.notifications.service import HISTORY_LIMIT, RamsNotificationService

router = APIRouter(prefix="/rams/notifications", tags=["rams-notifications"])


def get_email_sender(request: Request) -> EmailSender | None:
    return getattr(request.app.state, "email_sender", None)


Sender = Annotated[EmailSender | None, Depends(get_email_sender)]


def _service(
    db: AsyncSession, ctx: RequestContext, sender: EmailSender | None, directory: SqlDirectory
) -> RamsNotificationService:
    return RamsNotificationService(
        db, ctx.tenant_id, sender=sender, users=directory, employees=directory
    )


@router.get(
    "/history",
    response_model=list[NotificationHistoryItem],
    summary="Most recent notification attempts",
)
async def notification_history(
    db: DbSession,
    ctx: Ctx,
    sender: Sender,
    directory: Directory,
    document_id: str | None = Query(default=None),
    limit: int = Query(default=HISTORY_LIMIT, ge=1, le=200),
) -> list[NotificationHistoryItem]:
    return await _service(db, ctx, sender, directory).history(document_id, limit)


@router.post(
    "/test",
    response_model=TestNotificationResult,
    summary="Send a test email to verify the mail configuration",
    dependencies=[AdminUser],
)
async def send_test_notification(
    body: TestNotificationRequest,
    db: DbSession,
    ctx: Ctx,
    sender: Sender,
    directory: Directory,
) -> TestNotificationResult:
    sent = await _service(db, ctx, sender, directory).send_test(body.email)
    return TestNotificationResult(sent=sent, email=body.email)


@router.post(
    "/retry",
    response_model=NotificationRunResult,
    summary="Record a retry on the oldest failed notifications",
    dependencies=[AdminUser],
)
async def retry_failed_notifications(
    db: DbSession, ctx: Ctx, sender: Sender, directory: Directory
) -> NotificationRunResult:
    return NotificationRunResult(processed=await _service(db, ctx, sender, directory).retry_failed())


@router.post(
    "/digest",
    response_model=NotificationRunResult,
    summary="Send the pending/overdue digest now",
    dependencies=[AdminUser],
)
async def send_daily_digest(
    db: DbSession, ctx: Ctx, sender: Sender, directory: Directory
) -> NotificationRunResult:
    return NotificationRunResult(
        processed=await _service(db, ctx, sender, directory).send_daily_digest()
    )
