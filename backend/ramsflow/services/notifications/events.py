"""
Outbound notification events.

Workflow actions never send mail inline. They stage a NotificationEvent
on the current session; the event reaches the queue only when that
session commits, and is dropped if it rolls back. The dispatcher
drains the queue in the background.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from ramsflow.db.models.notification import NotificationType

_log = structlog.get_logger(__name__)

_PENDING_KEY = "rams_pending_notifications"


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    notification_type: NotificationType
    tenant_id: str
    rams_document_id: str
    triggered_by_user_id: str | None = None
    triggered_by_user_name: str | None = None
    comments: str | None = None


class NotificationQueue:
    """In-process channel between request handlers and the dispatcher."""

    def __init__(self, maxsize: int = 1000) -> None:
        self._queue: asyncio.Queue[NotificationEvent] = asyncio.Queue(maxsize=maxsize)

    def publish(self, notification: NotificationEvent) -> None:
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            _log.error(
                "notification_queue_full",
                notification_type=notification.notification_type.value,
                rams_document_id=notification.rams_document_id,
            )

    def stage(self, db: AsyncSession, notification: NotificationEvent) -> None:
        """Publish `notification` after `db` commits; discard it on rollback."""
        sync_session = db.sync_session
        if _PENDING_KEY not in sync_session.info:
            sync_session.info[_PENDING_KEY] = []
            # Listeners live as long as the (request-scoped) session
            event.listen(sync_session, "after_commit", self._flush_pending)
            event.listen(sync_session, "after_soft_rollback", self._discard_pending)
        sync_session.info[_PENDING_KEY].append(notification)

    def _flush_pending(self, session: Session) -> None:
        pending = session.info.get(_PENDING_KEY, [])
        while pending:
            self.publish(pending.pop(0))

    def _discard_pending(self, session: Session, previous_transaction: object) -> None:
        pending = session.info.get(_PENDING_KEY, [])
        if pending:
            _log.info("notifications_discarded_on_rollback", count=len(pending))
            pending.clear()

    async def get(self) -> NotificationEvent:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every published event has been processed."""
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    def drain_nowait(self) -> list[NotificationEvent]:
        """Remove and return everything currently queued."""
        drained = []
        while not self._queue.empty():
            drained.append(self._queue.get_nowait())
            self._queue.task_done()
        return drained
