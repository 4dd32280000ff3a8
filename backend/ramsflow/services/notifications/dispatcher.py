"""
Background consumer of the NotificationQueue.

One task per application. Each event is handled in its own session so
a failure in one delivery never touches another, nor the request that
raised the event.
"""

from __future__ import annotations

import asyncio
import contextlib

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ramsflow.config.settings import Settings, get_settings
from ramsflow.db.session import session_scope
from ramsflow.services.notifications.events import NotificationEvent, NotificationQueue
from ramsflow.services.notifications.sender import EmailSender, build_email_sender
from ramsflow.services.notifications.service import RamsNotificationService
from ramsflow.services.notifications.templates import RamsEmailTemplateService

_log = structlog.get_logger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        queue: NotificationQueue,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        sender: EmailSender | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._queue = queue
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._sender = sender or build_email_sender(self._settings)
        self._templates = RamsEmailTemplateService(self._settings)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="rams-notification-dispatcher")
        _log.info("notification_dispatcher_started")

    async def stop(self, timeout: float = 10.0) -> None:
        """
        Deliver whatever is already queued, then stop the worker.

        The worker gets `timeout` seconds to finish the queue, including
        the event it is currently handling. Anything still queued after
        that is delivered here; only an event stuck in flight is lost.
        """
        if self._task is None:
            return
        if not self._task.done():
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except TimeoutError:
                _log.warning("notification_dispatcher_stop_timeout", pending=self._queue.qsize())
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        for notification in self._queue.drain_nowait():
            await self.process(notification)
        _log.info("notification_dispatcher_stopped")

    async def _run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self.process(notification)
            finally:
                self._queue.task_done()

    async def process(self, notification: NotificationEvent) -> None:
        try:
            async with session_scope(self._session_factory) as db:
                service = RamsNotificationService(
                    db,
                    notification.tenant_id,
                    sender=self._sender,
                    templates=self._templates,
                    settings=self._settings,
                )
                await service.handle(notification)
        except Exception as exc:
            _log.error(
                "notification_dispatch_failed",
                notification_type=notification.notification_type.value,
                rams_document_id=notification.rams_document_id,
                error=str(exc),
            )
