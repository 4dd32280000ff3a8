"""Unit tests for the background NotificationDispatcher."""

import asyncio

import pytest
from sqlalchemy import select

from ramsflow.config.settings import get_settings
from ramsflow.db.models.notification import NotificationLog, NotificationType
from ramsflow.db.models.rams import RamsStatus
from ramsflow.services.notifications.dispatcher import NotificationDispatcher
from ramsflow.services.notifications.events import NotificationEvent, NotificationQueue

pytestmark = pytest.mark.asyncio


def _settings():
    return get_settings().model_copy(update={"notifications_enabled": True})


def _approve_event(ctx, document_id: str) -> NotificationEvent:
    return NotificationEvent(
        notification_type=NotificationType.APPROVE,
        tenant_id=ctx.tenant_id,
        rams_document_id=document_id,
        triggered_by_user_name="Rita Reviewer",
    )


async def _committed_approved_document(db_session, document_factory):
    document = await document_factory("RAMS-D", status=RamsStatus.APPROVED)
    await db_session.commit()
    return document


async def test_process_sends_in_its_own_session(db_session, ctx, sender, session_factory, document_factory):
    document = await _committed_approved_document(db_session, document_factory)
    dispatcher = NotificationDispatcher(
        NotificationQueue(), session_factory=session_factory, sender=sender, settings=_settings()
    )

    await dispatcher.process(_approve_event(ctx, document.id))

    [mail] = sender.sent
    assert mail["to"] == "author@example.com"
    logs = (await db_session.execute(select(NotificationLog))).scalars().all()
    assert [log.was_sent for log in logs] == [True]


async def test_process_swallows_failures(ctx, sender):
    def broken_factory():
        raise RuntimeError("database unavailable")

    dispatcher = NotificationDispatcher(
        NotificationQueue(), session_factory=broken_factory, sender=sender, settings=_settings()
    )
    await dispatcher.process(_approve_event(ctx, "doc-1"))
    assert sender.sent == []


async def test_worker_drains_queue(db_session, ctx, sender, session_factory, document_factory):
    document = await _committed_approved_document(db_session, document_factory)
    queue = NotificationQueue()
    dispatcher = NotificationDispatcher(queue, session_factory=session_factory, sender=sender, settings=_settings())

    dispatcher.start()
    assert dispatcher.running
    queue.publish(_approve_event(ctx, document.id))
    await asyncio.wait_for(queue.join(), timeout=5)
    await dispatcher.stop()

    assert len(sender.sent) == 1
    assert dispatcher.running is False


async def test_stop_delivers_leftovers(db_session, ctx, sender, session_factory, document_factory):
    document = await _committed_approved_document(db_session, document_factory)
    queue = NotificationQueue()
    dispatcher = NotificationDispatcher(queue, session_factory=session_factory, sender=sender, settings=_settings())

    queue.publish(_approve_event(ctx, document.id))
    dispatcher.start()
    # Published before the worker starts; stop() waits for it
    await dispatcher.stop()

    assert len(sender.sent) == 1
    assert queue.qsize() == 0


async def test_stop_without_start_is_noop(sender):
    dispatcher = NotificationDispatcher(NotificationQueue(), sender=sender, settings=_settings())
    await dispatcher.stop()
    assert dispatcher.running is False


# ─── Shutdown with a delivery in flight ──────────────────────────────────────


class _GatedSender:
    """Blocks inside send() until released."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.sent: list[str] = []

    async def send(self, to_email, subject, html_body, text_body=None) -> None:
        self.entered.set()
        await self.release.wait()
        self.sent.append(to_email)


async def test_stop_finishes_in_flight_delivery(db_session, ctx, session_factory, document_factory):
    document = await _committed_approved_document(db_session, document_factory)
    queue = NotificationQueue()
    gated = _GatedSender()
    dispatcher = NotificationDispatcher(queue, session_factory=session_factory, sender=gated, settings=_settings())

    dispatcher.start()
    queue.publish(_approve_event(ctx, document.id))
    await asyncio.wait_for(gated.entered.wait(), timeout=5)

    stopping = asyncio.create_task(dispatcher.stop())
    await asyncio.sleep(0.05)
    assert not stopping.done()

    gated.release.set()
    await asyncio.wait_for(stopping, timeout=5)

    assert gated.sent == ["author@example.com"]
    logs = (await db_session.execute(select(NotificationLog))).scalars().all()
    assert [log.was_sent for log in logs] == [True]
    assert dispatcher.running is False


async def test_stop_gives_up_after_timeout(db_session, ctx, session_factory, document_factory):
    document = await _committed_approved_document(db_session, document_factory)
    queue = NotificationQueue()
    gated = _GatedSender()
    dispatcher = NotificationDispatcher(queue, session_factory=session_factory, sender=gated, settings=_settings())

    dispatcher.start()
    queue.publish(_approve_event(ctx, document.id))
    await asyncio.wait_for(gated.entered.wait(), timeout=5)

    await asyncio.wait_for(dispatcher.stop(timeout=0.05), timeout=5)

    assert dispatcher.running is False
    assert gated.sent == []
