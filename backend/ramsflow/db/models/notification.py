"""Delivery log for RAMS workflow e-mails."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy import (
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from ramsflow.db.base import Base, TenantMixin, TimestampMixin, UUIDPrimaryKeyMixin, utcnow

MAX_NOTIFICATION_RETRIES = 3


class NotificationType(StrEnum):
    SUBMIT = "Submit"
    APPROVE = "Approve"
    REJECT = "Reject"
    DAILY_DIGEST = "DailyDigest"
    TEST = "Test"


class NotificationLog(Base, UUIDPrimaryKeyMixin, TimestampMixin, TenantMixin):
    """One row per attempted e-mail, successful or not."""

    __tablename__ = "rams_notification_logs"

    rams_document_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    notification_type: Mapped[NotificationType] = mapped_column(
        SAEnum(NotificationType, name="rams_notification_type", native_enum=False),
        nullable=False,
    )
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body_preview: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    was_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    triggered_by_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    triggered_by_user_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<NotificationLog {self.notification_type} to={self.recipient_email} sent={self.was_sent}>"
