"""Notification log and admin action schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ramsflow.db.models.notification import NotificationType


class NotificationHistoryItem(BaseModel):
    id: str
    document_id: str | None
    project_reference: str = ""
    project_name: str = ""
    notification_type: NotificationType
    recipient_email: str
    recipient_name: str | None
    subject: str
    body_preview: str | None
    attempted_at: datetime
    was_sent: bool
    error_message: str | None
    retry_count: int
    triggered_by_user_name: str | None


class TestNotificationRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class TestNotificationResult(BaseModel):
    sent: bool
    email: str


class NotificationRunResult(BaseModel):
    processed: int
