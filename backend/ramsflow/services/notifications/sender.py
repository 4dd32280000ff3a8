"""
Outbound e-mail transports.

Senders raise on failure; RamsNotificationService turns that into a
failed NotificationLog row.
"""

from __future__ import annotations

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import structlog

from ramsflow.config.settings import Settings

_log = structlog.get_logger(__name__)


class EmailSender(Protocol):
    async def send(
        self, to_email: str, subject: str, html_body: str, text_body: str | None = None
    ) -> None: ...


class SmtpEmailSender:
    """Blocking smtplib delivery, run in a worker thread."""

    def __init__(self, settings: Settings) -> None:
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._user = settings.smtp_user
        self._password = settings.smtp_password.get_secret_value() if settings.smtp_password else None
        self._use_tls = settings.smtp_use_tls
        self._from_email = settings.smtp_from_email

    def _build_message(
        self, to_email: str, subject: str, html_body: str, text_body: str | None
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._from_email
        msg["To"] = to_email
        if text_body:
            msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _send_sync(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=30) as server:
            if self._use_tls:
                server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.send_message(msg)

    async def send(
        self, to_email: str, subject: str, html_body: str, text_body: str | None = None
    ) -> None:
        msg = self._build_message(to_email, subject, html_body, text_body)
        await asyncio.to_thread(self._send_sync, msg)
        _log.info("email_sent", to=to_email, subject=subject)


class LoggingEmailSender:
    """Used when no SMTP host is configured: records the message and returns."""

    async def send(
        self, to_email: str, subject: str, html_body: str, text_body: str | None = None
    ) -> None:
        _log.info("email_not_sent_smtp_unconfigured", to=to_email, subject=subject)


def build_email_sender(settings: Settings) -> EmailSender:
    if settings.smtp_host:
        return SmtpEmailSender(settings)
    return LoggingEmailSender()
