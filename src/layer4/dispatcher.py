"""Renders a weekly report and hands it to an email transport."""

from __future__ import annotations

import logging
import re

from ..core.errors import DispatchError
from ..layer3.models import WeeklyReport
from .config import Layer4Config
from .email_models import EmailDispatchResult, RecipientType, ReportEmail
from .email_sender import EmailTransport
from .renderers import render_html, render_text

LOGGER = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(address: str | None) -> bool:
    return bool(address) and EMAIL_PATTERN.match(address) is not None


class NotificationDispatcher:
    """Delivery failures come back as `EmailDispatchResult`, never as exceptions."""

    def __init__(self, config: Layer4Config, transport: EmailTransport) -> None:
        self.config = config
        self.transport = transport

    def dispatch(
        self,
        report: WeeklyReport,
        *,
        to: str,
        subject: str,
        recipient_name: str,
        recipient_type: RecipientType = "student",
    ) -> EmailDispatchResult:
        try:
            email = self._build_email(report, to, subject, recipient_name, recipient_type)
            message_id = self.transport.send(email)
        except Exception as exc:
            LOGGER.warning("Weekly report email to %s failed: %s", to, exc)
            return EmailDispatchResult.failed(str(exc), recipient=to)
        dry_run = bool(getattr(self.transport, "dry_run", False))
        if not dry_run:
            LOGGER.info("Weekly report email sent to %s (message_id=%s).", to, message_id)
        return EmailDispatchResult.sent(message_id, recipient=to, dry_run=dry_run)

    def _build_email(
        self,
        report: WeeklyReport,
        to: str,
        subject: str,
        recipient_name: str,
        recipient_type: RecipientType,
    ) -> ReportEmail:
        if not is_valid_email(to):
            raise DispatchError("Valid recipient email address is required")
        if not self.config.email_sender:
            raise DispatchError("EMAIL_SENDER is not configured")
        return ReportEmail(
            sender=self.config.email_sender,
            recipient=to,
            subject=subject,
            html=render_html(report, recipient_name, recipient_type),
            text=render_text(report, recipient_name, recipient_type),
        )
