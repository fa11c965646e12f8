"""Email transports for weekly report delivery."""

from __future__ import annotations

import logging
import smtplib
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Protocol

from ..core.errors import DispatchError
from .config import Layer4Config
from .email_models import ReportEmail

LOGGER = logging.getLogger(__name__)


class EmailTransport(Protocol):
    def send(self, email: ReportEmail) -> str:
        """Deliver the email and return the transport's message id."""
        ...


class SmtpEmailTransport:
    """Sends multipart (HTML + text) mail through an SMTP relay."""

    def __init__(self, config: Layer4Config) -> None:
        self.config = config

    def send(self, email: ReportEmail) -> str:
        message = MIMEMultipart("alternative")
        message["From"] = email.sender
        message["To"] = email.recipient
        message["Subject"] = email.subject
        message_id = make_msgid()
        message["Message-ID"] = message_id
        message.attach(MIMEText(email.text, "plain", "utf-8"))
        message.attach(MIMEText(email.html, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=self.config.smtp_timeout) as server:
                if self.config.smtp_use_tls:
                    server.starttls()
                if self.config.smtp_user:
                    server.login(self.config.smtp_user, self.config.smtp_password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DispatchError(f"SMTP delivery failed: {exc}") from exc

        LOGGER.info("Email sent via SMTP: message_id=%s to=%s", message_id, email.recipient)
        return message_id


class DryRunEmailTransport:
    """Logs emails instead of sending them. Keeps nothing between calls."""

    dry_run = True

    def send(self, email: ReportEmail) -> str:
        message_id = f"dry-run-{uuid.uuid4().hex}"
        LOGGER.warning("Dry run: email to %s with subject %r not sent (message_id=%s).", email.recipient, email.subject, message_id)
        return message_id


def build_transport(config: Layer4Config) -> EmailTransport:
    if config.dry_run:
        return DryRunEmailTransport()
    if config.transport == "smtp":
        return SmtpEmailTransport(config)
    raise ValueError(f"Unsupported email transport: {config.transport}")
