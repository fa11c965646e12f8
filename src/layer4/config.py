"""Configuration helpers for Layer 4 (weekly report email delivery)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_or_default(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass(slots=True)
class Layer4Config:
    """Runtime configuration for rendering and sending report emails."""

    email_sender: str = field(default_factory=lambda: _env_or_default("EMAIL_SENDER", ""))
    transport: str = field(default_factory=lambda: _env_or_default("EMAIL_TRANSPORT", "smtp"))
    dry_run: bool = field(default_factory=lambda: _env_bool("EMAIL_DRY_RUN", True))
    subject_template: str = field(default_factory=lambda: os.getenv("EMAIL_SUBJECT_TEMPLATE", "Weekly Academic Report - {week_start} to {week_end}"))

    # SMTP settings
    smtp_host: str = field(default_factory=lambda: os.getenv("SMTP_HOST", "smtp.gmail.com"))
    smtp_port: int = field(default_factory=lambda: _env_int("SMTP_PORT", 587))
    smtp_user: str = field(default_factory=lambda: os.getenv("SMTP_USER", ""))
    smtp_password: str = field(default_factory=lambda: os.getenv("SMTP_PASSWORD", ""))
    smtp_use_tls: bool = field(default_factory=lambda: _env_bool("SMTP_USE_TLS", True))
    smtp_timeout: float = field(default_factory=lambda: float(os.getenv("SMTP_TIMEOUT", "15")))

    def format_subject(self, week_start: str, week_end: str) -> str:
        return self.subject_template.format(week_start=week_start, week_end=week_end).strip()
