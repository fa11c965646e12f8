"""Configuration helpers for Layer 1 (academic data access)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_or_default(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


@dataclass(slots=True)
class Layer1Config:
    """Connection settings for the hosted relational store."""

    supabase_url: str = field(default_factory=lambda: _env_or_default("SUPABASE_URL", ""))
    supabase_key: str = field(default_factory=lambda: _env_or_default("SUPABASE_KEY", ""))

    def require_credentials(self) -> None:
        if not self.supabase_url:
            raise RuntimeError("SUPABASE_URL is required for Layer 1.")
        if not self.supabase_key:
            raise RuntimeError("SUPABASE_KEY is required for Layer 1.")
