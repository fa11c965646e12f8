"""Configuration helpers for Layer 3 (report synthesis)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .prompt_templates import WEEKLY_REPORT_INSTRUCTIONS


def _env_or_default(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_optional_path(name: str) -> Path | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return Path(value.strip())


@dataclass(slots=True)
class Layer3Config:
    """Runtime configuration for the generative report step."""

    api_key: str = field(default_factory=lambda: _env_or_default("GEMINI_API_KEY", ""))
    model_name: str = field(default_factory=lambda: _env_or_default("REPORT_MODEL_NAME", _env_or_default("GEMINI_MODEL_NAME", "models/gemini-2.5-flash")))
    temperature: float = field(default_factory=lambda: float(_env_or_default("REPORT_TEMPERATURE", "0.7")))
    max_output_tokens: int = field(default_factory=lambda: _env_int("REPORT_MAX_OUTPUT_TOKENS", 3000))
    max_input_chars: int = field(default_factory=lambda: _env_int("REPORT_MAX_INPUT_CHARS", 50000))
    instructions_path: Path | None = field(default_factory=lambda: _env_optional_path("WEEKLY_REPORT_INSTRUCTIONS_PATH"))

    def load_instructions(self) -> str:
        """Return the system instructions, preferring the configured file."""
        if self.instructions_path is None:
            return WEEKLY_REPORT_INSTRUCTIONS
        return self.instructions_path.read_text(encoding="utf-8")
