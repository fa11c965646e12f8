"""Utilities to sanitize the student brief before passing it to the model."""

from __future__ import annotations

import logging
import re
from typing import Final

LOGGER = logging.getLogger(__name__)

# Control characters other than tab (\x09), newline (\x0A) and carriage return (\x0D).
CONTROL_CHAR_PATTERN: Final = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
TRUNCATION_MARKER: Final = "\n\n[Data truncated due to size limits]"


def sanitize_brief(text: str) -> str:
    """Strip control characters, normalize line endings and trailing whitespace."""
    if not isinstance(text, str):
        text = str(text)
    cleaned = CONTROL_CHAR_PATTERN.sub("", text)
    cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n")
    return cleaned.rstrip()


def enforce_max_length(text: str, max_length: int) -> str:
    """Cut `text` to `max_length` characters and append a visible marker."""
    if len(text) <= max_length:
        return text
    LOGGER.warning("Student brief is very large (%s chars); truncating to %s.", len(text), max_length)
    return text[:max_length] + TRUNCATION_MARKER


def prepare_model_input(text: str, max_length: int) -> str:
    return enforce_max_length(sanitize_brief(text), max_length)
