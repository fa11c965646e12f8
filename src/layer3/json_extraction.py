"""
Turn free-form model text into a JSON object.

Extraction is an ordered chain of attempts: a fenced code block first, then
the first balanced top-level `{...}` span. The outcome is tagged so callers
can tell which attempt succeeded, or that all of them failed.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

FENCED_BLOCK_PATTERN = re.compile(r"```(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)


class ExtractionKind(str, Enum):
    FENCED = "fenced"
    BARE = "bare"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    kind: ExtractionKind
    payload: Dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind is not ExtractionKind.FAILED


def _try_parse_object(candidate: str | None) -> Dict[str, Any] | None:
    if not candidate or not candidate.strip():
        return None
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _fenced_candidate(text: str) -> str | None:
    match = FENCED_BLOCK_PATTERN.search(text)
    return match.group(1).strip() if match else None


def _first_object_span(text: str) -> str | None:
    """Return the first balanced `{...}` span, skipping braces inside strings."""
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


ATTEMPTS: List[Tuple[ExtractionKind, Callable[[str], str | None]]] = [
    (ExtractionKind.FENCED, _fenced_candidate),
    (ExtractionKind.BARE, _first_object_span),
]


def extract_json_object(text: str) -> ExtractionResult:
    if not text or not text.strip():
        return ExtractionResult(kind=ExtractionKind.FAILED, error="empty text")
    for kind, locate in ATTEMPTS:
        payload = _try_parse_object(locate(text))
        if payload is not None:
            return ExtractionResult(kind=kind, payload=payload)
    return ExtractionResult(kind=ExtractionKind.FAILED, error="no parseable JSON object found")
