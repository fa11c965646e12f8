"""Layer 2: deterministic plain-text brief for the report model."""

from .formatter import NarrativeFormatter, format_student_brief

__all__ = ["NarrativeFormatter", "format_student_brief"]
