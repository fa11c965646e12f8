"""
Schema for the weekly report produced by Layer 3.

`RawWeeklyReport` validates the model's JSON; every optional section defaults
to an empty structure so renderers never branch on missing keys.
`WeeklyReport` is the reconciled report returned to callers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..layer1.records import Number, RecordId

Metric = Number | str | None


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore")


def _as_text(value: object) -> object:
    """Flatten narrative values the model returns in the wrong shape."""
    if isinstance(value, dict):
        value = [item for item in value.values() if item is not None]
    if isinstance(value, (list, tuple)):
        parts = [str(_as_text(item)) for item in value if item not in (None, "")]
        return ", ".join(part for part in parts if part)
    return value


def _as_string_list(value: object) -> object:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return [str(value)]
    items = []
    for item in value:
        if isinstance(item, (dict, list, tuple)):
            item = _as_text(item)
        if item is None:
            continue
        text = str(item).strip()
        if text:
            items.append(text)
    return items


def _text_or_default(value: object, default: str | None) -> object:
    value = _as_text(value)
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


class Summary(_Section):
    attendance_rate: Metric = None
    average_score: Metric = None
    progress_change: Metric = None
    status: str | None = None

    @field_validator("attendance_rate", "average_score", "progress_change", mode="before")
    @classmethod
    def _flatten_metrics(cls, value: object) -> object:
        return _as_text(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        return _text_or_default(value, None)


class SubjectHours(_Section):
    subject: str = ""
    hours: Metric = None

    @field_validator("subject", mode="before")
    @classmethod
    def _coerce_subject(cls, value: object) -> object:
        return _text_or_default(value, "")

    @field_validator("hours", mode="before")
    @classmethod
    def _flatten_hours(cls, value: object) -> object:
        return _as_text(value)


class StudyTimeSummary(_Section):
    total_study_hours: Metric = None
    average_daily_hours: Metric = None
    most_studied_subject: str | None = None
    time_by_subject: List[SubjectHours] = Field(default_factory=list)

    @field_validator("time_by_subject", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return value or []

    @field_validator("total_study_hours", "average_daily_hours", mode="before")
    @classmethod
    def _flatten_metrics(cls, value: object) -> object:
        return _as_text(value)

    @field_validator("most_studied_subject", mode="before")
    @classmethod
    def _coerce_subject(cls, value: object) -> object:
        return _text_or_default(value, None)


class CourseSummary(_Section):
    course_name: str = ""
    teacher_name: str | None = None
    attendance: Metric = None
    weekly_score: Metric = None
    weekly_progress: Metric = None
    assignments_submitted: Metric = None
    feedback: str | None = None

    @field_validator("course_name", mode="before")
    @classmethod
    def _coerce_course_name(cls, value: object) -> object:
        return _text_or_default(value, "")

    @field_validator("teacher_name", "feedback", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: object) -> object:
        return _text_or_default(value, None)

    @field_validator("attendance", "weekly_score", "weekly_progress", "assignments_submitted", mode="before")
    @classmethod
    def _flatten_metrics(cls, value: object) -> object:
        return _as_text(value)


class CompletedAssignment(_Section):
    assignment_id: RecordId | None = None
    course_name: str
    title: str
    submitted_on: str | None = None
    score: Number | None = None


class UpcomingDeadline(_Section):
    assignment_id: RecordId | None = None
    course_name: str
    title: str
    due_date: str | None = None


class AssignmentsSection(_Section):
    completed_this_week: List[CompletedAssignment] = Field(default_factory=list)
    upcoming_deadlines: List[UpcomingDeadline] = Field(default_factory=list)


class GradeHistoryEntry(_Section):
    grade_id: RecordId | None = None
    class_id: RecordId | None = None
    course_name: str
    assessment: str
    score: Number | None = None
    max_score: Number | None = None
    grade: str | Number | None = None
    feedback: str | None = None
    created_at: str | None = None


class WeeklyInsight(_Section):
    summary: str | None = None
    highlight: str | None = None
    recommendation: str | None = None

    @field_validator("summary", "highlight", "recommendation", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        return _text_or_default(value, None)


class AIAnalysis(_Section):
    strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)

    @field_validator("strengths", "areas_for_improvement", mode="before")
    @classmethod
    def _coerce_lists(cls, value: object) -> object:
        return _as_string_list(value)


class RawWeeklyReport(_Section):
    """Narrative sections as returned by the model, defaults filled in."""

    summary: Summary = Field(default_factory=Summary)
    study_time_summary: StudyTimeSummary = Field(default_factory=StudyTimeSummary)
    courses: List[CourseSummary] = Field(default_factory=list)
    top_3_focus_areas_next_week: List[str] = Field(default_factory=list)
    weekly_insight: WeeklyInsight = Field(default_factory=WeeklyInsight)
    ai_analysis: AIAnalysis = Field(default_factory=AIAnalysis)
    # Placeholders from the model; replaced wholesale during reconciliation.
    assignments: Any = None
    grade_history: Any = None

    @field_validator("summary", "study_time_summary", "weekly_insight", "ai_analysis", mode="before")
    @classmethod
    def _none_as_empty_section(cls, value: object) -> object:
        return {} if value is None else value

    @field_validator("courses", mode="before")
    @classmethod
    def _none_as_empty_list(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("top_3_focus_areas_next_week", mode="before")
    @classmethod
    def _coerce_focus_areas(cls, value: object) -> object:
        return _as_string_list(value)


class WeeklyReport(RawWeeklyReport):
    """Final report; `assignments` and `grade_history` come from the database."""

    assignments: AssignmentsSection = Field(default_factory=AssignmentsSection)
    grade_history: List[GradeHistoryEntry] = Field(default_factory=list)
    student_name: str | None = None
    report_week_start: str | None = None
    report_week_end: str | None = None
    generated_at: datetime | None = None

    def as_dict(self) -> dict:
        return self.model_dump(mode="json")
