"""Pydantic representations of the academic rows read by Layer 1."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RecordId = str | int
Number = int | float


def parse_timestamp(value: object) -> datetime | None:
    """Parse a store timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValueError(f"Invalid datetime string: {value}") from exc
    else:
        raise ValueError("Unsupported date format")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class ProfileRecord(_Record):
    id: RecordId
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    def display_name(self, default: str = "Unknown") -> str:
        if self.name:
            return self.name
        joined = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return joined or default


class ClassRecord(_Record):
    id: RecordId
    name: str | None = None
    code: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.code or "Unknown Class"


class EnrollmentRecord(_Record):
    class_id: RecordId
    student_id: RecordId | None = None
    progress: Number | None = None
    grade: str | Number | None = None
    class_: ClassRecord | None = Field(default=None, alias="classes")


class ClassTeacherRecord(_Record):
    class_id: RecordId
    profile_id: RecordId
    role_in_class: str | None = None


class AssignmentRecord(_Record):
    id: RecordId
    class_id: RecordId | None = None
    title: str | None = None
    due_date: datetime | None = None
    posted_date: datetime | None = None
    total_points: Number | None = None

    @field_validator("due_date", "posted_date", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: object) -> datetime | None:
        return parse_timestamp(value)


class SubmissionRecord(_Record):
    assignment_id: RecordId
    id: RecordId | None = None
    student_id: RecordId | None = None
    submitted_at: datetime | None = None
    grade: Number | None = None
    assignment: AssignmentRecord | None = None

    @field_validator("submitted_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: object) -> datetime | None:
        return parse_timestamp(value)


class GradeHistoryRecord(_Record):
    id: RecordId | None = None
    class_id: RecordId | None = None
    student_id: RecordId | None = None
    assessment: str | None = None
    score: Number | None = None
    max_score: Number | None = None
    grade: str | Number | None = None
    feedback: str | None = None
    created_at: datetime | None = None
    # Stored value as received, for output.
    created_at_raw: str | None = Field(default=None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _keep_raw_created_at(cls, data: object) -> object:
        if isinstance(data, dict) and isinstance(data.get("created_at"), str):
            data = {**data, "created_at_raw": data["created_at"]}
        return data

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: object) -> datetime | None:
        return parse_timestamp(value)

    @property
    def percentage(self) -> float | None:
        if self.score is None or not self.max_score:
            return None
        return self.score / self.max_score * 100


class StudyPreferencesRecord(_Record):
    student_id: RecordId | None = None
    preferences: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("preferences", mode="before")
    @classmethod
    def _default_preferences(cls, value: object) -> object:
        return value or {}

    @property
    def study_hours(self) -> Dict[str, Any]:
        hours = self.preferences.get("study_hours")
        return hours if isinstance(hours, dict) else {}


class ClassSessionRecord(_Record):
    id: RecordId | None = None
    class_id: RecordId | None = None
    starts_at: datetime | None = None

    @field_validator("starts_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: object) -> datetime | None:
        return parse_timestamp(value)


def parse_rows(model: type[_Record], rows: List[Dict[str, Any]]) -> List[Any]:
    return [model.model_validate(row) for row in rows]
