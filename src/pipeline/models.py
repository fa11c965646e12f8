"""Request, run-state and result types for the weekly report pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..layer3.models import WeeklyReport
from ..layer4.email_models import EmailDispatchResult


def parse_calendar_date(value: object) -> date:
    """Accept `YYYY-MM-DD` or a full ISO timestamp (truncated to its date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Date must be a string")
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value}") from exc


class ReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    student_id: str = Field(min_length=1)
    week_start: date = Field(alias="report_week_start")
    week_end: date = Field(alias="report_week_end")
    model: str | None = None
    email: str | None = None
    send_email: bool = False
    recipient_type: Literal["student", "parent"] = "student"

    @field_validator("student_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if isinstance(value, (int, str)):
            return str(value).strip()
        return value

    @field_validator("week_start", "week_end", mode="before")
    @classmethod
    def _parse_dates(cls, value: object) -> date:
        return parse_calendar_date(value)

    @field_validator("model", "email", mode="before")
    @classmethod
    def _blank_as_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @property
    def window_start(self) -> datetime:
        return datetime.combine(self.week_start, time.min, tzinfo=timezone.utc)

    @property
    def window_end(self) -> datetime:
        return datetime.combine(self.week_end, time.max, tzinfo=timezone.utc)

    @property
    def wants_email(self) -> bool:
        return self.send_email and bool(self.email)


class PipelineState(str, Enum):
    VALIDATING = "validating"
    AGGREGATING = "aggregating"
    FORMATTING = "formatting"
    SYNTHESIZING = "synthesizing"
    RECONCILING = "reconciling"
    DISPATCHING = "dispatching"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class PipelineRun:
    """States visited by one request. Owned by a single `generate` call."""

    states: List[PipelineState] = field(default_factory=list)
    failure_kind: str | None = None
    failed_in: PipelineState | None = None

    @property
    def state(self) -> PipelineState | None:
        return self.states[-1] if self.states else None

    def advance(self, state: PipelineState) -> None:
        self.states.append(state)

    def fail(self, kind: str) -> None:
        self.failed_in = self.state
        self.failure_kind = kind
        self.states.append(PipelineState.FAILED)


@dataclass(slots=True)
class WeeklyReportResult:
    weekly_report: WeeklyReport
    email_details: EmailDispatchResult | None = None
    run: PipelineRun = field(default_factory=PipelineRun)

    @property
    def email_sent(self) -> bool:
        return bool(self.email_details and self.email_details.delivered)

    def as_response_data(self) -> Dict[str, Any]:
        return {
            "weekly_report": self.weekly_report.as_dict(),
            "email_sent": self.email_sent,
            "email_details": self.email_details.as_dict() if self.email_details else None,
        }
