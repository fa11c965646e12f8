"""
Replace the model's factual sections with values derived from the snapshot.

Narrative fields may come from the model; `assignments` and `grade_history`
always come from the database and overwrite whatever the model produced.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import List

from ..layer1.aggregator import StudentWeekSnapshot
from ..layer1.records import GradeHistoryRecord
from .models import (
    AssignmentsSection,
    CompletedAssignment,
    GradeHistoryEntry,
    RawWeeklyReport,
    UpcomingDeadline,
    WeeklyReport,
)

LOGGER = logging.getLogger(__name__)

UNKNOWN_ASSIGNMENT = "Unknown Assignment"
# Fields owned by the reconciler, never taken from the model output.
DERIVED_FIELDS = {
    "assignments",
    "grade_history",
    "student_name",
    "report_week_start",
    "report_week_end",
    "generated_at",
}


def _date_only(value: datetime | None) -> str | None:
    return value.astimezone(timezone.utc).date().isoformat() if value is not None else None


def _stored_timestamp(row: GradeHistoryRecord) -> str | None:
    if row.created_at_raw:
        return row.created_at_raw
    return row.created_at.isoformat() if row.created_at is not None else None


def completed_assignments(snapshot: StudentWeekSnapshot) -> List[CompletedAssignment]:
    completed: List[CompletedAssignment] = []
    for submission in snapshot.submissions:
        assignment = submission.assignment
        completed.append(
            CompletedAssignment(
                assignment_id=submission.assignment_id,
                course_name=snapshot.course_name(assignment.class_id if assignment else None),
                title=(assignment.title if assignment else None) or UNKNOWN_ASSIGNMENT,
                submitted_on=_date_only(submission.submitted_at),
                score=submission.grade,
            )
        )
    return completed


def upcoming_deadlines(snapshot: StudentWeekSnapshot, week_end: datetime) -> List[UpcomingDeadline]:
    submitted_ids = {submission.assignment_id for submission in snapshot.submissions}
    return [
        UpcomingDeadline(
            assignment_id=assignment.id,
            course_name=snapshot.course_name(assignment.class_id),
            title=assignment.title or UNKNOWN_ASSIGNMENT,
            due_date=_date_only(assignment.due_date),
        )
        for assignment in snapshot.assignments
        if assignment.due_date is not None
        and assignment.due_date > week_end
        and assignment.id not in submitted_ids
    ]


def grade_history_entries(snapshot: StudentWeekSnapshot) -> List[GradeHistoryEntry]:
    return [
        GradeHistoryEntry(
            grade_id=row.id,
            class_id=row.class_id,
            course_name=snapshot.course_name(row.class_id),
            assessment=row.assessment or "Assessment",
            score=row.score,
            max_score=row.max_score,
            grade=row.grade,
            feedback=row.feedback or None,
            created_at=_stored_timestamp(row),
        )
        for row in snapshot.grade_history
    ]


class DerivedFieldReconciler:
    def reconcile(
        self,
        raw: RawWeeklyReport,
        snapshot: StudentWeekSnapshot,
        week_end: datetime,
        *,
        week_start_label: date | None = None,
        week_end_label: date | None = None,
    ) -> WeeklyReport:
        assignments = AssignmentsSection(
            completed_this_week=completed_assignments(snapshot),
            upcoming_deadlines=upcoming_deadlines(snapshot, week_end),
        )
        grade_history = grade_history_entries(snapshot)
        LOGGER.info(
            "Reconciled report for %s: %s completed, %s upcoming, %s grade rows.",
            snapshot.student_name,
            len(assignments.completed_this_week),
            len(assignments.upcoming_deadlines),
            len(grade_history),
        )

        narrative = raw.model_dump(exclude=DERIVED_FIELDS)
        return WeeklyReport(
            **narrative,
            assignments=assignments,
            grade_history=grade_history,
            student_name=snapshot.student_name,
            report_week_start=week_start_label.isoformat() if week_start_label else None,
            report_week_end=(week_end_label or week_end.date()).isoformat(),
            generated_at=datetime.now(timezone.utc),
        )
