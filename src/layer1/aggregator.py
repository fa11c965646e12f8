"""Aggregates one student's academic records for a reporting window."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from pydantic import ValidationError

from ..core.errors import AggregationError, DataAccessError, StudentNotFoundError
from .data_source import AcademicDataSource
from .records import (
    AssignmentRecord,
    ClassRecord,
    ClassSessionRecord,
    ClassTeacherRecord,
    EnrollmentRecord,
    GradeHistoryRecord,
    ProfileRecord,
    RecordId,
    StudyPreferencesRecord,
    SubmissionRecord,
    parse_rows,
)

LOGGER = logging.getLogger(__name__)

UNKNOWN_TEACHER = "Unknown Teacher"


@dataclass(frozen=True, slots=True)
class StudentWeekSnapshot:
    """Immutable view of one student's data for one reporting window."""

    profile: ProfileRecord
    enrollments: Tuple[EnrollmentRecord, ...] = ()
    teachers_by_class: Mapping[RecordId, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    assignments: Tuple[AssignmentRecord, ...] = ()
    submissions: Tuple[SubmissionRecord, ...] = ()
    grade_history: Tuple[GradeHistoryRecord, ...] = ()
    study_preferences: StudyPreferencesRecord | None = None
    class_sessions: Tuple[ClassSessionRecord, ...] = ()

    @property
    def student_name(self) -> str:
        return self.profile.display_name()

    def class_map(self) -> Dict[RecordId, ClassRecord]:
        """Enrolled classes keyed by class id, in enrollment order."""
        classes: Dict[RecordId, ClassRecord] = {}
        for enrollment in self.enrollments:
            if enrollment.class_ is not None:
                classes[enrollment.class_id] = enrollment.class_
        return classes

    def course_name(self, class_id: RecordId | None, default: str = "Unknown Class") -> str:
        klass = self.class_map().get(class_id) if class_id is not None else None
        return klass.display_name if klass else default


def _in_window(value: datetime | None, window_start: datetime, window_end: datetime) -> bool:
    return value is not None and window_start <= value <= window_end


def is_relevant_assignment(assignment: AssignmentRecord, window_start: datetime, window_end: datetime) -> bool:
    """Due or posted inside the window, or due after it (upcoming)."""
    if _in_window(assignment.due_date, window_start, window_end):
        return True
    if _in_window(assignment.posted_date, window_start, window_end):
        return True
    return assignment.due_date is not None and assignment.due_date > window_end


class DataAggregator:
    """Builds a `StudentWeekSnapshot` from sequential read-only queries."""

    def __init__(self, data_source: AcademicDataSource) -> None:
        self.data_source = data_source

    def aggregate(self, student_id: str, window_start: datetime, window_end: datetime) -> StudentWeekSnapshot:
        try:
            return self._aggregate(student_id, window_start, window_end)
        except DataAccessError as exc:
            raise AggregationError(
                "Failed to fetch student data",
                details={"details": str(exc), "table": exc.table},
            ) from exc
        except ValidationError as exc:
            raise AggregationError(
                "Student data failed validation",
                details={"details": f"{exc.error_count()} invalid field(s) in {exc.title}"},
            ) from exc

    def _aggregate(self, student_id: str, window_start: datetime, window_end: datetime) -> StudentWeekSnapshot:
        try:
            profile_rows = self.data_source.fetch_rows("profiles", eq={"id": student_id})
        except DataAccessError as exc:
            if not exc.rejected:
                raise
            # A lookup the store rejects (e.g. a malformed id) means no such student.
            LOGGER.warning("Profile lookup for %s failed: %s", student_id, exc)
            raise StudentNotFoundError(
                "Student not found",
                details={"student_id": student_id, "details": str(exc)},
            ) from exc
        if not profile_rows:
            raise StudentNotFoundError("Student not found", details={"student_id": student_id})
        profile = ProfileRecord.model_validate(profile_rows[0])

        enrollments: List[EnrollmentRecord] = parse_rows(
            EnrollmentRecord,
            self.data_source.fetch_rows("enrollments", columns="*, classes(*)", eq={"student_id": student_id}),
        )
        class_ids = list(dict.fromkeys(enrollment.class_id for enrollment in enrollments))

        teachers_by_class = self._fetch_teachers(class_ids)
        assignments = [
            assignment
            for assignment in self._fetch_class_assignments(class_ids)
            if is_relevant_assignment(assignment, window_start, window_end)
        ]
        submissions = self._fetch_submissions(student_id, window_start, window_end)
        grade_history = [
            row
            for row in parse_rows(
                GradeHistoryRecord,
                self.data_source.fetch_rows(
                    "class_grade_history",
                    eq={"student_id": student_id},
                    gte={"created_at": window_start},
                    lte={"created_at": window_end},
                ),
            )
            if _in_window(row.created_at, window_start, window_end)
        ]
        preference_rows = self.data_source.fetch_rows("student_study_preferences", eq={"student_id": student_id})
        study_preferences = StudyPreferencesRecord.model_validate(preference_rows[0]) if preference_rows else None
        class_sessions: List[ClassSessionRecord] = parse_rows(
            ClassSessionRecord,
            self.data_source.fetch_rows("class_schedule_sessions", in_={"class_id": class_ids}),
        )

        LOGGER.info(
            "Aggregated student %s: %s enrollments, %s assignments, %s submissions, %s grade rows, %s sessions",
            student_id,
            len(enrollments),
            len(assignments),
            len(submissions),
            len(grade_history),
            len(class_sessions),
        )
        return StudentWeekSnapshot(
            profile=profile,
            enrollments=tuple(enrollments),
            teachers_by_class=MappingProxyType(teachers_by_class),
            assignments=tuple(assignments),
            submissions=tuple(submissions),
            grade_history=tuple(grade_history),
            study_preferences=study_preferences,
            class_sessions=tuple(class_sessions),
        )

    def _fetch_teachers(self, class_ids: List[RecordId]) -> Dict[RecordId, Tuple[str, ...]]:
        links: List[ClassTeacherRecord] = parse_rows(
            ClassTeacherRecord,
            self.data_source.fetch_rows(
                "class_teachers",
                columns="class_id, profile_id, role_in_class",
                in_={"class_id": class_ids},
            ),
        )
        teacher_ids = list(dict.fromkeys(link.profile_id for link in links))
        teacher_profiles: List[ProfileRecord] = parse_rows(
            ProfileRecord,
            self.data_source.fetch_rows(
                "profiles",
                columns="id, name, first_name, last_name",
                in_={"id": teacher_ids},
            ),
        )
        names = {teacher.id: teacher.display_name(UNKNOWN_TEACHER) for teacher in teacher_profiles}

        grouped: Dict[RecordId, List[str]] = {}
        for link in links:
            grouped.setdefault(link.class_id, []).append(names.get(link.profile_id, UNKNOWN_TEACHER))
        return {class_id: tuple(teachers) for class_id, teachers in grouped.items()}

    def _fetch_class_assignments(self, class_ids: List[RecordId]) -> List[AssignmentRecord]:
        return parse_rows(
            AssignmentRecord,
            self.data_source.fetch_rows("assignments", in_={"class_id": class_ids}),
        )

    def _fetch_submissions(
        self,
        student_id: str,
        window_start: datetime,
        window_end: datetime,
    ) -> List[SubmissionRecord]:
        submissions = [
            submission
            for submission in parse_rows(
                SubmissionRecord,
                self.data_source.fetch_rows(
                    "assignment_submissions",
                    eq={"student_id": student_id},
                    gte={"submitted_at": window_start},
                    lte={"submitted_at": window_end},
                ),
            )
            if _in_window(submission.submitted_at, window_start, window_end)
        ]

        assignment_ids = list(dict.fromkeys(submission.assignment_id for submission in submissions))
        details: Dict[RecordId, AssignmentRecord] = {
            assignment.id: assignment
            for assignment in parse_rows(
                AssignmentRecord,
                self.data_source.fetch_rows("assignments", in_={"id": assignment_ids}),
            )
        }
        return [
            submission.model_copy(update={"assignment": details.get(submission.assignment_id)})
            for submission in submissions
        ]
