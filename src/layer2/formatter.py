"""
Render a `StudentWeekSnapshot` into the plain-text brief sent to the model.

Each section is emitted only when it has data. The attendance figure is an
estimate: there is no attendance table, so it is derived from submission and
grade-history counts.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List

from ..layer1.aggregator import StudentWeekSnapshot
from ..layer1.records import RecordId

HOURS_PER_SUBMISSION = 2


def round_half_up(value: float, places: int = 0) -> str:
    quantum = Decimal(1).scaleb(-places)
    return str(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def estimate_attended_sessions(snapshot: StudentWeekSnapshot) -> int:
    total_sessions = len(snapshot.class_sessions)
    return min(total_sessions, len(snapshot.submissions) + len(snapshot.grade_history) // 2)


def average_scores_by_class(snapshot: StudentWeekSnapshot) -> Dict[RecordId, float]:
    """Mean percentage per class over grade history and graded submissions."""
    scores: Dict[RecordId, List[float]] = defaultdict(list)
    for row in snapshot.grade_history:
        if row.percentage is not None:
            scores[row.class_id].append(row.percentage)
    for submission in snapshot.submissions:
        assignment = submission.assignment
        if submission.grade is None or assignment is None or not assignment.total_points:
            continue
        scores[assignment.class_id].append(submission.grade / assignment.total_points * 100)
    return {class_id: sum(values) / len(values) for class_id, values in scores.items() if values}


class NarrativeFormatter:
    """Pure renderer; holds no state between calls."""

    def format(self, snapshot: StudentWeekSnapshot, week_start: date, week_end: date) -> str:
        sections = [
            self._student_section(snapshot),
            self._attendance_section(snapshot),
            self._average_scores_section(snapshot),
            self._course_details_section(snapshot),
            self._progress_section(snapshot),
            self._study_hours_section(snapshot),
            self._grade_history_section(snapshot),
        ]
        blocks = ["\n".join(lines) for lines in sections if lines]
        blocks.append(
            "This input provides the student's attendance, study habits, progress, and task "
            f"completion data for the week of {week_start.isoformat()} to {week_end.isoformat()}."
        )
        return "\n\n".join(blocks)

    def _student_section(self, snapshot: StudentWeekSnapshot) -> List[str]:
        lines = [f"Student Name: {snapshot.student_name}"]
        class_names = [klass.display_name for klass in snapshot.class_map().values()]
        if class_names:
            lines.append(f"Classes: {', '.join(class_names)}")
        return lines

    def _attendance_section(self, snapshot: StudentWeekSnapshot) -> List[str]:
        total_sessions = len(snapshot.class_sessions)
        if not total_sessions:
            return []
        attended = estimate_attended_sessions(snapshot)
        return [f"Attendance records: attended {attended} out of {total_sessions} sessions this week"]

    def _average_scores_section(self, snapshot: StudentWeekSnapshot) -> List[str]:
        averages = average_scores_by_class(snapshot)
        if not averages:
            return []
        parts = [
            f"{snapshot.course_name(class_id, default='Unknown')}: {round_half_up(average)}"
            for class_id, average in averages.items()
        ]
        return [f"Average scores: {', '.join(parts)}"]

    def _course_details_section(self, snapshot: StudentWeekSnapshot) -> List[str]:
        lines: List[str] = []
        for enrollment in snapshot.enrollments:
            klass = enrollment.class_
            if klass is None:
                continue
            teachers = snapshot.teachers_by_class.get(enrollment.class_id) or ("Unknown Teacher",)
            progress = _format_number(enrollment.progress) if enrollment.progress is not None else "0"
            grade = enrollment.grade if enrollment.grade not in (None, "") else "N/A"
            lines.append(
                f"- {klass.display_name} (Code: {klass.code or 'N/A'}): Teacher: {', '.join(teachers)}, "
                f"Progress: {progress}%, Grade: {grade}"
            )
        if not lines:
            return []
        return ["Course Details:", *lines]

    def _progress_section(self, snapshot: StudentWeekSnapshot) -> List[str]:
        parts = [
            f"{snapshot.course_name(enrollment.class_id, default='Unknown')}: "
            f"{round_half_up(enrollment.progress / 100, places=2)}"
            for enrollment in snapshot.enrollments
            if enrollment.class_ is not None and enrollment.progress is not None
        ]
        if not parts:
            return []
        return [f"Progress this week: {', '.join(parts)}"]

    def _study_hours_section(self, snapshot: StudentWeekSnapshot) -> List[str]:
        parts: List[str] = []
        if snapshot.study_preferences is not None:
            parts = [f"{subject}: {hours}" for subject, hours in snapshot.study_preferences.study_hours.items()]
        if not parts:
            for enrollment in snapshot.enrollments:
                if enrollment.class_ is None:
                    continue
                submitted = sum(
                    1
                    for submission in snapshot.submissions
                    if submission.assignment is not None and submission.assignment.class_id == enrollment.class_id
                )
                if submitted:
                    parts.append(
                        f"{snapshot.course_name(enrollment.class_id, default='Unknown')}: "
                        f"{submitted * HOURS_PER_SUBMISSION}"
                    )
        if not parts:
            return []
        return [f"Study hours: {', '.join(parts)}"]

    def _grade_history_section(self, snapshot: StudentWeekSnapshot) -> List[str]:
        if not snapshot.grade_history:
            return []
        lines = ["Grade History for this week:"]
        for row in snapshot.grade_history:
            line = f"- {snapshot.course_name(row.class_id, default='Unknown')}: {row.assessment or 'Assessment'}"
            if row.score is not None and row.max_score is not None:
                line += f" - {_format_number(row.score)}/{_format_number(row.max_score)}"
                if row.percentage is not None:
                    line += f" ({round_half_up(row.percentage)}%)"
            if row.grade not in (None, ""):
                line += f" - Grade: {row.grade}"
            lines.append(line)
        return lines


def format_student_brief(snapshot: StudentWeekSnapshot, week_start: date, week_end: date) -> str:
    return NarrativeFormatter().format(snapshot, week_start, week_end)
