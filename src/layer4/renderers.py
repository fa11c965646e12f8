"""
HTML and plain-text renderings of a `WeeklyReport` for email.

Every section is always rendered; empty sections say so explicitly so the
email reads on its own for non-technical recipients.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from jinja2 import Environment

from ..layer3.models import WeeklyReport
from .email_models import RecipientType

RULE = "-" * 60

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <style>
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 800px; margin: 0 auto; padding: 20px; }
    .header { background-color: #4a90e2; color: white; padding: 30px; text-align: center; border-radius: 8px 8px 0 0; }
    .content { background-color: #f9f9f9; padding: 30px; border-radius: 0 0 8px 8px; }
    .section { background-color: white; margin: 20px 0; padding: 20px; border-radius: 8px; }
    .section-title { color: #4a90e2; font-size: 20px; font-weight: bold; border-bottom: 2px solid #4a90e2; padding-bottom: 10px; }
    .empty { color: #666; font-style: italic; }
    .course-item { border-left: 4px solid #4a90e2; padding: 15px; margin: 10px 0; background-color: #f9f9f9; }
    .assignment-item { padding: 10px; margin: 8px 0; border-left: 3px solid #28a745; background-color: #f8f9fa; }
    .upcoming-item { padding: 10px; margin: 8px 0; border-left: 3px solid #ffc107; background-color: #fff9e6; }
    .insight-box { background-color: #fff3cd; border-left: 4px solid #ffc107; padding: 15px; margin: 15px 0; }
    .status-badge { display: inline-block; padding: 5px 15px; border-radius: 20px; font-weight: bold; }
    .status-excellent { background-color: #d4edda; color: #155724; }
    .status-on-track { background-color: #d1ecf1; color: #0c5460; }
    .status-needs-attention { background-color: #fff3cd; color: #856404; }
    .footer { text-align: center; margin-top: 30px; padding: 20px; color: #666; font-size: 12px; }
  </style>
</head>
<body>
  <div class="header">
    <h1>Weekly Academic Report</h1>
    <p>{{ week_start }} to {{ week_end }}</p>
  </div>
  <div class="content">
    <p>{{ greeting }}</p>

    <div class="section" id="summary">
      <div class="section-title">Weekly Summary</div>
      {% if summary %}
      <p><strong>Attendance Rate:</strong> {{ summary.attendance_rate }}</p>
      <p><strong>Average Score:</strong> {{ summary.average_score }}</p>
      <p><strong>Progress Change:</strong> {{ summary.progress_change }}</p>
      <p><strong>Status:</strong> <span class="status-badge {{ status_class }}">{{ summary.status }}</span></p>
      {% else %}
      <p class="empty">No summary data available for this week.</p>
      {% endif %}
    </div>

    <div class="section" id="study-time">
      <div class="section-title">Study Time Summary</div>
      {% if study_time %}
      <p><strong>Total Study Hours:</strong> {{ study_time.total_study_hours }} hours</p>
      <p><strong>Average Daily Hours:</strong> {{ study_time.average_daily_hours }} hours</p>
      <p><strong>Most Studied Subject:</strong> {{ study_time.most_studied_subject }}</p>
      {% for item in study_time.time_by_subject %}
      <div>{{ item.subject }}: <strong>{{ item.hours }}</strong> hours</div>
      {% endfor %}
      {% else %}
      <p class="empty">No study time recorded this week.</p>
      {% endif %}
    </div>

    <div class="section" id="courses">
      <div class="section-title">Course Performance</div>
      {% for course in courses %}
      <div class="course-item">
        <h3>{{ course.course_name }}</h3>
        <p><strong>Teacher:</strong> {{ course.teacher_name }}</p>
        <p><strong>Attendance:</strong> {{ course.attendance }}</p>
        <p><strong>Weekly Score:</strong> {{ course.weekly_score }}</p>
        <p><strong>Progress:</strong> {{ course.weekly_progress }}</p>
        <p><strong>Assignments Submitted:</strong> {{ course.assignments_submitted }}</p>
        {% if course.feedback %}<p><em>"{{ course.feedback }}"</em></p>{% endif %}
      </div>
      {% else %}
      <p class="empty">No course data available for this week.</p>
      {% endfor %}
    </div>

    <div class="section" id="assignments">
      <div class="section-title">Assignments</div>
      <h4>Completed This Week</h4>
      {% for item in completed %}
      <div class="assignment-item">
        <strong>{{ item.title }}</strong> - {{ item.course_name }}<br>
        Submitted: {{ item.submitted_on or "N/A" }}{% if item.score is not none %} | Score: <strong>{{ item.score }}</strong>{% endif %}
      </div>
      {% else %}
      <p class="empty">No assignments completed this week.</p>
      {% endfor %}
      <h4>Upcoming Deadlines</h4>
      {% for item in upcoming %}
      <div class="upcoming-item">
        <strong>{{ item.title }}</strong> - {{ item.course_name }}<br>
        Due: <strong>{{ item.due_date or "N/A" }}</strong>
      </div>
      {% else %}
      <p class="empty">No upcoming deadlines.</p>
      {% endfor %}
    </div>

    <div class="section" id="grade-history">
      <div class="section-title">Grade History</div>
      {% for row in grade_history %}
      <div class="assignment-item">
        <strong>{{ row.assessment }}</strong> - {{ row.course_name }}<br>
        Score: {{ row.score_label }}{% if row.grade is not none %} | Grade: <strong>{{ row.grade }}</strong>{% endif %}
        {% if row.feedback %}<br><em>"{{ row.feedback }}"</em>{% endif %}
      </div>
      {% else %}
      <p class="empty">No grades recorded this week.</p>
      {% endfor %}
    </div>

    <div class="section" id="focus-areas">
      <div class="section-title">Focus Areas for Next Week</div>
      {% if focus_areas %}
      <ul>
        {% for area in focus_areas %}<li>{{ area }}</li>{% endfor %}
      </ul>
      {% else %}
      <p class="empty">No focus areas suggested.</p>
      {% endif %}
    </div>

    <div class="section" id="weekly-insight">
      <div class="section-title">Weekly Insight</div>
      {% if insight %}
      {% if insight.summary %}<p><strong>Summary:</strong> {{ insight.summary }}</p>{% endif %}
      {% if insight.highlight %}<div class="insight-box"><strong>Highlight:</strong> {{ insight.highlight }}</div>{% endif %}
      {% if insight.recommendation %}<p><strong>Recommendation:</strong> {{ insight.recommendation }}</p>{% endif %}
      {% else %}
      <p class="empty">No weekly insight available.</p>
      {% endif %}
    </div>

    <div class="section" id="ai-analysis">
      <div class="section-title">AI Analysis</div>
      {% if strengths or improvements %}
      {% if strengths %}<h4>Strengths</h4><ul>{% for item in strengths %}<li>{{ item }}</li>{% endfor %}</ul>{% endif %}
      {% if improvements %}<h4>Areas for Improvement</h4><ul>{% for item in improvements %}<li>{{ item }}</li>{% endfor %}</ul>{% endif %}
      {% else %}
      <p class="empty">No analysis available.</p>
      {% endif %}
    </div>

    <div class="footer">
      <p>This report was generated automatically on {{ generated_at }}.</p>
      <p>For questions or concerns, please contact your teacher or school administrator.</p>
    </div>
  </div>
</body>
</html>
"""

_ENVIRONMENT = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
_HTML = _ENVIRONMENT.from_string(HTML_TEMPLATE)


def status_class(status: str | None) -> str:
    if not status:
        return ""
    lowered = status.lower()
    if "excellent" in lowered or "outstanding" in lowered:
        return "status-excellent"
    if "attention" in lowered or "concern" in lowered:
        return "status-needs-attention"
    return "status-on-track"


def _display(value: Any, suffix: str = "") -> str:
    if value is None or value == "":
        return "N/A"
    if isinstance(value, (int, float)):
        return f"{value}{suffix}"
    return str(value)


def _progress(value: Any) -> str:
    if isinstance(value, (int, float)):
        return f"{round(value * 100)}%"
    return _display(value)


def _greeting(report: WeeklyReport, recipient_name: str, recipient_type: RecipientType, line_break: str) -> str:
    student = report.student_name or recipient_name
    if recipient_type == "parent":
        return f"Dear {recipient_name},{line_break}Here is the weekly academic report for {student}."
    return f"Dear {student},{line_break}Here is your weekly academic report."


def _generated_at(report: WeeklyReport) -> str:
    moment = report.generated_at or datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M %Z").strip()


def _context(report: WeeklyReport, recipient_name: str, recipient_type: RecipientType) -> Dict[str, Any]:
    summary = report.summary
    has_summary = any(
        value not in (None, "")
        for value in (summary.attendance_rate, summary.average_score, summary.progress_change, summary.status)
    )
    study = report.study_time_summary
    has_study = bool(study.time_by_subject) or any(
        value not in (None, "")
        for value in (study.total_study_hours, study.average_daily_hours, study.most_studied_subject)
    )
    insight = report.weekly_insight
    has_insight = any((insight.summary, insight.highlight, insight.recommendation))

    return {
        "week_start": report.report_week_start or "N/A",
        "week_end": report.report_week_end or "N/A",
        "summary": {
            "attendance_rate": _display(summary.attendance_rate, "%"),
            "average_score": _display(summary.average_score, "%"),
            "progress_change": _display(summary.progress_change),
            "status": _display(summary.status),
        }
        if has_summary
        else None,
        "status_class": status_class(summary.status),
        "study_time": {
            "total_study_hours": _display(study.total_study_hours),
            "average_daily_hours": _display(study.average_daily_hours),
            "most_studied_subject": _display(study.most_studied_subject),
            "time_by_subject": [{"subject": item.subject, "hours": _display(item.hours)} for item in study.time_by_subject],
        }
        if has_study
        else None,
        "courses": [
            {
                "course_name": course.course_name or "Course",
                "teacher_name": _display(course.teacher_name),
                "attendance": _display(course.attendance),
                "weekly_score": _display(course.weekly_score, "%"),
                "weekly_progress": _progress(course.weekly_progress),
                "assignments_submitted": _display(course.assignments_submitted or 0),
                "feedback": course.feedback,
            }
            for course in report.courses
        ],
        "completed": report.assignments.completed_this_week,
        "upcoming": report.assignments.upcoming_deadlines,
        "grade_history": [
            {
                "assessment": row.assessment,
                "course_name": row.course_name,
                "score_label": f"{row.score}/{row.max_score}" if row.score is not None and row.max_score is not None else "N/A",
                "grade": row.grade,
                "feedback": row.feedback,
            }
            for row in report.grade_history
        ],
        "focus_areas": report.top_3_focus_areas_next_week,
        "insight": insight if has_insight else None,
        "strengths": report.ai_analysis.strengths,
        "improvements": report.ai_analysis.areas_for_improvement,
        "generated_at": _generated_at(report),
    }


def render_html(report: WeeklyReport, recipient_name: str, recipient_type: RecipientType = "student") -> str:
    context = _context(report, recipient_name, recipient_type)
    context["greeting"] = _greeting(report, recipient_name, recipient_type, " ")
    return _HTML.render(**context)


def render_text(report: WeeklyReport, recipient_name: str, recipient_type: RecipientType = "student") -> str:
    context = _context(report, recipient_name, recipient_type)
    lines: List[str] = [
        "WEEKLY ACADEMIC REPORT",
        f"{context['week_start']} to {context['week_end']}",
        "=" * 60,
        "",
        _greeting(report, recipient_name, recipient_type, "\n\n"),
        "",
        "WEEKLY SUMMARY",
        RULE,
    ]
    summary = context["summary"]
    if summary:
        lines.append(f"Attendance Rate: {summary['attendance_rate']}")
        lines.append(f"Average Score: {summary['average_score']}")
        lines.append(f"Progress Change: {summary['progress_change']}")
        lines.append(f"Status: {summary['status']}")
    else:
        lines.append("No summary data available for this week.")
    lines.append("")

    lines.extend(["STUDY TIME SUMMARY", RULE])
    study = context["study_time"]
    if study:
        lines.append(f"Total Study Hours: {study['total_study_hours']} hours")
        lines.append(f"Average Daily Hours: {study['average_daily_hours']} hours")
        lines.append(f"Most Studied Subject: {study['most_studied_subject']}")
        for item in study["time_by_subject"]:
            lines.append(f"  - {item['subject']}: {item['hours']} hours")
    else:
        lines.append("No study time recorded this week.")
    lines.append("")

    lines.extend(["COURSE PERFORMANCE", RULE])
    for course in context["courses"]:
        lines.append(course["course_name"])
        lines.append(f"  Teacher: {course['teacher_name']}")
        lines.append(f"  Attendance: {course['attendance']}")
        lines.append(f"  Weekly Score: {course['weekly_score']}")
        lines.append(f"  Progress: {course['weekly_progress']}")
        lines.append(f"  Assignments Submitted: {course['assignments_submitted']}")
        if course["feedback"]:
            lines.append(f"  Feedback: \"{course['feedback']}\"")
    if not context["courses"]:
        lines.append("No course data available for this week.")
    lines.append("")

    lines.extend(["ASSIGNMENTS", RULE, "Completed This Week:"])
    for item in context["completed"]:
        score = f" | Score: {item.score}" if item.score is not None else ""
        lines.append(f"  - {item.title} ({item.course_name})")
        lines.append(f"    Submitted: {item.submitted_on or 'N/A'}{score}")
    if not context["completed"]:
        lines.append("  No assignments completed this week.")
    lines.append("Upcoming Deadlines:")
    for item in context["upcoming"]:
        lines.append(f"  - {item.title} ({item.course_name})")
        lines.append(f"    Due: {item.due_date or 'N/A'}")
    if not context["upcoming"]:
        lines.append("  No upcoming deadlines.")
    lines.append("")

    lines.extend(["GRADE HISTORY", RULE])
    for row in context["grade_history"]:
        grade = f" | Grade: {row['grade']}" if row["grade"] is not None else ""
        lines.append(f"  - {row['assessment']} ({row['course_name']}): {row['score_label']}{grade}")
    if not context["grade_history"]:
        lines.append("No grades recorded this week.")
    lines.append("")

    lines.extend(["FOCUS AREAS FOR NEXT WEEK", RULE])
    for index, area in enumerate(context["focus_areas"], start=1):
        lines.append(f"{index}. {area}")
    if not context["focus_areas"]:
        lines.append("No focus areas suggested.")
    lines.append("")

    lines.extend(["WEEKLY INSIGHT", RULE])
    insight = context["insight"]
    if insight:
        if insight.summary:
            lines.append(f"Summary: {insight.summary}")
        if insight.highlight:
            lines.append(f"Highlight: {insight.highlight}")
        if insight.recommendation:
            lines.append(f"Recommendation: {insight.recommendation}")
    else:
        lines.append("No weekly insight available.")
    lines.append("")

    lines.extend(["AI ANALYSIS", RULE])
    if context["strengths"]:
        lines.append("Strengths:")
        lines.extend(f"  - {item}" for item in context["strengths"])
    if context["improvements"]:
        lines.append("Areas for Improvement:")
        lines.extend(f"  - {item}" for item in context["improvements"])
    if not context["strengths"] and not context["improvements"]:
        lines.append("No analysis available.")
    lines.append("")

    lines.append(RULE)
    lines.append(f"This report was generated automatically on {context['generated_at']}.")
    lines.append("For questions or concerns, please contact your teacher or school administrator.")
    return "\n".join(line.rstrip() for line in lines) + "\n"
