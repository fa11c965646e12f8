from datetime import date, datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import json
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.core.errors import MalformedPayloadError, UpstreamEmptyResponseError, UpstreamTransportError
from src.layer1.aggregator import DataAggregator, StudentWeekSnapshot
from src.layer1.data_source import InMemoryDataSource
from src.layer1.records import AssignmentRecord, GradeHistoryRecord, ProfileRecord, SubmissionRecord
from src.layer3.config import Layer3Config
from src.layer3.input_sanitizer import TRUNCATION_MARKER, prepare_model_input, sanitize_brief
from src.layer3.json_extraction import ExtractionKind, extract_json_object
from src.layer3.model_client import GeminiModelClient
from src.layer3.models import RawWeeklyReport
from src.layer3.prompt_templates import WEEKLY_REPORT_INSTRUCTIONS
from src.layer3.reconciler import DerivedFieldReconciler, completed_assignments
from src.layer3.synthesizer import ReportSynthesizer

FIXTURE_PATH = Path(__file__).parent / "fixtures" / "student_week.json"
WINDOW_END = datetime(2024, 3, 10, 23, 59, 59, 999999, tzinfo=timezone.utc)

MODEL_REPORT = {
    "summary": {"attendance_rate": 80, "average_score": 57, "progress_change": "+3%", "status": "On Track"},
    "study_time_summary": {
        "total_study_hours": 8,
        "average_daily_hours": 1.1,
        "most_studied_subject": "Algebra II",
        "time_by_subject": [{"subject": "Algebra II", "hours": 5}, {"subject": "World History", "hours": 3}],
    },
    "courses": [{"course_name": "Algebra II", "teacher_name": "Maria Lopez", "weekly_score": 57}],
    "assignments": {
        "completed_this_week": [{"course_name": "Made Up", "title": "Invented Homework", "score": 100}],
        "upcoming_deadlines": [],
    },
    "grade_history": [{"course_name": "Made Up", "assessment": "Imaginary Exam"}],
    "top_3_focus_areas_next_week": ["Review factoring", "Start the essay outline", "Read chapter 6"],
    "weekly_insight": {"summary": "Solid week.", "highlight": "Unit 3 Test: 90%", "recommendation": "Keep going."},
    "ai_analysis": {"strengths": ["Algebra"], "areas_for_improvement": "History reading"},
}


class FakeModelClient:
    def __init__(self, output="", error=None):
        self.output = output
        self.error = error
        self.calls = []

    def generate(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def snapshot():
    source = InMemoryDataSource.from_json(FIXTURE_PATH)
    return DataAggregator(source).aggregate("stu-1", datetime(2024, 3, 4, tzinfo=timezone.utc), WINDOW_END)


@pytest.fixture
def config():
    return Layer3Config(api_key="test-key", model_name="models/test-model", max_input_chars=200)


def test_sanitize_brief_strips_control_characters():
    assert sanitize_brief("Name:\x00 Ava\r\nClasses:\x1b Math  \n") == "Name: Ava\nClasses: Math"


def test_prepare_model_input_truncates_with_marker():
    text = "x" * 250

    prepared = prepare_model_input(text, 200)

    assert prepared == "x" * 200 + TRUNCATION_MARKER
    assert prepare_model_input("short", 200) == "short"


def test_fenced_and_bare_extraction_agree():
    payload = {"summary": {"status": "Excellent"}, "note": "braces {inside} strings"}
    body = json.dumps(payload)

    fenced = extract_json_object(f"Here is the report:\n```json\n{body}\n```\nThanks!")
    bare = extract_json_object(f"Sure. {body} Let me know if you need more.")

    assert fenced.kind is ExtractionKind.FENCED
    assert bare.kind is ExtractionKind.BARE
    assert fenced.payload == bare.payload == payload


def test_extraction_reports_failure():
    result = extract_json_object("I could not produce a report this week.")

    assert not result.ok
    assert result.kind is ExtractionKind.FAILED
    assert extract_json_object("   ").kind is ExtractionKind.FAILED


def test_synthesizer_passes_configured_generation_settings(config):
    client = FakeModelClient(output=f"```json\n{json.dumps(MODEL_REPORT)}\n```")

    report = ReportSynthesizer(config, client).synthesize("instructions", "Student Name: Ava", "models/other")

    assert report.summary.status == "On Track"
    assert report.ai_analysis.areas_for_improvement == ["History reading"]
    call = client.calls[0]
    assert call["model"] == "models/other"
    assert call["instructions"] == "instructions"
    assert call["temperature"] == 0.7
    assert call["max_output_tokens"] == 3000


def test_synthesizer_truncates_oversized_brief(config):
    client = FakeModelClient(output=json.dumps({}))

    ReportSynthesizer(config, client).synthesize("instructions", "y" * 1000, config.model_name)

    assert client.calls[0]["input_text"].endswith(TRUNCATION_MARKER)
    assert len(client.calls[0]["input_text"]) == 200 + len(TRUNCATION_MARKER)


def test_synthesizer_fills_missing_sections_with_defaults(config):
    report = ReportSynthesizer(config, FakeModelClient(output='{"summary": null}')).synthesize("i", "b", "m")

    assert report.courses == []
    assert report.summary.status is None
    assert report.top_3_focus_areas_next_week == []


def test_synthesizer_accepts_loosely_shaped_narrative(config):
    output = json.dumps(
        {
            "summary": {"status": ["On", "Track"], "average_score": None},
            "courses": [{"course_name": None, "teacher_name": ["A", "B"], "feedback": {"note": "Good effort"}}],
            "top_3_focus_areas_next_week": [{"area": "Algebra"}, None, "  Essay  "],
            "weekly_insight": {"summary": None, "highlight": 90},
            "ai_analysis": {"strengths": {"subject": "Algebra"}, "areas_for_improvement": None},
        }
    )

    report = ReportSynthesizer(config, FakeModelClient(output=output)).synthesize("i", "b", "m")

    course = report.courses[0]
    assert course.course_name == ""
    assert course.teacher_name == "A, B"
    assert course.feedback == "Good effort"
    assert report.summary.status == "On, Track"
    assert report.top_3_focus_areas_next_week == ["Algebra", "Essay"]
    assert report.weekly_insight.summary is None
    assert report.weekly_insight.highlight == "90"
    assert report.ai_analysis.strengths == ["Algebra"]
    assert report.ai_analysis.areas_for_improvement == []


@pytest.mark.parametrize(
    "client, error_type, upstream_kind",
    [
        (FakeModelClient(error=ConnectionError("connection reset")), UpstreamTransportError, "transport"),
        (FakeModelClient(output="   "), UpstreamEmptyResponseError, "empty_response"),
        (FakeModelClient(output="The week went well overall."), MalformedPayloadError, "malformed_payload"),
        (FakeModelClient(output='{"courses": "not a list"}'), MalformedPayloadError, "malformed_payload"),
    ],
)
def test_synthesizer_classifies_upstream_failures(config, client, error_type, upstream_kind):
    with pytest.raises(error_type) as excinfo:
        ReportSynthesizer(config, client).synthesize("instructions", "brief", "models/test-model")

    error = excinfo.value
    assert error.code == "UPSTREAM_ERROR"
    assert error.details["upstream_error"] == upstream_kind


def test_reconciler_overwrites_factual_sections(snapshot):
    raw = RawWeeklyReport.model_validate(MODEL_REPORT)

    report = DerivedFieldReconciler().reconcile(
        raw, snapshot, WINDOW_END, week_start_label=date(2024, 3, 4), week_end_label=date(2024, 3, 10)
    )

    completed = [item.model_dump() for item in report.assignments.completed_this_week]
    assert completed == [
        {
            "assignment_id": "a-1",
            "course_name": "Algebra II",
            "title": "Quadratic Functions Worksheet",
            "submitted_on": "2024-03-04",
            "score": 8,
        },
        {
            "assignment_id": "a-3",
            "course_name": "World History",
            "title": "Essay: Industrial Revolution",
            "submitted_on": "2024-03-09",
            "score": None,
        },
        {
            "assignment_id": "a-5",
            "course_name": "Algebra II",
            "title": "Chapter 5 Review",
            "submitted_on": "2024-03-05",
            "score": 0,
        },
    ]
    # a-3 is due after the window but already submitted.
    assert [(item.title, item.due_date) for item in report.assignments.upcoming_deadlines] == [
        ("Polynomial Quiz", "2024-03-15")
    ]
    assert [entry.assessment for entry in report.grade_history] == ["Unit 3 Test", "Reading Check", "Pop Quiz"]
    assert report.grade_history[1].score == 0
    assert report.grade_history[1].feedback is None

    assert report.weekly_insight.highlight == "Unit 3 Test: 90%"
    assert report.student_name == "Ava Patel"
    assert report.report_week_start == "2024-03-04"
    assert report.report_week_end == "2024-03-10"
    assert report.generated_at is not None


def test_reconciler_is_idempotent(snapshot):
    reconciler = DerivedFieldReconciler()
    once = reconciler.reconcile(RawWeeklyReport.model_validate(MODEL_REPORT), snapshot, WINDOW_END)
    twice = reconciler.reconcile(once, snapshot, WINDOW_END)

    exclude = {"generated_at"}
    assert twice.model_dump(exclude=exclude) == once.model_dump(exclude=exclude)


def test_report_serializes_to_json_ready_dict(snapshot):
    report = DerivedFieldReconciler().reconcile(RawWeeklyReport(), snapshot, WINDOW_END)

    payload = report.as_dict()

    json.dumps(payload)
    assert payload["courses"] == []
    assert payload["assignments"]["upcoming_deadlines"][0]["assignment_id"] == "a-2"
    assert payload["grade_history"][0]["created_at"].startswith("2024-03-06T14:00:00")


def test_instructions_default_and_override(tmp_path):
    assert Layer3Config(instructions_path=None).load_instructions() == WEEKLY_REPORT_INSTRUCTIONS

    custom = tmp_path / "instructions.txt"
    custom.write_text("Return JSON only.", encoding="utf-8")
    assert Layer3Config(instructions_path=custom).load_instructions() == "Return JSON only."


def test_gemini_client_uses_system_instruction_and_generation_config():
    with patch("src.layer3.model_client.genai") as genai:
        model = genai.GenerativeModel.return_value
        model.generate_content.return_value = SimpleNamespace(text=' {"summary": {}} ', candidates=[])

        output = GeminiModelClient().generate(
            model="models/gemini-2.5-flash",
            instructions="Be helpful.",
            input_text="Student Name: Ava",
            temperature=0.7,
            max_output_tokens=3000,
        )

    assert output == '{"summary": {}}'
    genai.GenerativeModel.assert_called_once_with("models/gemini-2.5-flash", system_instruction="Be helpful.")
    genai.GenerationConfig.assert_called_once_with(temperature=0.7, max_output_tokens=3000)
    model.generate_content.assert_called_once_with(
        "Student Name: Ava", generation_config=genai.GenerationConfig.return_value
    )


class BlockedResponse:
    candidates = [SimpleNamespace(finish_reason="SAFETY", content=SimpleNamespace(parts=[]))]

    @property
    def text(self):
        raise ValueError("response has no parts")


def test_gemini_client_returns_empty_text_for_blocked_response():
    with patch("src.layer3.model_client.genai") as genai:
        genai.GenerativeModel.return_value.generate_content.return_value = BlockedResponse()

        output = GeminiModelClient().generate(
            model="m", instructions="i", input_text="t", temperature=0.7, max_output_tokens=10
        )

    assert output == ""


def test_grade_history_keeps_stored_timestamp_text():
    row = GradeHistoryRecord.model_validate(
        {"id": "g-9", "class_id": "c-1", "assessment": "Quiz", "score": 7, "created_at": "2024-03-04 10:00:00"}
    )
    snapshot = StudentWeekSnapshot(profile=ProfileRecord(id="x", name="Lee"), grade_history=(row,))

    report = DerivedFieldReconciler().reconcile(RawWeeklyReport(), snapshot, WINDOW_END)

    assert report.as_dict()["grade_history"][0]["created_at"] == "2024-03-04 10:00:00"
    assert "created_at_raw" not in row.model_dump()


def test_submitted_on_uses_utc_calendar_date():
    submission = SubmissionRecord(
        assignment_id="a",
        submitted_at="2024-03-05T08:00:00+10:00",
        assignment=AssignmentRecord(id="a", title="Worksheet"),
    )
    snapshot = StudentWeekSnapshot(profile=ProfileRecord(id="x", name="Lee"), submissions=(submission,))

    assert completed_assignments(snapshot)[0].submitted_on == "2024-03-04"
