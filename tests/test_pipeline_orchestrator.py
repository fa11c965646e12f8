from pathlib import Path

import json
import sys

from unittest.mock import Mock

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.core.errors import InvalidRequestError
from src.layer1.aggregator import DataAggregator
from src.layer1.data_source import InMemoryDataSource, SupabaseDataSource
from src.layer3.config import Layer3Config
from src.layer3.synthesizer import ReportSynthesizer
from src.layer4.config import Layer4Config
from src.layer4.dispatcher import NotificationDispatcher
from src.layer4.email_sender import DryRunEmailTransport
from src.pipeline.models import PipelineRun, PipelineState
from src.pipeline.orchestrator import ReportPipelineOrchestrator, parse_report_request

FIXTURE_PATH = Path(__file__).parent / "fixtures" / "student_week.json"

MODEL_OUTPUT = """Here is the weekly report.
```json
{
  "summary": {"attendance_rate": 80, "average_score": 57, "progress_change": "+3%", "status": "On Track"},
  "courses": [{"course_name": "Algebra II", "teacher_name": "Maria Lopez"}],
  "assignments": {"completed_this_week": [{"course_name": "X", "title": "Hallucinated", "score": 100}]},
  "grade_history": [],
  "top_3_focus_areas_next_week": ["Review factoring", "Outline the essay", "Read chapter 6"],
  "weekly_insight": {"summary": "A steady week."},
  "ai_analysis": {"strengths": ["Algebra"], "areas_for_improvement": ["History reading"]}
}
```"""


class FakeModelClient:
    def __init__(self, output=MODEL_OUTPUT, error=None):
        self.output = output
        self.error = error
        self.calls = []

    def generate(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.output


class RecordingTransport:
    def __init__(self):
        self.outbox = []

    def send(self, email):
        self.outbox.append(email)
        return f"msg-{len(self.outbox)}"


class ExplodingFormatter:
    def format(self, snapshot, week_start, week_end):
        raise KeyError("study_hours")


@pytest.fixture
def data_source():
    return InMemoryDataSource.from_json(FIXTURE_PATH)


@pytest.fixture
def model_client():
    return FakeModelClient()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def pipeline(data_source, model_client, transport):
    layer3_config = Layer3Config(api_key="test-key", model_name="models/gemini-2.5-flash", instructions_path=None)
    layer4_config = Layer4Config(email_sender="reports@school.example", dry_run=True)
    return ReportPipelineOrchestrator(
        aggregator=DataAggregator(data_source),
        synthesizer=ReportSynthesizer(layer3_config, model_client),
        layer3_config=layer3_config,
        layer4_config=layer4_config,
        dispatcher=NotificationDispatcher(layer4_config, transport),
    )


def _payload(**overrides):
    payload = {
        "student_id": "stu-1",
        "report_week_start": "2024-03-04",
        "report_week_end": "2024-03-10",
    }
    payload.update(overrides)
    return payload


def test_generate_visits_every_stage_in_order(pipeline):
    result = pipeline.generate(_payload())

    assert result.run.states == [
        PipelineState.VALIDATING,
        PipelineState.AGGREGATING,
        PipelineState.FORMATTING,
        PipelineState.SYNTHESIZING,
        PipelineState.RECONCILING,
        PipelineState.DONE,
    ]
    assert result.email_details is None


def test_handle_returns_reconciled_report(pipeline, model_client):
    status, body = pipeline.handle(_payload())

    assert status == 200
    assert body["success"] is True
    assert body["message"] == "Weekly report generated successfully"
    assert body["data"]["email_sent"] is False
    assert body["data"]["email_details"] is None

    report = body["data"]["weekly_report"]
    titles = [item["title"] for item in report["assignments"]["completed_this_week"]]
    assert "Hallucinated" not in titles
    assert titles == ["Quadratic Functions Worksheet", "Essay: Industrial Revolution", "Chapter 5 Review"]
    assert report["summary"]["status"] == "On Track"
    assert report["student_name"] == "Ava Patel"
    json.dumps(body)

    call = model_client.calls[0]
    assert call["model"] == "models/gemini-2.5-flash"
    assert call["input_text"].startswith("Student Name: Ava Patel")


def test_request_model_overrides_default(pipeline, model_client):
    pipeline.handle(_payload(model="models/gemini-2.5-pro"))

    assert model_client.calls[0]["model"] == "models/gemini-2.5-pro"


def test_submission_due_after_window_is_completed_not_upcoming(pipeline):
    status, body = pipeline.handle(_payload(report_week_start="2024-03-01", report_week_end="2024-03-07"))

    assert status == 200
    assignments = body["data"]["weekly_report"]["assignments"]
    worksheet = next(item for item in assignments["completed_this_week"] if item["assignment_id"] == "a-1")
    assert worksheet["score"] == 8
    assert worksheet["submitted_on"] == "2024-03-04"
    completed_ids = {item["assignment_id"] for item in assignments["completed_this_week"]}
    upcoming_ids = {item["assignment_id"] for item in assignments["upcoming_deadlines"]}
    assert "a-1" not in upcoming_ids
    assert not completed_ids & upcoming_ids


def test_reruns_over_unchanged_data_match(pipeline):
    first = pipeline.handle(_payload())[1]["data"]["weekly_report"]
    second = pipeline.handle(_payload())[1]["data"]["weekly_report"]

    assert first["assignments"] == second["assignments"]
    assert first["grade_history"] == second["grade_history"]


def test_quiet_week_has_empty_derived_sections(pipeline):
    status, body = pipeline.handle(_payload(report_week_start="2024-01-08", report_week_end="2024-01-14"))

    assert status == 200
    report = body["data"]["weekly_report"]
    assert report["assignments"]["completed_this_week"] == []
    assert report["grade_history"] == []


def test_email_is_sent_when_requested(pipeline, transport):
    status, body = pipeline.handle(_payload(email="parent@example.com", send_email=True, recipient_type="parent"))

    assert status == 200
    assert body["message"] == "Weekly report generated and emailed successfully"
    assert body["data"]["email_sent"] is True
    assert body["data"]["email_details"]["recipient"] == "parent@example.com"
    assert transport.outbox[0].subject == "Weekly Academic Report - 2024-03-04 to 2024-03-10"
    assert "weekly academic report for Ava Patel" in transport.outbox[0].text


def test_dry_run_email_is_not_reported_as_sent(pipeline):
    pipeline.dispatcher.transport = DryRunEmailTransport()

    status, body = pipeline.handle(_payload(email="parent@example.com", send_email=True))

    assert status == 200
    assert body["message"] == "Weekly report generated; email delivery is in dry-run mode and nothing was sent"
    assert body["data"]["email_sent"] is False
    assert body["data"]["email_details"]["dry_run"] is True
    assert body["data"]["email_details"]["message_id"].startswith("dry-run-")


def test_invalid_email_still_returns_report(pipeline, transport):
    status, body = pipeline.handle(_payload(email="not-an-address", send_email=True))

    assert status == 200
    assert body["message"] == "Weekly report generated, but email failed to send"
    assert body["data"]["weekly_report"]["student_name"] == "Ava Patel"
    assert body["data"]["email_sent"] is False
    assert body["data"]["email_details"]["error"]
    assert transport.outbox == []


def test_email_address_without_send_flag_skips_dispatch(pipeline, transport):
    result = pipeline.generate(_payload(email="parent@example.com"))

    assert PipelineState.DISPATCHING not in result.run.states
    assert transport.outbox == []


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"report_week_start": "2024-03-04", "report_week_end": "2024-03-10"}, "Student ID is required"),
        ({"student_id": "stu-1", "report_week_end": "2024-03-10"}, "Report week start and end dates are required"),
        (_payload(report_week_start="03/04/2024"), "Invalid date format. Please use YYYY-MM-DD format"),
        (_payload(report_week_start="2024-03-11"), "Report week start must be on or before report week end"),
        (None, "Student ID is required"),
    ],
)
def test_invalid_requests_return_bad_request(pipeline, model_client, payload, message):
    status, body = pipeline.handle(payload)

    assert status == 400
    assert body["code"] == "BAD_REQUEST"
    assert body["error"] == message
    assert model_client.calls == []


def test_unknown_student_returns_not_found(pipeline, model_client):
    status, body = pipeline.handle(_payload(student_id="nobody"))

    assert status == 404
    assert body == {"error": "Student not found", "code": "NOT_FOUND", "details": {"student_id": "nobody"}}
    assert model_client.calls == []


def test_data_access_failure_returns_aggregation_error(pipeline, data_source):
    del data_source.tables["assignment_submissions"]

    status, body = pipeline.handle(_payload())

    assert status == 500
    assert body["code"] == "AGGREGATION_ERROR"
    assert body["details"]["table"] == "assignment_submissions"


def test_unreachable_database_returns_aggregation_error(pipeline):
    client = Mock()
    query = client.table.return_value.select.return_value
    query.eq.return_value = query
    query.execute.side_effect = httpx.ConnectError("connection refused")
    pipeline.aggregator = DataAggregator(SupabaseDataSource(client))

    status, body = pipeline.handle(_payload())

    assert status == 500
    assert body["code"] == "AGGREGATION_ERROR"
    assert body["details"]["table"] == "profiles"


def test_missing_profiles_table_returns_not_found(pipeline, data_source):
    del data_source.tables["profiles"]

    status, body = pipeline.handle(_payload())

    assert status == 404
    assert body["code"] == "NOT_FOUND"
    assert body["details"]["student_id"] == "stu-1"


def test_model_failure_returns_upstream_error(pipeline, model_client):
    model_client.error = TimeoutError("deadline exceeded")

    status, body = pipeline.handle(_payload())

    assert status == 500
    assert body["code"] == "UPSTREAM_ERROR"
    assert body["details"]["upstream_error"] == "transport"
    assert body["details"]["details"] == "deadline exceeded"


def test_unparseable_model_output_never_leaks_raw_text(pipeline, model_client):
    model_client.output = "Sorry, here is a summary in prose: SECRET-RAW-TEXT"

    status, body = pipeline.handle(_payload())

    assert status == 500
    assert body["details"]["upstream_error"] == "malformed_payload"
    assert "SECRET-RAW-TEXT" not in json.dumps(body)


def test_unexpected_error_returns_internal_server_error(pipeline):
    pipeline.formatter = ExplodingFormatter()

    status, body = pipeline.handle(_payload())

    assert status == 500
    assert body["code"] == "INTERNAL_SERVER_ERROR"
    assert body["details"] is None


def test_unexpected_error_marks_run_failed(pipeline):
    pipeline.formatter = ExplodingFormatter()
    run = PipelineRun()

    with pytest.raises(KeyError):
        pipeline.generate(_payload(), run=run)

    assert run.states[-1] == PipelineState.FAILED
    assert run.failed_in == PipelineState.FORMATTING
    assert run.failure_kind == "internal"


def test_generate_raises_pipeline_errors(pipeline):
    with pytest.raises(InvalidRequestError):
        pipeline.generate(_payload(student_id=""))


def test_parse_report_request_accepts_timestamps_and_builds_window():
    request = parse_report_request(
        {
            "student_id": 42,
            "report_week_start": "2024-03-04T00:00:00Z",
            "report_week_end": "2024-03-10",
            "send_email": "true",
            "email": "  ",
        }
    )

    assert request.student_id == "42"
    assert request.window_start.isoformat() == "2024-03-04T00:00:00+00:00"
    assert request.window_end.isoformat() == "2024-03-10T23:59:59.999999+00:00"
    assert request.email is None
    assert not request.wants_email
    assert request.recipient_type == "student"
