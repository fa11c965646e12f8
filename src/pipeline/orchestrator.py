"""Runs the weekly report pipeline for one request and shapes the response."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Tuple

from pydantic import ValidationError

from ..core.clients import ClientRegistry
from ..core.errors import InvalidRequestError, ReportPipelineError
from ..layer1.aggregator import DataAggregator
from ..layer2.formatter import NarrativeFormatter
from ..layer3.config import Layer3Config
from ..layer3.reconciler import DerivedFieldReconciler
from ..layer3.synthesizer import ReportSynthesizer
from ..layer4.config import Layer4Config
from ..layer4.dispatcher import NotificationDispatcher
from ..layer4.email_models import EmailDispatchResult
from .models import PipelineRun, PipelineState, ReportRequest, WeeklyReportResult

LOGGER = logging.getLogger(__name__)

DATE_FIELDS = {"week_start", "week_end", "report_week_start", "report_week_end"}


def parse_report_request(payload: Mapping[str, Any] | None) -> ReportRequest:
    payload = payload or {}
    if payload.get("student_id") in (None, ""):
        raise InvalidRequestError("Student ID is required")
    if not payload.get("report_week_start") or not payload.get("report_week_end"):
        raise InvalidRequestError("Report week start and end dates are required")
    try:
        request = ReportRequest.model_validate(payload)
    except ValidationError as exc:
        errors = exc.errors(include_input=False, include_url=False)
        fields = sorted({str(error["loc"][0]) for error in errors if error.get("loc")})
        if DATE_FIELDS.intersection(fields):
            message = "Invalid date format. Please use YYYY-MM-DD format"
        else:
            message = "Invalid request body"
        raise InvalidRequestError(
            message,
            details={"fields": fields, "details": "; ".join(error["msg"] for error in errors)},
        ) from exc
    if request.week_start > request.week_end:
        raise InvalidRequestError(
            "Report week start must be on or before report week end",
            details={"report_week_start": request.week_start.isoformat(), "report_week_end": request.week_end.isoformat()},
        )
    return request


class ReportPipelineOrchestrator:
    """Validating -> Aggregating -> Formatting -> Synthesizing -> Reconciling -> (Dispatching) -> Done."""

    def __init__(
        self,
        aggregator: DataAggregator,
        synthesizer: ReportSynthesizer,
        layer3_config: Layer3Config,
        layer4_config: Layer4Config,
        dispatcher: NotificationDispatcher | None = None,
        formatter: NarrativeFormatter | None = None,
        reconciler: DerivedFieldReconciler | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.synthesizer = synthesizer
        self.layer3_config = layer3_config
        self.layer4_config = layer4_config
        self.dispatcher = dispatcher
        self.formatter = formatter or NarrativeFormatter()
        self.reconciler = reconciler or DerivedFieldReconciler()
        self.instructions = layer3_config.load_instructions()

    @classmethod
    def from_registry(cls, registry: ClientRegistry) -> "ReportPipelineOrchestrator":
        return cls(
            aggregator=DataAggregator(registry.data_source()),
            synthesizer=ReportSynthesizer(registry.layer3_config, registry.model_client()),
            layer3_config=registry.layer3_config,
            layer4_config=registry.layer4_config,
            dispatcher=NotificationDispatcher(registry.layer4_config, registry.email_transport()),
        )

    def generate(self, payload: Mapping[str, Any] | None, run: PipelineRun | None = None) -> WeeklyReportResult:
        """Run every stage for one request. Pass `run` to observe the visited states."""
        run = run if run is not None else PipelineRun()
        try:
            return self._generate(payload, run)
        except ReportPipelineError as exc:
            run.fail(exc.kind)
            LOGGER.warning("Weekly report failed while %s: %s", run.failed_in.value if run.failed_in else "starting", exc.message)
            raise
        except Exception:
            run.fail("internal")
            raise

    def _generate(self, payload: Mapping[str, Any] | None, run: PipelineRun) -> WeeklyReportResult:
        run.advance(PipelineState.VALIDATING)
        request = parse_report_request(payload)
        model = request.model or self.layer3_config.model_name

        run.advance(PipelineState.AGGREGATING)
        snapshot = self.aggregator.aggregate(request.student_id, request.window_start, request.window_end)

        run.advance(PipelineState.FORMATTING)
        brief = self.formatter.format(snapshot, request.week_start, request.week_end)
        LOGGER.info("Formatted brief for student %s (%s chars).", request.student_id, len(brief))

        run.advance(PipelineState.SYNTHESIZING)
        raw_report = self.synthesizer.synthesize(self.instructions, brief, model)

        run.advance(PipelineState.RECONCILING)
        weekly_report = self.reconciler.reconcile(
            raw_report,
            snapshot,
            request.window_end,
            week_start_label=request.week_start,
            week_end_label=request.week_end,
        )

        email_details: EmailDispatchResult | None = None
        if request.wants_email:
            run.advance(PipelineState.DISPATCHING)
            email_details = self._dispatch(request, weekly_report, snapshot.student_name)

        run.advance(PipelineState.DONE)
        return WeeklyReportResult(weekly_report=weekly_report, email_details=email_details, run=run)

    def _dispatch(self, request: ReportRequest, weekly_report, student_name: str) -> EmailDispatchResult:
        if self.dispatcher is None:
            return EmailDispatchResult.failed("Email delivery is not configured", recipient=request.email)
        subject = self.layer4_config.format_subject(request.week_start.isoformat(), request.week_end.isoformat())
        return self.dispatcher.dispatch(
            weekly_report,
            to=request.email,
            subject=subject,
            recipient_name=student_name,
            recipient_type=request.recipient_type,
        )

    def handle(self, payload: Mapping[str, Any] | None) -> Tuple[int, Dict[str, Any]]:
        """Return `(status_code, body)` for an HTTP request body."""
        try:
            result = self.generate(payload)
        except ReportPipelineError as exc:
            return exc.status_code, exc.to_dict()
        except Exception as exc:
            LOGGER.exception("Weekly report error")
            return 500, {
                "error": str(exc) or "Unexpected error",
                "code": "INTERNAL_SERVER_ERROR",
                "details": None,
            }

        if result.email_details is not None and result.email_details.success and result.email_details.dry_run:
            message = "Weekly report generated; email delivery is in dry-run mode and nothing was sent"
        elif result.email_details is not None:
            message = (
                "Weekly report generated and emailed successfully"
                if result.email_sent
                else "Weekly report generated, but email failed to send"
            )
        else:
            message = "Weekly report generated successfully"
        return 200, {"success": True, "message": message, "data": result.as_response_data()}
