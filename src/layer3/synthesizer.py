"""Sends the student brief to the model and parses the weekly report JSON."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ..core.errors import MalformedPayloadError, UpstreamEmptyResponseError, UpstreamTransportError
from .config import Layer3Config
from .input_sanitizer import prepare_model_input
from .json_extraction import extract_json_object
from .model_client import GenerativeModelClient
from .models import RawWeeklyReport

LOGGER = logging.getLogger(__name__)


class ReportSynthesizer:
    """Single-attempt model call followed by strict parsing."""

    def __init__(self, config: Layer3Config, model_client: GenerativeModelClient) -> None:
        self.config = config
        self.model_client = model_client

    def synthesize(self, instructions: str, brief: str, model: str) -> RawWeeklyReport:
        model_input = prepare_model_input(brief, self.config.max_input_chars)
        LOGGER.info("Requesting weekly report from %s (%s input chars).", model, len(model_input))
        LOGGER.debug("Model input preview: %s", model_input[:500])

        try:
            output_text = self.model_client.generate(
                model=model,
                instructions=instructions,
                input_text=model_input,
                temperature=self.config.temperature,
                max_output_tokens=self.config.max_output_tokens,
            )
        except Exception as exc:
            LOGGER.error("Model request to %s failed: %s", model, exc)
            raise UpstreamTransportError(
                "Model API request failed",
                details={"details": str(exc) or exc.__class__.__name__, "model": model},
            ) from exc

        output_text = (output_text or "").strip()
        if not output_text:
            raise UpstreamEmptyResponseError(
                "No response content from model API",
                details={"details": "The API did not return any output text", "model": model},
            )

        extraction = extract_json_object(output_text)
        if not extraction.ok:
            LOGGER.error("Weekly report JSON parse error (%s chars of output).", len(output_text))
            LOGGER.debug("Unparseable model output: %s", output_text)
            raise MalformedPayloadError(
                "Failed to parse weekly report JSON",
                details={"details": extraction.error, "output_length": len(output_text)},
            )

        try:
            report = RawWeeklyReport.model_validate(extraction.payload)
        except ValidationError as exc:
            LOGGER.error("Weekly report JSON did not match schema: %s", exc)
            raise MalformedPayloadError(
                "Weekly report JSON did not match the expected structure",
                details={
                    "details": f"{exc.error_count()} schema violation(s)",
                    "output_length": len(output_text),
                },
            ) from exc

        LOGGER.info("Parsed weekly report from %s output (%s JSON).", model, extraction.kind.value)
        return report
