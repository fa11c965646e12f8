"""HTTP surface for the weekly report pipeline."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.clients import ClientRegistry
from .orchestrator import ReportPipelineOrchestrator

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai-agent", tags=["ai-agent"])


def configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@router.post("/weekly-report")
def weekly_report(request: Request, payload: Dict[str, Any] | None = Body(default=None)) -> JSONResponse:
    pipeline: ReportPipelineOrchestrator = request.app.state.pipeline
    status_code, body = pipeline.handle(payload)
    return JSONResponse(status_code=status_code, content=body)


def create_app(pipeline: ReportPipelineOrchestrator | None = None) -> FastAPI:
    """Build the app. Without an explicit pipeline, clients come from the environment."""
    configure_logging()
    app = FastAPI(title="Weekly Report Agent")
    if pipeline is None:
        pipeline = ReportPipelineOrchestrator.from_registry(ClientRegistry())
        LOGGER.info("Weekly report pipeline initialised from environment.")
    app.state.pipeline = pipeline
    app.include_router(router)

    @app.exception_handler(RequestValidationError)
    def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Request body must be a JSON object", "code": "BAD_REQUEST", "details": None},
        )

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    return app
