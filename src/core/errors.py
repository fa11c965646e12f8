"""Error taxonomy for the weekly report pipeline."""

from __future__ import annotations

from typing import Any, Dict


class ReportPipelineError(Exception):
    """Base error carrying the HTTP status, machine code and safe details."""

    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"
    kind: str = "internal"

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details or None,
        }


class InvalidRequestError(ReportPipelineError):
    status_code = 400
    code = "BAD_REQUEST"
    kind = "invalid_request"


class StudentNotFoundError(ReportPipelineError):
    status_code = 404
    code = "NOT_FOUND"
    kind = "not_found"


class AggregationError(ReportPipelineError):
    code = "AGGREGATION_ERROR"
    kind = "aggregation"


class UpstreamError(ReportPipelineError):
    """Any failure talking to the generative model."""

    code = "UPSTREAM_ERROR"
    kind = "upstream"
    upstream_kind = "upstream"

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message, details=details)
        self.details.setdefault("upstream_error", self.upstream_kind)


class UpstreamTransportError(UpstreamError):
    upstream_kind = "transport"


class UpstreamEmptyResponseError(UpstreamError):
    upstream_kind = "empty_response"


class MalformedPayloadError(UpstreamError):
    upstream_kind = "malformed_payload"


class DataAccessError(RuntimeError):
    """Raised by data sources when a query fails (as opposed to returning no rows).

    `rejected` is true when the store answered with an error for the query
    itself, false when the store could not be reached.
    """

    def __init__(self, table: str, message: str, *, rejected: bool = True) -> None:
        super().__init__(f"Query on '{table}' failed: {message}")
        self.table = table
        self.rejected = rejected


class DispatchError(RuntimeError):
    """Email delivery failure. Never leaves the dispatcher as an exception."""
