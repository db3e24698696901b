# src/sales_ingestor/responses.py

"""
Response envelopes returned by every Lambda invocation.

All handlers answer with an API-Gateway style dict whose JSON body is either
``{"success": true, "timestamp", "data"}`` or
``{"success": false, "timestamp", "error": {"message", "code", "details"}}``.
"""

import json
import traceback
from datetime import datetime, timezone
from typing import Any

from .summary import ProcessingSummary

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
}

_ERROR_CODES = {
    400: "BAD_REQUEST",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    207: "PARTIAL_SUCCESS",
    429: "TOO_MANY_REQUESTS",
    500: "INTERNAL_SERVER_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_code_for(status_code: int) -> str:
    return _ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def success(data: dict[str, Any], status_code: int = 200) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": dict(DEFAULT_HEADERS),
        "body": json.dumps(
            {"success": True, "timestamp": _timestamp(), "data": data}, default=str
        ),
    }


def error(
    message: str,
    status_code: int = 500,
    details: dict[str, Any] | None = None,
    exc: BaseException | None = None,
    include_stack: bool = False,
) -> dict[str, Any]:
    """Builds an error envelope; the stack trace is only attached when asked for."""
    error_body: dict[str, Any] = {
        "message": message,
        "code": error_code_for(status_code),
        "details": details or {},
    }
    if include_stack and exc is not None:
        error_body["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return {
        "statusCode": status_code,
        "headers": dict(DEFAULT_HEADERS),
        "body": json.dumps(
            {"success": False, "timestamp": _timestamp(), "error": error_body},
            default=str,
        ),
    }


def batch_processing(
    summary: ProcessingSummary, operation: str = "Batch processing"
) -> dict[str, Any]:
    """
    Maps a processing summary onto a status code.

    200 when nothing failed, 500 when nothing succeeded, 207 otherwise.
    """
    summary_body = summary.to_dict()
    if summary.failed == 0:
        return success(
            {"message": f"{operation} completed successfully", "summary": summary_body}
        )
    if summary.processed == 0:
        return error(
            f"{operation} failed completely", 500, details={"summary": summary_body}
        )
    return error(
        f"{operation} completed with errors", 207, details={"summary": summary_body}
    )
