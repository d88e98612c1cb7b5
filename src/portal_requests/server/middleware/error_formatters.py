"""
Response envelope builder and global exception handlers.

Success responses of the recent-requests endpoint are {"data": [...],
"diagnostics": {...}}. Every error response, whatever raised it, is
{"error": str, "requestId"?: str, "duration"?: int, "errorType"?: str,
"details"?: [str]}. Durations are milliseconds everywhere.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal_requests import __version__
from portal_requests.server.logging_utils import format_error_log, get_log_extra
from portal_requests.server.middleware.correlation import REQUEST_ID_HEADER
from portal_requests.server.models.error_models import PortalError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"
INVALID_PAYLOAD_MESSAGE = "Invalid request payload"


def elapsed_ms(started_at: float) -> int:
    return int((time.monotonic() - started_at) * 1000)


@dataclass
class RequestRecord:
    """Transient record of one request, used only to build diagnostics."""

    id: str
    scope: str
    started_at: float = field(default_factory=time.monotonic)
    resolved_query: Optional[str] = None
    result_count: int = 0

    def duration_ms(self) -> int:
        return elapsed_ms(self.started_at)


def build_diagnostics(record: RequestRecord, user_name: str) -> Dict[str, Any]:
    return {
        "requestId": record.id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "duration": record.duration_ms(),
        "user": user_name,
        "jql": record.resolved_query,
        "resultCount": record.result_count,
        "scope": record.scope,
        "version": __version__,
    }


def build_success_envelope(
    data: List[Dict[str, Any]], record: RequestRecord, user_name: str
) -> Dict[str, Any]:
    return {"data": data, "diagnostics": build_diagnostics(record, user_name)}


def build_error_envelope(
    message: str,
    request_id: Optional[str] = None,
    duration_ms: Optional[int] = None,
    error_type: Optional[str] = None,
    details: Optional[List[str]] = None,
) -> Dict[str, Any]:
    envelope: Dict[str, Any] = {"error": message}
    if request_id is not None:
        envelope["requestId"] = request_id
    if duration_ms is not None:
        envelope["duration"] = duration_ms
    if error_type is not None:
        envelope["errorType"] = error_type
    if details:
        envelope["details"] = details
    return envelope


def _request_context(request: Request) -> Dict[str, Any]:
    request_id = getattr(request.state, "request_id", None)
    started_at = getattr(request.state, "started_at", None)
    return {
        "request_id": request_id,
        "duration_ms": elapsed_ms(started_at) if started_at is not None else None,
    }


def _json_error(status_code: int, envelope: Dict[str, Any]) -> JSONResponse:
    headers = {}
    if envelope.get("requestId"):
        headers[REQUEST_ID_HEADER] = envelope["requestId"]
    return JSONResponse(status_code=status_code, content=envelope, headers=headers)


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    context = _request_context(request)
    if exc.status_code >= 500:
        logger.error(
            format_error_log(
                "PORTAL-API-002", exc.message, path=request.url.path, error_type=exc.error_type
            ),
            extra=get_log_extra("PORTAL-API-002"),
        )
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.error_type}: {exc.message}")

    envelope = build_error_envelope(
        exc.message,
        error_type=exc.error_type,
        details=exc.details,
        **context,
    )
    return _json_error(exc.status_code, envelope)


def format_validation_details(errors: Sequence[Dict[str, Any]]) -> List[str]:
    """Render pydantic errors as "field: message" strings."""
    details = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        details.append(f"{location}: {message}" if location else message)
    return details


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    envelope = build_error_envelope(
        INVALID_PAYLOAD_MESSAGE,
        error_type="InvalidInput",
        details=format_validation_details(exc.errors()),
        **_request_context(request),
    )
    return _json_error(400, envelope)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    envelope = build_error_envelope(str(exc.detail), **_request_context(request))
    response = _json_error(exc.status_code, envelope)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    context = _request_context(request)
    logger.exception(
        format_error_log(
            "PORTAL-API-001",
            "Unhandled error",
            path=request.url.path,
            error_type=type(exc).__name__,
            duration_ms=context["duration_ms"],
        ),
        extra=get_log_extra("PORTAL-API-001"),
    )
    envelope = build_error_envelope(
        GENERIC_ERROR_MESSAGE, error_type=type(exc).__name__, **context
    )
    return _json_error(500, envelope)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope-producing handlers on app."""
    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
