"""
Correlation id middleware.

Assigns every request an id (taken from the X-Request-ID header when the
caller supplies one), exposes it to logging through a ContextVar and to
handlers through request.state, and echoes it back in the response header.
"""

import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_PREFIX = "PORTAL-"
MAX_INCOMING_ID_LENGTH = 128

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    """Return the id of the request being processed, if any."""
    return _correlation_id.get()


def generate_request_id() -> str:
    return f"{REQUEST_ID_PREFIX}{uuid.uuid4().hex[:16]}"


def _incoming_request_id(request: Request) -> Optional[str]:
    value = request.headers.get(REQUEST_ID_HEADER)
    if value and value.strip() and len(value) <= MAX_INCOMING_ID_LENGTH:
        return value.strip()
    return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach request id and start time to each request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = _incoming_request_id(request) or generate_request_id()
        request.state.request_id = request_id
        request.state.started_at = time.monotonic()

        token = _correlation_id.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _correlation_id.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
