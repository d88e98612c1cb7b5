"""
Portal Requests API Router.

Provides the read path used by the service-desk portal:
- GET /recent?projectKey=<optional> - Up to 10 issues matching the scope's query
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from ..auth.authenticator import ActingUser
from ..auth.dependencies import get_current_user
from ..middleware.error_formatters import RequestRecord, build_success_envelope
from ..models.portal import normalize_scope
from ..services.portal_requests_service import PortalRequestsService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["portal-requests"])

RESPONSE_HEADERS = {
    "Cache-Control": "max-age=30",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
}


def get_portal_requests_service(request: Request) -> PortalRequestsService:
    """Get the PortalRequestsService instance."""
    service = getattr(request.app.state, "portal_requests_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Portal requests service not initialized",
        )
    return service


@router.get(
    "/recent",
    responses={
        200: {"description": "Recent requests with diagnostics"},
        400: {"description": "Neither the configured nor the default JQL is valid"},
        401: {"description": "Authentication required"},
    },
)
def get_recent_requests(
    request: Request,
    project_key: Optional[str] = Query(None, alias="projectKey"),
    current_user: ActingUser = Depends(get_current_user),
    service: PortalRequestsService = Depends(get_portal_requests_service),
) -> JSONResponse:
    """
    List the most recent requests for a project (or the global scope).

    The result is capped at 10 issues. The diagnostics block reports the
    exact JQL that was run and how many issues were returned.
    """
    record = RequestRecord(
        id=request.state.request_id,
        scope=normalize_scope(project_key),
        started_at=request.state.started_at,
    )
    logger.debug(f"[{record.id}] Portal REST API called by {current_user.name} for {record.scope}")

    data = service.get_recent(current_user, record.scope, record)

    body = build_success_envelope(data, record, current_user.name)
    logger.debug(f"[{record.id}] Request completed in {body['diagnostics']['duration']}ms")
    return JSONResponse(content=body, headers=RESPONSE_HEADERS)
