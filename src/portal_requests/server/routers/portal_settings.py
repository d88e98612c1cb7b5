"""
Portal Settings API Router.

Provides REST API endpoints for portal configuration:
- GET /settings - Resolved settings for a scope (any authenticated user)
- POST /settings - Partial settings update (scope administrator)
- POST /settings/buttons - Button slot update (scope administrator)
- POST /settings/validate-jql - Parse-only JQL check (any authenticated user)
- GET /settings/confluence-spaces - Confluence space catalog

Request bodies are read by dependencies declared after get_current_user, so
an anonymous caller gets 401 whatever the body contains.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, ValidationError

from ..auth.authenticator import ActingUser, Authenticator
from ..auth.dependencies import get_authenticator, get_current_user, require_scope_admin
from ..middleware.error_formatters import (
    INVALID_PAYLOAD_MESSAGE,
    format_validation_details,
)
from ..models.error_models import InvalidInput
from ..models.portal import (
    ButtonsUpdateRequest,
    PortalConfigUpdate,
    ValidateJqlRequest,
    normalize_scope,
)
from ..services.portal_settings_service import PortalSettingsService
from ..services.query_validator import QueryValidation, QueryValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["portal-settings"])

SAVE_SUCCESS_MESSAGE = "Settings saved successfully"
NOT_AN_OBJECT_REASON = "request body must be a JSON object"

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def get_settings_service(request: Request) -> PortalSettingsService:
    """Get the PortalSettingsService instance."""
    service = getattr(request.app.state, "settings_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Settings service not initialized",
        )
    return service


def get_query_validator(request: Request) -> QueryValidator:
    """Get the QueryValidator instance."""
    validator = getattr(request.app.state, "query_validator", None)
    if validator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Query validator not initialized",
        )
    return validator


async def read_json_body(request: Request) -> Any:
    """
    Decode the request body as JSON.

    Returns None for an empty body. Raises InvalidInput when the body is not
    valid JSON.
    """
    body = await request.body()
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError as e:
        raise InvalidInput(INVALID_PAYLOAD_MESSAGE, details=[f"Malformed JSON: {e}"])


def parse_payload(model: Type[PayloadT], data: Any) -> PayloadT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidInput(
            INVALID_PAYLOAD_MESSAGE, details=format_validation_details(e.errors())
        )


async def get_config_update(request: Request) -> PortalConfigUpdate:
    return parse_payload(PortalConfigUpdate, await read_json_body(request))


async def get_buttons_update(request: Request) -> ButtonsUpdateRequest:
    return parse_payload(ButtonsUpdateRequest, await read_json_body(request))


async def get_validate_jql_payload(request: Request) -> Optional[ValidateJqlRequest]:
    """Lenient body reader; None means the body was not a JSON object."""
    try:
        data = await read_json_body(request)
    except InvalidInput:
        return None
    if data is None:
        return ValidateJqlRequest()
    if not isinstance(data, dict):
        return None
    return ValidateJqlRequest.model_validate(data)


def _save_response(scope: str) -> Dict[str, Any]:
    return {"success": True, "message": SAVE_SUCCESS_MESSAGE, "projectKey": scope}


@router.get("")
def get_settings(
    project_key: Optional[str] = Query(None, alias="projectKey"),
    current_user: ActingUser = Depends(get_current_user),
    settings_service: PortalSettingsService = Depends(get_settings_service),
) -> Dict[str, Any]:
    """
    Get the settings for a project, or the global settings.

    Includes the generated default JQL and the JQL that would currently be
    used for searches.
    """
    return settings_service.describe(project_key)


@router.post(
    "",
    responses={
        200: {"description": "Settings saved"},
        400: {"description": "Invalid payload, button entry or JQL"},
        401: {"description": "Authentication required"},
        403: {"description": "Administrator privileges required"},
        500: {"description": "Settings store write failed"},
    },
)
def save_settings(
    project_key: Optional[str] = Query(None, alias="projectKey"),
    current_user: ActingUser = Depends(get_current_user),
    update: PortalConfigUpdate = Depends(get_config_update),
    authenticator: Authenticator = Depends(get_authenticator),
    settings_service: PortalSettingsService = Depends(get_settings_service),
) -> Dict[str, Any]:
    """
    Save a partial settings update.

    Fields omitted from the body keep their stored values. The scope comes
    from projectKey in the body, else the projectKey query parameter, else
    the global scope.
    """
    scope = normalize_scope(update.project_key or project_key)
    require_scope_admin(authenticator, current_user, scope)

    logger.debug(f"Save settings request for {scope} from {current_user.name}")
    saved_scope = settings_service.save(current_user, scope, update)
    return _save_response(saved_scope)


@router.post("/buttons")
def save_buttons(
    project_key: Optional[str] = Query(None, alias="projectKey"),
    current_user: ActingUser = Depends(get_current_user),
    payload: ButtonsUpdateRequest = Depends(get_buttons_update),
    authenticator: Authenticator = Depends(get_authenticator),
    settings_service: PortalSettingsService = Depends(get_settings_service),
) -> Dict[str, Any]:
    """Update up to 5 button slots. Slots not addressed keep their values."""
    scope = normalize_scope(payload.project_key or project_key)
    require_scope_admin(authenticator, current_user, scope)

    saved_scope = settings_service.save_buttons(current_user, scope, payload.buttons)
    return _save_response(saved_scope)


@router.post("/validate-jql")
def validate_jql(
    current_user: ActingUser = Depends(get_current_user),
    payload: Optional[ValidateJqlRequest] = Depends(get_validate_jql_payload),
    validator: QueryValidator = Depends(get_query_validator),
) -> Dict[str, Any]:
    """
    Check a JQL query without running it.

    Always answers 200 to an authenticated caller; validity is reported in
    the body, including for bodies that cannot be read.
    """
    if payload is None:
        return QueryValidation.failed(NOT_AN_OBJECT_REASON).to_response()
    type_error = payload.candidate_error()
    if type_error:
        return QueryValidation.failed(type_error).to_response()
    return validator.validate(current_user, payload.jql).to_response()


@router.get("/confluence-spaces")
def list_confluence_spaces(
    request: Request,
    current_user: ActingUser = Depends(get_current_user),
) -> List[Dict[str, str]]:
    """List the Confluence spaces that can be linked to a portal."""
    return list(getattr(request.app.state, "confluence_spaces", []))
