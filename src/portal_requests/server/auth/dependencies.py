"""
FastAPI dependencies for authentication and authorization.
"""

import logging

from fastapi import Depends, HTTPException, Request, status

from ..models.error_models import Forbidden, Unauthenticated
from ..models.portal import GLOBAL_SCOPE
from .authenticator import ActingUser, Authenticator

logger = logging.getLogger(__name__)


def get_authenticator(request: Request) -> Authenticator:
    """Get the Authenticator installed on the application."""
    authenticator = getattr(request.app.state, "authenticator", None)
    if authenticator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authenticator not initialized",
        )
    return authenticator


def get_current_user(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
) -> ActingUser:
    """
    Authenticate the caller.

    Raises:
        Unauthenticated: If the request carries no valid identity.
    """
    user = authenticator.authenticate(request)
    if user is None:
        logger.warning(
            f"[{getattr(request.state, 'request_id', '-')}] Authentication failed - no user"
        )
        raise Unauthenticated()
    return user


def require_scope_admin(
    authenticator: Authenticator, user: ActingUser, scope: str
) -> None:
    """
    Ensure user administers scope.

    Raises:
        Forbidden: If user lacks global (for the global scope) or project
            administrator rights.
    """
    if authenticator.is_admin(user, scope):
        return

    if scope == GLOBAL_SCOPE:
        raise Forbidden("Access denied. Jira administrator privileges required.")
    raise Forbidden(
        f"Access denied. Project administrator privileges required for {scope}."
    )
