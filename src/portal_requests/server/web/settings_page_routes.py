"""
Web route for the project administrator settings page.

The page itself is static HTML plus the resolved settings; all edits go
through the JSON settings API.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from ..auth.authenticator import Authenticator
from ..auth.dependencies import get_authenticator
from ..routers.portal_settings import get_settings_service
from ..services.portal_settings_service import PortalSettingsService
from ..services.query_engine import QueryEngine
from .renderer import Renderer

logger = logging.getLogger(__name__)

SETTINGS_PAGE_PATH = "/plugins/servlet/portal-settings"

settings_page_router = APIRouter(tags=["portal-settings-web"])


def get_renderer(request: Request) -> Renderer:
    renderer = getattr(request.app.state, "renderer", None)
    if renderer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Renderer not initialized",
        )
    return renderer


def get_query_engine(request: Request) -> QueryEngine:
    query_engine = getattr(request.app.state, "query_engine", None)
    if query_engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Query engine not initialized",
        )
    return query_engine


def _error_page(renderer: Renderer, status_code: int, message: str) -> HTMLResponse:
    html = renderer.render(
        "portal_error.html", {"status_code": status_code, "message": message}
    )
    return HTMLResponse(content=html, status_code=status_code)


def _create_login_redirect(request: Request) -> RedirectResponse:
    """Redirect to the host login page, returning here afterwards."""
    current_path = str(request.url.path)
    if request.url.query:
        current_path += f"?{request.url.query}"

    login_url = getattr(request.app.state, "login_url", "/login")
    return RedirectResponse(
        url=f"{login_url}?os_destination={quote(current_path, safe='')}",
        status_code=status.HTTP_303_SEE_OTHER,
    )


@settings_page_router.get(SETTINGS_PAGE_PATH, response_class=HTMLResponse)
def portal_settings_page(
    request: Request,
    project_key: Optional[str] = Query(None, alias="projectKey"),
    authenticator: Authenticator = Depends(get_authenticator),
    query_engine: QueryEngine = Depends(get_query_engine),
    renderer: Renderer = Depends(get_renderer),
    settings_service: PortalSettingsService = Depends(get_settings_service),
):
    """
    Project settings page.

    Requires an authenticated project administrator; anonymous callers are
    sent to the login page. Other failures are answered with an HTML error
    page.
    """
    user = authenticator.authenticate(request)
    if user is None:
        return _create_login_redirect(request)

    if not project_key or not project_key.strip():
        return _error_page(
            renderer, status.HTTP_400_BAD_REQUEST, "Project key is required"
        )
    project_key = project_key.strip()

    project = query_engine.get_project(user, project_key)
    if project is None:
        return _error_page(
            renderer, status.HTTP_404_NOT_FOUND, f"Project not found: {project_key}"
        )

    if not authenticator.is_admin(user, project_key):
        logger.info(f"Denied settings page for {project_key} to {user.name}")
        return _error_page(
            renderer,
            status.HTTP_403_FORBIDDEN,
            "Access denied. Project administrator privileges required.",
        )

    html = renderer.render(
        "portal_settings.html",
        {
            "user": user,
            "project": project,
            "project_key": project_key,
            "settings": settings_service.describe(project_key),
            "api_base_url": getattr(request.app.state, "api_prefix", ""),
        },
    )
    return HTMLResponse(content=html)
