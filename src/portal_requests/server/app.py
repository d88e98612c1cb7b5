"""
FastAPI application factory for the portal requests server.

Host capabilities (Authenticator, QueryEngine, KVStore, Renderer) are passed
in; any that are omitted are built from configuration: Jira-backed
authentication and search, a SQLite settings store under the server
directory, and the package's Jinja2 templates.
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, List, Optional

from fastapi import FastAPI

from portal_requests import __version__

from .auth.authenticator import Authenticator, JiraAuthenticator
from .clients.jira_client import JiraClient
from .middleware.correlation import CorrelationIdMiddleware
from .middleware.error_formatters import register_exception_handlers
from .routers.portal_requests import router as portal_requests_router
from .routers.portal_settings import router as portal_settings_router
from .services.portal_requests_service import PortalRequestsService
from .services.portal_settings_service import PortalSettingsService
from .services.query_engine import JiraQueryEngine, QueryEngine
from .services.query_validator import QueryValidator
from .startup.database_init import initialize_settings_database
from .storage.kv_store import KVStore, SqliteKVStore
from .utils.config_manager import PortalServerConfig, ServerConfigManager
from .web.renderer import Jinja2Renderer, Renderer
from .web.settings_page_routes import settings_page_router

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[PortalServerConfig] = None,
    *,
    authenticator: Optional[Authenticator] = None,
    query_engine: Optional[QueryEngine] = None,
    kv_store: Optional[KVStore] = None,
    renderer: Optional[Renderer] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: Server configuration; loaded from the server directory when omitted.
        authenticator: Caller identification and admin checks.
        query_engine: Query parsing and search.
        kv_store: Settings store.
        renderer: HTML renderer for the settings page.
    """
    if config is None:
        config_manager = ServerConfigManager()
        config = config_manager.load_or_create_config()
        config_manager.validate_config(config)

    assert config.jira_config is not None  # Guaranteed by __post_init__
    assert config.portal_defaults_config is not None

    cleanups: List[Callable[[], None]] = []

    if authenticator is None or query_engine is None:
        jira_client = JiraClient(
            config.jira_config.base_url,
            timeout=config.jira_config.timeout_seconds,
            verify_ssl=config.jira_config.verify_ssl,
        )
        cleanups.append(jira_client.close)
        authenticator = authenticator or JiraAuthenticator(jira_client)
        query_engine = query_engine or JiraQueryEngine(jira_client)

    if kv_store is None:
        db_path = str(config.database_path)
        initialize_settings_database(db_path)
        sqlite_store = SqliteKVStore(db_path)
        cleanups.append(sqlite_store.close)
        kv_store = sqlite_store

    renderer = renderer or Jinja2Renderer()

    defaults = config.portal_defaults_config
    validator = QueryValidator(query_engine)
    settings_service = PortalSettingsService(
        kv_store,
        validator,
        fallback_project_key=defaults.fallback_project_key,
        default_query_template=defaults.default_query_template,
    )
    requests_service = PortalRequestsService(settings_service, validator, query_engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Portal requests server {__version__} started (Jira: {config.jira_config.base_url})"
        )
        yield
        for cleanup in cleanups:
            cleanup()

    app = FastAPI(
        title="Portal Requests",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(app)

    app.state.authenticator = authenticator
    app.state.query_engine = query_engine
    app.state.renderer = renderer
    app.state.query_validator = validator
    app.state.settings_service = settings_service
    app.state.portal_requests_service = requests_service
    app.state.confluence_spaces = list(defaults.confluence_spaces or [])
    app.state.api_prefix = config.api_prefix
    app.state.login_url = (
        config.jira_config.base_url.rstrip("/") + config.jira_config.login_path
    )

    app.include_router(portal_requests_router, prefix=config.api_prefix)
    app.include_router(portal_settings_router, prefix=config.api_prefix)
    app.include_router(settings_page_router)

    return app
