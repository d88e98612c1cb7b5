"""
Recent portal requests.

Resolves the effective query for a scope, falls back to the generated default
when the configured query does not validate, runs a bounded search and maps
the issues for the portal. A single issue that cannot be mapped is skipped.
"""

import logging
from typing import Any, Dict, List

from ..auth.authenticator import ActingUser
from ..logging_utils import format_error_log, get_log_extra
from ..middleware.error_formatters import RequestRecord
from ..models.error_models import InvalidQuery
from ..models.portal import ServiceDeskRequest, normalize_scope
from .portal_settings_service import PortalSettingsService
from .query_engine import QueryEngine
from .query_validator import QueryValidator

logger = logging.getLogger(__name__)

RECENT_ITEMS_LIMIT = 10


def map_issue(issue: Dict[str, Any]) -> ServiceDeskRequest:
    """
    Map a Jira issue to its portal representation.

    Raises:
        KeyError, AttributeError, pydantic.ValidationError: If the issue is malformed.
    """
    fields = issue.get("fields") or {}
    reporter = fields.get("reporter") or {}
    status = fields.get("status") or {}
    category = status.get("statusCategory") or {}

    return ServiceDeskRequest(
        key=issue["key"],
        summary=fields.get("summary") or "",
        reporter=reporter.get("displayName") or "Unknown",
        created=fields.get("created") or "",
        status=status.get("name") or "Unknown",
        status_category=category.get("key") or "unknown",
    )


class PortalRequestsService:
    """Serves the recent-requests list for the portal."""

    def __init__(
        self,
        settings_service: PortalSettingsService,
        validator: QueryValidator,
        query_engine: QueryEngine,
    ):
        self._settings_service = settings_service
        self._validator = validator
        self._query_engine = query_engine

    def resolve_usable_query(self, user: ActingUser, scope: str, record: RequestRecord) -> str:
        """
        Effective query for scope, or the scope's default when it is invalid.

        Raises:
            InvalidQuery: If neither query validates.
        """
        query = self._settings_service.effective_query(scope)
        validation = self._validator.validate(user, query)
        if validation.valid:
            return query

        fallback = self._settings_service.default_query(scope)
        logger.warning(
            f"[{record.id}] Configured JQL invalid for scope {scope}, trying fallback: "
            f"{validation.messages()}"
        )
        if fallback != query:
            validation = self._validator.validate(user, fallback)
            if validation.valid:
                return fallback

        logger.error(
            format_error_log("PORTAL-QUERY-002", "Both configured and fallback JQL invalid", scope=scope),
            extra=get_log_extra("PORTAL-QUERY-002"),
        )
        raise InvalidQuery("Invalid JQL query", details=validation.messages())

    def get_recent(
        self, user: ActingUser, scope: str, record: RequestRecord
    ) -> List[Dict[str, Any]]:
        """
        Return up to RECENT_ITEMS_LIMIT mapped issues for scope.

        Fills record.resolved_query and record.result_count for diagnostics.
        """
        scope = normalize_scope(scope)
        record.scope = scope

        query = self.resolve_usable_query(user, scope, record)
        record.resolved_query = query
        logger.debug(f"[{record.id}] Executing search with limit {RECENT_ITEMS_LIMIT}: {query}")

        issues = self._query_engine.search(user, query, RECENT_ITEMS_LIMIT)

        items: List[Dict[str, Any]] = []
        for issue in issues[:RECENT_ITEMS_LIMIT]:
            try:
                items.append(map_issue(issue).model_dump(by_alias=True))
            except Exception as e:
                issue_key = issue.get("key") if isinstance(issue, dict) else None
                logger.warning(f"[{record.id}] Error processing issue {issue_key}: {e}")

        record.result_count = len(items)
        logger.debug(f"[{record.id}] Mapped {len(items)} of {len(issues)} issues")
        return items
