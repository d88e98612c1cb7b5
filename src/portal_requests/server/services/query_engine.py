"""
Issue search engine port and its Jira implementation.

The query language itself (JQL) is owned by Jira. This module only defines
what the portal needs from it: a parser-only validity check, a bounded
search, and a project lookup for the settings page.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..auth.authenticator import ActingUser
from ..clients.jira_client import JiraClient, JiraClientError

logger = logging.getLogger(__name__)

SEARCH_FIELDS = "summary,reporter,created,status"


@dataclass
class ParseResult:
    """Outcome of parsing a query without executing it."""

    valid: bool
    errors: List[str] = field(default_factory=list)


class QueryEngine(ABC):
    """Search capability of the host platform."""

    @abstractmethod
    def parse(self, user: ActingUser, query: str) -> ParseResult:
        """
        Check query syntax and field visibility for user without executing it.

        May raise on malformed input or transport failure.
        """

    @abstractmethod
    def search(self, user: ActingUser, query: str, limit: int) -> List[Dict[str, Any]]:
        """Run query as user and return at most limit issues."""

    @abstractmethod
    def get_project(self, user: ActingUser, project_key: str) -> Optional[Dict[str, Any]]:
        """Return the project visible to user under project_key, or None."""


class JiraQueryEngine(QueryEngine):
    """
    QueryEngine backed by Jira's /rest/api/2/search endpoint.

    Parsing uses the same endpoint with maxResults=0 and strict validation,
    which makes Jira parse and check the query without returning issues.
    """

    def __init__(self, client: JiraClient):
        self._client = client

    def parse(self, user: ActingUser, query: str) -> ParseResult:
        response = self._client.get(
            "/rest/api/2/search",
            user.credentials,
            params={
                "jql": query,
                "maxResults": 0,
                "validateQuery": "strict",
                "fields": "key",
            },
        )
        if response.status_code == 200:
            return ParseResult(valid=True)
        if response.status_code == 400:
            errors = JiraClient.error_messages(response) or ["Invalid JQL query"]
            return ParseResult(valid=False, errors=errors)

        raise JiraClientError(
            f"Jira returned HTTP {response.status_code} while parsing query",
            status_code=response.status_code,
        )

    def search(self, user: ActingUser, query: str, limit: int) -> List[Dict[str, Any]]:
        data = self._client.get_json(
            "/rest/api/2/search",
            user.credentials,
            params={
                "jql": query,
                "startAt": 0,
                "maxResults": limit,
                "fields": SEARCH_FIELDS,
            },
        )
        issues = data.get("issues") or []
        logger.debug(f"Jira search returned {len(issues)} of {data.get('total')} issues")
        return issues[:limit]

    def get_project(self, user: ActingUser, project_key: str) -> Optional[Dict[str, Any]]:
        try:
            return self._client.get_json(
                f"/rest/api/2/project/{quote(project_key, safe='')}", user.credentials
            )
        except JiraClientError as e:
            if e.status_code == 404:
                return None
            raise
