"""
Authentication and permission checks.

Authenticator is the port the request handlers use to identify the caller
and check administrator rights; JiraAuthenticator asks the Jira host, using
the caller's own forwarded credentials.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from fastapi import Request

from ..clients.jira_client import JiraClient, JiraClientError
from ..models.portal import GLOBAL_SCOPE

logger = logging.getLogger(__name__)

# Incoming headers that carry the caller's Jira identity
FORWARDED_CREDENTIAL_HEADERS = ("Authorization", "Cookie")


@dataclass(frozen=True)
class ActingUser:
    """The authenticated caller of a request."""

    name: str
    display_name: str = ""
    credentials: Dict[str, str] = field(default_factory=dict, repr=False, compare=False)


class Authenticator(ABC):
    """Identifies callers and checks their administrator rights."""

    @abstractmethod
    def authenticate(self, request: Request) -> Optional[ActingUser]:
        """Return the authenticated user for request, or None."""

    @abstractmethod
    def is_admin(self, user: ActingUser, scope: str) -> bool:
        """
        True when user administers scope.

        The global scope requires global administrator rights, a project
        scope requires project administrator rights on that project.
        """


class JiraAuthenticator(Authenticator):
    """Authenticator backed by the Jira REST API."""

    def __init__(self, client: JiraClient):
        self._client = client

    def authenticate(self, request: Request) -> Optional[ActingUser]:
        credentials = {
            header: request.headers[header]
            for header in FORWARDED_CREDENTIAL_HEADERS
            if header in request.headers
        }
        if not credentials:
            return None

        response = self._client.get("/rest/api/2/myself", credentials)
        if response.status_code in (401, 403):
            logger.debug(f"Jira rejected credentials with HTTP {response.status_code}")
            return None
        if response.status_code >= 400:
            raise JiraClientError(
                f"Jira user lookup failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        data = response.json()
        name = data.get("name") or data.get("key") or data.get("accountId")
        if not name:
            return None

        return ActingUser(
            name=name,
            display_name=data.get("displayName") or name,
            credentials=credentials,
        )

    def is_admin(self, user: ActingUser, scope: str) -> bool:
        if scope == GLOBAL_SCOPE:
            permission = "ADMINISTER"
            params = {"permissions": permission}
        else:
            permission = "ADMINISTER_PROJECTS"
            params = {"permissions": permission, "projectKey": scope}

        try:
            data = self._client.get_json(
                "/rest/api/2/mypermissions", user.credentials, params=params
            )
        except JiraClientError as e:
            # Unknown project keys come back as 400/404
            if e.status_code in (400, 404):
                return False
            raise

        entry = (data.get("permissions") or {}).get(permission) or {}
        return bool(entry.get("havePermission"))
