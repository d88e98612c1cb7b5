"""
Jira REST client.

Thin synchronous httpx wrapper used by the Jira-backed authenticator and
query engine. Requests run with the credentials of the user on whose behalf
they are made (the Authorization/Cookie headers forwarded from the incoming
request), so Jira applies that user's permissions.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from portal_requests.server.logging_utils import (
    format_error_log,
    get_log_extra,
    sanitize_for_logging,
)

logger = logging.getLogger(__name__)


class JiraClientError(Exception):
    """Exception raised when Jira cannot be reached or answers unexpectedly."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class JiraClient:
    """Synchronous Jira REST API client."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Jira base URL, e.g. https://jira.example.com
            timeout: Per-request timeout in seconds
            verify_ssl: Whether to verify TLS certificates
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            verify=verify_ssl,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def get(
        self,
        path: str,
        credentials: Mapping[str, str],
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Make a GET request on behalf of a user.

        Raises:
            JiraClientError: If the request could not be completed
        """
        logger.debug(f"GET {path} params={params} headers={sanitize_for_logging(dict(credentials))}")
        try:
            return self._client.get(path, params=params, headers=dict(credentials))
        except httpx.RequestError as e:
            logger.error(
                format_error_log("PORTAL-JIRA-001", "Jira request failed", path=path, error=e),
                extra=get_log_extra("PORTAL-JIRA-001"),
            )
            raise JiraClientError(f"Failed to connect to Jira at {self.base_url}: {e}") from e

    def get_json(
        self,
        path: str,
        credentials: Mapping[str, str],
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make a GET request and decode the JSON body of a successful response.

        Raises:
            JiraClientError: On connection failure or a non-2xx status
        """
        response = self.get(path, credentials, params=params)
        if response.status_code >= 400:
            raise JiraClientError(
                f"Jira returned HTTP {response.status_code} for {path}: "
                f"{'; '.join(self.error_messages(response))}",
                status_code=response.status_code,
            )
        return response.json()

    @staticmethod
    def error_messages(response: httpx.Response) -> List[str]:
        """
        Extract Jira's error list from an error response.

        Jira reports errors as {"errorMessages": [...], "errors": {field: msg}}.
        """
        try:
            body = response.json()
        except ValueError:
            return [response.text] if response.text else []

        if not isinstance(body, dict):
            return []

        messages = [str(m) for m in body.get("errorMessages") or []]
        errors = body.get("errors") or {}
        if isinstance(errors, dict):
            messages.extend(str(m) for m in errors.values())
        return messages

    def close(self) -> None:
        self._client.close()
