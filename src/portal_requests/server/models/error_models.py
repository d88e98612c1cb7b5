"""
Error taxonomy for the portal requests server.

Every error that should reach a caller as a JSON error envelope is raised as a
PortalError subclass. The class carries the HTTP status and the errorType
reported in the envelope; the global exception handlers in
middleware.error_formatters turn them into responses.
"""

from typing import List, Optional


class PortalError(Exception):
    """Base class for errors reported to API callers."""

    status_code: int = 500
    error_type: str = "PortalError"

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class Unauthenticated(PortalError):
    """No authenticated user on the request."""

    status_code = 401
    error_type = "Unauthenticated"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class Forbidden(PortalError):
    """Authenticated user lacks administrator rights for the scope."""

    status_code = 403
    error_type = "Forbidden"


class InvalidInput(PortalError):
    """Malformed JSON, missing required field or otherwise bad payload."""

    status_code = 400
    error_type = "InvalidInput"


class InvalidButtonEntry(InvalidInput):
    """A button slot has a label without a url or a url without a label."""

    error_type = "InvalidButtonEntry"


class InvalidQuery(PortalError):
    """Query rejected by the search engine's parser."""

    status_code = 400
    error_type = "InvalidQuery"


class StoreWriteFailure(PortalError):
    """Settings store rejected a write."""

    status_code = 500
    error_type = "StoreWriteFailure"


class StoreReadFailure(Exception):
    """Settings store could not be read. Never surfaced to API callers."""
