"""
Query validation on top of the search engine's parser.

The validator never executes a query and never raises: parser failures of any
kind are reported as an invalid result.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..auth.authenticator import ActingUser
from ..logging_utils import format_error_log, get_log_extra
from .query_engine import QueryEngine

logger = logging.getLogger(__name__)

EMPTY_QUERY_MESSAGE = "JQL cannot be empty"
VALID_QUERY_MESSAGE = "JQL is valid"


@dataclass
class QueryValidation:
    """
    Validation outcome.

    errors holds the parser's messages verbatim when it rejected the query;
    error holds a single message when the query never reached the parser or
    the parser itself failed.
    """

    valid: bool
    errors: Optional[List[str]] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, reason: Any) -> "QueryValidation":
        return cls(valid=False, error=f"Failed to validate JQL: {reason}")

    def messages(self) -> List[str]:
        if self.errors:
            return list(self.errors)
        return [self.error] if self.error else []

    def to_response(self) -> Dict[str, Any]:
        """Body of the validate-jql endpoint."""
        response: Dict[str, Any] = {"valid": self.valid}
        if self.valid:
            response["message"] = VALID_QUERY_MESSAGE
        elif self.errors is not None:
            response["errors"] = self.errors
        else:
            response["error"] = self.error
        return response


class QueryValidator:
    """Validates candidate queries via QueryEngine.parse."""

    def __init__(self, query_engine: QueryEngine):
        self._query_engine = query_engine

    def validate(self, user: ActingUser, candidate: Optional[str]) -> QueryValidation:
        """
        Validate candidate as user.

        Blank candidates are rejected without consulting the parser.
        """
        if candidate is None or not candidate.strip():
            return QueryValidation(valid=False, error=EMPTY_QUERY_MESSAGE)

        try:
            result = self._query_engine.parse(user, candidate)
        except Exception as e:
            logger.warning(
                format_error_log(
                    "PORTAL-QUERY-001", "Query parser failed", user=user.name, error=e
                ),
                extra=get_log_extra("PORTAL-QUERY-001"),
            )
            return QueryValidation.failed(e)

        if result.valid:
            return QueryValidation(valid=True)

        logger.debug(f"Query rejected by parser: {result.errors}")
        return QueryValidation(valid=False, errors=list(result.errors))
