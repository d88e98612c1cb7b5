"""
Logging utilities for the portal requests server.

Provides helper functions for formatting log messages with error codes,
request correlation ids, and sanitized data.

Usage:
    from portal_requests.server.logging_utils import format_error_log, get_log_extra

    logger.error(
        format_error_log("PORTAL-STORE-002", "Settings write failed", key=key),
        extra=get_log_extra("PORTAL-STORE-002")
    )
"""

import logging
from typing import Any, Dict, Optional

from portal_requests.server.middleware.correlation import get_correlation_id

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Sensitive field names that should be redacted in logs
SENSITIVE_FIELDS = {
    "password",
    "token",
    "api_key",
    "secret",
    "authorization",
    "cookie",
    "auth_token",
    "session",
}


def format_error_log(error_code: str, message: str, **context) -> str:
    """
    Format an error log message with error code and optional context.

    Args:
        error_code: Error code in format PORTAL-{AREA}-{NUMBER}
        message: Human-readable error message
        **context: Additional context key-value pairs to include

    Returns:
        Formatted log message: "[{ERROR_CODE}] message key1=value1 key2=value2"

    Examples:
        >>> format_error_log("PORTAL-JIRA-001", "Jira unreachable", base_url="https://jira")
        '[PORTAL-JIRA-001] Jira unreachable base_url=https://jira'
    """
    parts = [f"[{error_code}]", message]

    if context:
        parts.append(" ".join(f"{k}={v}" for k, v in context.items()))

    return " ".join(parts)


def get_log_extra(error_code: str) -> Dict[str, Any]:
    """
    Build the extra dict for logging with error_code and correlation_id.

    Args:
        error_code: Error code to include in extra dict

    Returns:
        Dictionary with error_code and correlation_id (if available)
    """
    extra: Dict[str, Any] = {"error_code": error_code}

    correlation_id = get_correlation_id()
    if correlation_id:
        extra["correlation_id"] = correlation_id

    return extra


def sanitize_for_logging(data: Any) -> Any:
    """
    Sanitize data for logging by redacting sensitive information.

    Examples:
        >>> sanitize_for_logging({"user": "admin", "cookie": "JSESSIONID=1"})
        {'user': 'admin', 'cookie': '***REDACTED***'}
    """
    if not isinstance(data, dict):
        return data

    return {
        key: "***REDACTED***" if key.lower() in SENSITIVE_FIELDS else value
        for key, value in data.items()
    }


def configure_logging(level: str, log_format: Optional[str] = None) -> None:
    """Configure the root logger for server processes."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format or LOG_FORMAT,
    )
