"""
Detailed error context logging for crawl failures.

Logs the failure with its URL, source and classification, includes the
stack trace, and forwards the exception to Sentry.

Usage:
    from tango_crawler.monitoring import log_error_with_context

    log_error_with_context(error=exception, source=source, url=url)
"""

import logging
from typing import Any, Dict, Optional

import httpx

from tango_crawler.exceptions import CompletionError, FetchError, PersistenceError

logger = logging.getLogger(__name__)


def classify_error(error: Exception) -> str:
    """
    Classify an error into a short category used in logs and Sentry tags.

    Args:
        error: The exception that occurred

    Returns:
        One of blocked, rate_limit, http, timeout, connection, extraction,
        persistence, unknown
    """
    if isinstance(error, FetchError):
        status = error.status_code
        if status in (401, 403):
            return "blocked"
        if status == 429:
            return "rate_limit"
        if status:
            return "http"
        cause = error.__cause__
        if isinstance(cause, httpx.TimeoutException) or "timeout" in str(error).lower():
            return "timeout"
        return "connection"
    if isinstance(error, CompletionError):
        return "extraction"
    if isinstance(error, PersistenceError):
        return "persistence"
    if isinstance(error, httpx.TimeoutException):
        return "timeout"
    return "unknown"


def log_error_with_context(
    error: Exception,
    source=None,
    url: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Log an error with full context and capture it to Sentry.

    Args:
        error: The exception that occurred
        source: CrawlSource instance
        url: URL where the error occurred
        extra_context: Additional context for Sentry

    Returns:
        The error category
    """
    from .sentry_integration import capture_crawl_error

    error_type = classify_error(error)
    source_name = source.name if source is not None else "unknown source"

    logger.error(
        f"Crawl error [{error_type}] for {source_name} at {url or 'unknown URL'}: {error}",
        exc_info=error,
    )

    capture_crawl_error(
        error=error,
        source=source,
        url=url,
        extra_context={"error_type": error_type, **(extra_context or {})},
    )
    return error_type
