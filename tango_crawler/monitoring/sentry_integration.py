"""
Sentry error tracking integration for the tango crawler.

The SDK is initialised in settings only when SENTRY_DSN is set; without a
client every call here is a no-op inside sentry_sdk.

Usage:
    from tango_crawler.monitoring import capture_crawl_error

    try:
        pages = await fetcher.fetch_pages(source)
    except FetchError as e:
        capture_crawl_error(error=e, source=source, url=source.base_url)
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "cookie",
    "api_key",
    "apikey",
    "api-key",
    "x-api-key",
    "authorization",
    "password",
    "secret",
    "token",
}


def filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Filter sensitive data from a dictionary.

    Replaces values for keys that contain a sensitive field name, recursing
    into nested dictionaries.

    Args:
        data: Dictionary potentially containing sensitive data

    Returns:
        Dictionary with sensitive values replaced
    """
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = filter_sensitive_data(value)
        else:
            filtered[key] = value
    return filtered


def add_crawl_breadcrumb(
    source_name: str,
    url: str,
    lane: str = "",
    message: str = "Crawl operation",
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a breadcrumb to Sentry for crawl context.

    Args:
        source_name: Name of the CrawlSource
        url: URL being crawled
        lane: Crawl lane (events, products, hotels)
        message: Description of the operation
        level: Log level (info, warning, error)
        extra_data: Additional context data
    """
    data = {"source": source_name, "url": url, "lane": lane}
    if extra_data:
        data.update(filter_sensitive_data(extra_data))

    sentry_sdk.add_breadcrumb(category="crawl", message=message, level=level, data=data)


def capture_crawl_error(
    error: Exception,
    source=None,
    url: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a crawl error to Sentry with full context.

    Args:
        error: The exception that occurred
        source: CrawlSource instance (optional)
        url: URL where the error occurred
        extra_context: Additional context (filtered for sensitive data)
    """
    source_name = source.name if source is not None else "Unknown"
    lane = getattr(source, "lane", "") if source is not None else ""

    add_crawl_breadcrumb(
        source_name=source_name,
        url=url or "Unknown",
        lane=lane,
        message=f"Error: {type(error).__name__}",
        level="error",
        extra_data=extra_context,
    )

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("crawler.source", source_name)
        scope.set_tag("crawler.lane", lane or "unknown")
        if source is not None:
            scope.set_extra("source_id", str(source.pk))
        if url:
            scope.set_extra("crawl_url", url)
        if extra_context:
            scope.set_extra("crawl_context", filter_sensitive_data(extra_context))
        sentry_sdk.capture_exception(error)
