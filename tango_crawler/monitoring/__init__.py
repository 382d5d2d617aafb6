"""
Monitoring for the tango crawler.

- Sentry error tracking with crawl context (source, URL, lane)
- Sensitive-key filtering before anything leaves the process
- Detailed error context logging for failed crawls
"""

from .error_logger import classify_error, log_error_with_context
from .sentry_integration import add_crawl_breadcrumb, capture_crawl_error

__all__ = [
    "add_crawl_breadcrumb",
    "capture_crawl_error",
    "classify_error",
    "log_error_with_context",
]
