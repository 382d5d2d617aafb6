"""
Exception hierarchy for the tango crawler.

Routine, expected conditions (malformed AI output, low confidence, no fuzzy
match) are not exceptions; they are returned as values. These types cover the
failures that abort a unit of work and are recorded against it.
"""

from typing import Optional


class CrawlerError(Exception):
    """Base class for crawler failures."""


class FetchError(CrawlerError):
    """A page could not be retrieved (network, timeout, non-success status)."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class CompletionError(CrawlerError):
    """The AI completion service could not be reached or returned an error."""


class PersistenceError(CrawlerError):
    """A record could not be written to the database."""


class ShutdownError(CrawlerError):
    """Work was requested after the crawler started shutting down."""
