"""
Crawl frequency helpers.

Maps a source's crawl frequency to an interval and decides whether a source
is due for another crawl.
"""

from datetime import timedelta

from django.utils import timezone


FREQUENCY_INTERVALS = {
    "hourly": timedelta(hours=1),
    "daily": timedelta(hours=24),
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
}


def calculate_next_crawl(frequency: str, last_crawled_at):
    """
    Calculate when a source should next be crawled.

    Args:
        frequency: One of 'hourly', 'daily', 'weekly', 'monthly'
        last_crawled_at: Time of the last crawl, or None if never crawled

    Returns:
        datetime or None: Next crawl time, or None when the source has never
        been crawled (it is due immediately)
    """
    if last_crawled_at is None:
        return None

    interval = FREQUENCY_INTERVALS.get(frequency, FREQUENCY_INTERVALS["daily"])
    return last_crawled_at + interval


def is_due(frequency: str, last_crawled_at, now=None) -> bool:
    """Check whether a source with this frequency is due for a crawl."""
    if now is None:
        now = timezone.now()

    next_crawl = calculate_next_crawl(frequency, last_crawled_at)
    return next_crawl is None or now >= next_crawl
