"""
Tests for crawl frequency helpers.
"""

from datetime import datetime, timedelta, timezone

from tango_crawler.utils.scheduling import calculate_next_crawl, is_due

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestCalculateNextCrawl:
    def test_never_crawled(self):
        assert calculate_next_crawl("daily", None) is None

    def test_intervals(self):
        assert calculate_next_crawl("hourly", NOW) == NOW + timedelta(hours=1)
        assert calculate_next_crawl("daily", NOW) == NOW + timedelta(days=1)
        assert calculate_next_crawl("weekly", NOW) == NOW + timedelta(days=7)

    def test_unknown_frequency_defaults_to_daily(self):
        assert calculate_next_crawl("fortnightly", NOW) == NOW + timedelta(days=1)


class TestIsDue:
    def test_never_crawled_is_due(self):
        assert is_due("weekly", None, NOW) is True

    def test_recently_crawled_is_not_due(self):
        assert is_due("daily", NOW - timedelta(hours=3), NOW) is False

    def test_due_after_interval(self):
        assert is_due("daily", NOW - timedelta(hours=24), NOW) is True
