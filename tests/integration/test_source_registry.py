"""
Integration tests for the source registry and the crawler management commands.
"""

import json
from datetime import timedelta
from io import StringIO
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import OperationalError
from django.utils import timezone

from tango_crawler.models import CrawlSource
from tango_crawler.services.source_registry import SourceRegistry
from tango_crawler.sources_catalog import PRODUCT_SOURCES


def _source(slug, lane="events", last_crawled_at=None, frequency="daily", is_active=True):
    return CrawlSource.objects.create(
        slug=slug,
        name=slug.replace("-", " ").title(),
        base_url=f"https://{slug}.example.com/",
        lane=lane,
        crawl_frequency=frequency,
        last_crawled_at=last_crawled_at,
        is_active=is_active,
    )


# =============================================================================
# Registry queries
# =============================================================================


@pytest.mark.django_db
class TestActiveSources:
    """Tests for SourceRegistry.active_sources() and due_sources()."""

    def test_never_crawled_first_then_oldest(self):
        now = timezone.now()
        _source("recent", last_crawled_at=now - timedelta(hours=1))
        _source("old", last_crawled_at=now - timedelta(days=5))
        _source("never")

        slugs = [s.slug for s in SourceRegistry().active_sources("events")]

        assert slugs == ["never", "old", "recent"]

    def test_filters_lane_and_inactive(self):
        _source("events-one")
        _source("products-one", lane="products")
        _source("disabled", is_active=False)

        slugs = [s.slug for s in SourceRegistry().active_sources("events")]

        assert slugs == ["events-one"]

    def test_due_sources_respect_frequency(self):
        now = timezone.now()
        _source("daily-recent", last_crawled_at=now - timedelta(hours=3))
        _source("daily-stale", last_crawled_at=now - timedelta(days=2))
        _source("weekly-recent", frequency="weekly", last_crawled_at=now - timedelta(days=3))
        _source("never")

        slugs = {s.slug for s in SourceRegistry().due_sources("events", now=now)}

        assert slugs == {"daily-stale", "never"}

    def test_mark_crawled_sets_timestamp(self):
        source = _source("to-mark")
        when = timezone.now() - timedelta(minutes=5)

        SourceRegistry().mark_crawled(source, when)

        source.refresh_from_db()
        assert source.last_crawled_at == when


@pytest.mark.django_db
class TestSyncCatalog:
    """Tests for SourceRegistry.sync_catalog()."""

    def test_catalog_sync_is_idempotent(self):
        registry = SourceRegistry()

        assert registry.sync_catalog(PRODUCT_SOURCES) == (len(PRODUCT_SOURCES), 0)
        assert registry.sync_catalog(PRODUCT_SOURCES) == (0, len(PRODUCT_SOURCES))
        assert CrawlSource.objects.count() == len(PRODUCT_SOURCES)

    def test_sync_keeps_last_crawled_at(self):
        crawled_at = timezone.now() - timedelta(days=1)
        _source("milonga-calendar", last_crawled_at=crawled_at)

        SourceRegistry().sync_catalog([{
            "slug": "milonga-calendar",
            "name": "Milonga Calendar",
            "base_url": "https://milonga-calendar.example.com/new",
            "lane": "events",
        }])

        source = CrawlSource.objects.get(slug="milonga-calendar")
        assert source.base_url == "https://milonga-calendar.example.com/new"
        assert source.last_crawled_at == crawled_at


# =============================================================================
# Management commands
# =============================================================================


@pytest.mark.django_db
class TestSeedSourcesCommand:
    """Tests for ``manage.py seed_sources``."""

    def test_loads_catalog(self):
        out = StringIO()

        call_command("seed_sources", stdout=out)

        assert CrawlSource.objects.filter(lane="products").count() == len(PRODUCT_SOURCES)
        assert f"{len(PRODUCT_SOURCES)} created, 0 updated" in out.getvalue()

    def test_loads_event_sources_from_file(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_text(json.dumps([
            {"slug": "tango-ba", "name": "Tango BA", "base_url": "https://tango.example.com/", "language": "es"},
        ]))

        call_command("seed_sources", "--file", str(path), "--skip-catalog", stdout=StringIO())

        source = CrawlSource.objects.get(slug="tango-ba")
        assert source.lane == "events"
        assert source.language == "es"
        assert CrawlSource.objects.count() == 1

    def test_file_entry_without_base_url_is_rejected(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"slug": "broken", "name": "Broken"}]))

        with pytest.raises(CommandError, match="base_url"):
            call_command("seed_sources", "--file", str(path), stdout=StringIO())

        assert CrawlSource.objects.count() == 0

    def test_unreadable_file_is_rejected(self, tmp_path):
        with pytest.raises(CommandError, match="Could not read"):
            call_command("seed_sources", "--file", str(tmp_path / "missing.json"), stdout=StringIO())


@pytest.mark.django_db
class TestRunCrawlerCommand:
    """Tests for ``manage.py run_crawler``."""

    def test_database_unavailable_exits_with_error(self):
        with patch("tango_crawler.management.commands.run_crawler.connection") as mock_connection:
            mock_connection.ensure_connection.side_effect = OperationalError("could not connect")

            with pytest.raises(CommandError, match="Database unavailable"):
                call_command("run_crawler", "--once", stdout=StringIO())

    def test_single_lane_reports_status_and_cleans_up(self):
        scheduler = MagicMock()
        scheduler.run_once = AsyncMock(return_value={"events": "ok"})
        scheduler.cleanup = AsyncMock()
        scheduler.state = {"events": SimpleNamespace(last_error=None)}
        out = StringIO()

        with patch(
            "tango_crawler.management.commands.run_crawler.CrawlScheduler.from_settings",
            return_value=scheduler,
        ) as from_settings:
            call_command("run_crawler", "--lane", "events", "--due-only", stdout=out)

        from_settings.assert_called_once_with(headless=True, due_only=True)
        scheduler.run_once.assert_awaited_once_with(["events"])
        scheduler.cleanup.assert_awaited_once()
        scheduler.install_signal_handlers.assert_called_once()
        assert "events: ok" in out.getvalue()

    def test_setup_failure_exits_with_error(self):
        with patch(
            "tango_crawler.management.commands.run_crawler.CrawlScheduler.from_settings",
            side_effect=RuntimeError("AI_COMPLETION_API_KEY is not configured"),
        ):
            with pytest.raises(CommandError, match="Could not set up"):
                call_command("run_crawler", "--once", stdout=StringIO())

    def test_source_listing_failure_exits_with_error(self):
        with patch(
            "tango_crawler.services.source_registry.SourceRegistry.active_sources",
            side_effect=OperationalError("no such table: crawl_sources"),
        ):
            with pytest.raises(CommandError, match="no such table"):
                call_command("run_crawler", "--lane", "events", stdout=StringIO())

    def test_scheduler_mode_installs_signal_handlers_once(self):
        scheduler = MagicMock()
        scheduler.run_forever = AsyncMock()
        scheduler.cleanup = AsyncMock()

        with patch(
            "tango_crawler.management.commands.run_crawler.CrawlScheduler.from_settings",
            return_value=scheduler,
        ):
            call_command("run_crawler", "--forever", stdout=StringIO())

        scheduler.install_signal_handlers.assert_called_once()
        scheduler.run_forever.assert_awaited_once_with(install_signals=False)
        scheduler.cleanup.assert_awaited_once()
