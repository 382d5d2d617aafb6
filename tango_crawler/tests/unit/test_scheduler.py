"""
Tests for CrawlScheduler: lane state, dashboard and shutdown.

Lanes are faked; no database or network is touched.
"""

import signal
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from django.db import OperationalError

from tango_crawler.services.scheduler import (
    CrawlScheduler,
    LaneStatus,
    describe_next_run,
    format_duration,
)


def _resource():
    resource = MagicMock()
    resource.close = AsyncMock()
    return resource


@pytest.fixture
def runner():
    runner = MagicMock()
    runner.run_lane = AsyncMock()
    return runner


@pytest.fixture
def enricher():
    enricher = MagicMock()
    enricher.enrich_all = AsyncMock(return_value=SimpleNamespace(all_failed=False))
    return enricher


@pytest.fixture
def scheduler(runner, enricher):
    return CrawlScheduler(runner, enricher, resources=[_resource(), _resource()])


class TestRunLane:
    """Tests for CrawlScheduler.run_lane()."""

    @pytest.mark.asyncio
    async def test_successful_lane_is_ok(self, scheduler, runner):
        status = await scheduler.run_lane("events")

        assert status == LaneStatus.OK
        runner.run_lane.assert_awaited_once_with("events", due_only=False)
        state = scheduler.state["events"]
        assert state.run_count == 1
        assert state.last_run_at is not None

    @pytest.mark.asyncio
    async def test_lane_exception_marks_error(self, scheduler, runner):
        runner.run_lane.side_effect = OperationalError("database is down")

        status = await scheduler.run_lane("products")

        assert status == LaneStatus.ERROR
        assert scheduler.state["products"].run_count == 1
        assert isinstance(scheduler.state["products"].last_error, OperationalError)

    @pytest.mark.asyncio
    async def test_last_error_cleared_by_next_run(self, scheduler, runner):
        runner.run_lane.side_effect = [OperationalError("database is down"), None]

        await scheduler.run_lane("events")
        await scheduler.run_lane("events")

        assert scheduler.state["events"].last_status == LaneStatus.OK
        assert scheduler.state["events"].last_error is None

    @pytest.mark.asyncio
    async def test_hotels_error_when_every_event_failed(self, scheduler, enricher):
        enricher.enrich_all.return_value = SimpleNamespace(all_failed=True)
        assert await scheduler.run_lane("hotels") == LaneStatus.ERROR

    @pytest.mark.asyncio
    async def test_run_once_runs_lanes_in_order(self, scheduler, runner, enricher):
        statuses = await scheduler.run_once()

        assert statuses == {"events": "ok", "products": "ok", "hotels": "ok"}
        assert [c.args[0] for c in runner.run_lane.await_args_list] == ["events", "products"]
        enricher.enrich_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_due_only_is_forwarded(self, runner, enricher):
        scheduler = CrawlScheduler(runner, enricher, due_only=True)
        await scheduler.run_lane("events")
        runner.run_lane.assert_awaited_once_with("events", due_only=True)


class TestShutdown:
    @pytest.mark.asyncio
    async def test_request_shutdown_is_idempotent(self, scheduler, runner, enricher):
        scheduler.request_shutdown("SIGINT")
        scheduler.request_shutdown("SIGTERM")

        assert scheduler.shutdown_requested is True
        runner.request_shutdown.assert_called_once()
        enricher.request_shutdown.assert_called_once()

    def test_termination_signals_request_shutdown(self, scheduler, runner):
        loop = MagicMock()

        scheduler.install_signal_handlers(loop)

        installed = {c.args[0]: c.args[1:] for c in loop.add_signal_handler.call_args_list}
        assert set(installed) == {signal.SIGINT, signal.SIGTERM}
        callback, reason = installed[signal.SIGTERM]
        callback(reason)
        callback(reason)
        assert scheduler.shutdown_requested is True
        runner.request_shutdown.assert_called_once()

    @pytest.mark.asyncio
    async def test_no_lane_starts_after_shutdown(self, scheduler, runner):
        scheduler.request_shutdown()
        await scheduler.run_lane("events")
        runner.run_lane.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_forever_stops_and_cleans_up(self, scheduler, runner, enricher):
        """A shutdown during the first events run ends the loop and frees resources once."""
        runner.run_lane.side_effect = lambda lane, due_only: scheduler.request_shutdown("SIGTERM")

        await scheduler.run_forever(install_signals=False)

        runner.run_lane.assert_awaited_once()
        enricher.enrich_all.assert_not_awaited()
        assert scheduler.state["events"].last_status == LaneStatus.OK
        for resource in scheduler.resources:
            resource.close.assert_awaited_once()

        await scheduler.cleanup()
        for resource in scheduler.resources:
            resource.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cleanup_errors_are_logged_not_raised(self, runner, enricher):
        failing = _resource()
        failing.close.side_effect = RuntimeError("pool already closed")
        healthy = _resource()
        scheduler = CrawlScheduler(runner, enricher, resources=[failing, healthy])

        await scheduler.cleanup()

        healthy.close.assert_awaited_once()


class TestDashboard:
    def test_next_run_descriptions(self):
        now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        interval = timedelta(hours=6)

        assert describe_next_run(None, interval, now) == "immediately"
        assert describe_next_run(now - timedelta(hours=7), interval, now) == "overdue"
        assert describe_next_run(now - timedelta(hours=5), interval, now) == (
            "in 1h 0m (2026-10-19 13:00:00 UTC)"
        )

    def test_format_duration(self):
        assert format_duration(0.25) == "250ms"
        assert format_duration(12.34) == "12.3s"
        assert format_duration(125) == "2m 5s"
        assert format_duration(6 * 3600) == "6h 0m"
        assert format_duration(3 * 3600 + 25 * 60 + 9) == "3h 25m"

    def test_dashboard_lists_every_lane(self, scheduler):
        lines = "\n".join(scheduler.dashboard_lines())
        for label in ("Events", "Products", "Hotels"):
            assert label in lines
        assert "status=pending" in lines
        assert "next=immediately" in lines


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_shared_resources_are_wired_and_released(self):
        scheduler = CrawlScheduler.from_settings(headless=True, due_only=True)

        browser, static_fetcher, completion_client = scheduler.resources
        assert scheduler.due_only is True
        assert scheduler.crawl_runner.page_fetcher.static_fetcher is static_fetcher
        assert scheduler.hotel_enricher.client is completion_client
        assert scheduler.hotel_enricher.fetcher.browser is browser
        assert browser.is_launched is False

        await scheduler.cleanup()

        assert browser.closed is True
