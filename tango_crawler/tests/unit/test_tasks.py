"""
Tests for the Celery lane tasks.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tango_crawler import tasks


def _scheduler(status="ok", error=None):
    scheduler = MagicMock()
    if error is not None:
        scheduler.run_once = AsyncMock(side_effect=error)
    else:
        scheduler.run_once = AsyncMock(side_effect=lambda lanes: {lane: status for lane in lanes})
    scheduler.cleanup = AsyncMock()
    return scheduler


class TestLaneTasks:
    """Tests for crawl_events, crawl_products and enrich_hotels."""

    @pytest.mark.parametrize(
        "task, lane",
        [
            (tasks.crawl_events, "events"),
            (tasks.crawl_products, "products"),
            (tasks.enrich_hotels, "hotels"),
        ],
    )
    def test_task_runs_its_lane(self, task, lane):
        scheduler = _scheduler()

        with patch.object(tasks.CrawlScheduler, "from_settings", return_value=scheduler):
            result = task()

        scheduler.run_once.assert_awaited_once_with([lane])
        scheduler.cleanup.assert_awaited_once()
        assert result["lane"] == lane
        assert result["status"] == "ok"
        assert result["duration_seconds"] >= 0

    def test_due_only_is_passed_through(self):
        scheduler = _scheduler()

        with patch.object(tasks.CrawlScheduler, "from_settings", return_value=scheduler) as from_settings:
            tasks.crawl_events(due_only=True)

        from_settings.assert_called_once_with(due_only=True)

    def test_error_status_is_returned(self):
        with patch.object(tasks.CrawlScheduler, "from_settings", return_value=_scheduler("error")):
            result = tasks.crawl_products()

        assert result["status"] == "error"

    def test_resources_released_when_lane_raises(self):
        scheduler = _scheduler(error=RuntimeError("browser crashed"))

        with patch.object(tasks.CrawlScheduler, "from_settings", return_value=scheduler):
            with pytest.raises(RuntimeError):
                tasks.crawl_events()

        scheduler.cleanup.assert_awaited_once()
