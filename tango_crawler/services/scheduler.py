"""
Crawl scheduler.

Runs the three lanes on independent cadences inside one asyncio process:

- events every 6 hours (first run immediately)
- products every 12 hours (first run after 10 seconds)
- hotels every 24 hours (first run after 20 seconds)

Each lane goes pending -> running -> ok|error -> pending. A lane failure
never stops the scheduler. ``request_shutdown`` is idempotent: it stops new
lane runs, lets in-flight work finish and then releases the browser and
HTTP pools. SIGINT/SIGTERM call it through handlers installed on the loop.

Usage:
    scheduler = CrawlScheduler.from_settings()
    await scheduler.run_forever()
"""

import asyncio
import logging
import signal
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from typing import Callable, Dict, List, Optional

from django.conf import settings
from django.utils import timezone

from tango_crawler.fetchers import BrowserHandle, DynamicFetcher, PageFetcher, StaticFetcher
from tango_crawler.models import CrawlLane
from tango_crawler.services.completion_client import get_completion_client
from tango_crawler.services.crawl_runner import CrawlRunner
from tango_crawler.services.hotel_enricher import HotelEnricher

logger = logging.getLogger(__name__)

DASHBOARD_INTERVAL_SECONDS = 30 * 60


@dataclass(frozen=True)
class LaneSchedule:
    lane: str
    label: str
    interval: timedelta
    initial_delay: float


LANE_SCHEDULES = (
    LaneSchedule(CrawlLane.EVENTS, "Events", timedelta(hours=6), 0),
    LaneSchedule(CrawlLane.PRODUCTS, "Products", timedelta(hours=12), 10),
    LaneSchedule(CrawlLane.HOTELS, "Hotels", timedelta(hours=24), 20),
)


class LaneStatus:
    PENDING = "pending"
    RUNNING = "running"
    OK = "ok"
    ERROR = "error"


@dataclass
class LaneState:
    """Bookkeeping for one lane, shown on the dashboard."""

    last_run_at: Optional[datetime] = None
    last_status: str = LaneStatus.PENDING
    last_duration: float = 0.0
    run_count: int = 0
    last_error: Optional[BaseException] = None


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"
    return f"{int(seconds // 3600)}h {int(seconds % 3600 // 60)}m"


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "never"
    return value.astimezone(dt_timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def describe_next_run(last_run_at: Optional[datetime], interval: timedelta, now=None) -> str:
    """'immediately', 'overdue' or 'in <duration> (<timestamp>)'."""
    if last_run_at is None:
        return "immediately"
    now = now or timezone.now()
    next_run = last_run_at + interval
    if next_run <= now:
        return "overdue"
    remaining = (next_run - now).total_seconds()
    return f"in {format_duration(remaining)} ({format_timestamp(next_run)})"


class CrawlScheduler:
    """
    Owns the shared resources and the lane timers of a crawler process.

    Features:
    - One browser, one static HTTP pool and one completion client per process
    - Sequential single pass (``run_once``) or interval scheduling (``run_forever``)
    - Idempotent shutdown with best-effort resource cleanup
    """

    def __init__(
        self,
        crawl_runner: CrawlRunner,
        hotel_enricher: HotelEnricher,
        resources: Optional[List] = None,
        schedules=LANE_SCHEDULES,
        due_only: bool = False,
    ):
        """
        Args:
            crawl_runner: Runner for the events and products lanes
            hotel_enricher: Runner for the hotels lane
            resources: Objects with an async ``close()`` released on shutdown
            schedules: Lane cadences
            due_only: Only crawl sources whose frequency says they are due
        """
        self.crawl_runner = crawl_runner
        self.hotel_enricher = hotel_enricher
        self.resources = list(resources or [])
        self.due_only = due_only
        self.schedules = {schedule.lane: schedule for schedule in schedules}
        self.state: Dict[str, LaneState] = {lane: LaneState() for lane in self.schedules}
        self._shutdown = False
        self._stop_event: Optional[asyncio.Event] = None
        self._cleaned_up = False

    @classmethod
    def from_settings(cls, headless: bool = True, due_only: bool = False) -> "CrawlScheduler":
        """Build the scheduler and its shared resources from Django settings."""
        browser = BrowserHandle(headless=headless)
        static_fetcher = StaticFetcher()
        completion_client = get_completion_client()
        page_fetcher = PageFetcher(
            static_fetcher=static_fetcher,
            dynamic_fetcher=DynamicFetcher(browser),
            max_chars=getattr(settings, "CRAWLER_MAX_CONTENT_CHARS", 100_000),
        )
        hotel_fetcher = DynamicFetcher(
            browser,
            wait_until="domcontentloaded",
            settle_delay=2.0,
        )
        return cls(
            crawl_runner=CrawlRunner(page_fetcher, completion_client),
            hotel_enricher=HotelEnricher(hotel_fetcher, completion_client),
            resources=[browser, static_fetcher, completion_client],
            due_only=due_only,
        )

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown

    def _get_stop_event(self) -> asyncio.Event:
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        return self._stop_event

    def request_shutdown(self, reason: str = "manual"):
        """Stop scheduling new lane runs. Later calls are no-ops."""
        if self._shutdown:
            return
        self._shutdown = True
        logger.info(f"Received shutdown signal ({reason}), stopping...")
        self.crawl_runner.request_shutdown()
        self.hotel_enricher.request_shutdown()
        self._get_stop_event().set()

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except (NotImplementedError, RuntimeError):
                logger.warning(f"Cannot install handler for {sig.name} on this platform")

    async def _execute(self, lane: str) -> bool:
        if lane == CrawlLane.HOTELS:
            summary = await self.hotel_enricher.enrich_all()
            return not summary.all_failed
        await self.crawl_runner.run_lane(lane, due_only=self.due_only)
        return True

    async def run_lane(self, lane: str) -> str:
        """
        Run one lane once and update its state.

        Any exception is logged, kept as ``last_error`` and turns the lane
        status to ``error``.

        Returns:
            The lane status after the run
        """
        state = self.state[lane]
        if self._shutdown:
            return state.last_status

        state.last_status = LaneStatus.RUNNING
        state.last_error = None
        started = time.monotonic()
        logger.info(f"Starting {lane} lane")
        try:
            ok = await self._execute(lane)
            state.last_status = LaneStatus.OK if ok else LaneStatus.ERROR
        except Exception as e:
            state.last_status = LaneStatus.ERROR
            state.last_error = e
            logger.exception(f"{lane.capitalize()} lane failed")
        finally:
            state.last_run_at = timezone.now()
            state.last_duration = time.monotonic() - started
            state.run_count += 1
        return state.last_status

    def dashboard_lines(self, now=None) -> List[str]:
        now = now or timezone.now()
        rule = "-" * 70
        lines = [rule, "  Tango Community Crawler - Dashboard", f"  {now.isoformat()}", rule]
        for lane, schedule in self.schedules.items():
            state = self.state[lane]
            took = format_duration(state.last_duration) if state.last_duration > 0 else "-"
            lines += [
                f"  {schedule.label:<10} status={state.last_status:<7} runs={state.run_count}",
                f"             last={format_timestamp(state.last_run_at)}  took={took}",
                f"             next={describe_next_run(state.last_run_at, schedule.interval, now)}",
            ]
        lines.append(rule)
        return lines

    def log_dashboard(self):
        for line in self.dashboard_lines():
            logger.info(line)

    async def run_once(self, lanes: Optional[List[str]] = None) -> Dict[str, str]:
        """
        Run lanes sequentially, one pass each.

        Hotels run last so they see events stored earlier in the pass.

        Returns:
            Mapping of lane to final status
        """
        lanes = lanes or list(self.schedules)
        started = time.monotonic()
        logger.info("=== Starting crawl pass ===")
        for lane in lanes:
            await self.run_lane(lane)
        self.log_dashboard()
        logger.info(f"=== Crawl pass complete in {format_duration(time.monotonic() - started)} ===")
        return {lane: self.state[lane].last_status for lane in lanes}

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if shutdown was requested meanwhile."""
        try:
            await asyncio.wait_for(self._get_stop_event().wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return self._shutdown
        return True

    async def _lane_loop(self, schedule: LaneSchedule, on_finish: Optional[Callable] = None):
        if await self._wait(schedule.initial_delay):
            return
        while not self._shutdown:
            await self.run_lane(schedule.lane)
            if on_finish is not None:
                on_finish()
            if await self._wait(schedule.interval.total_seconds()):
                return

    async def _dashboard_loop(self):
        while not await self._wait(DASHBOARD_INTERVAL_SECONDS):
            self.log_dashboard()

    async def run_forever(self, install_signals: bool = True):
        """
        Schedule every lane until shutdown is requested, then clean up.
        """
        if install_signals:
            self.install_signal_handlers()

        intervals = ", ".join(
            f"{lane}={format_duration(s.interval.total_seconds())}"
            for lane, s in self.schedules.items()
        )
        logger.info(f"Starting scheduler ({intervals})")

        tasks = [
            asyncio.create_task(
                self._lane_loop(
                    schedule,
                    self.log_dashboard if schedule.lane == CrawlLane.EVENTS else None,
                )
            )
            for schedule in self.schedules.values()
        ]
        tasks.append(asyncio.create_task(self._dashboard_loop()))
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await self.cleanup()

    async def cleanup(self):
        """Close shared resources once. Errors are logged, never raised."""
        if self._cleaned_up:
            return
        self._cleaned_up = True
        for resource in self.resources:
            try:
                await resource.close()
            except Exception as e:
                logger.error(f"Error during shutdown cleanup of {type(resource).__name__}: {e}")
        logger.info("Shutdown complete")
