"""
Celery tasks for the tango crawler.

One task per crawl lane, scheduled by Celery Beat (see config/celery.py):

- crawl_events: crawl all active event sources (every 6 hours)
- crawl_products: crawl all active product sources (every 12 hours)
- enrich_hotels: find hotels for upcoming events (daily)

Each task runs its lane in a fresh event loop and releases the browser and
HTTP pools before returning.
"""

import asyncio
import logging
from typing import Any, Dict

from celery import shared_task
from django.utils import timezone

from tango_crawler.models import CrawlLane
from tango_crawler.services.scheduler import CrawlScheduler

logger = logging.getLogger(__name__)


async def _run_lane_once(lane: str, due_only: bool) -> str:
    scheduler = CrawlScheduler.from_settings(due_only=due_only)
    try:
        statuses = await scheduler.run_once([lane])
    finally:
        await scheduler.cleanup()
    return statuses[lane]


def run_lane_task(lane: str, due_only: bool = False) -> Dict[str, Any]:
    """
    Run one lane to completion in its own event loop.

    Args:
        lane: events, products or hotels
        due_only: Only crawl sources whose crawl frequency says they are due

    Returns:
        Dict with the lane status and timing
    """
    logger.info(f"Starting {lane} lane task")
    started_at = timezone.now()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        status = loop.run_until_complete(_run_lane_once(lane, due_only))
    finally:
        loop.close()

    finished_at = timezone.now()
    logger.info(f"{lane.capitalize()} lane task finished with status {status}")
    return {
        "lane": lane,
        "status": status,
        "started_at": started_at.isoformat(),
        "duration_seconds": (finished_at - started_at).total_seconds(),
    }


@shared_task(name="tango_crawler.tasks.crawl_events")
def crawl_events(due_only: bool = False) -> Dict[str, Any]:
    """Crawl every active event source."""
    return run_lane_task(CrawlLane.EVENTS, due_only=due_only)


@shared_task(name="tango_crawler.tasks.crawl_products")
def crawl_products(due_only: bool = False) -> Dict[str, Any]:
    """Crawl every active product source, then expire stale deals."""
    return run_lane_task(CrawlLane.PRODUCTS, due_only=due_only)


@shared_task(name="tango_crawler.tasks.enrich_hotels")
def enrich_hotels() -> Dict[str, Any]:
    """Attach nearby hotels to upcoming events that have none."""
    return run_lane_task(CrawlLane.HOTELS)
