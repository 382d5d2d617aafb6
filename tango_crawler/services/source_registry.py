"""
Source registry.

Lists the active crawl sources for a lane, least recently crawled first, and
keeps the database in step with the static source catalog.
"""

import logging
from typing import Dict, Iterable, List, Tuple

from asgiref.sync import sync_to_async
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from tango_crawler.models import CrawlSource
from tango_crawler.utils.scheduling import is_due

logger = logging.getLogger(__name__)

CATALOG_FIELDS = (
    "name",
    "base_url",
    "lane",
    "crawl_frequency",
    "is_active",
    "fetch_strategy",
    "selectors",
    "pagination_type",
    "pagination_param",
    "max_pages",
    "language",
    "wait_for_selector",
    "affiliate_provider",
    "product_category",
)


class SourceRegistry:
    """Read access to crawl sources plus catalog synchronization."""

    def active_sources(self, lane: str) -> List[CrawlSource]:
        """
        Active sources for ``lane``, never-crawled first, then oldest crawl first.

        Raises:
            django.db.DatabaseError: If the database cannot be queried
        """
        queryset = CrawlSource.objects.filter(is_active=True, lane=lane).order_by(
            F("last_crawled_at").asc(nulls_first=True),
            "name",
        )
        return list(queryset)

    async def aactive_sources(self, lane: str) -> List[CrawlSource]:
        return await sync_to_async(self.active_sources, thread_sensitive=True)(lane)

    def due_sources(self, lane: str, now=None) -> List[CrawlSource]:
        """Active sources whose crawl frequency says they should run again."""
        now = now or timezone.now()
        return [
            source
            for source in self.active_sources(lane)
            if is_due(source.crawl_frequency, source.last_crawled_at, now)
        ]

    async def adue_sources(self, lane: str, now=None) -> List[CrawlSource]:
        return await sync_to_async(self.due_sources, thread_sensitive=True)(lane, now)

    def mark_crawled(self, source: CrawlSource, when=None) -> None:
        source.mark_crawled(when)

    async def amark_crawled(self, source: CrawlSource, when=None) -> None:
        await sync_to_async(self.mark_crawled, thread_sensitive=True)(source, when)

    @transaction.atomic
    def sync_catalog(self, entries: Iterable[Dict]) -> Tuple[int, int]:
        """
        Upsert catalog entries by slug.

        ``last_crawled_at`` of existing sources is left untouched.

        Returns:
            (created, updated) counts
        """
        created = updated = 0
        for entry in entries:
            defaults = {key: entry[key] for key in CATALOG_FIELDS if key in entry}
            _, was_created = CrawlSource.objects.update_or_create(
                slug=entry["slug"],
                defaults=defaults,
            )
            if was_created:
                created += 1
            else:
                updated += 1

        logger.info(f"Source catalog synced: {created} created, {updated} updated")
        return created, updated
