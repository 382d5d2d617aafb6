"""
Crawl runner for the events and products lanes.

Each source goes through fetch -> extract -> confidence gate -> reconcile,
and every attempt leaves exactly one CrawlRunLog behind:

- ``completed`` when nothing went wrong
- ``partial`` when some pages or records failed but the crawl got through
- ``failed`` when fetching (or anything unexpected) aborted the source

A failing source never stops the lane; the runner logs it and moves on.

Usage:
    runner = CrawlRunner(page_fetcher, completion_client)
    summary = await runner.run_lane("events")
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from asgiref.sync import sync_to_async
from django.conf import settings

from tango_crawler.exceptions import CompletionError, FetchError, PersistenceError
from tango_crawler.models import CrawlLane, CrawlRunLog, CrawlRunStatus, UpsertOutcome
from tango_crawler.monitoring import add_crawl_breadcrumb, log_error_with_context
from tango_crawler.services.extraction import (
    PROFILES,
    ExtractionContext,
    ExtractionEngine,
    apply_confidence_gate,
)
from tango_crawler.services.reconciliation import RECONCILERS
from tango_crawler.services.source_registry import SourceRegistry

logger = logging.getLogger(__name__)


@dataclass
class CrawlResult:
    """Outcome of crawling one source."""

    source_slug: str
    lane: str
    status: str = CrawlRunStatus.RUNNING
    pages: int = 0
    found: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    low_confidence: int = 0
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def persisted(self) -> int:
        return self.created + self.updated

    def record(self, outcome: UpsertOutcome):
        if outcome == UpsertOutcome.CREATED:
            self.created += 1
        elif outcome == UpsertOutcome.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1


@dataclass
class RunSummary:
    """Outcome of one pass over a lane."""

    lane: str
    results: List[CrawlResult] = field(default_factory=list)
    duration_seconds: float = 0.0
    deactivated_deals: int = 0
    active_deals: Optional[int] = None
    interrupted: bool = False

    def _count(self, status) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(CrawlRunStatus.COMPLETED)

    @property
    def partial(self) -> int:
        return self._count(CrawlRunStatus.PARTIAL)

    @property
    def failed(self) -> int:
        return self._count(CrawlRunStatus.FAILED)

    @property
    def totals(self) -> Dict[str, int]:
        return {
            "found": sum(r.found for r in self.results),
            "created": sum(r.created for r in self.results),
            "updated": sum(r.updated for r in self.results),
            "skipped": sum(r.skipped for r in self.results),
            "low_confidence": sum(r.low_confidence for r in self.results),
        }

    @property
    def has_errors(self) -> bool:
        return any(r.errors for r in self.results)


class CrawlRunner:
    """
    Sequential crawler for one lane at a time.

    The page fetcher and completion client are owned by the caller; the
    runner never closes them.
    """

    def __init__(
        self,
        page_fetcher,
        completion_client,
        registry: Optional[SourceRegistry] = None,
        source_delay: Optional[float] = None,
        min_confidence: Optional[float] = None,
    ):
        """
        Args:
            page_fetcher: PageFetcher (or anything with ``fetch_pages(source)``)
            completion_client: Client with ``async complete(system, prompt, max_tokens)``
            registry: Source registry (a fresh one by default)
            source_delay: Seconds between sources (default from settings)
            min_confidence: Confidence gate threshold (default from settings)
        """
        self.page_fetcher = page_fetcher
        self.registry = registry or SourceRegistry()
        self.source_delay = (
            source_delay if source_delay is not None
            else getattr(settings, "CRAWLER_SOURCE_DELAY", 2.0)
        )
        self.min_confidence = min_confidence
        self.engines = {
            lane: ExtractionEngine(PROFILES[lane], completion_client)
            for lane in RECONCILERS
        }
        self.reconcilers = {lane: cls() for lane, cls in RECONCILERS.items()}
        self._shutdown = False

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown

    def request_shutdown(self):
        """Finish the current source, then stop starting new ones."""
        if not self._shutdown:
            logger.info("Crawl runner shutdown requested")
        self._shutdown = True

    def _context(self, source, page_url: str) -> ExtractionContext:
        return ExtractionContext(
            source_url=page_url,
            language=source.language,
            category=source.product_category,
            affiliate_provider=source.affiliate_provider,
        )

    async def crawl_source(self, source) -> CrawlResult:
        """
        Crawl one source end to end.

        Extraction failures are recorded per page and persistence failures
        per record; both leave the source ``partial``. A fetch failure aborts
        the source as ``failed``. The run log is finalized in every case.

        Returns:
            CrawlResult
        """
        lane = source.lane
        engine = self.engines[lane]
        reconciler = self.reconcilers[lane]
        result = CrawlResult(source_slug=source.slug, lane=lane)
        started = time.monotonic()

        run_log = await sync_to_async(CrawlRunLog.objects.create, thread_sensitive=True)(
            source=source,
            status=CrawlRunStatus.RUNNING,
        )
        logger.info(f"Crawling {source.name} ({source.base_url})")
        add_crawl_breadcrumb(source.name, source.base_url, lane=lane, message="Crawl started")

        try:
            pages = await self.page_fetcher.fetch_pages(source)
            result.pages = len(pages)

            for page in pages:
                try:
                    records = await engine.extract(page.text, self._context(source, page.url))
                except CompletionError as e:
                    result.errors.append(f"Extraction failed for {page.url}: {e}")
                    logger.warning(f"Extraction failed for {page.url}: {e}")
                    continue

                result.found += len(records)
                kept, rejected = apply_confidence_gate(records, self.min_confidence)
                result.low_confidence += len(rejected)

                for record in kept:
                    try:
                        outcome = await reconciler.aupsert(record, page.url, source)
                    except PersistenceError as e:
                        result.errors.append(str(e))
                        logger.error(f"{e} (source {source.slug})")
                        continue
                    result.record(outcome)

            result.status = CrawlRunStatus.PARTIAL if result.errors else CrawlRunStatus.COMPLETED
            await self.registry.amark_crawled(source)

        except FetchError as e:
            result.status = CrawlRunStatus.FAILED
            result.errors.append(f"Fetch failed: {e}")
            log_error_with_context(e, source=source, url=e.url or source.base_url)
        except Exception as e:
            result.status = CrawlRunStatus.FAILED
            result.errors.append(f"{type(e).__name__}: {e}")
            logger.exception(f"Unexpected error crawling {source.slug}")
            log_error_with_context(e, source=source, url=source.base_url)
        finally:
            if result.status == CrawlRunStatus.RUNNING:
                # Cancelled mid-crawl
                result.status = CrawlRunStatus.FAILED
                result.errors.append("Crawl interrupted")
            result.duration_seconds = time.monotonic() - started
            await sync_to_async(run_log.finalize, thread_sensitive=True)(
                result.status,
                found=result.found,
                created=result.created,
                updated=result.updated,
                skipped=result.skipped,
                errors=result.errors,
            )

        logger.info(
            f"{source.name}: {result.status} - {result.found} found, "
            f"{result.created} created, {result.updated} updated, "
            f"{result.skipped} skipped, {result.low_confidence} low confidence, "
            f"{len(result.errors)} error(s) in {result.duration_seconds:.1f}s"
        )
        return result

    async def run_lane(self, lane: str, due_only: bool = False) -> RunSummary:
        """
        Crawl every active source of ``lane`` in order.

        Args:
            lane: ``events`` or ``products``
            due_only: Skip sources whose crawl frequency says they are not due

        Returns:
            RunSummary

        Raises:
            django.db.DatabaseError: If the sources cannot be listed
        """
        if lane not in self.engines:
            raise ValueError(f"Unsupported crawl lane: {lane}")

        started = time.monotonic()
        summary = RunSummary(lane=lane)

        if due_only:
            sources = await self.registry.adue_sources(lane)
        else:
            sources = await self.registry.aactive_sources(lane)
        logger.info(f"Starting {lane} lane with {len(sources)} source(s)")

        for index, source in enumerate(sources):
            if self._shutdown:
                summary.interrupted = True
                logger.info(f"Shutdown requested, skipping remaining {lane} sources")
                break
            if index > 0 and self.source_delay:
                await asyncio.sleep(self.source_delay)
            summary.results.append(await self.crawl_source(source))

        if lane == CrawlLane.PRODUCTS:
            reconciler = self.reconcilers[lane]
            summary.deactivated_deals = await reconciler.adeactivate_expired()
            summary.active_deals = await reconciler.aactive_count()

        summary.duration_seconds = time.monotonic() - started
        totals = summary.totals
        logger.info(
            f"{lane.capitalize()} lane complete: {summary.succeeded} succeeded, "
            f"{summary.partial} partial, {summary.failed} failed; "
            f"{totals['created']} created, {totals['updated']} updated, "
            f"{totals['skipped']} skipped in {summary.duration_seconds:.1f}s"
        )
        if summary.active_deals is not None:
            logger.info(
                f"Active deals: {summary.active_deals} "
                f"({summary.deactivated_deals} expired deal(s) deactivated)"
            )
        return summary
