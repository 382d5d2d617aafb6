"""
Hotel enrichment lane.

For every upcoming event that has coordinates but no hotels yet:

1. Ask the completion service for a short hotel search query
   (falls back to "<city> hotels")
2. Render the Booking.com search page, then the Agoda one
3. Extract up to five hotels from each page
4. Give every hotel an affiliate link and its distance from the venue
5. Upsert per (event, hotel name)

A provider failure is recorded on the event and the other provider still
runs; a failed hotel upsert is recorded and the next hotel is tried. Any
other failure is recorded against its event and the next event is tried.

Usage:
    enricher = HotelEnricher(dynamic_fetcher, completion_client)
    summary = await enricher.enrich_all()
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional

from django.conf import settings
from django.utils import timezone

from tango_crawler.exceptions import CompletionError, FetchError, PersistenceError
from tango_crawler.fetchers.cleaning import clean_html
from tango_crawler.models import AffiliateProvider
from tango_crawler.monitoring import log_error_with_context
from tango_crawler.services import prompts
from tango_crawler.services.affiliate import (
    affiliate_id_for,
    agoda_search_url,
    booking_search_url,
    build_affiliate_url,
    hotel_deep_link,
)
from tango_crawler.services.extraction import (
    HOTEL_PROFILE,
    ExtractionContext,
    ExtractionEngine,
    apply_confidence_gate,
)
from tango_crawler.services.reconciliation import HotelReconciler
from tango_crawler.utils.geo import annotate_distance

logger = logging.getLogger(__name__)

MAX_HOTELS_PER_PROVIDER = 5
SEARCH_PAGE_MAX_CHARS = 80_000
QUERY_MAX_TOKENS = 100

SEARCH_URL_BUILDERS = (
    (AffiliateProvider.BOOKING_COM, "Booking.com", booking_search_url),
    (AffiliateProvider.AGODA, "Agoda", agoda_search_url),
)


@dataclass
class HotelEnrichmentResult:
    """Outcome of enriching one event."""

    event_id: str
    event_title: str
    hotels_found: int = 0
    hotels_upserted: int = 0
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def failed(self) -> bool:
        return bool(self.errors) and self.hotels_upserted == 0


@dataclass
class EnrichmentSummary:
    """Outcome of one hotel lane run."""

    results: List[HotelEnrichmentResult] = field(default_factory=list)
    duration_seconds: float = 0.0
    interrupted: bool = False

    @property
    def events_processed(self) -> int:
        return len(self.results)

    @property
    def events_failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def events_succeeded(self) -> int:
        return self.events_processed - self.events_failed

    @property
    def hotels_found(self) -> int:
        return sum(r.hotels_found for r in self.results)

    @property
    def hotels_upserted(self) -> int:
        return sum(r.hotels_upserted for r in self.results)

    @property
    def errors(self) -> List[str]:
        return [error for r in self.results for error in r.errors]

    @property
    def all_failed(self) -> bool:
        return self.events_processed > 0 and self.events_failed == self.events_processed


def event_location(event) -> str:
    """Human-readable venue location used in prompts."""
    parts = [event.venue_name, event.address, event.city, event.country_code]
    return ", ".join(part for part in parts if part)


class HotelEnricher:
    """
    Finds hotels near upcoming events.

    The dynamic fetcher and completion client are owned by the caller.
    """

    def __init__(
        self,
        dynamic_fetcher,
        completion_client,
        reconciler: Optional[HotelReconciler] = None,
        request_delay: Optional[float] = None,
        event_limit: Optional[int] = None,
        min_confidence: Optional[float] = None,
    ):
        """
        Args:
            dynamic_fetcher: DynamicFetcher used for search result pages
            completion_client: Client with ``async complete(system, prompt, max_tokens)``
            reconciler: Hotel reconciler (a fresh one by default)
            request_delay: Seconds between provider requests (default from settings)
            event_limit: Max events per run (default from settings)
            min_confidence: Confidence gate threshold (default from settings)
        """
        self.fetcher = dynamic_fetcher
        self.client = completion_client
        self.engine = ExtractionEngine(HOTEL_PROFILE, completion_client)
        self.reconciler = reconciler or HotelReconciler()
        self.request_delay = (
            request_delay if request_delay is not None
            else getattr(settings, "CRAWLER_REQUEST_DELAY", 2.0)
        )
        self.event_limit = event_limit or getattr(settings, "CRAWLER_HOTEL_EVENT_LIMIT", 50)
        self.min_confidence = min_confidence
        self._shutdown = False

    def request_shutdown(self):
        self._shutdown = True

    async def _sleep(self, seconds: float):
        if seconds:
            await asyncio.sleep(seconds)

    async def search_query(self, event) -> str:
        """Short search query for the event's surroundings."""
        fallback = f"{event.city} hotels"
        try:
            query = await self.client.complete(
                None,
                prompts.build_hotel_query_prompt(event_location(event)),
                QUERY_MAX_TOKENS,
            )
        except CompletionError as e:
            logger.warning(f"Hotel query generation failed for event {event.id}, using fallback: {e}")
            return fallback

        lines = query.strip().strip('"').splitlines()
        return lines[0].strip() if lines and lines[0].strip() else fallback

    async def fetch_search_page(self, url: str) -> str:
        """
        Render a hotel search page and return its cleaned text.

        Raises:
            FetchError: If the page cannot be loaded
        """
        html = await self.fetcher.fetch_html(url, dismiss_cookies=True)
        return clean_html(html, max_chars=SEARCH_PAGE_MAX_CHARS, prefer_main=False)

    def _finalize_hotel(self, hotel, event, provider: str):
        if hotel.affiliate_url.startswith("https://"):
            url = build_affiliate_url(hotel.affiliate_url, provider)
        else:
            url = hotel_deep_link(hotel.hotel_name, provider)
        hotel = replace(
            hotel,
            affiliate_provider=provider,
            affiliate_url=url,
            affiliate_id=hotel.affiliate_id or affiliate_id_for(provider),
        )
        if event.has_coordinates:
            hotel = annotate_distance(hotel, event.latitude, event.longitude)
        return hotel

    async def _provider_hotels(self, event, provider: str, label: str, url: str, result):
        try:
            text = await self.fetch_search_page(url)
            await self._sleep(self.request_delay)
            context = ExtractionContext(
                source_url=url,
                affiliate_provider=provider,
                location=f"{event.venue_name or event.address or event.city}, "
                         f"{event.city}, {event.country_code}",
                max_items=MAX_HOTELS_PER_PROVIDER,
            )
            hotels = await self.engine.extract(text, context)
        except (FetchError, CompletionError) as e:
            result.errors.append(f"{label} scrape failed: {e}")
            logger.error(f"{label} scrape error for event {event.id}: {e}")
            return []

        kept, _ = apply_confidence_gate(hotels, self.min_confidence)
        logger.debug(f"{label}: {len(kept)} hotel(s) extracted for event {event.id}")
        return [self._finalize_hotel(hotel, event, provider) for hotel in kept]

    async def enrich_event(self, event) -> HotelEnrichmentResult:
        """
        Search both providers for hotels near ``event`` and store them.

        Returns:
            HotelEnrichmentResult
        """
        started = time.monotonic()
        result = HotelEnrichmentResult(event_id=str(event.id), event_title=event.title)
        logger.info(f"Enriching event {event.id} ({event.title}, {event.city}) with hotels")

        query = await self.search_query(event)
        check_in = timezone.localtime(event.start_datetime).date()

        hotels = []
        for index, (provider, label, build_url) in enumerate(SEARCH_URL_BUILDERS):
            if index > 0:
                await self._sleep(self.request_delay)
            url = build_url(query, check_in)
            hotels.extend(await self._provider_hotels(event, provider, label, url, result))

        result.hotels_found = len(hotels)

        for hotel in hotels:
            try:
                await self.reconciler.aupsert(hotel, event)
                result.hotels_upserted += 1
            except PersistenceError as e:
                result.errors.append(f'Upsert failed for "{hotel.hotel_name}": {e}')
                logger.error(f"Hotel upsert failed for {hotel.hotel_name}: {e}")

        result.duration_seconds = time.monotonic() - started
        logger.info(
            f"Hotel enrichment complete for event {event.id}: {result.hotels_found} found, "
            f"{result.hotels_upserted} upserted, {len(result.errors)} error(s) "
            f"in {result.duration_seconds:.1f}s"
        )
        return result

    async def _enrich_isolated(self, event) -> HotelEnrichmentResult:
        try:
            return await self.enrich_event(event)
        except Exception as e:
            logger.exception(f"Unexpected error enriching event {event.id}")
            log_error_with_context(e, extra_context={"event_id": str(event.id), "lane": "hotels"})
            return HotelEnrichmentResult(
                event_id=str(event.id),
                event_title=event.title,
                errors=[f"{type(e).__name__}: {e}"],
            )

    async def enrich_all(self) -> EnrichmentSummary:
        """
        Enrich every upcoming event that has coordinates and no hotels.

        Raises:
            django.db.DatabaseError: If the events cannot be listed
        """
        started = time.monotonic()
        summary = EnrichmentSummary()
        events = await self.reconciler.aevents_without_hotels(self.event_limit)
        logger.info(f"Hotel enrichment: {len(events)} event(s) without hotels")

        for index, event in enumerate(events):
            if self._shutdown:
                summary.interrupted = True
                logger.info("Shutdown requested, stopping hotel enrichment")
                break
            if index > 0:
                await self._sleep(self.request_delay * 2)
            summary.results.append(await self._enrich_isolated(event))

        summary.duration_seconds = time.monotonic() - started
        logger.info(
            f"Hotel enrichment finished: {summary.events_processed} processed, "
            f"{summary.events_succeeded} succeeded, {summary.events_failed} failed, "
            f"{summary.hotels_upserted}/{summary.hotels_found} hotel(s) upserted "
            f"in {summary.duration_seconds:.1f}s"
        )
        return summary
