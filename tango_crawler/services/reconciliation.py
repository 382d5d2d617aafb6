"""
Reconciliation and persistence.

Each validated record is classified as created, updated or skipped:

1. Exact match on the identity key -> overwrite mutable fields ("updated")
2. Events only: a fuzzy near-duplicate with the same city and start date
   -> no write ("skipped")
3. Otherwise insert ("created")

Every reconciliation runs inside one transaction. A failed write rolls back
and is raised to the caller, which records it against that record and moves
on to the next one. Records are assumed to have passed the confidence gate.
"""

import logging
from dataclasses import dataclass, fields
from datetime import date
from enum import Enum
from typing import List, Optional

from asgiref.sync import sync_to_async
from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Count, Q
from django.utils import timezone

from tango_crawler.exceptions import PersistenceError
from tango_crawler.models import (
    Event,
    EventStatus,
    HotelAffiliate,
    ProductDeal,
    UpsertOutcome,
)
from tango_crawler.records import ExtractedEvent, ExtractedHotel, ExtractedProduct
from tango_crawler.utils.normalization import (
    canonicalize_url,
    event_identity_key,
    title_similarity,
)

logger = logging.getLogger(__name__)


class FuzzyMatchStatus(str, Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"
    UNAVAILABLE = "unavailable"


@dataclass
class FuzzyMatchResult:
    """
    Outcome of the near-duplicate lookup.

    ``unavailable`` means the lookup itself failed; callers treat it as no
    match so a lookup outage never blocks inserts.
    """

    status: FuzzyMatchStatus
    event_id: Optional[str] = None
    score: float = 0.0
    error: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.status == FuzzyMatchStatus.MATCHED


def _fuzzy_threshold() -> float:
    return getattr(settings, "CRAWLER_FUZZY_THRESHOLD", 0.6)


def _candidates(city: str, day: date):
    return Event.objects.filter(city__iexact=city, start_datetime__date=day)


def _python_lookup(title: str, city: str, day: date, threshold: float) -> FuzzyMatchResult:
    best_id = None
    best_score = 0.0
    for event_id, candidate_title in _candidates(city, day).values_list("id", "title"):
        score = title_similarity(title, candidate_title)
        if score > best_score:
            best_id, best_score = event_id, score

    if best_id is not None and best_score >= threshold:
        return FuzzyMatchResult(FuzzyMatchStatus.MATCHED, event_id=str(best_id), score=best_score)
    return FuzzyMatchResult(FuzzyMatchStatus.NO_MATCH, score=best_score)


def _trigram_lookup(title: str, city: str, day: date, threshold: float) -> FuzzyMatchResult:
    # Requires the pg_trgm extension on PostgreSQL
    from django.contrib.postgres.search import TrigramSimilarity

    match = (
        _candidates(city, day)
        .annotate(similarity=TrigramSimilarity("title", title))
        .filter(similarity__gte=threshold)
        .order_by("-similarity")
        .values_list("id", "similarity")
        .first()
    )
    if match is None:
        return FuzzyMatchResult(FuzzyMatchStatus.NO_MATCH)
    return FuzzyMatchResult(FuzzyMatchStatus.MATCHED, event_id=str(match[0]), score=float(match[1]))


FUZZY_BACKENDS = {
    "python": _python_lookup,
    "trigram": _trigram_lookup,
}


def find_fuzzy_duplicate(record: ExtractedEvent, threshold: Optional[float] = None) -> FuzzyMatchResult:
    """
    Look for an existing event that is probably the same as ``record``.

    Candidates share the city (case-insensitive) and the start date; the best
    title similarity must reach the threshold. Database errors during the
    lookup are contained in a savepoint and reported as ``unavailable``.
    """
    threshold = _fuzzy_threshold() if threshold is None else threshold
    backend_name = getattr(settings, "CRAWLER_FUZZY_BACKEND", "python")
    backend = FUZZY_BACKENDS.get(backend_name, _python_lookup)
    start = record.start_datetime
    day = timezone.localtime(start).date() if timezone.is_aware(start) else start.date()

    try:
        with transaction.atomic():
            return backend(record.title, record.city, day, threshold)
    except DatabaseError as e:
        logger.warning(f"Fuzzy duplicate lookup unavailable for '{record.title}': {e}")
        return FuzzyMatchResult(FuzzyMatchStatus.UNAVAILABLE, error=str(e))


def _record_values(record, exclude=()) -> dict:
    values = {}
    for field in fields(record):
        if field.name in exclude:
            continue
        value = getattr(record, field.name)
        if isinstance(value, tuple):
            value = list(value)
        values[field.name] = value
    return values


def _apply(instance, values: dict):
    for name, value in values.items():
        setattr(instance, name, value)
    instance.save()
    return instance


class EventReconciler:
    """Upserts extracted events keyed on their canonical identity URL."""

    def upsert(self, record: ExtractedEvent, page_url: str = "", source=None) -> UpsertOutcome:
        """
        Reconcile one event.

        Args:
            record: Extracted event (already past the confidence gate)
            page_url: URL of the page it was found on
            source: CrawlSource it came from

        Returns:
            UpsertOutcome

        Raises:
            PersistenceError: If the write fails (the transaction is rolled back)
        """
        key = event_identity_key(record, page_url)
        values = _record_values(record, exclude=("source_url",))
        values["source_url"] = key

        try:
            with transaction.atomic():
                existing = Event.objects.select_for_update().filter(source_url=key).first()
                if existing is not None:
                    if source is not None:
                        values["source"] = source
                    _apply(existing, values)
                    logger.debug(f"Updated event '{record.title}' ({key})")
                    return UpsertOutcome.UPDATED

                fuzzy = find_fuzzy_duplicate(record)
                if fuzzy.matched:
                    logger.info(
                        f"Skipping near-duplicate event '{record.title}' in {record.city} "
                        f"(matches {fuzzy.event_id}, score {fuzzy.score:.2f})"
                    )
                    return UpsertOutcome.SKIPPED

                Event.objects.create(source=source, status=EventStatus.ACTIVE, **values)
                logger.debug(f"Created event '{record.title}' ({key})")
                return UpsertOutcome.CREATED
        except DatabaseError as e:
            raise PersistenceError(f"Could not save event '{record.title}': {e}") from e

    async def aupsert(self, record: ExtractedEvent, page_url: str = "", source=None) -> UpsertOutcome:
        return await sync_to_async(self.upsert, thread_sensitive=True)(record, page_url, source)


class ProductReconciler:
    """Upserts product offers keyed on their canonical product URL."""

    def upsert(self, record: ExtractedProduct, page_url: str = "", source=None) -> UpsertOutcome:
        key = canonicalize_url(record.source_url)
        values = _record_values(record, exclude=("source_url",))
        values["source_url"] = key
        values["is_active"] = True

        try:
            with transaction.atomic():
                existing = ProductDeal.objects.select_for_update().filter(source_url=key).first()
                if existing is not None:
                    if source is not None:
                        values["source"] = source
                    _apply(existing, values)
                    return UpsertOutcome.UPDATED

                ProductDeal.objects.create(source=source, **values)
                return UpsertOutcome.CREATED
        except DatabaseError as e:
            raise PersistenceError(f"Could not save product '{record.title}': {e}") from e

    async def aupsert(self, record: ExtractedProduct, page_url: str = "", source=None) -> UpsertOutcome:
        return await sync_to_async(self.upsert, thread_sensitive=True)(record, page_url, source)

    def deactivate_expired(self, now=None) -> int:
        """Mark deals past their expiry as inactive. Returns the number changed."""
        now = now or timezone.now()
        count = ProductDeal.objects.filter(
            is_active=True, expires_at__isnull=False, expires_at__lt=now
        ).update(is_active=False, updated_at=now)
        if count:
            logger.info(f"Deactivated {count} expired deal(s)")
        return count

    async def adeactivate_expired(self, now=None) -> int:
        return await sync_to_async(self.deactivate_expired, thread_sensitive=True)(now)

    def active_count(self) -> int:
        return ProductDeal.objects.filter(is_active=True).count()

    async def aactive_count(self) -> int:
        return await sync_to_async(self.active_count, thread_sensitive=True)()


class HotelReconciler:
    """Upserts hotel listings keyed on (event, hotel name)."""

    def upsert(self, record: ExtractedHotel, event: Event) -> UpsertOutcome:
        values = _record_values(record, exclude=("hotel_name", "confidence"))

        try:
            with transaction.atomic():
                existing = (
                    HotelAffiliate.objects.select_for_update()
                    .filter(event=event, hotel_name=record.hotel_name)
                    .first()
                )
                if existing is not None:
                    _apply(existing, values)
                    return UpsertOutcome.UPDATED

                HotelAffiliate.objects.create(event=event, hotel_name=record.hotel_name, **values)
                return UpsertOutcome.CREATED
        except DatabaseError as e:
            raise PersistenceError(f"Could not save hotel '{record.hotel_name}': {e}") from e

    async def aupsert(self, record: ExtractedHotel, event: Event) -> UpsertOutcome:
        return await sync_to_async(self.upsert, thread_sensitive=True)(record, event)

    def events_without_hotels(self, limit: int = 50, now=None) -> List[Event]:
        """Active, upcoming events with coordinates that have no hotels yet."""
        now = now or timezone.now()
        queryset = (
            Event.objects.filter(
                status=EventStatus.ACTIVE,
                latitude__isnull=False,
                longitude__isnull=False,
            )
            .filter(Q(end_datetime__gte=now) | Q(end_datetime__isnull=True, start_datetime__gte=now))
            .annotate(hotel_count=Count("hotels"))
            .filter(hotel_count=0)
            .order_by("start_datetime")
        )
        return list(queryset[:limit])

    async def aevents_without_hotels(self, limit: int = 50, now=None) -> List[Event]:
        return await sync_to_async(self.events_without_hotels, thread_sensitive=True)(limit, now)


RECONCILERS = {
    "events": EventReconciler,
    "products": ProductReconciler,
}
