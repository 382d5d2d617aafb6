"""
Database models for the tango crawler.

Crawl bookkeeping (CrawlSource, CrawlRunLog) plus the three persisted record
types the pipeline reconciles: Event, ProductDeal and HotelAffiliate.
"""

import uuid
from decimal import Decimal

from django.db import models
from django.utils import timezone


class CrawlLane(models.TextChoices):
    """Independent crawl workflows, each on its own cadence."""

    EVENTS = "events", "Events"
    PRODUCTS = "products", "Products"
    HOTELS = "hotels", "Hotels"


class CrawlFrequency(models.TextChoices):
    HOURLY = "hourly", "Hourly"
    DAILY = "daily", "Daily"
    WEEKLY = "weekly", "Weekly"
    MONTHLY = "monthly", "Monthly"


class FetchStrategy(models.TextChoices):
    """How a source's pages are retrieved."""

    STATIC = "static", "Static HTTP"
    DYNAMIC = "dynamic", "Headless Browser"


class PaginationType(models.TextChoices):
    NONE = "", "None"
    URL_PARAM = "url_param", "URL Parameter"
    INFINITE_SCROLL = "infinite_scroll", "Infinite Scroll"
    NEXT_BUTTON = "next_button", "Next Button"


class CrawlRunStatus(models.TextChoices):
    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    PARTIAL = "partial", "Partial"
    FAILED = "failed", "Failed"


class EventType(models.TextChoices):
    MILONGA = "milonga", "Milonga"
    FESTIVAL = "festival", "Festival"
    WORKSHOP = "workshop", "Workshop"
    CLASS = "class", "Class"
    PRACTICA = "practica", "Practica"


class EventStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"


class ProductCategory(models.TextChoices):
    SHOES = "shoes", "Shoes"
    CLOTHING = "clothing", "Clothing"
    ACCESSORIES = "accessories", "Accessories"
    MUSIC = "music", "Music"
    OTHER = "other", "Other"


class AffiliateProvider(models.TextChoices):
    AMAZON = "amazon", "Amazon"
    COUPANG = "coupang", "Coupang"
    ALIEXPRESS = "aliexpress", "AliExpress"
    BOOKING_COM = "booking_com", "Booking.com"
    AGODA = "agoda", "Agoda"


PRODUCT_PROVIDERS = (
    AffiliateProvider.AMAZON,
    AffiliateProvider.COUPANG,
    AffiliateProvider.ALIEXPRESS,
)

HOTEL_PROVIDERS = (
    AffiliateProvider.BOOKING_COM,
    AffiliateProvider.AGODA,
)


class UpsertOutcome(models.TextChoices):
    """Classification of a single reconciliation."""

    CREATED = "created", "Created"
    UPDATED = "updated", "Updated"
    SKIPPED = "skipped", "Skipped"


class TimestampedModel(models.Model):
    """Abstract base adding created/updated timestamps."""

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        self.updated_at = timezone.now()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["updated_at"]
        super().save(*args, **kwargs)


class CrawlSource(TimestampedModel):
    """
    Configuration for a crawlable source.

    Sources are never deleted at runtime; they are switched off with
    ``is_active``. ``last_crawled_at`` is only written by the crawl runner.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    slug = models.SlugField(max_length=100, unique=True, help_text="Stable identifier")
    name = models.CharField(max_length=200, help_text="Human-readable name")
    base_url = models.URLField(max_length=2000, help_text="First page to crawl")
    lane = models.CharField(
        max_length=20, choices=CrawlLane.choices, default=CrawlLane.EVENTS
    )

    # Scheduling
    crawl_frequency = models.CharField(
        max_length=20, choices=CrawlFrequency.choices, default=CrawlFrequency.DAILY
    )
    is_active = models.BooleanField(default=True, help_text="Enable/disable crawling")
    last_crawled_at = models.DateTimeField(null=True, blank=True)

    # Retrieval configuration
    fetch_strategy = models.CharField(
        max_length=20, choices=FetchStrategy.choices, default=FetchStrategy.STATIC
    )
    selectors = models.JSONField(
        default=dict, blank=True, help_text="CSS selector hints, e.g. {'eventList': '.event'}"
    )
    pagination_type = models.CharField(
        max_length=20, choices=PaginationType.choices, default=PaginationType.NONE, blank=True
    )
    pagination_param = models.CharField(max_length=50, blank=True)
    max_pages = models.PositiveIntegerField(default=1)
    language = models.CharField(max_length=10, blank=True, help_text="Language hint, e.g. 'es'")
    wait_for_selector = models.CharField(max_length=500, blank=True)

    # Product sources only
    affiliate_provider = models.CharField(
        max_length=20, choices=AffiliateProvider.choices, blank=True
    )
    product_category = models.CharField(
        max_length=20, choices=ProductCategory.choices, blank=True
    )

    class Meta:
        db_table = "crawl_sources"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["lane", "is_active", "last_crawled_at"], name="crawl_sourc_lane_9d1c2e_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.lane})"

    def mark_crawled(self, when=None):
        """Record that a crawl of this source just finished."""
        self.last_crawled_at = when or timezone.now()
        self.save(update_fields=["last_crawled_at"])


class CrawlRunLog(models.Model):
    """
    One record per source crawl attempt.

    Created in ``running`` state and finalized exactly once.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.ForeignKey(
        CrawlSource, on_delete=models.CASCADE, related_name="run_logs"
    )
    status = models.CharField(
        max_length=20, choices=CrawlRunStatus.choices, default=CrawlRunStatus.RUNNING
    )
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)

    records_found = models.PositiveIntegerField(default=0)
    records_created = models.PositiveIntegerField(default=0)
    records_updated = models.PositiveIntegerField(default=0)
    records_skipped = models.PositiveIntegerField(default=0)

    error_log = models.TextField(blank=True)

    class Meta:
        db_table = "crawl_run_logs"
        ordering = ["-started_at"]
        indexes = [
            models.Index(fields=["source", "started_at"], name="crawl_run_l_source__4a7f0b_idx"),
            models.Index(fields=["status"], name="crawl_run_l_status_2e8d51_idx"),
        ]

    def __str__(self):
        return f"Run {self.id} - {self.source.name} ({self.status})"

    @property
    def duration_seconds(self):
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def is_finalized(self) -> bool:
        return self.status != CrawlRunStatus.RUNNING

    def finalize(self, status: str, found=0, created=0, updated=0, skipped=0, errors=None):
        """Move the log out of ``running``. Later calls are ignored."""
        if self.is_finalized:
            return
        self.status = status
        self.completed_at = timezone.now()
        self.records_found = found
        self.records_created = created
        self.records_updated = updated
        self.records_skipped = skipped
        self.error_log = "\n".join(errors or [])
        self.save()


class Event(TimestampedModel):
    """A tango event (milonga, festival, workshop, class, practica)."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.ForeignKey(
        CrawlSource, on_delete=models.SET_NULL, null=True, blank=True, related_name="events"
    )

    title = models.CharField(max_length=500)
    title_original = models.CharField(max_length=500, blank=True)
    description = models.TextField(blank=True)
    event_type = models.CharField(max_length=20, choices=EventType.choices)

    venue_name = models.CharField(max_length=300, blank=True)
    address = models.CharField(max_length=500, blank=True)
    city = models.CharField(max_length=200)
    country_code = models.CharField(max_length=2)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    start_datetime = models.DateTimeField()
    end_datetime = models.DateTimeField(null=True, blank=True)
    recurrence_rule = models.CharField(max_length=500, blank=True)

    organizer_name = models.CharField(max_length=300, blank=True)
    price_info = models.CharField(max_length=300, blank=True)
    currency = models.CharField(max_length=3, blank=True)
    image_urls = models.JSONField(default=list, blank=True)

    # Canonical identity URL; uniqueness is enforced by the database
    source_url = models.CharField(max_length=2000, unique=True)
    confidence = models.FloatField(default=0.5)
    status = models.CharField(
        max_length=20, choices=EventStatus.choices, default=EventStatus.ACTIVE
    )
    is_verified = models.BooleanField(default=False)

    class Meta:
        db_table = "events"
        ordering = ["start_datetime"]
        indexes = [
            models.Index(fields=["city", "start_datetime"], name="events_city_5b0e3f_idx"),
            models.Index(fields=["status", "start_datetime"], name="events_status_8c41aa_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.city}, {self.start_datetime:%Y-%m-%d})"

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class ProductDeal(TimestampedModel):
    """A tango product offer wrapped in an affiliate link."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.ForeignKey(
        CrawlSource, on_delete=models.SET_NULL, null=True, blank=True, related_name="deals"
    )

    title = models.CharField(max_length=500)
    description = models.TextField(blank=True)
    product_category = models.CharField(max_length=20, choices=ProductCategory.choices)
    original_price = models.DecimalField(max_digits=12, decimal_places=2)
    deal_price = models.DecimalField(max_digits=12, decimal_places=2)
    discount_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True
    )
    currency = models.CharField(max_length=3, default="USD")

    affiliate_provider = models.CharField(max_length=20, choices=AffiliateProvider.choices)
    source_url = models.CharField(max_length=2000, unique=True)
    affiliate_url = models.CharField(max_length=2000)
    affiliate_id = models.CharField(max_length=200, blank=True)
    image_urls = models.JSONField(default=list, blank=True)

    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    confidence = models.FloatField(default=0.5)

    class Meta:
        db_table = "product_deals"
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["is_active", "product_category"], name="product_dea_is_acti_7f3b92_idx"),
            models.Index(fields=["expires_at"], name="product_dea_expires_1d6e40_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.affiliate_provider})"

    def save(self, *args, **kwargs):
        self.discount_percentage = self.compute_discount(self.original_price, self.deal_price)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "discount_percentage" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["discount_percentage"]
        super().save(*args, **kwargs)

    @staticmethod
    def compute_discount(original_price, deal_price):
        """Percentage saved, or None when there is no discount."""
        if original_price is None or deal_price is None:
            return None
        original = Decimal(original_price)
        deal = Decimal(deal_price)
        if original <= 0 or deal >= original:
            return None
        return ((original - deal) / original * 100).quantize(Decimal("0.01"))


class HotelAffiliate(TimestampedModel):
    """A hotel near an event, linked through a hotel affiliate programme."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="hotels")

    hotel_name = models.CharField(max_length=300)
    hotel_address = models.CharField(max_length=500, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    distance_from_event_meters = models.PositiveIntegerField(null=True, blank=True)

    price_per_night_min = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    currency = models.CharField(max_length=3, default="USD")
    rating = models.FloatField(null=True, blank=True)
    review_count = models.PositiveIntegerField(default=0)

    affiliate_provider = models.CharField(max_length=20, choices=AffiliateProvider.choices)
    affiliate_url = models.CharField(max_length=2000)
    affiliate_id = models.CharField(max_length=200, blank=True)
    image_url = models.CharField(max_length=2000, blank=True)
    amenities = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "hotel_affiliates"
        ordering = ["distance_from_event_meters"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "hotel_name"], name="uniq_hotel_per_event"
            ),
        ]

    def __str__(self):
        return f"{self.hotel_name} near {self.event_id}"
