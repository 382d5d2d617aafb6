import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


LANE_CHOICES = [("events", "Events"), ("products", "Products"), ("hotels", "Hotels")]
FREQUENCY_CHOICES = [
    ("hourly", "Hourly"),
    ("daily", "Daily"),
    ("weekly", "Weekly"),
    ("monthly", "Monthly"),
]
FETCH_STRATEGY_CHOICES = [("static", "Static HTTP"), ("dynamic", "Headless Browser")]
PAGINATION_CHOICES = [
    ("", "None"),
    ("url_param", "URL Parameter"),
    ("infinite_scroll", "Infinite Scroll"),
    ("next_button", "Next Button"),
]
RUN_STATUS_CHOICES = [
    ("running", "Running"),
    ("completed", "Completed"),
    ("partial", "Partial"),
    ("failed", "Failed"),
]
EVENT_TYPE_CHOICES = [
    ("milonga", "Milonga"),
    ("festival", "Festival"),
    ("workshop", "Workshop"),
    ("class", "Class"),
    ("practica", "Practica"),
]
EVENT_STATUS_CHOICES = [("active", "Active"), ("cancelled", "Cancelled")]
PRODUCT_CATEGORY_CHOICES = [
    ("shoes", "Shoes"),
    ("clothing", "Clothing"),
    ("accessories", "Accessories"),
    ("music", "Music"),
    ("other", "Other"),
]
AFFILIATE_PROVIDER_CHOICES = [
    ("amazon", "Amazon"),
    ("coupang", "Coupang"),
    ("aliexpress", "AliExpress"),
    ("booking_com", "Booking.com"),
    ("agoda", "Agoda"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CrawlSource",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("slug", models.SlugField(help_text="Stable identifier", max_length=100, unique=True)),
                ("name", models.CharField(help_text="Human-readable name", max_length=200)),
                ("base_url", models.URLField(help_text="First page to crawl", max_length=2000)),
                ("lane", models.CharField(choices=LANE_CHOICES, default="events", max_length=20)),
                ("crawl_frequency", models.CharField(choices=FREQUENCY_CHOICES, default="daily", max_length=20)),
                ("is_active", models.BooleanField(default=True, help_text="Enable/disable crawling")),
                ("last_crawled_at", models.DateTimeField(blank=True, null=True)),
                ("fetch_strategy", models.CharField(choices=FETCH_STRATEGY_CHOICES, default="static", max_length=20)),
                ("selectors", models.JSONField(blank=True, default=dict, help_text="CSS selector hints, e.g. {'eventList': '.event'}")),
                ("pagination_type", models.CharField(blank=True, choices=PAGINATION_CHOICES, default="", max_length=20)),
                ("pagination_param", models.CharField(blank=True, max_length=50)),
                ("max_pages", models.PositiveIntegerField(default=1)),
                ("language", models.CharField(blank=True, help_text="Language hint, e.g. 'es'", max_length=10)),
                ("wait_for_selector", models.CharField(blank=True, max_length=500)),
                ("affiliate_provider", models.CharField(blank=True, choices=AFFILIATE_PROVIDER_CHOICES, max_length=20)),
                ("product_category", models.CharField(blank=True, choices=PRODUCT_CATEGORY_CHOICES, max_length=20)),
            ],
            options={
                "db_table": "crawl_sources",
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["lane", "is_active", "last_crawled_at"], name="crawl_sourc_lane_9d1c2e_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CrawlRunLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("status", models.CharField(choices=RUN_STATUS_CHOICES, default="running", max_length=20)),
                ("started_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("records_found", models.PositiveIntegerField(default=0)),
                ("records_created", models.PositiveIntegerField(default=0)),
                ("records_updated", models.PositiveIntegerField(default=0)),
                ("records_skipped", models.PositiveIntegerField(default=0)),
                ("error_log", models.TextField(blank=True)),
                (
                    "source",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="run_logs",
                        to="tango_crawler.crawlsource",
                    ),
                ),
            ],
            options={
                "db_table": "crawl_run_logs",
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(fields=["source", "started_at"], name="crawl_run_l_source__4a7f0b_idx"),
                    models.Index(fields=["status"], name="crawl_run_l_status_2e8d51_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Event",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=500)),
                ("title_original", models.CharField(blank=True, max_length=500)),
                ("description", models.TextField(blank=True)),
                ("event_type", models.CharField(choices=EVENT_TYPE_CHOICES, max_length=20)),
                ("venue_name", models.CharField(blank=True, max_length=300)),
                ("address", models.CharField(blank=True, max_length=500)),
                ("city", models.CharField(max_length=200)),
                ("country_code", models.CharField(max_length=2)),
                ("latitude", models.FloatField(blank=True, null=True)),
                ("longitude", models.FloatField(blank=True, null=True)),
                ("start_datetime", models.DateTimeField()),
                ("end_datetime", models.DateTimeField(blank=True, null=True)),
                ("recurrence_rule", models.CharField(blank=True, max_length=500)),
                ("organizer_name", models.CharField(blank=True, max_length=300)),
                ("price_info", models.CharField(blank=True, max_length=300)),
                ("currency", models.CharField(blank=True, max_length=3)),
                ("image_urls", models.JSONField(blank=True, default=list)),
                ("source_url", models.CharField(max_length=2000, unique=True)),
                ("confidence", models.FloatField(default=0.5)),
                ("status", models.CharField(choices=EVENT_STATUS_CHOICES, default="active", max_length=20)),
                ("is_verified", models.BooleanField(default=False)),
                (
                    "source",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="events",
                        to="tango_crawler.crawlsource",
                    ),
                ),
            ],
            options={
                "db_table": "events",
                "ordering": ["start_datetime"],
                "indexes": [
                    models.Index(fields=["city", "start_datetime"], name="events_city_5b0e3f_idx"),
                    models.Index(fields=["status", "start_datetime"], name="events_status_8c41aa_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductDeal",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=500)),
                ("description", models.TextField(blank=True)),
                ("product_category", models.CharField(choices=PRODUCT_CATEGORY_CHOICES, max_length=20)),
                ("original_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("deal_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("discount_percentage", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("affiliate_provider", models.CharField(choices=AFFILIATE_PROVIDER_CHOICES, max_length=20)),
                ("source_url", models.CharField(max_length=2000, unique=True)),
                ("affiliate_url", models.CharField(max_length=2000)),
                ("affiliate_id", models.CharField(blank=True, max_length=200)),
                ("image_urls", models.JSONField(blank=True, default=list)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("confidence", models.FloatField(default=0.5)),
                (
                    "source",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="deals",
                        to="tango_crawler.crawlsource",
                    ),
                ),
            ],
            options={
                "db_table": "product_deals",
                "ordering": ["-updated_at"],
                "indexes": [
                    models.Index(fields=["is_active", "product_category"], name="product_dea_is_acti_7f3b92_idx"),
                    models.Index(fields=["expires_at"], name="product_dea_expires_1d6e40_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="HotelAffiliate",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("hotel_name", models.CharField(max_length=300)),
                ("hotel_address", models.CharField(blank=True, max_length=500)),
                ("latitude", models.FloatField(blank=True, null=True)),
                ("longitude", models.FloatField(blank=True, null=True)),
                ("distance_from_event_meters", models.PositiveIntegerField(blank=True, null=True)),
                ("price_per_night_min", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("rating", models.FloatField(blank=True, null=True)),
                ("review_count", models.PositiveIntegerField(default=0)),
                ("affiliate_provider", models.CharField(choices=AFFILIATE_PROVIDER_CHOICES, max_length=20)),
                ("affiliate_url", models.CharField(max_length=2000)),
                ("affiliate_id", models.CharField(blank=True, max_length=200)),
                ("image_url", models.CharField(blank=True, max_length=2000)),
                ("amenities", models.JSONField(blank=True, default=list)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="hotels",
                        to="tango_crawler.event",
                    ),
                ),
            ],
            options={
                "db_table": "hotel_affiliates",
                "ordering": ["distance_from_event_meters"],
                "constraints": [
                    models.UniqueConstraint(fields=("event", "hotel_name"), name="uniq_hotel_per_event"),
                ],
            },
        ),
    ]
