"""
Celery configuration for the Tango Community crawler.

Each crawl lane (events, products, hotels) runs as a periodic task on its
own cadence via Celery Beat.
"""

import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("tango_crawler")

# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

app.conf.task_queues = {
    "crawl": {
        "exchange": "crawl",
        "routing_key": "crawl",
    },
    "enrichment": {
        "exchange": "enrichment",
        "routing_key": "enrichment",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.task_routes = {
    "tango_crawler.tasks.crawl_events": {"queue": "crawl"},
    "tango_crawler.tasks.crawl_products": {"queue": "crawl"},
    "tango_crawler.tasks.enrich_hotels": {"queue": "enrichment"},
}

# Lane cadences: events every 6h, products every 12h, hotels every 24h.
# Start minutes are staggered so lanes do not launch a browser at once.
app.conf.beat_schedule = {
    "crawl-events-every-6-hours": {
        "task": "tango_crawler.tasks.crawl_events",
        "schedule": crontab(minute=0, hour="*/6"),
    },
    "crawl-products-every-12-hours": {
        "task": "tango_crawler.tasks.crawl_products",
        "schedule": crontab(minute=10, hour="*/12"),
    },
    "enrich-hotels-daily": {
        "task": "tango_crawler.tasks.enrich_hotels",
        "schedule": crontab(minute=20, hour=3),
    },
}
