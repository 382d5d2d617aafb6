"""
Test settings for the Tango Community crawler.

Uses in-memory SQLite and eager Celery for fast test execution.
"""

from .base import *

# Test mode
DEBUG = False

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# Test database - in-memory SQLite for speed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Test Celery - run tasks synchronously
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Test logging - minimal output
LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["tango_crawler"]["level"] = "WARNING"

# Disable Sentry in tests
SENTRY_DSN = ""

# Test crawler settings - fail fast, no politeness delays
AI_COMPLETION_API_KEY = "test-key"
CRAWLER_REQUEST_TIMEOUT = 5
CRAWLER_REQUEST_DELAY = 0
CRAWLER_SOURCE_DELAY = 0
CRAWLER_FUZZY_BACKEND = "python"

AMAZON_ASSOCIATE_TAG = "tango-community-20"
COUPANG_PARTNER_ID = "AF1234567"
COUPANG_SUB_ID = "tango"
ALIEXPRESS_TRACKING_ID = "tango_tracking"
BOOKING_COM_AID = "123456"
AGODA_CID = "1234567"
