"""
Django base settings for the Tango Community crawler.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-tango-crawler-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # Third-party apps
    "rest_framework",
    # Local apps
    "tango_crawler",
]

MIDDLEWARE = []

ROOT_URLCONF = None


# Database
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


# Internationalization

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = False

USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 3 * 60 * 60  # a full events lane can take hours


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "tango_crawler": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# AI completion service (Anthropic Messages API)

AI_COMPLETION_API_KEY = os.getenv("AI_COMPLETION_API_KEY", os.getenv("ANTHROPIC_API_KEY", ""))
AI_COMPLETION_MODEL = os.getenv("AI_COMPLETION_MODEL", "claude-haiku-4-5-20251001")
AI_COMPLETION_BASE_URL = os.getenv("AI_COMPLETION_BASE_URL", "https://api.anthropic.com")
AI_COMPLETION_MAX_TOKENS = int(os.getenv("AI_COMPLETION_MAX_TOKENS", "4096"))
AI_COMPLETION_TIMEOUT = float(os.getenv("AI_COMPLETION_TIMEOUT", "120"))


# Crawler Configuration

CRAWLER_USER_AGENT = os.getenv(
    "CRAWLER_USER_AGENT",
    "TangoCommunityBot/1.0 (+https://tangocommunity.app/bot)",
)
CRAWLER_REQUEST_TIMEOUT = float(os.getenv("CRAWLER_REQUEST_TIMEOUT", "30"))
CRAWLER_REQUEST_DELAY = float(os.getenv("CRAWLER_REQUEST_DELAY", "2.0"))
CRAWLER_SOURCE_DELAY = float(os.getenv("CRAWLER_SOURCE_DELAY", "2.0"))
CRAWLER_MAX_CONTENT_CHARS = int(os.getenv("CRAWLER_MAX_CONTENT_CHARS", "100000"))
CRAWLER_MIN_CONFIDENCE = float(os.getenv("CRAWLER_MIN_CONFIDENCE", "0.5"))
CRAWLER_FUZZY_THRESHOLD = float(os.getenv("CRAWLER_FUZZY_THRESHOLD", "0.6"))
# "python" (rapidfuzz) or "trigram" (PostgreSQL pg_trgm)
CRAWLER_FUZZY_BACKEND = os.getenv("CRAWLER_FUZZY_BACKEND", "python")
CRAWLER_HOTEL_EVENT_LIMIT = int(os.getenv("CRAWLER_HOTEL_EVENT_LIMIT", "50"))


# Affiliate programme identifiers

AMAZON_ASSOCIATE_TAG = os.getenv("AMAZON_ASSOCIATE_TAG", "tango-community-20")
COUPANG_PARTNER_ID = os.getenv("COUPANG_PARTNER_ID", "")
COUPANG_SUB_ID = os.getenv("COUPANG_SUB_ID", "tango")
ALIEXPRESS_TRACKING_ID = os.getenv("ALIEXPRESS_TRACKING_ID", "")
BOOKING_COM_AID = os.getenv("BOOKING_COM_AID", "123456")
AGODA_CID = os.getenv("AGODA_CID", "1234567")


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

import sentry_sdk

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=False,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )
