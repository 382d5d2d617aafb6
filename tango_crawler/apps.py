"""
Tango crawler application configuration.
"""

from django.apps import AppConfig


class TangoCrawlerConfig(AppConfig):
    """Configuration for the tango crawler Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "tango_crawler"
    verbose_name = "Tango Crawler"
