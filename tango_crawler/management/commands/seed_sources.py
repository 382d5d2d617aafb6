"""
Management command to load crawl sources.

Product sources come from the built-in catalog; event sources can be added
from a JSON file (a list of objects with at least slug, name and base_url).
Existing sources are updated by slug, so the command is safe to re-run.

Usage:
    python manage.py seed_sources
    python manage.py seed_sources --file event_sources.json
    python manage.py seed_sources --file event_sources.json --skip-catalog
"""

import json

from django.core.management.base import BaseCommand, CommandError

from tango_crawler.models import CrawlLane
from tango_crawler.services.source_registry import SourceRegistry
from tango_crawler.sources_catalog import PRODUCT_SOURCES

REQUIRED_KEYS = ("slug", "name", "base_url")


def load_source_file(path: str):
    """Read and check a JSON list of source definitions."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            entries = json.load(f)
    except (OSError, ValueError) as e:
        raise CommandError(f"Could not read {path}: {e}")

    if not isinstance(entries, list):
        raise CommandError(f"{path} must contain a JSON list of sources")

    for index, entry in enumerate(entries):
        missing = [key for key in REQUIRED_KEYS if not entry.get(key)]
        if missing:
            raise CommandError(f"Source #{index} in {path} is missing {', '.join(missing)}")
        entry.setdefault("lane", CrawlLane.EVENTS)
    return entries


class Command(BaseCommand):
    help = "Load crawl sources from the built-in catalog and an optional JSON file"

    def add_arguments(self, parser):
        parser.add_argument(
            "--file",
            type=str,
            help="JSON file with additional (event) sources",
        )
        parser.add_argument(
            "--skip-catalog",
            action="store_true",
            help="Do not load the built-in product catalog",
        )

    def handle(self, *args, **options):
        entries = [] if options["skip_catalog"] else list(PRODUCT_SOURCES)
        if options["file"]:
            file_entries = load_source_file(options["file"])
            self.stdout.write(f"Found {len(file_entries)} sources in {options['file']}")
            entries.extend(file_entries)

        if not entries:
            self.stdout.write(self.style.WARNING("Nothing to load"))
            return

        created, updated = SourceRegistry().sync_catalog(entries)
        self.stdout.write(self.style.SUCCESS(
            f"Sources loaded: {created} created, {updated} updated"
        ))
