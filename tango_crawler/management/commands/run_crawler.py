"""
Management command to run the crawler.

Usage:
    python manage.py run_crawler                 # scheduler, runs until SIGINT/SIGTERM
    python manage.py run_crawler --once          # events, products, hotels once
    python manage.py run_crawler --lane events   # one lane once
    python manage.py run_crawler --once --due-only
"""

import asyncio

from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError, connection

from tango_crawler.models import CrawlLane
from tango_crawler.services.scheduler import CrawlScheduler, LaneStatus


class Command(BaseCommand):
    help = "Crawl tango events, product deals and hotels"

    def add_arguments(self, parser):
        mode = parser.add_mutually_exclusive_group()
        mode.add_argument(
            "--once",
            action="store_true",
            help="Run every lane once (events, products, hotels) and exit",
        )
        mode.add_argument(
            "--lane",
            choices=[lane.value for lane in CrawlLane],
            help="Run a single lane once and exit",
        )
        mode.add_argument(
            "--forever",
            action="store_true",
            help="Run the interval scheduler until interrupted (default)",
        )
        parser.add_argument(
            "--due-only",
            action="store_true",
            help="Skip sources whose crawl frequency says they are not due",
        )
        parser.add_argument(
            "--headed",
            action="store_true",
            help="Show the browser window (debugging)",
        )

    def handle(self, *args, **options):
        try:
            connection.ensure_connection()
        except DatabaseError as e:
            raise CommandError(f"Database unavailable: {e}")

        try:
            scheduler = CrawlScheduler.from_settings(
                headless=not options["headed"],
                due_only=options["due_only"],
            )
        except Exception as e:
            raise CommandError(f"Could not set up the crawler: {e}")

        if options["lane"]:
            self.stdout.write(f"Mode: {options['lane']} lane only")
            statuses = self._run(scheduler.run_once([options["lane"]]), scheduler)
        elif options["once"]:
            self.stdout.write("Mode: once (single full pass)")
            statuses = self._run(scheduler.run_once(), scheduler)
        else:
            self.stdout.write("Mode: scheduler (Ctrl+C to stop)")
            self._run(scheduler.run_forever(install_signals=False), scheduler)
            self.stdout.write(self.style.SUCCESS("Scheduler stopped"))
            return

        for lane, status in statuses.items():
            style = self.style.SUCCESS if status == LaneStatus.OK else self.style.WARNING
            self.stdout.write(style(f"  {lane}: {status}"))

        # A lane that raised could not even list its work (e.g. database errors)
        failed = {
            lane: scheduler.state[lane].last_error
            for lane in statuses
            if scheduler.state[lane].last_error is not None
        }
        if failed:
            details = "; ".join(f"{lane}: {error}" for lane, error in failed.items())
            raise CommandError(f"Lane run aborted: {details}")

    def _run(self, coroutine, scheduler):
        async def _main():
            scheduler.install_signal_handlers()
            try:
                return await coroutine
            finally:
                await scheduler.cleanup()

        try:
            return asyncio.run(_main())
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING("Interrupted"))
            return {}
