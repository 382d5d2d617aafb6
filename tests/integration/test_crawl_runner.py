"""
End-to-end scenarios for CrawlRunner with fake fetchers and a fake
completion client against the test database.
"""

from datetime import timedelta

import pytest
from asgiref.sync import sync_to_async
from django.utils import timezone

from tango_crawler.exceptions import CompletionError, FetchError, PersistenceError
from tango_crawler.models import CrawlRunLog, CrawlSource, Event, ProductDeal
from tango_crawler.services.crawl_runner import CrawlRunner

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]


@sync_to_async
def _run_logs():
    return list(CrawlRunLog.objects.select_related("source").order_by("started_at"))


@sync_to_async
def _count(model, **filters):
    return model.objects.filter(**filters).count()


@sync_to_async
def _refresh(instance):
    instance.refresh_from_db()
    return instance


def _runner(page_fetcher, client, **kwargs):
    kwargs.setdefault("source_delay", 0)
    return CrawlRunner(page_fetcher, client, **kwargs)


class TestCrawlSource:
    """Tests for CrawlRunner.crawl_source()."""

    async def test_new_event_is_created_and_logged(
        self, event_source, make_page_fetcher, make_completion_client, payloads
    ):
        client = make_completion_client([payloads.as_response(payloads.event())])
        runner = _runner(make_page_fetcher(), client)

        result = await runner.crawl_source(event_source)

        assert result.status == "completed"
        assert (result.found, result.created, result.updated, result.skipped) == (1, 1, 0, 0)
        assert await _count(Event) == 1

        [log] = await _run_logs()
        assert log.status == "completed"
        assert log.records_found == 1
        assert log.records_created == 1
        assert log.completed_at is not None
        assert log.error_log == ""

        source = await _refresh(event_source)
        assert source.last_crawled_at is not None

    async def test_fuzzy_duplicate_from_second_source_is_skipped(
        self, event_source, make_page_fetcher, make_completion_client, payloads
    ):
        other_source = await sync_to_async(CrawlSource.objects.create)(
            slug="other-calendar", name="Other Calendar", base_url="https://other.example/cal",
            lane="events",
        )
        client = make_completion_client([
            payloads.as_response(payloads.event()),
            payloads.as_response(payloads.event(
                title="Milonga de La Viruta",
                start_datetime="2026-11-20T23:30:00-03:00",
                source_url="https://other.example/viruta",
            )),
        ])
        runner = _runner(make_page_fetcher(), client)

        await runner.crawl_source(event_source)
        result = await runner.crawl_source(other_source)

        assert (result.found, result.created, result.skipped) == (1, 0, 1)
        assert result.status == "completed"
        assert await _count(Event) == 1

    async def test_persistence_failure_makes_source_partial(
        self, event_source, make_page_fetcher, make_completion_client, payloads
    ):
        client = make_completion_client([payloads.as_response(
            payloads.event(
                title="First", start_datetime="2026-11-20T22:00:00-03:00",
                source_url="https://tango.example.com/e/1",
            ),
            payloads.event(
                title="Second", start_datetime="2026-11-21T22:00:00-03:00",
                source_url="https://tango.example.com/e/2",
            ),
            payloads.event(
                title="Third", start_datetime="2026-11-22T22:00:00-03:00",
                source_url="https://tango.example.com/e/3",
            ),
        )])
        runner = _runner(make_page_fetcher(), client)
        reconciler = runner.reconcilers["events"]
        real_aupsert = reconciler.aupsert

        async def flaky(record, page_url="", source=None):
            if record.title == "Second":
                raise PersistenceError("Could not save event 'Second': constraint failed")
            return await real_aupsert(record, page_url, source)

        reconciler.aupsert = flaky

        result = await runner.crawl_source(event_source)

        assert result.status == "partial"
        assert result.created == 2
        assert len(result.errors) == 1
        assert await _count(Event) == 2

        [log] = await _run_logs()
        assert log.status == "partial"
        assert "Second" in log.error_log
        assert log.completed_at is not None

    async def test_low_confidence_never_written(
        self, event_source, make_page_fetcher, make_completion_client, payloads
    ):
        """Extracting the same low-confidence record twice performs zero writes."""
        low = payloads.as_response(payloads.event(confidence=0.3))
        runner = _runner(make_page_fetcher(), make_completion_client([low, low]))

        first = await runner.crawl_source(event_source)
        second = await runner.crawl_source(event_source)

        assert await _count(Event) == 0
        for result in (first, second):
            assert result.found == 1
            assert result.low_confidence == 1
            assert result.created + result.updated + result.skipped == 0
            assert result.status == "completed"

    async def test_recrawl_updates_instead_of_duplicating(
        self, event_source, make_page_fetcher, make_completion_client, payloads
    ):
        response = payloads.as_response(payloads.event())
        runner = _runner(make_page_fetcher(), make_completion_client([response, response]))

        await runner.crawl_source(event_source)
        second = await runner.crawl_source(event_source)

        assert (second.created, second.updated) == (0, 1)
        assert await _count(Event) == 1

    async def test_fetch_failure_fails_source(
        self, event_source, make_page_fetcher, make_completion_client
    ):
        fetcher = make_page_fetcher(errors={
            event_source.slug: FetchError("HTTP 503 Service Unavailable", url=event_source.base_url, status_code=503),
        })
        client = make_completion_client()
        runner = _runner(fetcher, client)

        result = await runner.crawl_source(event_source)

        assert result.status == "failed"
        assert client.calls == []
        [log] = await _run_logs()
        assert log.status == "failed"
        assert "503" in log.error_log
        source = await _refresh(event_source)
        assert source.last_crawled_at is None

    async def test_extraction_failure_on_one_page_continues(
        self, event_source, make_page_fetcher, make_completion_client, payloads
    ):
        fetcher = make_page_fetcher(pages={event_source.slug: ["page one", "page two"]})
        client = make_completion_client([
            CompletionError("Completion request timeout after 120s"),
            payloads.as_response(payloads.event()),
        ])
        runner = _runner(fetcher, client)

        result = await runner.crawl_source(event_source)

        assert result.status == "partial"
        assert result.pages == 2
        assert result.created == 1
        assert "timeout" in result.errors[0]

    async def test_garbage_output_is_not_an_error(
        self, event_source, make_page_fetcher, make_completion_client
    ):
        runner = _runner(make_page_fetcher(), make_completion_client(["I could not find any events."]))

        result = await runner.crawl_source(event_source)

        assert result.status == "completed"
        assert result.found == 0


class TestRunLane:
    """Tests for CrawlRunner.run_lane()."""

    async def test_failing_source_does_not_stop_lane(
        self, event_source, make_page_fetcher, make_completion_client, payloads
    ):
        healthy = await sync_to_async(CrawlSource.objects.create)(
            slug="healthy-calendar", name="Healthy Calendar", base_url="https://healthy.example/",
            lane="events", last_crawled_at=timezone.now() - timedelta(days=3),
        )
        fetcher = make_page_fetcher(errors={event_source.slug: FetchError("connection reset")})
        runner = _runner(fetcher, make_completion_client([payloads.as_response(payloads.event())]))

        summary = await runner.run_lane("events")

        # Never-crawled sources go first
        assert fetcher.requested == [event_source.slug, healthy.slug]
        assert (summary.succeeded, summary.failed) == (1, 1)
        assert summary.totals["created"] == 1
        assert [log.status for log in await _run_logs()] == ["failed", "completed"]

    async def test_middle_source_failure_still_crawls_the_rest(
        self, event_source, make_page_fetcher, make_completion_client, payloads
    ):
        broken = await sync_to_async(CrawlSource.objects.create)(
            slug="broken-calendar", name="Broken Calendar", base_url="https://broken.example/",
            lane="events", last_crawled_at=timezone.now() - timedelta(days=3),
        )
        last = await sync_to_async(CrawlSource.objects.create)(
            slug="last-calendar", name="Last Calendar", base_url="https://last.example/",
            lane="events", last_crawled_at=timezone.now() - timedelta(days=1),
        )
        fetcher = make_page_fetcher(errors={broken.slug: FetchError("HTTP 503")})
        client = make_completion_client([
            payloads.as_response(payloads.event()),
            payloads.as_response(payloads.event(
                title="Practica Seoul",
                event_type="practica",
                venue_name="Tango Ocho",
                city="Seoul",
                country_code="KR",
                latitude=37.5665,
                longitude=126.978,
                start_datetime="2026-11-25T20:00:00+09:00",
                source_url="https://last.example/practica",
            )),
        ])

        summary = await _runner(fetcher, client).run_lane("events")

        assert fetcher.requested == [event_source.slug, broken.slug, last.slug]
        assert (summary.succeeded, summary.failed) == (2, 1)
        assert summary.totals["created"] == 2
        assert [log.status for log in await _run_logs()] == ["completed", "failed", "completed"]
        assert await _count(Event) == 2

    async def test_inactive_sources_are_ignored(
        self, event_source, make_page_fetcher, make_completion_client
    ):
        event_source.is_active = False
        await sync_to_async(event_source.save)()
        fetcher = make_page_fetcher()

        summary = await _runner(fetcher, make_completion_client()).run_lane("events")

        assert summary.results == []
        assert fetcher.requested == []

    async def test_due_only_skips_recent_sources(
        self, event_source, make_page_fetcher, make_completion_client
    ):
        event_source.last_crawled_at = timezone.now() - timedelta(hours=1)
        await sync_to_async(event_source.save)()
        fetcher = make_page_fetcher()

        summary = await _runner(fetcher, make_completion_client()).run_lane("events", due_only=True)

        assert summary.results == []

    async def test_shutdown_stops_before_next_source(
        self, event_source, make_page_fetcher, make_completion_client
    ):
        await sync_to_async(CrawlSource.objects.create)(
            slug="second-calendar", name="Second Calendar", base_url="https://second.example/",
            lane="events", last_crawled_at=timezone.now() - timedelta(days=1),
        )
        fetcher = make_page_fetcher()
        runner = _runner(fetcher, make_completion_client())
        original = fetcher.fetch_pages

        async def fetch_then_shutdown(source):
            runner.request_shutdown()
            return await original(source)

        fetcher.fetch_pages = fetch_then_shutdown

        summary = await runner.run_lane("events")

        assert len(summary.results) == 1
        assert summary.interrupted is True
        [log] = await _run_logs()
        assert log.status == "completed"

    async def test_products_lane_persists_affiliate_links_and_expires_deals(
        self, product_source, make_page_fetcher, make_completion_client, payloads
    ):
        await sync_to_async(ProductDeal.objects.create)(
            title="Old Deal", product_category="shoes", original_price=100, deal_price=50,
            affiliate_provider="amazon", source_url="https://amazon.com/dp/B0OLD",
            affiliate_url="https://amazon.com/dp/B0OLD?tag=tango-community-20",
            expires_at=timezone.now() - timedelta(days=1),
        )
        runner = _runner(
            make_page_fetcher(),
            make_completion_client([payloads.as_response(payloads.product())]),
        )

        summary = await runner.run_lane("products")

        assert summary.totals["created"] == 1
        assert summary.deactivated_deals == 1
        assert summary.active_deals == 1

        deal = await sync_to_async(ProductDeal.objects.get)(is_active=True)
        assert deal.source_url == "https://amazon.com/dp/B0TANGO01"
        assert "tag=tango-community-20" in deal.affiliate_url
        assert "ref=" not in deal.affiliate_url
        assert deal.affiliate_id == "tango-community-20"

    async def test_unknown_lane_rejected(self, make_page_fetcher, make_completion_client):
        with pytest.raises(ValueError):
            await _runner(make_page_fetcher(), make_completion_client()).run_lane("hotels")
