"""
Pytest configuration and fixtures for the tango crawler test suite.
"""

import json
from datetime import timedelta

import pytest


class FakeCompletionClient:
    """
    Stands in for CompletionClient.

    Responses are returned in order; an Exception instance in the list is
    raised instead of returned. Every call is recorded.
    """

    def __init__(self, responses=None, default="[]"):
        self.responses = list(responses or [])
        self.default = default
        self.calls = []
        self.closed = False

    async def complete(self, system, prompt, max_tokens=None):
        self.calls.append({"system": system, "prompt": prompt, "max_tokens": max_tokens})
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


class FakePageFetcher:
    """Returns canned pages per source slug, or raises the configured error."""

    def __init__(self, pages=None, errors=None):
        self.pages = pages or {}
        self.errors = errors or {}
        self.requested = []

    async def fetch_pages(self, source):
        from tango_crawler.fetchers import FetchedPage

        self.requested.append(source.slug)
        if source.slug in self.errors:
            raise self.errors[source.slug]
        texts = self.pages.get(source.slug, ["listing text"])
        return [
            FetchedPage(url=source.base_url, page_number=index + 1, text=text)
            for index, text in enumerate(texts)
        ]


@pytest.fixture
def fake_completion_client():
    return FakeCompletionClient()


@pytest.fixture
def make_completion_client():
    """Factory for a FakeCompletionClient with queued responses."""
    return FakeCompletionClient


@pytest.fixture
def make_page_fetcher():
    return FakePageFetcher


def event_payload(**overrides):
    """One event element as the model would return it."""
    payload = {
        "title": "Milonga La Viruta",
        "event_type": "milonga",
        "venue_name": "La Viruta",
        "address": "Armenia 1366",
        "city": "Buenos Aires",
        "country_code": "AR",
        "latitude": -34.5889,
        "longitude": -58.4306,
        "start_datetime": "2026-11-20T23:00:00-03:00",
        "source_url": "https://tango.example.com/events/la-viruta",
        "confidence": 0.9,
    }
    payload.update(overrides)
    return payload


def product_payload(**overrides):
    payload = {
        "title": "Comme il Faut Stiletto 9cm",
        "product_category": "shoes",
        "original_price": 249.0,
        "deal_price": 199.0,
        "currency": "USD",
        "affiliate_provider": "amazon",
        "source_url": "https://www.amazon.com/dp/B0TANGO01?ref=sr_1_1",
        "confidence": 0.85,
    }
    payload.update(overrides)
    return payload


def hotel_payload(**overrides):
    payload = {
        "hotel_name": "Palermo Soho Suites",
        "hotel_address": "Honduras 5000, Buenos Aires",
        "latitude": -34.5880,
        "longitude": -58.4300,
        "price_per_night_min": 85.0,
        "currency": "USD",
        "rating": 8.7,
        "review_count": 1200,
        "affiliate_provider": "booking_com",
        "affiliate_url": "https://www.booking.com/hotel/ar/palermo-soho-suites.html?label=gen173",
        "amenities": ["wifi", "breakfast"],
        "confidence": 0.8,
    }
    payload.update(overrides)
    return payload


def as_response(*items):
    return json.dumps(list(items))


@pytest.fixture
def payloads():
    """Builders for model-output elements: payloads.event(...), payloads.as_response(...)."""

    class Payloads:
        event = staticmethod(event_payload)
        product = staticmethod(product_payload)
        hotel = staticmethod(hotel_payload)
        as_response = staticmethod(as_response)

    return Payloads


@pytest.fixture
def event_source(db):
    """An active static event source."""
    from tango_crawler.models import CrawlSource

    return CrawlSource.objects.create(
        slug="tango-ba-calendar",
        name="Tango BA Calendar",
        base_url="https://tango.example.com/calendar",
        lane="events",
        crawl_frequency="daily",
        fetch_strategy="static",
        language="es",
    )


@pytest.fixture
def product_source(db):
    """An active dynamic product source."""
    from tango_crawler.models import CrawlSource

    return CrawlSource.objects.create(
        slug="amazon-us-tango-shoes",
        name="Amazon US - Tango Shoes",
        base_url="https://www.amazon.com/s?k=tango+dance+shoes",
        lane="products",
        crawl_frequency="daily",
        fetch_strategy="dynamic",
        affiliate_provider="amazon",
        product_category="shoes",
        pagination_type="url_param",
        pagination_param="page",
        max_pages=2,
    )


@pytest.fixture
def upcoming_event(db):
    """An upcoming event with coordinates and no hotels."""
    from django.utils import timezone

    from tango_crawler.models import Event

    return Event.objects.create(
        title="Buenos Aires Tango Festival",
        event_type="festival",
        venue_name="Usina del Arte",
        address="Agustin R. Caffarena 1",
        city="Buenos Aires",
        country_code="AR",
        latitude=-34.6286,
        longitude=-58.3563,
        start_datetime=timezone.now() + timedelta(days=30),
        source_url="https://tango.example.com/events/ba-festival",
        confidence=0.9,
    )
