"""
Tests for PageFetcher: strategy dispatch and pagination.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from tango_crawler.exceptions import FetchError
from tango_crawler.fetchers.page_fetcher import PageFetcher, build_page_url


def _source(**overrides):
    values = {
        "slug": "test-source",
        "base_url": "https://shop.example/s?k=tango",
        "fetch_strategy": "static",
        "pagination_type": "",
        "pagination_param": "",
        "max_pages": 1,
        "wait_for_selector": "",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _fetcher(html="<main>page</main>", **kwargs):
    static = AsyncMock()
    static.fetch_html.return_value = html
    dynamic = AsyncMock()
    dynamic.fetch_html.return_value = html
    return PageFetcher(static_fetcher=static, dynamic_fetcher=dynamic, **kwargs), static, dynamic


class TestBuildPageUrl:
    def test_first_page_is_base_url(self):
        assert build_page_url("https://shop.example/s?k=tango", 1, "url_param", "page") == (
            "https://shop.example/s?k=tango"
        )

    def test_later_pages_set_param(self):
        assert build_page_url("https://shop.example/s?k=tango", 3, "url_param", "page") == (
            "https://shop.example/s?k=tango&page=3"
        )

    def test_existing_param_replaced(self):
        assert build_page_url("https://shop.example/s?page=1&k=x", 2, "url_param", "page") == (
            "https://shop.example/s?k=x&page=2"
        )

    def test_other_pagination_styles_keep_base_url(self):
        assert build_page_url("https://shop.example/s", 2, "infinite_scroll", "page") == (
            "https://shop.example/s"
        )


class TestPageFetcher:
    """Tests for PageFetcher.fetch() and fetch_pages()."""

    @pytest.mark.asyncio
    async def test_static_strategy_uses_static_fetcher(self):
        fetcher, static, dynamic = _fetcher()

        text = await fetcher.fetch("https://tango.example/", _source())

        assert text == "page"
        static.fetch_html.assert_awaited_once_with("https://tango.example/")
        dynamic.fetch_html.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dynamic_strategy_passes_wait_selector(self):
        fetcher, static, dynamic = _fetcher()
        source = _source(fetch_strategy="dynamic", wait_for_selector=".s-result")

        await fetcher.fetch("https://shop.example/", source)

        dynamic.fetch_html.assert_awaited_once_with("https://shop.example/", wait_for_selector=".s-result")
        static.fetch_html.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dynamic_without_browser_raises(self):
        fetcher = PageFetcher(static_fetcher=AsyncMock())
        with pytest.raises(RuntimeError):
            await fetcher.fetch("https://shop.example/", _source(fetch_strategy="dynamic"))

    @pytest.mark.asyncio
    async def test_paginates_with_delay_between_pages(self):
        fetcher, static, _ = _fetcher(request_delay=1.5)
        source = _source(pagination_type="url_param", pagination_param="page", max_pages=3)

        with patch("tango_crawler.fetchers.page_fetcher.asyncio.sleep", new=AsyncMock()) as sleep:
            pages = await fetcher.fetch_pages(source)

        assert [p.page_number for p in pages] == [1, 2, 3]
        assert [p.url for p in pages] == [
            "https://shop.example/s?k=tango",
            "https://shop.example/s?k=tango&page=2",
            "https://shop.example/s?k=tango&page=3",
        ]
        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.5)

    @pytest.mark.asyncio
    async def test_non_url_pagination_fetches_single_page(self):
        fetcher, static, _ = _fetcher()
        source = _source(pagination_type="infinite_scroll", max_pages=5)

        pages = await fetcher.fetch_pages(source)

        assert len(pages) == 1
        assert static.fetch_html.await_count == 1

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self):
        fetcher, static, _ = _fetcher()
        static.fetch_html.side_effect = FetchError("HTTP 503", url="https://shop.example/", status_code=503)

        with pytest.raises(FetchError):
            await fetcher.fetch_pages(_source())

    @pytest.mark.asyncio
    async def test_close_only_closes_static_pool(self):
        fetcher, static, dynamic = _fetcher()
        await fetcher.close()
        static.close.assert_awaited_once()
        dynamic.close.assert_not_awaited()
