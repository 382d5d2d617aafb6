"""
Page fetcher.

Picks the retrieval strategy configured on a source, walks its pagination
with a polite delay between requests and returns cleaned text per page.
Fetch errors propagate to the caller, which fails the source crawl.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from django.conf import settings

from tango_crawler.fetchers.cleaning import clean_html
from tango_crawler.fetchers.dynamic_fetcher import DynamicFetcher
from tango_crawler.fetchers.static_fetcher import StaticFetcher
from tango_crawler.models import FetchStrategy, PaginationType

logger = logging.getLogger(__name__)


@dataclass
class FetchedPage:
    """Cleaned text of one page of a source."""

    url: str
    page_number: int
    text: str


def build_page_url(base_url: str, page_number: int, pagination_type: str = "", param: str = "") -> str:
    """
    URL of ``page_number`` (1-based) for a paginated source.

    Page 1 is always the base URL. Only ``url_param`` pagination changes the
    URL; other pagination styles fetch the base URL.
    """
    if page_number <= 1 or pagination_type != PaginationType.URL_PARAM or not param:
        return base_url

    parsed = urlparse(base_url)
    pairs = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != param]
    pairs.append((param, str(page_number)))
    return urlunparse(parsed._replace(query=urlencode(pairs)))


class PageFetcher:
    """
    Strategy dispatch plus pagination.

    Features:
    - Static (httpx) or dynamic (headless browser) retrieval per source
    - Pages 1..max_pages with a delay between requests
    - One cleaning pipeline for both strategies
    """

    def __init__(
        self,
        static_fetcher: Optional[StaticFetcher] = None,
        dynamic_fetcher: Optional[DynamicFetcher] = None,
        request_delay: Optional[float] = None,
        max_chars: Optional[int] = None,
    ):
        self.static_fetcher = static_fetcher or StaticFetcher()
        self.dynamic_fetcher = dynamic_fetcher
        self.request_delay = (
            request_delay if request_delay is not None
            else getattr(settings, "CRAWLER_REQUEST_DELAY", 2.0)
        )
        self.max_chars = max_chars

    async def close(self):
        """Close the static HTTP pool. The browser is closed by its owner."""
        await self.static_fetcher.close()

    async def fetch_html(self, url: str, source) -> str:
        if source.fetch_strategy == FetchStrategy.DYNAMIC:
            if self.dynamic_fetcher is None:
                raise RuntimeError(f"No browser configured for dynamic source {source.slug}")
            return await self.dynamic_fetcher.fetch_html(
                url,
                wait_for_selector=source.wait_for_selector or None,
            )
        return await self.static_fetcher.fetch_html(url)

    async def fetch(self, url: str, source) -> str:
        """
        Fetch one URL for ``source`` and return its cleaned text.

        Raises:
            FetchError: On network failure, timeout or non-success status
        """
        html = await self.fetch_html(url, source)
        return clean_html(html, max_chars=self.max_chars)

    async def fetch_pages(self, source) -> List[FetchedPage]:
        """
        Fetch every configured page of ``source``.

        Returns:
            One FetchedPage per page, in order
        """
        max_pages = max(1, source.max_pages or 1)
        pages = []

        for page_number in range(1, max_pages + 1):
            url = build_page_url(
                source.base_url,
                page_number,
                source.pagination_type,
                source.pagination_param,
            )
            if page_number > 1 and url == source.base_url:
                # Pagination style that does not change the URL
                break
            if page_number > 1 and self.request_delay:
                await asyncio.sleep(self.request_delay)

            logger.info(f"Fetching page {page_number}/{max_pages} of {source.slug}: {url}")
            text = await self.fetch(url, source)
            pages.append(FetchedPage(url=url, page_number=page_number, text=text))

        return pages
