"""
Static page fetcher - httpx GET.

The fast, cheap retrieval strategy for server-rendered pages. Identifies
itself with the crawler's declared bot user agent.
"""

import logging
from typing import Dict, Optional

import httpx
from django.conf import settings

from tango_crawler.exceptions import FetchError

logger = logging.getLogger(__name__)


class StaticFetcher:
    """
    Fetcher using async httpx.

    Features:
    - Async HTTP client with connection pooling, created on first use
    - Declared bot User-Agent and multilingual Accept-Language
    - Non-2xx responses and transport errors raised as FetchError
    """

    DEFAULT_HEADERS = {
        "Accept": "text/html,application/xhtml+xml",
        "Accept-Language": "en-US,en;q=0.9,es;q=0.8,ko;q=0.7",
    }

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the static fetcher.

        Args:
            timeout: Request timeout in seconds (default from settings)
            user_agent: Custom User-Agent string
            http_client: Pre-built httpx client, mainly for tests
        """
        self.timeout = timeout or getattr(settings, "CRAWLER_REQUEST_TIMEOUT", 30)
        self.user_agent = user_agent or getattr(
            settings, "CRAWLER_USER_AGENT", "TangoCommunityBot/1.0"
        )
        self._http_client = http_client

    async def __aenter__(self):
        await self._init_http_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _init_http_client(self):
        if self._http_client is None:
            headers: Dict[str, str] = {
                **self.DEFAULT_HEADERS,
                "User-Agent": self.user_agent,
            }
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                follow_redirects=True,
            )

    async def close(self):
        """Close HTTP client connection."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_html(self, url: str) -> str:
        """
        Fetch a page's raw HTML.

        Args:
            url: URL to fetch

        Returns:
            Response body text

        Raises:
            FetchError: On timeout, transport failure or non-2xx status
        """
        await self._init_http_client()

        try:
            response = await self._http_client.get(url)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching {url}: {e}")
            raise FetchError(f"Timeout fetching {url}", url=url) from e
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching {url}: {e}")
            raise FetchError(f"Error fetching {url}: {e}", url=url) from e

        if not response.is_success:
            logger.warning(f"HTTP {response.status_code} for {url}")
            raise FetchError(
                f"HTTP {response.status_code} {response.reason_phrase} for {url}",
                url=url,
                status_code=response.status_code,
            )

        return response.text
