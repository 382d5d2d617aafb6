"""
Dynamic page fetcher - Playwright headless browser.

Used for JavaScript-rendered listings (shopping search results, hotel
search pages). Optional waits and cookie-consent dismissal are best-effort
steps whose outcomes are returned as values; only navigation failures abort
the fetch.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from django.conf import settings
from playwright.async_api import Error as PlaywrightError

from tango_crawler.exceptions import FetchError
from tango_crawler.fetchers.browser import BrowserHandle

logger = logging.getLogger(__name__)

COOKIE_CONSENT_SELECTORS = [
    "#onetrust-accept-btn-handler",
    'button[id*="accept"]',
    'button[class*="accept"]',
    '[data-testid="accept-cookie"]',
]

WAIT_FOR_SELECTOR_TIMEOUT_MS = 10_000
DISMISS_TIMEOUT_MS = 3_000


@dataclass
class WaitResult:
    """Outcome of waiting for a selector."""

    selector: str
    found: bool
    error: Optional[str] = None


@dataclass
class DismissAttempt:
    """Outcome of one cookie-consent click attempt."""

    selector: str
    clicked: bool
    error: Optional[str] = None


class DynamicFetcher:
    """
    Fetcher using the shared headless browser.

    Features:
    - Reuses one BrowserHandle across fetches; one page per fetch
    - Optional wait for a results selector (non-fatal on timeout)
    - Ordered cookie-consent dismissal attempts, each independently fallible
    """

    def __init__(
        self,
        browser: BrowserHandle,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        wait_until: str = "networkidle",
        settle_delay: float = 0.0,
        dismiss_selectors: Optional[Sequence[str]] = None,
    ):
        """
        Initialize the dynamic fetcher.

        Args:
            browser: Shared browser handle
            timeout: Navigation timeout in seconds (default from settings)
            user_agent: Custom User-Agent string
            wait_until: Playwright load state to wait for on navigation
            settle_delay: Seconds to wait after load for late content
            dismiss_selectors: Cookie-consent selectors tried in order
        """
        self.browser = browser
        self.timeout = timeout or getattr(settings, "CRAWLER_REQUEST_TIMEOUT", 30)
        self.user_agent = user_agent or getattr(
            settings, "CRAWLER_USER_AGENT", "TangoCommunityBot/1.0"
        )
        self.wait_until = wait_until
        self.settle_delay = settle_delay
        self.dismiss_selectors = list(
            dismiss_selectors if dismiss_selectors is not None else COOKIE_CONSENT_SELECTORS
        )

    async def wait_for_selector(self, page, selector: str) -> WaitResult:
        """Wait for ``selector``; a timeout is logged, not raised."""
        try:
            await page.wait_for_selector(selector, timeout=WAIT_FOR_SELECTOR_TIMEOUT_MS)
            return WaitResult(selector=selector, found=True)
        except PlaywrightError as e:
            logger.warning(f"Selector {selector} not found within timeout: {e}")
            return WaitResult(selector=selector, found=False, error=str(e))

    async def dismiss_cookie_banners(self, page) -> List[DismissAttempt]:
        """
        Try each consent selector in order.

        Every attempt is independent; a missing or unclickable element is
        recorded and the next selector is tried.
        """
        attempts = []
        for selector in self.dismiss_selectors:
            try:
                await page.click(selector, timeout=DISMISS_TIMEOUT_MS)
                attempts.append(DismissAttempt(selector=selector, clicked=True))
                logger.debug(f"Dismissed cookie banner with selector: {selector}")
            except PlaywrightError as e:
                attempts.append(DismissAttempt(selector=selector, clicked=False, error=str(e)))
                logger.debug(f"Selector {selector} not found or not clickable: {e}")
        return attempts

    async def fetch_html(
        self,
        url: str,
        wait_for_selector: Optional[str] = None,
        dismiss_cookies: bool = False,
    ) -> str:
        """
        Render a page and return its HTML.

        Args:
            url: URL to fetch
            wait_for_selector: Selector that marks the results as loaded
            dismiss_cookies: Attempt cookie-consent dismissal

        Returns:
            Rendered HTML

        Raises:
            FetchError: If the page cannot be opened, or navigation fails or times out
        """
        try:
            async with self.browser.page(user_agent=self.user_agent) as page:
                return await self._render(page, url, wait_for_selector, dismiss_cookies)
        except PlaywrightError as e:
            # Page could not be opened or closed (browser crashed or was closed)
            logger.warning(f"Browser page failed for {url}: {e}")
            raise FetchError(f"Browser page failed for {url}: {e}", url=url) from e

    async def _render(self, page, url: str, wait_for_selector: Optional[str], dismiss_cookies: bool) -> str:
        try:
            await page.goto(
                url,
                wait_until=self.wait_until,
                timeout=self.timeout * 1000,
            )
        except PlaywrightError as e:
            logger.warning(f"Navigation failed for {url}: {e}")
            raise FetchError(f"Navigation failed for {url}: {e}", url=url) from e

        if wait_for_selector:
            await self.wait_for_selector(page, wait_for_selector)

        if dismiss_cookies:
            await self.dismiss_cookie_banners(page)

        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)

        try:
            return await page.content()
        except PlaywrightError as e:
            raise FetchError(f"Could not read page content for {url}: {e}", url=url) from e
