"""
Shared headless browser handle.

One Chromium instance per process, launched on first use and shared by every
dynamic fetch. Pages are scoped to a single fetch. The handle is passed to
the fetchers that need it, and whoever created it closes it at shutdown.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from playwright.async_api import async_playwright

from tango_crawler.exceptions import ShutdownError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]


class BrowserHandle:
    """
    Lazily launched, reference-counted browser.

    ``acquire``/``release`` bracket each use; ``close`` is idempotent and
    refuses further launches once called.
    """

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright = None
        self._browser = None
        self._refs = 0
        self._closed = False
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def is_launched(self) -> bool:
        return self._browser is not None

    @property
    def in_use(self) -> int:
        return self._refs

    @property
    def closed(self) -> bool:
        return self._closed

    async def _launch(self):
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=LAUNCH_ARGS,
        )
        logger.info("Headless browser launched")

    async def acquire(self):
        """
        Get the shared browser, launching it on first use.

        Raises:
            ShutdownError: If the handle has already been closed
        """
        async with self._get_lock():
            if self._closed:
                raise ShutdownError("Browser handle is closed")
            if self._browser is None:
                await self._launch()
            self._refs += 1
            return self._browser

    async def release(self):
        async with self._get_lock():
            self._refs = max(0, self._refs - 1)

    @asynccontextmanager
    async def page(self, **page_options):
        """Open a page for one fetch and always close it afterwards."""
        browser = await self.acquire()
        try:
            page = await browser.new_page(**page_options)
            try:
                yield page
            finally:
                await page.close()
        finally:
            await self.release()

    async def close(self):
        """Close the browser and stop Playwright. Safe to call repeatedly."""
        async with self._get_lock():
            if self._closed:
                return
            self._closed = True

            if self._refs:
                logger.warning(f"Closing browser with {self._refs} page(s) still open")

            browser, self._browser = self._browser, None
            playwright, self._playwright = self._playwright, None

            if browser is not None:
                try:
                    await browser.close()
                except Exception as e:
                    logger.warning(f"Error closing browser: {e}")
            if playwright is not None:
                try:
                    await playwright.stop()
                except Exception as e:
                    logger.warning(f"Error stopping Playwright: {e}")

            logger.info("Headless browser closed")
