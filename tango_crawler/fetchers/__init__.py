"""
Page retrieval for the tango crawler.

- StaticFetcher: httpx GET for server-rendered pages
- DynamicFetcher: Playwright rendering on a shared BrowserHandle
- PageFetcher: strategy dispatch, pagination and HTML cleaning
"""

from .browser import BrowserHandle
from .cleaning import clean_html
from .dynamic_fetcher import DynamicFetcher
from .page_fetcher import FetchedPage, PageFetcher, build_page_url
from .static_fetcher import StaticFetcher

__all__ = [
    "BrowserHandle",
    "clean_html",
    "DynamicFetcher",
    "FetchedPage",
    "PageFetcher",
    "build_page_url",
    "StaticFetcher",
]
