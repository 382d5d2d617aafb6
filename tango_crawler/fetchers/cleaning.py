"""
HTML cleaning for AI extraction.

Strips boilerplate (scripts, navigation, cookie banners, ads) and returns
whitespace-collapsed visible text, truncated to a character ceiling.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup
from django.conf import settings

# Elements that never carry listing content
REMOVE_SELECTORS = [
    "script", "style", "noscript", "iframe", "svg", "link", "meta",
    "nav", "footer", "header",
    ".cookie-banner", ".ad", ".advertisement", ".sidebar",
    '[class*="cookie"]', '[class*="popup"]', '[class*="modal"]', '[id*="cookie"]',
]

# First match wins; falls back to the whole body
MAIN_SELECTORS = [
    "main",
    "article",
    '[role="main"]',
    ".content",
    "#content",
    ".main-content",
]


def clean_html(html: str, max_chars: Optional[int] = None, prefer_main: bool = True) -> str:
    """
    Reduce an HTML document to the text worth sending to the model.

    Args:
        html: Raw HTML
        max_chars: Character ceiling (defaults to settings.CRAWLER_MAX_CONTENT_CHARS)
        prefer_main: Use the first main-content region when one exists

    Returns:
        Cleaned text, at most ``max_chars`` characters
    """
    if max_chars is None:
        max_chars = getattr(settings, "CRAWLER_MAX_CONTENT_CHARS", 100_000)
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for element in soup.select(", ".join(REMOVE_SELECTORS)):
        # Descendants of an already removed element are gone too
        if element.decomposed:
            continue
        element.decompose()

    text = ""
    if prefer_main:
        for selector in MAIN_SELECTORS:
            region = soup.select_one(selector)
            if region is not None:
                text = _visible_text(region)
                break
    # An empty main region (JS shell) falls back to the whole body
    if not text:
        text = _visible_text(soup.body or soup)
    return text[:max_chars]


def _visible_text(element) -> str:
    return re.sub(r"\s+", " ", element.get_text(" ")).strip()
