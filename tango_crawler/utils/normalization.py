"""
Title and URL normalization for deduplication.

Normalization Rules (titles):
- Lowercase transformation
- Strip accents (milongá -> milonga)
- Replace punctuation with spaces
- Collapse whitespace

Canonical URLs:
- Lowercase host, strip leading "www."
- Drop fragment and tracking parameters
- Sort the remaining query parameters
- Strip trailing slash from the path
"""

import logging
import re
import unicodedata
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from django.utils.text import slugify
from rapidfuzz import fuzz

logger = logging.getLogger(__name__)

TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "fbclid",      # Facebook click ID
    "gclid",       # Google click ID
    "msclkid",     # Microsoft click ID
    "mc_cid",      # Mailchimp campaign ID
    "mc_eid",      # Mailchimp email ID
    "_ga",
    "ref",
}


def normalize_title(title: Optional[str]) -> str:
    """
    Normalize an event or product title for fuzzy matching.

    Example:
        >>> normalize_title("  Milonga  ¡La Viruta! ")
        'milonga la viruta'
    """
    if not title:
        return ""

    result = unicodedata.normalize("NFKD", title)
    result = "".join(ch for ch in result if not unicodedata.combining(ch))
    result = result.lower()
    result = re.sub(r"[^\w\s]", " ", result)
    result = re.sub(r"\s+", " ", result)
    return result.strip()


def title_similarity(left: Optional[str], right: Optional[str]) -> float:
    """
    Similarity of two titles in [0, 1].

    Takes the best of a plain ratio and a token-sorted ratio so that word
    order differences ("Milonga Friday" vs "Friday Milonga") do not hide a
    duplicate.
    """
    a = normalize_title(left)
    b = normalize_title(right)
    if not a or not b:
        return 0.0

    score = max(fuzz.ratio(a, b), fuzz.token_sort_ratio(a, b))
    return score / 100.0


def canonicalize_url(url: Optional[str]) -> str:
    """
    Canonicalize a URL so the same page always maps to the same key.

    Args:
        url: URL to canonicalize

    Returns:
        Canonical URL, or the stripped input when it cannot be parsed
    """
    if not url:
        return ""

    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError as e:
        logger.warning(f"Error canonicalizing URL '{url}': {e}")
        return url

    if not parsed.scheme or not parsed.netloc:
        return url

    netloc = parsed.netloc.lower()
    if netloc.startswith("www."):
        netloc = netloc[4:]

    path = parsed.path or "/"
    if len(path) > 1:
        path = path.rstrip("/")

    params = parse_qs(parsed.query, keep_blank_values=True)
    query_pairs = []
    for key in sorted(params):
        if key.lower() in TRACKING_PARAMS or key.lower().startswith("utm_"):
            continue
        for value in params[key]:
            query_pairs.append((key, value))

    return urlunparse((
        parsed.scheme.lower(),
        netloc,
        path,
        "",
        urlencode(query_pairs),
        "",
    ))


def event_identity_key(record, page_url: str) -> str:
    """
    Stable identity key for an extracted event.

    Events that carry their own detail URL are keyed on it. Events listed on a
    shared page without a URL are keyed on the page URL plus a fragment built
    from title and start date, so several events on one page stay distinct.
    """
    if record.source_url:
        return canonicalize_url(record.source_url)

    fragment = slugify(f"{normalize_title(record.title)} {record.start_datetime:%Y-%m-%d}")
    return f"{canonicalize_url(page_url)}#{fragment}"
