"""
Affiliate URL builder.

Turns a canonical product or hotel URL into a partner-tracked URL. Every
builder is a pure function of (url, configured ids); a malformed input never
raises out of ``build_affiliate_url``, it is returned unchanged.

Usage:
    from tango_crawler.services.affiliate import build_affiliate_url

    link = build_affiliate_url("https://www.amazon.com/dp/B0TANGO", "amazon")
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from django.conf import settings

logger = logging.getLogger(__name__)

COUPANG_REDIRECT_BASE = "https://partners.coupang.com/products/redirect"
ALIEXPRESS_DEEP_LINK_BASE = "https://s.click.aliexpress.com/deep_link.htm"
BOOKING_SEARCH_BASE = "https://www.booking.com/search.html"
AGODA_SEARCH_BASE = "https://www.agoda.com/search"

# Query parameters that would override or leak a competing attribution
AMAZON_STRIP_PARAMS = {"ref", "ref_", "linkcode", "linkid", "tag", "ascsubtag", "creative", "camp"}
COUPANG_STRIP_PARAMS = {"itemid", "vendoritemid", "sourcetype", "searchid", "traceid", "rank", "isaddedcart"}
ALIEXPRESS_STRIP_PARAMS = {"spm", "sk", "terminal_id", "algo_pvid", "algo_exp_id", "pdp_npi", "utparam"}
BOOKING_STRIP_PARAMS = {"aid", "label", "sid"}
AGODA_STRIP_PARAMS = {"cid", "tag"}


class MalformedURLError(ValueError):
    """The URL has no http(s) scheme or no host."""


@dataclass
class AffiliateLink:
    """Result of an affiliate build attempt."""

    url: str
    ok: bool
    provider: str
    reason: Optional[str] = None


def _parse(url: str):
    if not url or not isinstance(url, str):
        raise MalformedURLError("URL is empty")
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise MalformedURLError(f"Not an absolute http(s) URL: {url!r}")
    # Accessing .port validates the netloc (raises ValueError on garbage)
    parsed.port
    return parsed


def _strip_params(parsed, strip: Iterable[str], set_params: Optional[Dict[str, str]] = None) -> str:
    blocked = {name.lower() for name in strip}
    pairs = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key.lower() not in blocked and not key.lower().startswith("aff_")
    ]
    for key, value in (set_params or {}).items():
        if value:
            pairs.append((key, value))
    return urlunparse(parsed._replace(query=urlencode(pairs), fragment=""))


def _wrap(base: str, params: Dict[str, str]) -> str:
    return f"{base}?{urlencode({k: v for k, v in params.items() if v})}"


def _amazon(url: str) -> str:
    parsed = _parse(url)
    return _strip_params(parsed, AMAZON_STRIP_PARAMS, {"tag": settings.AMAZON_ASSOCIATE_TAG})


def _coupang(url: str) -> str:
    target = _strip_params(_parse(url), COUPANG_STRIP_PARAMS)
    return _wrap(COUPANG_REDIRECT_BASE, {
        "url": target,
        "partnersApiId": settings.COUPANG_PARTNER_ID,
        "subId": settings.COUPANG_SUB_ID,
    })


def _aliexpress(url: str) -> str:
    target = _strip_params(_parse(url), ALIEXPRESS_STRIP_PARAMS)
    return _wrap(ALIEXPRESS_DEEP_LINK_BASE, {
        "dl_target_url": target,
        "aff_fcid": settings.ALIEXPRESS_TRACKING_ID,
        "aff_fsk": "tango",
    })


def _booking(url: str) -> str:
    parsed = _parse(url)
    return _strip_params(parsed, BOOKING_STRIP_PARAMS, {"aid": settings.BOOKING_COM_AID})


def _agoda(url: str) -> str:
    parsed = _parse(url)
    return _strip_params(parsed, AGODA_STRIP_PARAMS, {"cid": settings.AGODA_CID})


BUILDERS: Dict[str, Callable[[str], str]] = {
    "amazon": _amazon,
    "coupang": _coupang,
    "aliexpress": _aliexpress,
    "booking_com": _booking,
    "agoda": _agoda,
}


def try_build(url: str, provider: str) -> AffiliateLink:
    """
    Attempt to build an affiliate URL.

    Args:
        url: Canonical product or hotel URL
        provider: One of amazon, coupang, aliexpress, booking_com, agoda

    Returns:
        AffiliateLink; on failure ``ok`` is False, ``url`` is the input
        unchanged and ``reason`` says why
    """
    builder = BUILDERS.get(provider)
    if builder is None:
        return AffiliateLink(url=url, ok=False, provider=provider, reason=f"Unknown provider {provider!r}")

    try:
        return AffiliateLink(url=builder(url), ok=True, provider=provider)
    except ValueError as e:
        return AffiliateLink(url=url, ok=False, provider=provider, reason=str(e))


def build_affiliate_url(url: str, provider: str) -> str:
    """Affiliate-tracked URL, or ``url`` unchanged when it cannot be built."""
    link = try_build(url, provider)
    if not link.ok:
        logger.warning(f"Failed to build {provider} affiliate URL for {url!r}: {link.reason}")
    return link.url


def affiliate_id_for(provider: str) -> str:
    """Configured partner identifier stored alongside each affiliate URL."""
    if provider == "amazon":
        return settings.AMAZON_ASSOCIATE_TAG
    if provider == "coupang":
        return settings.COUPANG_PARTNER_ID or settings.COUPANG_SUB_ID
    if provider == "aliexpress":
        return settings.ALIEXPRESS_TRACKING_ID
    if provider == "booking_com":
        return settings.BOOKING_COM_AID
    if provider == "agoda":
        return settings.AGODA_CID
    return ""


def attach_affiliate(product, provider: Optional[str] = None):
    """Return ``product`` with its affiliate URL and id filled in."""
    provider = provider or product.affiliate_provider
    return product.with_affiliate(
        build_affiliate_url(product.source_url, provider),
        affiliate_id_for(provider),
    )


# Hotel search and deep links


def _stay_dates(check_in: date):
    return check_in.isoformat(), (check_in + timedelta(days=1)).isoformat()


def booking_search_url(query: str, check_in: date) -> str:
    """Booking.com search for one night, two adults, one room."""
    ci, co = _stay_dates(check_in)
    return _wrap(BOOKING_SEARCH_BASE, {
        "ss": query,
        "checkin": ci,
        "checkout": co,
        "group_adults": "2",
        "no_rooms": "1",
        "aid": settings.BOOKING_COM_AID,
    })


def agoda_search_url(query: str, check_in: date) -> str:
    """Agoda search for one night, two adults, one room."""
    ci, co = _stay_dates(check_in)
    return _wrap(AGODA_SEARCH_BASE, {
        "city": query,
        "checkIn": ci,
        "checkOut": co,
        "adults": "2",
        "rooms": "1",
        "cid": settings.AGODA_CID,
    })


def hotel_slug(hotel_name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", hotel_name.lower())
    return slug.strip("-")


def hotel_deep_link(hotel_name: str, provider: str) -> str:
    """Direct hotel page link for listings that came without a URL."""
    slug = hotel_slug(hotel_name)
    if provider == "agoda":
        return f"https://www.agoda.com/hotel/{slug}?cid={settings.AGODA_CID}"
    return f"https://www.booking.com/hotel/xx/{slug}.html?aid={settings.BOOKING_COM_AID}"
