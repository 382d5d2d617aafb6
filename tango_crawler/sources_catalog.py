"""
Predefined product crawl sources for tango shopping sites.

All shopping search pages render results with JavaScript, so every entry
uses the dynamic strategy. Page counts are kept at two to stay clear of
rate limits and keep completion costs per run manageable. The wait selector
targets the first product card so rendering has finished before capture.

Loaded into the database by ``manage.py seed_sources``.
"""

AMAZON_SELECTORS = {
    "productList": '[data-component-type="s-search-result"]',
    "title": "h2 a span",
    "price": ".a-price-whole",
    "originalPrice": ".a-text-price .a-offscreen",
    "image": ".s-image",
    "link": "h2 a",
}

COUPANG_SELECTORS = {
    "productList": ".search-product",
    "title": ".name",
    "price": ".price-value",
    "originalPrice": ".base-price",
    "image": "img.thumbnail",
    "link": "a.search-product-wrap",
}

ALIEXPRESS_SELECTORS = {
    "productList": ".search-item-card-wrapper-gallery",
    "title": "h1.item-title, .item-title",
    "price": ".price-sale",
    "originalPrice": ".price-origin",
    "image": "img.product-img",
    "link": "a.search-card-item",
}


def _product_source(slug, name, base_url, provider, category, frequency, language, selectors):
    return {
        "slug": slug,
        "name": name,
        "base_url": base_url,
        "lane": "products",
        "affiliate_provider": provider,
        "product_category": category,
        "crawl_frequency": frequency,
        "is_active": True,
        "fetch_strategy": "dynamic",
        "language": language,
        "wait_for_selector": selectors["productList"],
        "selectors": selectors,
        "pagination_type": "url_param",
        "pagination_param": "page",
        "max_pages": 2,
    }


PRODUCT_SOURCES = [
    _product_source(
        "amazon-us-tango-shoes",
        "Amazon US - Tango Shoes",
        "https://www.amazon.com/s?k=tango+dance+shoes&rh=n%3A679255011",
        "amazon", "shoes", "daily", "en", AMAZON_SELECTORS,
    ),
    _product_source(
        "amazon-us-tango-clothing",
        "Amazon US - Tango Clothing",
        "https://www.amazon.com/s?k=tango+dance+dress+outfit",
        "amazon", "clothing", "daily", "en", AMAZON_SELECTORS,
    ),
    _product_source(
        "amazon-us-tango-accessories",
        "Amazon US - Tango Accessories",
        "https://www.amazon.com/s?k=tango+dance+accessories",
        "amazon", "accessories", "weekly", "en", AMAZON_SELECTORS,
    ),
    _product_source(
        "amazon-us-tango-music",
        "Amazon US - Tango Music",
        "https://www.amazon.com/s?k=tango+music+cd&rh=n%3A5174",
        "amazon", "music", "weekly", "en", AMAZON_SELECTORS,
    ),
    _product_source(
        "coupang-kr-tango-shoes",
        "Coupang KR - 탱고 신발",
        "https://www.coupang.com/np/search?q=%ED%83%B1%EA%B3%A0+%EC%8B%A0%EB%B0%9C&channel=user",
        "coupang", "shoes", "daily", "ko", COUPANG_SELECTORS,
    ),
    _product_source(
        "coupang-kr-tango-clothing",
        "Coupang KR - 탱고 의류",
        "https://www.coupang.com/np/search?q=%ED%83%B1%EA%B3%A0+%EC%9D%98%EB%A5%98&channel=user",
        "coupang", "clothing", "daily", "ko", COUPANG_SELECTORS,
    ),
    _product_source(
        "aliexpress-tango-shoes",
        "AliExpress - Tango Dance Shoes",
        "https://www.aliexpress.com/w/wholesale-tango-dance-shoes.html",
        "aliexpress", "shoes", "daily", "en", ALIEXPRESS_SELECTORS,
    ),
    _product_source(
        "aliexpress-tango-outfit",
        "AliExpress - Tango Outfit",
        "https://www.aliexpress.com/w/wholesale-tango-outfit.html",
        "aliexpress", "clothing", "weekly", "en", ALIEXPRESS_SELECTORS,
    ),
    _product_source(
        "aliexpress-tango-accessories",
        "AliExpress - Tango Accessories",
        "https://www.aliexpress.com/w/wholesale-tango-dance-accessories.html",
        "aliexpress", "accessories", "weekly", "en", ALIEXPRESS_SELECTORS,
    ),
]
