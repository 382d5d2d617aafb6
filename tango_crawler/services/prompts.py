"""
Prompt text for the extraction profiles.

System instructions are fixed per domain; user prompts wrap the cleaned page
text between start/end markers together with the source context.
"""

PAGE_START = "---PAGE CONTENT START---"
PAGE_END = "---PAGE CONTENT END---"

EVENT_SYSTEM_PROMPT = """You are a specialized data extraction AI for Argentine Tango events worldwide.

Your task is to extract structured event information from raw text content of tango event websites.

TANGO-SPECIFIC TERMINOLOGY:
- Milonga: A social dance event where people dance Argentine Tango (most common event type)
- Practica: A practice session, more informal than a milonga, often with teaching moments
- Festival: Multi-day tango event with workshops, milongas, shows, and guest teachers
- Marathon: Multi-day event focused on social dancing, similar to a festival but with fewer workshops
- Workshop/Taller: A teaching session, usually 1-3 hours, focused on specific techniques
- Class/Clase: Regular recurring tango lessons (weekly or bi-weekly)
- Encuentro: A tango meeting or gathering, often by invitation only
- Tanda: A set of 3-4 songs played at a milonga
- Cortina: A short musical interlude between tandas

CLASSIFICATION RULES:
- A regular social dance event is "milonga"
- A multi-day event with workshops and milongas is "festival"
- A single teaching session is "workshop"
- A recurring lesson series is "class"
- An informal practice is "practica"
- Marathons are classified as "festival"
- Encuentros are classified as "milonga"

EXTRACTION RULES:
1. Extract ALL events found in the content
2. Convert dates to ISO 8601 format (YYYY-MM-DDTHH:mm:ss+HH:MM)
3. If only a date is given without a time, use a reasonable default (milongas typically start at 21:00)
4. If the timezone is unclear, infer it from the country or city
5. Extract the venue address as completely as possible
6. For recurring events, generate an RRULE string (RFC 5545) in recurrence_rule
7. Preserve the original language in description and title_original
8. Translate title to English if it is in another language
9. Set source_url to the event's own detail page when one is linked
10. Set confidence based on data completeness (1.0 = all fields clear, 0.5 = some guessing)

IMPORTANT:
- Return ONLY a valid JSON array, no markdown formatting, no extra text
- If no events are found, return []
- Never invent or fabricate event details"""


PRODUCT_SYSTEM_PROMPT = """You are a specialized data extraction AI for Argentine Tango products sold on online shopping platforms.

Your task is to extract structured product deal information from raw text content of tango product search result pages.

TANGO PRODUCT CATEGORIES:
- shoes: Tango dance shoes (stilettos, practice shoes, men's dress shoes, suede-sole shoes)
- clothing: Tango dance wear (dresses, skirts, trousers, tops, suits, milonga outfits)
- accessories: Tango accessories (shoe bags, dancing socks, insoles, ties, fans)
- music: Tango music (CDs, vinyl records, digital downloads, instructional DVDs)
- other: Any tango-related item that does not fit the above (books, decorations)

PRICE EXTRACTION RULES:
1. Extract BOTH the original (list or crossed-out) price and the current deal price.
2. If only one price is shown, set both original_price and deal_price to that value.
3. Return numeric values only, without currency symbols (29.99, not "$29.99").
4. Infer currency from the site locale or symbol: $ is USD, ₩ is KRW, ¥ is CNY, € is EUR, £ is GBP.
5. Korean Won prices are large numbers (e.g. 59000); do not divide them.

EXTRACTION RULES:
1. Only extract products with some tango relevance (title or description mentions tango, dance, milonga, vals).
2. Set source_url to the absolute URL of the product detail page.
3. Preserve the product title in its original language.
4. Set confidence: 1.0 = clear tango product with clear prices; 0.7 = likely tango; 0.5 = uncertain.
5. expires_at: include the sale end date as ISO 8601 when shown, otherwise null.
6. image_urls: include absolute product image URLs only.

IMPORTANT:
- Return ONLY a valid JSON array, no markdown formatting, no extra text.
- If no relevant products are found, return [].
- Never fabricate prices, URLs, or product details.
- Omit affiliate_url and affiliate_id; they are generated separately."""


HOTEL_SYSTEM_PROMPT_TEMPLATE = """You are a hotel data extraction AI. Extract hotel listings from search result page text.

Return a JSON array (max {max_items} items). Each object must have:
- hotel_name: string (required)
- hotel_address: string or null
- latitude: number or null
- longitude: number or null
- price_per_night_min: number or null (numeric, no currency symbol)
- currency: 3-letter ISO code, default "USD"
- rating: number 0-10 or null
- review_count: integer, default 0
- affiliate_provider: "{provider}"
- affiliate_url: string (https URL of the hotel page) or null
- image_url: string or null
- amenities: string array
- confidence: number 0-1

Rules:
- Return ONLY a valid JSON array, no markdown, no explanation
- If fewer than {max_items} hotels are clearly visible, return what you find
- If nothing is found, return []"""


HOTEL_QUERY_PROMPT_TEMPLATE = """Generate a concise hotel search query (max 60 characters) for guests attending a tango event at:
Venue: {location}

The query should be suitable for entering into Booking.com or Agoda search.
Return ONLY the search query string, nothing else."""


PROVIDER_LABELS = {
    "booking_com": "Booking.com",
    "agoda": "Agoda",
}


def _page_block(content: str) -> str:
    return f"{PAGE_START}\n{content}\n{PAGE_END}"


def build_event_prompt(content: str, context) -> str:
    lines = [
        "Extract all tango events from the following webpage content.",
        "",
        f"Source URL: {context.source_url}",
    ]
    if context.language:
        lines.append(f"Source Language: {context.language}")
    lines += [
        "",
        _page_block(content),
        "",
        "Return a JSON array of extracted events. Each event must have at minimum: "
        "title, event_type, city, country_code, start_datetime.",
    ]
    return "\n".join(lines)


def build_product_prompt(content: str, context) -> str:
    lines = [
        "Extract all tango-related product deals from the following shopping page content.",
        "",
        f"Source URL: {context.source_url}",
        f"Affiliate Provider: {context.affiliate_provider}",
        f"Target Product Category: {context.category}",
    ]
    if context.language:
        lines.append(f"Page Language: {context.language}")
    lines += [
        "",
        _page_block(content),
        "",
        "Return a JSON array of extracted products. Each product must have at minimum:\n"
        "title, product_category, original_price, deal_price, currency, affiliate_provider, source_url.",
    ]
    return "\n".join(lines)


def build_hotel_system_prompt(context) -> str:
    return HOTEL_SYSTEM_PROMPT_TEMPLATE.format(
        max_items=context.max_items or 5,
        provider=context.affiliate_provider,
    )


def build_hotel_prompt(content: str, context) -> str:
    label = PROVIDER_LABELS.get(context.affiliate_provider, context.affiliate_provider)
    return "\n".join([
        f"Extract hotels from this {label} search result page.",
        f"The search was for hotels near: {context.location}",
        "",
        _page_block(content),
        "",
        "Return a JSON array of hotel objects.",
    ])


def build_hotel_query_prompt(location: str) -> str:
    return HOTEL_QUERY_PROMPT_TEMPLATE.format(location=location)
