"""
Extraction engine.

Converts cleaned page text into typed records through one completion call per
page. Malformed model output is never an error: unparsable responses yield an
empty list and invalid elements are dropped one by one. Only a failure to
reach the completion service propagates (as CompletionError).

Usage:
    engine = ExtractionEngine(EVENT_PROFILE, client)
    records = await engine.extract(text, ExtractionContext(source_url=url))
    kept, rejected = apply_confidence_gate(records)
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Type

from django.conf import settings
from rest_framework import serializers

from tango_crawler.records import (
    ExtractedEvent,
    ExtractedHotel,
    ExtractedProduct,
    ExtractedRecord,
)
from tango_crawler.serializers import (
    ExtractedEventSerializer,
    ExtractedHotelSerializer,
    ExtractedProductSerializer,
)
from tango_crawler.services import prompts
from tango_crawler.services.affiliate import attach_affiliate

logger = logging.getLogger(__name__)

JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class ExtractionContext:
    """Per-page context handed to the prompt builders."""

    source_url: str
    language: str = ""
    category: str = ""
    affiliate_provider: str = ""
    location: str = ""
    max_items: Optional[int] = None


@dataclass(frozen=True)
class DomainProfile:
    """Everything domain-specific about one extraction target."""

    name: str
    build_system_prompt: Callable[[ExtractionContext], str]
    build_prompt: Callable[[str, ExtractionContext], str]
    serializer_class: Type[serializers.Serializer]
    record_class: Type
    finalize: Optional[Callable[[Any, ExtractionContext], Any]] = None


def _attach_product_affiliate(record: ExtractedProduct, context: ExtractionContext) -> ExtractedProduct:
    return attach_affiliate(record, context.affiliate_provider or record.affiliate_provider)


EVENT_PROFILE = DomainProfile(
    name="events",
    build_system_prompt=lambda context: prompts.EVENT_SYSTEM_PROMPT,
    build_prompt=prompts.build_event_prompt,
    serializer_class=ExtractedEventSerializer,
    record_class=ExtractedEvent,
)

PRODUCT_PROFILE = DomainProfile(
    name="products",
    build_system_prompt=lambda context: prompts.PRODUCT_SYSTEM_PROMPT,
    build_prompt=prompts.build_product_prompt,
    serializer_class=ExtractedProductSerializer,
    record_class=ExtractedProduct,
    finalize=_attach_product_affiliate,
)

HOTEL_PROFILE = DomainProfile(
    name="hotels",
    build_system_prompt=prompts.build_hotel_system_prompt,
    build_prompt=prompts.build_hotel_prompt,
    serializer_class=ExtractedHotelSerializer,
    record_class=ExtractedHotel,
)

PROFILES = {
    profile.name: profile
    for profile in (EVENT_PROFILE, PRODUCT_PROFILE, HOTEL_PROFILE)
}


class ExtractionEngine:
    """
    AI-assisted extraction for one domain profile.

    The engine holds no per-page state; one instance can serve a whole run.
    """

    def __init__(self, profile: DomainProfile, client, max_tokens: Optional[int] = None):
        """
        Args:
            profile: Domain profile (events, products or hotels)
            client: Object with ``async complete(system, prompt, max_tokens) -> str``
            max_tokens: Response token ceiling per call
        """
        self.profile = profile
        self.client = client
        self.max_tokens = max_tokens or getattr(settings, "AI_COMPLETION_MAX_TOKENS", 4096)

    async def extract(self, text: str, context: ExtractionContext) -> List[ExtractedRecord]:
        """
        Extract records from one page of cleaned text.

        Args:
            text: Cleaned page text
            context: Source URL, language and domain hints

        Returns:
            Validated records (possibly empty)

        Raises:
            CompletionError: If the completion service fails
        """
        logger.info(
            f"Extracting {self.profile.name} from {context.source_url} "
            f"(content length: {len(text)} chars)"
        )

        response = await self.client.complete(
            self.profile.build_system_prompt(context),
            self.profile.build_prompt(text, context),
            self.max_tokens,
        )
        return self.parse(response, context)

    def parse(self, raw: str, context: ExtractionContext) -> List[ExtractedRecord]:
        """
        Parse and validate a raw completion response.

        Never raises for malformed content.
        """
        items = parse_json_array(raw, context.source_url)
        if not items:
            return []

        records = []
        for item in items:
            record = self._validate_item(item, context)
            if record is not None:
                records.append(record)

        if context.max_items is not None:
            records = records[: context.max_items]

        logger.info(
            f"{self.profile.name.capitalize()} extraction complete for {context.source_url}: "
            f"{len(records)} valid of {len(items)}"
        )
        return records

    def _validate_item(self, item: Any, context: ExtractionContext):
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-object element from {context.source_url}: {item!r:.200}")
            return None

        serializer = self.profile.serializer_class(data=item)
        if not serializer.is_valid():
            logger.warning(
                f"{self.profile.name} validation failed, skipping "
                f"({context.source_url}): {dict(serializer.errors)}"
            )
            return None

        record = self.profile.record_class.from_validated(serializer.validated_data)
        if self.profile.finalize is not None:
            record = self.profile.finalize(record, context)
        return record


def parse_json_array(raw: Optional[str], source_url: str = "") -> List[Any]:
    """
    Pull a JSON array out of a model response.

    Takes the first bracket-delimited substring (responses are sometimes
    wrapped in markdown fences or prose). Returns [] when nothing parses or
    the parsed value is not an array.
    """
    if not raw:
        logger.warning(f"Empty completion response for {source_url}")
        return []

    match = JSON_ARRAY_PATTERN.search(raw)
    json_str = match.group(0) if match else raw

    try:
        parsed = json.loads(json_str)
    except ValueError:
        logger.error(f"Failed to parse JSON from completion for {source_url}: {raw[:500]!r}")
        return []

    if not isinstance(parsed, list):
        logger.warning(f"Completion response for {source_url} is not an array")
        return []

    return parsed


def apply_confidence_gate(
    records: Sequence[ExtractedRecord],
    threshold: Optional[float] = None,
) -> Tuple[List[ExtractedRecord], List[ExtractedRecord]]:
    """
    Split records into (kept, rejected) by confidence.

    Records below the threshold are logged and must never be persisted.
    """
    if threshold is None:
        threshold = getattr(settings, "CRAWLER_MIN_CONFIDENCE", 0.5)

    kept = []
    rejected = []
    for record in records:
        if record.confidence >= threshold:
            kept.append(record)
        else:
            rejected.append(record)
            logger.info(
                f"Skipping low-confidence {record.kind} "
                f"({record.confidence:.2f} < {threshold:.2f}): {_label(record)}"
            )
    return kept, rejected


def _label(record) -> str:
    return getattr(record, "title", None) or getattr(record, "hotel_name", "")
