"""
Typed records produced by extraction.

Each record type carries a ``kind`` tag so callers can dispatch on it. Records
are only built from payloads that passed serializer validation (see
``tango_crawler.serializers``), so their invariants hold by construction:
``confidence`` is within [0, 1] and enumerated fields hold known values.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar, Dict, Optional, Tuple, Union


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


@dataclass(frozen=True)
class ExtractedEvent:
    """A tango event found on a listing page."""

    kind: ClassVar[str] = "event"

    title: str
    event_type: str
    city: str
    country_code: str
    start_datetime: datetime
    title_original: str = ""
    description: str = ""
    venue_name: str = ""
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    end_datetime: Optional[datetime] = None
    recurrence_rule: str = ""
    organizer_name: str = ""
    price_info: str = ""
    currency: str = ""
    image_urls: Tuple[str, ...] = ()
    source_url: str = ""
    confidence: float = 0.5

    @classmethod
    def from_validated(cls, data: Dict[str, Any]) -> "ExtractedEvent":
        return cls(
            title=_text(data["title"]),
            event_type=data["event_type"],
            city=_text(data["city"]),
            country_code=_text(data["country_code"]).upper(),
            start_datetime=data["start_datetime"],
            title_original=_text(data.get("title_original")),
            description=_text(data.get("description")),
            venue_name=_text(data.get("venue_name")),
            address=_text(data.get("address")),
            latitude=_optional_float(data.get("latitude")),
            longitude=_optional_float(data.get("longitude")),
            end_datetime=data.get("end_datetime"),
            recurrence_rule=_text(data.get("recurrence_rule")),
            organizer_name=_text(data.get("organizer_name")),
            price_info=_text(data.get("price_info")),
            currency=_text(data.get("currency")).upper(),
            image_urls=tuple(data.get("image_urls") or ()),
            source_url=_text(data.get("source_url")),
            confidence=float(data.get("confidence", 0.5)),
        )


@dataclass(frozen=True)
class ExtractedProduct:
    """A tango product offer found on a shopping search page."""

    kind: ClassVar[str] = "product"

    title: str
    product_category: str
    original_price: Decimal
    deal_price: Decimal
    affiliate_provider: str
    source_url: str
    currency: str = "USD"
    description: str = ""
    image_urls: Tuple[str, ...] = ()
    expires_at: Optional[datetime] = None
    affiliate_url: str = ""
    affiliate_id: str = ""
    confidence: float = 0.5

    @classmethod
    def from_validated(cls, data: Dict[str, Any]) -> "ExtractedProduct":
        return cls(
            title=_text(data["title"]),
            product_category=data["product_category"],
            original_price=_to_price(data["original_price"]),
            deal_price=_to_price(data["deal_price"]),
            affiliate_provider=data["affiliate_provider"],
            source_url=_text(data["source_url"]),
            currency=_text(data.get("currency") or "USD").upper(),
            description=_text(data.get("description")),
            image_urls=tuple(data.get("image_urls") or ()),
            expires_at=data.get("expires_at"),
            confidence=float(data.get("confidence", 0.5)),
        )

    def with_affiliate(self, affiliate_url: str, affiliate_id: str) -> "ExtractedProduct":
        return replace(self, affiliate_url=affiliate_url, affiliate_id=affiliate_id)


@dataclass(frozen=True)
class ExtractedHotel:
    """A hotel listing found on a hotel search results page."""

    kind: ClassVar[str] = "hotel"

    hotel_name: str
    affiliate_provider: str
    hotel_address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price_per_night_min: Optional[Decimal] = None
    currency: str = "USD"
    rating: Optional[float] = None
    review_count: int = 0
    affiliate_url: str = ""
    affiliate_id: str = ""
    image_url: str = ""
    amenities: Tuple[str, ...] = field(default_factory=tuple)
    distance_from_event_meters: Optional[int] = None
    confidence: float = 0.5

    @classmethod
    def from_validated(cls, data: Dict[str, Any]) -> "ExtractedHotel":
        price = data.get("price_per_night_min")
        return cls(
            hotel_name=_text(data["hotel_name"]),
            affiliate_provider=data["affiliate_provider"],
            hotel_address=_text(data.get("hotel_address")),
            latitude=_optional_float(data.get("latitude")),
            longitude=_optional_float(data.get("longitude")),
            price_per_night_min=_to_price(price) if price is not None else None,
            currency=_text(data.get("currency") or "USD").upper(),
            rating=_optional_float(data.get("rating")),
            review_count=int(data.get("review_count") or 0),
            affiliate_url=_text(data.get("affiliate_url")),
            affiliate_id=_text(data.get("affiliate_id")),
            image_url=_text(data.get("image_url")),
            amenities=tuple(data.get("amenities") or ()),
            confidence=float(data.get("confidence", 0.5)),
        )

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


ExtractedRecord = Union[ExtractedEvent, ExtractedProduct, ExtractedHotel]


def _to_price(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))
