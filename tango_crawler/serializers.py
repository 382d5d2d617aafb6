"""
Validation schemas for AI-extracted payloads.

Every element of a completion response is validated on its own; an element
that fails is dropped without affecting its siblings.
"""

from rest_framework import serializers
from rest_framework.settings import ISO_8601

from tango_crawler.models import (
    EventType,
    HOTEL_PROVIDERS,
    PRODUCT_PROVIDERS,
    ProductCategory,
)

DATETIME_INPUT_FORMATS = [ISO_8601, "%Y-%m-%d"]


def _optional_text(**kwargs):
    return serializers.CharField(
        required=False, allow_blank=True, allow_null=True, trim_whitespace=True, **kwargs
    )


class ConfidenceMixin(serializers.Serializer):
    confidence = serializers.FloatField(
        required=False, default=0.5, min_value=0.0, max_value=1.0
    )


class ExtractedEventSerializer(ConfidenceMixin):
    """Schema for one tango event."""

    title = serializers.CharField(max_length=500)
    title_original = _optional_text(max_length=500)
    description = _optional_text()
    event_type = serializers.ChoiceField(choices=EventType.choices)
    venue_name = _optional_text(max_length=300)
    address = _optional_text(max_length=500)
    city = serializers.CharField(max_length=200)
    country_code = serializers.CharField(min_length=2, max_length=2)
    latitude = serializers.FloatField(
        required=False, allow_null=True, min_value=-90.0, max_value=90.0
    )
    longitude = serializers.FloatField(
        required=False, allow_null=True, min_value=-180.0, max_value=180.0
    )
    start_datetime = serializers.DateTimeField(input_formats=DATETIME_INPUT_FORMATS)
    end_datetime = serializers.DateTimeField(
        required=False, allow_null=True, input_formats=DATETIME_INPUT_FORMATS
    )
    recurrence_rule = _optional_text(max_length=500)
    organizer_name = _optional_text(max_length=300)
    price_info = _optional_text(max_length=300)
    currency = _optional_text(max_length=3)
    image_urls = serializers.ListField(
        child=serializers.CharField(max_length=2000), required=False, default=list
    )
    source_url = serializers.URLField(
        required=False, allow_blank=True, allow_null=True, max_length=2000
    )

    def validate_currency(self, value):
        if value and len(value.strip()) != 3:
            raise serializers.ValidationError("Currency must be a 3-letter code.")
        return value

    def validate(self, attrs):
        end = attrs.get("end_datetime")
        if end is not None and end < attrs["start_datetime"]:
            raise serializers.ValidationError("end_datetime is before start_datetime.")
        return attrs


class ExtractedProductSerializer(ConfidenceMixin):
    """Schema for one product offer."""

    title = serializers.CharField(min_length=1, max_length=500)
    description = _optional_text()
    product_category = serializers.ChoiceField(choices=ProductCategory.choices)
    original_price = serializers.FloatField()
    deal_price = serializers.FloatField()
    currency = serializers.CharField(
        required=False, default="USD", min_length=3, max_length=3
    )
    affiliate_provider = serializers.ChoiceField(
        choices=[(p.value, p.label) for p in PRODUCT_PROVIDERS]
    )
    source_url = serializers.URLField(max_length=2000)
    image_urls = serializers.ListField(
        child=serializers.URLField(max_length=2000), required=False, default=list
    )
    expires_at = serializers.DateTimeField(
        required=False, allow_null=True, input_formats=DATETIME_INPUT_FORMATS
    )

    def _positive(self, value):
        if value <= 0:
            raise serializers.ValidationError("Price must be positive.")
        return value

    def validate_original_price(self, value):
        return self._positive(value)

    def validate_deal_price(self, value):
        return self._positive(value)


class ExtractedHotelSerializer(ConfidenceMixin):
    """Schema for one hotel listing."""

    hotel_name = serializers.CharField(max_length=300)
    hotel_address = _optional_text(max_length=500)
    latitude = serializers.FloatField(
        required=False, allow_null=True, min_value=-90.0, max_value=90.0
    )
    longitude = serializers.FloatField(
        required=False, allow_null=True, min_value=-180.0, max_value=180.0
    )
    price_per_night_min = serializers.FloatField(
        required=False, allow_null=True, min_value=0.0
    )
    currency = serializers.CharField(
        required=False, default="USD", min_length=3, max_length=3
    )
    rating = serializers.FloatField(
        required=False, allow_null=True, min_value=0.0, max_value=10.0
    )
    review_count = serializers.IntegerField(required=False, default=0, min_value=0)
    affiliate_provider = serializers.ChoiceField(
        choices=[(p.value, p.label) for p in HOTEL_PROVIDERS]
    )
    affiliate_url = _optional_text(max_length=2000)
    affiliate_id = _optional_text(max_length=200)
    image_url = _optional_text(max_length=2000)
    amenities = serializers.ListField(
        child=serializers.CharField(max_length=200), required=False, default=list
    )
