"""
Great-circle distance helpers.

Uses the haversine formula on a spherical Earth of radius 6 371 000 m.
"""

import math
from dataclasses import replace
from typing import Optional

EARTH_RADIUS_METERS = 6_371_000


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Distance in metres between two WGS-84 coordinates.

    Args:
        lat1: Latitude of the first point in degrees
        lng1: Longitude of the first point in degrees
        lat2: Latitude of the second point in degrees
        lng2: Longitude of the second point in degrees

    Returns:
        Non-negative distance in metres
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Clamp against floating point drift past 1.0 for antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def rounded_distance(
    lat1: Optional[float],
    lng1: Optional[float],
    lat2: Optional[float],
    lng2: Optional[float],
) -> Optional[int]:
    """Whole-metre distance, or None when any coordinate is missing."""
    if None in (lat1, lng1, lat2, lng2):
        return None
    return int(round(distance_meters(lat1, lng1, lat2, lng2)))


def annotate_distance(hotel, event_latitude: float, event_longitude: float):
    """
    Return ``hotel`` with ``distance_from_event_meters`` filled in.

    Hotels without coordinates are returned unchanged.
    """
    meters = rounded_distance(event_latitude, event_longitude, hotel.latitude, hotel.longitude)
    if meters is None:
        return hotel
    return replace(hotel, distance_from_event_meters=meters)
