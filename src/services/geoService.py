"""
Geo Service
===========

Distance helpers used to estimate delivery cost and to find donation
centers near a pickup address.

Uses the haversine formula for great-circle distance in statute miles.
Accurate enough for local pickup pricing (error < 0.5% under 100 miles).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

# Earth's mean radius in statute miles
EARTH_RADIUS_MILES: float = 3959.0

# Minutes of drive time assumed per mile
DRIVE_MINUTES_PER_MILE: float = 2.5

DEFAULT_SEARCH_RADIUS_MILES: float = 15.0


def haversine_miles(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Great-circle distance between two points, in miles.

    Args:
        lat1: Latitude of point 1 in decimal degrees.
        lon1: Longitude of point 1 in decimal degrees.
        lat2: Latitude of point 2 in decimal degrees.
        lon2: Longitude of point 2 in decimal degrees.

    Returns:
        Distance in miles (always >= 0).
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    # Floating error can push a a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_MILES * c


def estimate_duration_minutes(distance_miles: float) -> int:
    """Rough drive time for a distance, rounded up to the whole minute."""
    return math.ceil(max(0.0, distance_miles) * DRIVE_MINUTES_PER_MILE)


@dataclass
class CenterDistance:
    """A donation center paired with its distance from the pickup."""

    center: Any
    distance_miles: float


def filter_by_radius(
    centers: Sequence[Any],
    pickup_lat: float,
    pickup_lon: float,
    radius_miles: float = DEFAULT_SEARCH_RADIUS_MILES,
) -> list[CenterDistance]:
    """Keep the centers within ``radius_miles`` of the pickup point.

    Centers need ``latitude`` and ``longitude`` attributes; those without
    coordinates are skipped.

    Returns:
        List of CenterDistance sorted closest first.
    """
    results: list[CenterDistance] = []

    for center in centers:
        if center.latitude is None or center.longitude is None:
            continue

        distance = haversine_miles(
            pickup_lat,
            pickup_lon,
            float(center.latitude),
            float(center.longitude),
        )
        if distance <= radius_miles:
            results.append(CenterDistance(center=center, distance_miles=distance))

    results.sort(key=lambda cd: cd.distance_miles)

    return results
