"""Geographic calculations - Pure functions.

This module provides great-circle distance and radius checks for incident,
zone and user locations. All functions are pure with no side effects.
"""

import math
from dataclasses import dataclass


# Earth's radius in meters
EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 position in degrees.

    Attributes:
        latitude: Latitude in degrees (-90..90)
        longitude: Longitude in degrees (-180..180)
    """
    latitude: float
    longitude: float

    @property
    def is_valid(self) -> bool:
        """True if both values are finite and within range."""
        return (
            math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
            and -90 <= self.latitude <= 90
            and -180 <= self.longitude <= 180
        )


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Calculate distance between two points using Haversine formula.

    Pure function. Non-finite input yields NaN instead of raising.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in meters
    """
    values = (a.latitude, a.longitude, b.latitude, b.longitude)
    if not all(math.isfinite(v) for v in values):
        return math.nan

    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    # abs() keeps the result bit-identical when a and b are swapped
    delta_lat = math.radians(abs(b.latitude - a.latitude))
    delta_lon = math.radians(abs(b.longitude - a.longitude))

    h = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    # Rounding can push h marginally above 1 for antipodal points
    if h > 1.0:
        h = 1.0
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_M * c


def is_within_radius(
    point: Coordinate,
    center: Coordinate,
    radius_m: float,
) -> bool:
    """Check if a point is within a radius of a center point.

    Pure function. A NaN distance (invalid coordinates) never matches.

    Args:
        point: Point to check
        center: Center of the circle
        radius_m: Radius in meters (inclusive)

    Returns:
        True if point is within radius
    """
    distance = distance_meters(point, center)
    if math.isnan(distance):
        return False
    return distance <= radius_m
