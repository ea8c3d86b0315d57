"""Safe zone data models and parsing - Pure functions."""

import math
from dataclasses import dataclass
from typing import Any

from crimealert.core.errors import InvalidCoordinate, InvalidZone
from crimealert.core.geo import Coordinate


@dataclass(frozen=True)
class Zone:
    """A user-defined circular area of interest.

    Attributes:
        id: Store-assigned document ID
        owner_id: Identity of the owning user
        name: Human-readable name (e.g., "Home", "Office")
        center: Center of the circle
        radius_m: Radius in meters, always positive
        phone_name_only: Stored display preference, not used by alerting
        high_risk_alerts: Only escalate HIGH/SOS incidents when True
    """
    id: str
    owner_id: str
    name: str
    center: Coordinate
    radius_m: float
    phone_name_only: bool = False
    high_risk_alerts: bool = False


def parse_zone(record: dict[str, Any]) -> Zone | None:
    """Parse a zone document into a Zone.

    Pure function. Returns None for records with a missing ID, missing
    center, or a non-positive radius.
    """
    try:
        zone_id = record.get("id")
        if not zone_id:
            return None

        radius = float(record["radius"])
        if not math.isfinite(radius) or radius <= 0:
            return None

        return Zone(
            id=str(zone_id),
            owner_id=record.get("userId", ""),
            name=record.get("name", ""),
            center=Coordinate(float(record["latitude"]), float(record["longitude"])),
            radius_m=radius,
            phone_name_only=bool(record.get("phoneNameOnly", False)),
            high_risk_alerts=bool(record.get("highRiskAlerts", False)),
        )
    except (KeyError, TypeError, ValueError):
        return None


def parse_zones(records: list[dict[str, Any]]) -> list[Zone]:
    """Parse zone documents, dropping invalid ones. Order is preserved."""
    zones = []
    for record in records:
        zone = parse_zone(record)
        if zone is not None:
            zones.append(zone)
    return zones


def validate_zone_fields(
    name: str | None = None,
    center: Coordinate | None = None,
    radius_m: float | None = None,
) -> None:
    """Validate the fields of a zone being created or updated.

    Pure function. Only provided fields are checked.

    Raises:
        InvalidZone: If the name is blank or the radius is not positive
        InvalidCoordinate: If the center is out of range
    """
    if name is not None and not name.strip():
        raise InvalidZone("Zone name must not be empty")

    if radius_m is not None and not (math.isfinite(radius_m) and radius_m > 0):
        raise InvalidZone(f"Zone radius must be positive, got {radius_m}")

    if center is not None and not center.is_valid:
        raise InvalidCoordinate(
            f"Zone center ({center.latitude}, {center.longitude}) is out of range"
        )


def build_zone_record(
    owner_id: str,
    name: str,
    center: Coordinate,
    radius_m: float,
    phone_name_only: bool = False,
    high_risk_alerts: bool = False,
) -> dict[str, Any]:
    """Build the document written when a zone is created.

    Pure function.

    Raises:
        InvalidZone: If the name or radius is invalid
        InvalidCoordinate: If the center is out of range
    """
    validate_zone_fields(name=name, center=center, radius_m=radius_m)

    return {
        "userId": owner_id,
        "name": name,
        "latitude": center.latitude,
        "longitude": center.longitude,
        "radius": radius_m,
        "phoneNameOnly": phone_name_only,
        "highRiskAlerts": high_risk_alerts,
    }


def zone_to_dict(zone: Zone) -> dict[str, Any]:
    """Convert Zone dataclass to JSON-serializable dict."""
    return {
        "id": zone.id,
        "name": zone.name,
        "latitude": zone.center.latitude,
        "longitude": zone.center.longitude,
        "radius": zone.radius_m,
        "phone_name_only": zone.phone_name_only,
        "high_risk_alerts": zone.high_risk_alerts,
    }
