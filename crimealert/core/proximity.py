"""Proximity evaluation - Pure functions.

This module decides which incidents are relevant to a user's current
location. Two independent phases produce triggers:

- Direct: any incident within DIRECT_RADIUS_M of the user.
- Zone: while the user is inside one of their saved zones, any incident
  inside that zone that passes the zone's severity policy.

All functions are pure with no side effects.
"""

from dataclasses import dataclass

from crimealert.core.geo import Coordinate, is_within_radius
from crimealert.core.incident import Incident
from crimealert.core.zone import Zone


# Personal alert radius around the user
DIRECT_RADIUS_M = 500.0

# Radius of the map-screen incident list around the viewport center
VIEWPORT_RADIUS_M = 5000.0

DIRECT_CONTEXT = "direct"
ZONE_CONTEXT_PREFIX = "zone:"


def zone_context(zone_id: str) -> str:
    """Build the context tag for a zone trigger."""
    return f"{ZONE_CONTEXT_PREFIX}{zone_id}"


@dataclass(frozen=True)
class Trigger:
    """A notification-worthy incident and the reason it fired.

    Attributes:
        incident: The incident that triggered
        context: "direct" or "zone:<zone_id>"
        zone: The zone for zone triggers, None for direct triggers
    """
    incident: Incident
    context: str
    zone: Zone | None = None

    @property
    def is_direct(self) -> bool:
        return self.context == DIRECT_CONTEXT


def zone_policy_allows(incident: Incident, zone: Zone) -> bool:
    """Check a zone's severity policy.

    Pure function. Zones with high_risk_alerts only escalate HIGH/SOS
    incidents; other zones escalate every severity.
    """
    return not zone.high_risk_alerts or incident.severity.is_high_risk


def evaluate_direct(
    user_location: Coordinate,
    incidents: list[Incident],
    radius_m: float = DIRECT_RADIUS_M,
) -> list[Trigger]:
    """Find incidents within the personal radius of the user.

    Pure function.

    Args:
        user_location: Current user position
        incidents: Incident snapshot, feed order
        radius_m: Personal alert radius (inclusive)

    Returns:
        Direct triggers in feed order
    """
    return [
        Trigger(incident=incident, context=DIRECT_CONTEXT)
        for incident in incidents
        if is_within_radius(incident.location, user_location, radius_m)
    ]


def evaluate_zones(
    user_location: Coordinate,
    incidents: list[Incident],
    zones: list[Zone],
) -> list[Trigger]:
    """Find incidents inside the zones the user is currently inside.

    Pure function.

    Args:
        user_location: Current user position
        incidents: Incident snapshot, feed order
        zones: The user's saved zones

    Returns:
        Zone triggers ordered by zone, then feed order
    """
    triggers = []

    for zone in zones:
        if not is_within_radius(user_location, zone.center, zone.radius_m):
            continue

        for incident in incidents:
            if not zone_policy_allows(incident, zone):
                continue
            if is_within_radius(incident.location, zone.center, zone.radius_m):
                triggers.append(Trigger(
                    incident=incident,
                    context=zone_context(zone.id),
                    zone=zone,
                ))

    return triggers


def evaluate(
    user_location: Coordinate | None,
    incidents: list[Incident],
    zones: list[Zone],
    direct_radius_m: float = DIRECT_RADIUS_M,
) -> list[Trigger]:
    """Evaluate all proximity triggers for a location fix.

    Pure function.

    Args:
        user_location: Current user position, None when unavailable
        incidents: Incident snapshot, newest first
        zones: The user's saved zones (may be empty)
        direct_radius_m: Personal alert radius

    Returns:
        Direct triggers followed by zone triggers. Empty when there is
        no location.
    """
    # No fix means no proximity can be determined
    if user_location is None:
        return []

    return (
        evaluate_direct(user_location, incidents, direct_radius_m)
        + evaluate_zones(user_location, incidents, zones)
    )


def filter_for_viewport(
    center: Coordinate,
    incidents: list[Incident],
    radius_m: float = VIEWPORT_RADIUS_M,
) -> list[Incident]:
    """Filter incidents to those near a map viewport center.

    Pure function.

    Args:
        center: Viewport center
        incidents: Incidents to filter
        radius_m: Radius around the center

    Returns:
        Incidents within the radius, order preserved
    """
    return [i for i in incidents if is_within_radius(i.location, center, radius_m)]


def relevant_incidents(
    user_location: Coordinate | None,
    incidents: list[Incident],
    zones: list[Zone],
    direct_radius_m: float = DIRECT_RADIUS_M,
) -> list[Incident]:
    """Get the distinct incidents that would trigger for a location.

    Pure function.

    Returns:
        Incidents in the order of their first trigger
    """
    seen: set[str] = set()
    result = []

    for trigger in evaluate(user_location, incidents, zones, direct_radius_m):
        if trigger.incident.id not in seen:
            seen.add(trigger.incident.id)
            result.append(trigger.incident)

    return result


def incidents_in_zones(incidents: list[Incident], zones: list[Zone]) -> list[Incident]:
    """Filter incidents to those inside any of the given zones.

    Pure function. Unlike evaluate, the user's position and the zones'
    severity policies play no part; this is the "my zones" incident list.
    """
    return [
        incident
        for incident in incidents
        if any(is_within_radius(incident.location, z.center, z.radius_m) for z in zones)
    ]
