"""Functional Core - Pure functions with no side effects.

This module contains all business logic as pure functions:
- Incident and zone parsing
- Geo/distance calculations
- Proximity evaluation
- Notification formatting
- Deduplication

All functions here are deterministic and have no I/O.
"""

from crimealert.core.geo import Coordinate, distance_meters, is_within_radius
from crimealert.core.incident import Incident, Severity, parse_incidents, confirm_incident
from crimealert.core.zone import Zone, parse_zones
from crimealert.core.proximity import Trigger, evaluate, filter_for_viewport
from crimealert.core.formatter import Notification, format_notification
from crimealert.core.dedup import Deduplicator, NotificationKey

__all__ = [
    # Geo
    "Coordinate",
    "distance_meters",
    "is_within_radius",
    # Incident
    "Incident",
    "Severity",
    "parse_incidents",
    "confirm_incident",
    # Zone
    "Zone",
    "parse_zones",
    # Proximity
    "Trigger",
    "evaluate",
    "filter_for_viewport",
    # Formatter
    "Notification",
    "format_notification",
    # Dedup
    "Deduplicator",
    "NotificationKey",
]
