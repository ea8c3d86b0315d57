"""Incident data models and parsing - Pure functions.

This module handles parsing incident documents from the store into typed
Incident objects, plus the confirmation rules on the shared Incident entity.
All functions are pure with no side effects.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from crimealert.core.errors import DuplicateConfirmation, SelfConfirmation
from crimealert.core.geo import Coordinate


# Distinct confirmations needed before a report is shown as verified
VERIFIED_CONFIRMATIONS = 5

# Incident type of reports sent with the SOS button
SOS_INCIDENT_TYPE = "SOS SIGNAL"


class Severity(str, Enum):
    """Incident severity, ordered LOW < MEDIUM < HIGH < SOS."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    SOS = "SOS"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def is_high_risk(self) -> bool:
        """HIGH and SOS incidents escalate to zone alerts."""
        return self.rank >= _SEVERITY_RANK[Severity.HIGH]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.SOS: 3,
}


@dataclass(frozen=True)
class Incident:
    """Immutable incident report.

    Attributes:
        id: Store-assigned document ID
        type: Free-text category (e.g., 'Theft', 'SOS SIGNAL')
        message: Free-text description
        location: Where the incident happened
        created_at: Store-assigned creation timestamp (UTC)
        severity: Reported severity
        reporter_id: Identity of the user who reported it
        confirmations: Distinct identities that confirmed it
        read: Per-viewer read flag
    """
    id: str
    type: str
    message: str
    location: Coordinate
    created_at: datetime
    severity: Severity = Severity.MEDIUM
    reporter_id: str | None = None
    confirmations: frozenset[str] = field(default_factory=frozenset)
    read: bool = False

    @property
    def latitude(self) -> float:
        return self.location.latitude

    @property
    def longitude(self) -> float:
        return self.location.longitude

    @property
    def confirmation_count(self) -> int:
        return len(self.confirmations)

    @property
    def is_verified(self) -> bool:
        """True once enough distinct users confirmed the report."""
        return self.confirmation_count >= VERIFIED_CONFIRMATIONS


def parse_severity(value: Any) -> Severity:
    """Parse a stored severity value, case-insensitively.

    Pure function. Unknown or missing values fall back to MEDIUM.
    """
    if isinstance(value, Severity):
        return value
    if isinstance(value, str):
        try:
            return Severity(value.strip().upper())
        except ValueError:
            pass
    return Severity.MEDIUM


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a stored timestamp into an aware UTC datetime.

    Pure function. Accepts datetimes (Firestore returns a datetime
    subclass), ISO-8601 strings and epoch milliseconds. Returns None for
    anything unparseable, including epochs outside the platform range.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parse_timestamp(parsed)
    return None


def parse_incident(record: dict[str, Any]) -> Incident | None:
    """Parse a single store record into an Incident.

    Pure function: takes raw dict, returns typed Incident or None if invalid.

    Args:
        record: Document data with its ID under "id"

    Returns:
        Incident object or None if parsing fails
    """
    try:
        incident_id = record.get("id")
        if not incident_id:
            return None

        latitude = record.get("latitude")
        longitude = record.get("longitude")
        if latitude is None or longitude is None:
            return None

        created_at = parse_timestamp(record.get("timestamp"))
        if created_at is None:
            return None

        confirmed_by = record.get("confirmedBy") or []

        return Incident(
            id=str(incident_id),
            type=record.get("type", "Unknown"),
            message=record.get("message", ""),
            location=Coordinate(float(latitude), float(longitude)),
            created_at=created_at,
            severity=parse_severity(record.get("severity")),
            reporter_id=record.get("userId"),
            confirmations=frozenset(str(u) for u in confirmed_by),
            read=bool(record.get("isRead", False)),
        )
    except (KeyError, TypeError, ValueError, OverflowError):
        return None


def parse_incidents(records: list[dict[str, Any]]) -> list[Incident]:
    """Parse store records into a list of Incidents.

    Pure function: filters out invalid records, returns valid incidents.

    Args:
        records: Document dicts from the incidents collection

    Returns:
        List of valid Incident objects, sorted by created_at (newest first)
    """
    incidents = []

    for record in records:
        incident = parse_incident(record)
        if incident is not None:
            incidents.append(incident)

    # Sort by time, newest first
    return sorted(incidents, key=lambda i: i.created_at, reverse=True)


def build_incident_record(
    incident_type: str,
    message: str,
    location: Coordinate,
    severity: Severity,
    reporter_id: str | None,
) -> dict[str, Any]:
    """Build the document written when an incident is reported.

    Pure function. The timestamp is assigned by the store.
    """
    return {
        "type": incident_type,
        "message": message,
        "latitude": location.latitude,
        "longitude": location.longitude,
        "severity": severity.value,
        "userId": reporter_id,
        "confirmedBy": [],
        "isRead": False,
    }


def confirm_incident(incident: Incident, user_id: str) -> Incident:
    """Add a confirmation to an incident.

    Pure function - returns a new Incident without modifying the input.

    Args:
        incident: Incident being confirmed
        user_id: Identity confirming it

    Returns:
        Incident with user_id added to its confirmations

    Raises:
        SelfConfirmation: If user_id reported the incident
        DuplicateConfirmation: If user_id already confirmed it
    """
    if incident.reporter_id is not None and user_id == incident.reporter_id:
        raise SelfConfirmation(incident.id, user_id)

    if user_id in incident.confirmations:
        raise DuplicateConfirmation(incident.id, user_id)

    return replace(incident, confirmations=incident.confirmations | {user_id})


def incident_to_dict(incident: Incident) -> dict[str, Any]:
    """Convert Incident dataclass to JSON-serializable dict."""
    return {
        "id": incident.id,
        "type": incident.type,
        "message": incident.message,
        "latitude": incident.latitude,
        "longitude": incident.longitude,
        "timestamp": incident.created_at.isoformat(),
        "severity": incident.severity.value,
        "reporter_id": incident.reporter_id,
        "confirmations": len(incident.confirmations),
        "is_verified": incident.is_verified,
        "is_read": incident.read,
    }


def format_sos_message(display_name: str | None) -> str:
    """Format the message of an SOS report.

    Pure function.
    """
    who = display_name or "a nearby user"
    return f"Emergency SOS triggered by {who}. Immediate assistance required!"
