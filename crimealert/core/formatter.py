"""Message formatting - Pure functions.

This module formats proximity triggers into device notifications.
All functions are pure with no side effects.
"""

from dataclasses import dataclass, field
from typing import Any

from crimealert.core.incident import Incident, Severity
from crimealert.core.proximity import Trigger
from crimealert.core.zone import Zone


@dataclass(frozen=True)
class Notification:
    """Content of a single device notification.

    Attributes:
        title: Notification title
        body: Notification body text
        metadata: Data delivered with the notification
        high_priority: Deliver with high priority (zone escalations)
    """
    title: str
    body: str
    metadata: dict[str, Any] = field(default_factory=dict)
    high_priority: bool = False


def get_severity_emoji(severity: Severity) -> str:
    """Get an emoji representing incident severity.

    Pure function.
    """
    if severity == Severity.SOS:
        return "🆘"
    elif severity == Severity.HIGH:
        return "🔴"
    elif severity == Severity.MEDIUM:
        return "🟠"
    else:
        return "🟡"


def format_incident_summary(incident: Incident) -> str:
    """Format a one-line summary of an incident.

    Pure function.
    """
    time_str = incident.created_at.strftime("%Y-%m-%d %H:%M UTC")
    verified = " (Verified)" if incident.is_verified else ""
    return (
        f"{get_severity_emoji(incident.severity)} {incident.severity.value} "
        f"{incident.type}{verified} at "
        f"({incident.latitude:.4f}, {incident.longitude:.4f}) {time_str}"
    )


def format_direct_notification(incident: Incident) -> Notification:
    """Format a personal-radius alert.

    Pure function.
    """
    return Notification(
        title=f"⚠️ CRIME ALERT: {incident.severity.value} RISK",
        body=incident.message or incident.type,
        metadata={"alertId": incident.id, "context": "direct"},
    )


def format_zone_notification(incident: Incident, zone: Zone) -> Notification:
    """Format a zone escalation alert naming the zone and incident type.

    Pure function.
    """
    label = "Critical incident" if incident.severity.is_high_risk else "Incident"
    return Notification(
        title=f"🛡️ Security Alert: {zone.name}",
        body=(
            f"{label} ({incident.type}) reported within your saved zone. "
            "Stay alert!"
        ),
        metadata={"alertId": incident.id, "zoneId": zone.id, "context": "zone"},
        high_priority=True,
    )


def format_notification(trigger: Trigger) -> Notification:
    """Format the notification for a trigger.

    Pure function.
    """
    if trigger.zone is not None:
        return format_zone_notification(trigger.incident, trigger.zone)
    return format_direct_notification(trigger.incident)
