"""Device permissions required by background monitoring.

Pure data: the permission kinds, the order in which they are checked, and
the user-facing reason shown when one is denied.
"""

from enum import Enum


class Permission(str, Enum):
    """A device permission grant."""
    FOREGROUND_LOCATION = "foreground_location"
    BACKGROUND_LOCATION = "background_location"
    NOTIFICATIONS = "notifications"


# Checked sequentially; the first denial stops startup
PERMISSION_ORDER: tuple[Permission, ...] = (
    Permission.FOREGROUND_LOCATION,
    Permission.BACKGROUND_LOCATION,
    Permission.NOTIFICATIONS,
)


DENIAL_REASONS: dict[Permission, str] = {
    Permission.FOREGROUND_LOCATION: (
        "Foreground location permission is needed to monitor your safety."
    ),
    Permission.BACKGROUND_LOCATION: (
        "Background location (Allow All The Time) is required for real-time "
        "safety alerts even when the app is closed. Please enable it in Settings."
    ),
    Permission.NOTIFICATIONS: (
        "Enable notifications to receive immediate safety alerts in your area."
    ),
}


def denial_reason(permission: Permission) -> str:
    """Get the user-facing reason for a denied permission."""
    return DENIAL_REASONS[permission]
