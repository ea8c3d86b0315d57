"""Error taxonomy shared by the core and the shell.

Recoverable conditions (NotAuthenticated, FeedUnavailable) are handled at
the driver's cycle boundary. PermissionDenied stops driver startup.
Confirmation errors are rejected before any mutation happens.
"""

from crimealert.core.permissions import Permission, denial_reason


class CrimeAlertError(Exception):
    """Base class for all crime alert errors."""


class NotAuthenticated(CrimeAlertError):
    """An operation needed a signed-in identity and none is present."""

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)


class PermissionDenied(CrimeAlertError):
    """A device permission required for background monitoring was denied.

    Attributes:
        permission: The specific permission that was denied
        reason: User-facing explanation
    """

    def __init__(self, permission: Permission) -> None:
        self.permission = permission
        self.reason = denial_reason(permission)
        super().__init__(f"{permission.value} permission denied: {self.reason}")


class FeedUnavailable(CrimeAlertError):
    """The incident feed could not be fetched or the subscription failed."""


class ConfirmationRejected(CrimeAlertError):
    """A confirmation violated a domain rule and was not applied."""


class DuplicateConfirmation(ConfirmationRejected):
    """The same identity tried to confirm an incident twice."""

    def __init__(self, incident_id: str, user_id: str) -> None:
        self.incident_id = incident_id
        self.user_id = user_id
        super().__init__("You have already confirmed this report.")


class SelfConfirmation(ConfirmationRejected):
    """The reporter tried to confirm their own incident."""

    def __init__(self, incident_id: str, user_id: str) -> None:
        self.incident_id = incident_id
        self.user_id = user_id
        super().__init__("You cannot confirm your own report.")


class IncidentNotFound(CrimeAlertError):
    """No incident exists with the requested id."""

    def __init__(self, incident_id: str) -> None:
        self.incident_id = incident_id
        super().__init__(f"Incident '{incident_id}' not found")


class InvalidCoordinate(CrimeAlertError):
    """A coordinate is non-finite or out of range at ingestion."""


class InvalidZone(CrimeAlertError):
    """Zone data failed validation (empty name, non-positive radius)."""


class ZoneNotFound(CrimeAlertError):
    """No zone with the requested id belongs to the signed-in user."""

    def __init__(self, zone_id: str) -> None:
        self.zone_id = zone_id
        super().__init__(f"Zone '{zone_id}' not found")


class NotificationDeliveryError(CrimeAlertError):
    """The notification sink failed to deliver a notification."""
