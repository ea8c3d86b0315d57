"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field

from crimealert.core.location import LocationUpdateOptions
from crimealert.core.permissions import Permission
from crimealert.core.proximity import DIRECT_RADIUS_M, VIEWPORT_RADIUS_M


# Expo push service endpoint
EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


@dataclass
class PushConfig:
    """Push notification settings.

    Attributes:
        device_token: Expo push token of the monitored device
        access_token: Expo access token (None when push security is off)
        push_url: Push service endpoint
    """
    device_token: str = ""
    access_token: str | None = None
    push_url: str = EXPO_PUSH_URL


@dataclass
class PermissionGrants:
    """Permission grants reported by the device.

    Attributes:
        foreground_location: Location while the app is open
        background_location: Location while the app is closed
        notifications: Permission to show notifications
    """
    foreground_location: bool = False
    background_location: bool = False
    notifications: bool = False

    def as_dict(self) -> dict[Permission, bool]:
        """Get the grants keyed by Permission."""
        return {
            Permission.FOREGROUND_LOCATION: self.foreground_location,
            Permission.BACKGROUND_LOCATION: self.background_location,
            Permission.NOTIFICATIONS: self.notifications,
        }


@dataclass
class Config:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.

    Attributes:
        user_id: Signed-in identity of the monitored device (None if signed out)
        direct_radius_m: Personal alert radius
        viewport_radius_m: Radius of the map incident list
        background_updates: Cadence of background location fixes
        foreground_updates: Cadence of foreground location fixes
        firestore_project: GCP project ID (None for default)
        firestore_database: Firestore database name (None for default)
        incidents_collection: Firestore collection holding incidents
        zones_collection: Firestore collection holding zones
        push: Push notification settings
        permissions: Device permission grants
    """
    user_id: str | None = None
    direct_radius_m: float = DIRECT_RADIUS_M
    viewport_radius_m: float = VIEWPORT_RADIUS_M
    background_updates: LocationUpdateOptions = field(
        default_factory=lambda: LocationUpdateOptions(
            time_interval_seconds=60.0,
            distance_interval_m=100.0,
        )
    )
    foreground_updates: LocationUpdateOptions = field(
        default_factory=lambda: LocationUpdateOptions(
            time_interval_seconds=10.0,
            distance_interval_m=50.0,
        )
    )
    firestore_project: str | None = None
    firestore_database: str | None = None
    incidents_collection: str = "alerts"
    zones_collection: str = "zones"
    push: PushConfig = field(default_factory=PushConfig)
    permissions: PermissionGrants = field(default_factory=PermissionGrants)


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


def validate_update_options(
    options: LocationUpdateOptions,
    field_name: str,
) -> list[ValidationError]:
    """Validate a location update cadence.

    Pure function.
    """
    errors = []

    if options.time_interval_seconds <= 0:
        errors.append(ValidationError(
            field=f"{field_name}.time_interval_seconds",
            message=f"Interval must be positive, got {options.time_interval_seconds}",
        ))

    if options.distance_interval_m < 0:
        errors.append(ValidationError(
            field=f"{field_name}.distance_interval_m",
            message=f"Distance interval must not be negative, got {options.distance_interval_m}",
        ))

    return errors


def validate_config(config: Config) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    if config.direct_radius_m <= 0:
        errors.append(ValidationError(
            field="direct_radius_m",
            message=f"Direct radius must be positive, got {config.direct_radius_m}",
        ))

    if config.viewport_radius_m <= 0:
        errors.append(ValidationError(
            field="viewport_radius_m",
            message=f"Viewport radius must be positive, got {config.viewport_radius_m}",
        ))

    errors.extend(validate_update_options(config.background_updates, "background_updates"))
    errors.extend(validate_update_options(config.foreground_updates, "foreground_updates"))

    if not config.incidents_collection:
        errors.append(ValidationError(
            field="incidents_collection",
            message="Incidents collection name is empty",
        ))

    if not config.zones_collection:
        errors.append(ValidationError(
            field="zones_collection",
            message="Zones collection name is empty",
        ))

    # Warn about missing or unresolved device token
    token = config.push.device_token
    if not token or token.startswith("${"):
        errors.append(ValidationError(
            field="push.device_token",
            message="Device push token not set (notifications cannot be delivered)",
            severity="warning",
        ))

    if config.user_id is None:
        errors.append(ValidationError(
            field="user_id",
            message="No signed-in user; zone alerts are disabled",
            severity="warning",
        ))

    has_critical = any(e.severity == "error" for e in errors)

    return ValidationResult(
        valid=not has_critical,
        errors=errors,
    )
