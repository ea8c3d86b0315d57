"""Location fixes and update cadence - Pure functions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from crimealert.core.geo import Coordinate, distance_meters


@dataclass(frozen=True)
class LocationFix:
    """A single device location sample.

    Attributes:
        coordinate: Reported position, None when the device has no fix
        timestamp: When the sample was taken (UTC)
    """
    coordinate: Coordinate | None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class LocationUpdateOptions:
    """Cadence of a location update subscription.

    Attributes:
        time_interval_seconds: Minimum time between delivered fixes
        distance_interval_m: Minimum distance moved between delivered fixes
    """
    time_interval_seconds: float = 60.0
    distance_interval_m: float = 100.0


def should_deliver(
    previous: LocationFix | None,
    fix: LocationFix,
    options: LocationUpdateOptions,
) -> bool:
    """Decide whether a fix passes the subscription cadence.

    Pure function. The first fix is always delivered. Later fixes need
    both the time interval to have elapsed and the device to have moved
    at least the distance interval. Fixes without a position are only
    delivered first.

    Args:
        previous: Last delivered fix, None if none yet
        fix: Candidate fix
        options: Subscription cadence

    Returns:
        True if the fix should be delivered
    """
    if previous is None:
        return True

    elapsed = (fix.timestamp - previous.timestamp).total_seconds()
    if elapsed < options.time_interval_seconds:
        return False

    if fix.coordinate is None:
        return False
    if previous.coordinate is None:
        return True

    # NaN compares False, so invalid positions never pass the distance gate
    return distance_meters(previous.coordinate, fix.coordinate) >= options.distance_interval_m
