"""Foreground Monitor - live incident view for an open app.

Holds the live incident collection and the live user location, and runs
the personal-radius check whenever either one changes. Incident updates
arrive on Firestore snapshot threads, location updates from the caller.
"""

import logging
import threading
from typing import Callable

from crimealert.core.dedup import Deduplicator, notification_key
from crimealert.core.errors import FeedUnavailable
from crimealert.core.formatter import format_notification
from crimealert.core.geo import Coordinate
from crimealert.core.incident import Incident
from crimealert.core.proximity import (
    DIRECT_RADIUS_M,
    VIEWPORT_RADIUS_M,
    Trigger,
    evaluate_direct,
    filter_for_viewport,
    incidents_in_zones,
    relevant_incidents,
)
from crimealert.core.zone import Zone
from crimealert.shell.incident_feed import LiveIncidentFeed
from crimealert.shell.push_client import NotificationSink


logger = logging.getLogger(__name__)


class ForegroundMonitor:
    """Direct proximity alerts while the app is in the foreground.

    Pass the background driver's deduplicator to avoid alerting twice for
    the same incident; by default the monitor keeps its own.
    """

    def __init__(
        self,
        feed: LiveIncidentFeed,
        sink: NotificationSink | None = None,
        deduplicator: Deduplicator | None = None,
        direct_radius_m: float = DIRECT_RADIUS_M,
        viewport_radius_m: float = VIEWPORT_RADIUS_M,
        on_feed_error: Callable[[FeedUnavailable], None] | None = None,
    ) -> None:
        self.feed = feed
        self.sink = sink
        self.deduplicator = deduplicator or Deduplicator()
        self.direct_radius_m = direct_radius_m
        self.viewport_radius_m = viewport_radius_m
        self.on_feed_error = on_feed_error

        self._incidents: list[Incident] = []
        self._location: Coordinate | None = None
        self._lock = threading.Lock()
        self._listening = False

    @property
    def incidents(self) -> list[Incident]:
        """Live incident collection, newest first."""
        with self._lock:
            return list(self._incidents)

    @property
    def location(self) -> Coordinate | None:
        with self._lock:
            return self._location

    def start(self) -> None:
        """Subscribe to the live feed.

        Raises:
            FeedUnavailable: If the subscription cannot be opened
        """
        if not self._listening:
            self.feed.add_listener(self._on_incidents, self._on_error)
            self._listening = True
        self.feed.start()

    def stop(self) -> None:
        self.feed.stop()

    def update_location(self, location: Coordinate | None) -> list[Trigger]:
        """Record the user's position and check proximity.

        Returns:
            Triggers admitted by this check
        """
        with self._lock:
            self._location = location
        return self.check()

    def _on_incidents(self, incidents: list[Incident]) -> None:
        with self._lock:
            self._incidents = list(incidents)
        self.check()

    def _on_error(self, error: FeedUnavailable) -> None:
        logger.warning("Live incident feed error: %s", str(error))
        if self.on_feed_error is not None:
            self.on_feed_error(error)

    def check(self) -> list[Trigger]:
        """Run the personal-radius check on the current state.

        Returns:
            Triggers admitted by the deduplicator
        """
        with self._lock:
            location = self._location
            incidents = list(self._incidents)

        if location is None:
            return []

        admitted = self.deduplicator.admit_all(
            evaluate_direct(location, incidents, self.direct_radius_m)
        )
        for trigger in admitted:
            self._notify(trigger)
        return admitted

    def _notify(self, trigger: Trigger) -> None:
        if self.sink is None:
            return
        try:
            self.sink.schedule_immediate(format_notification(trigger))
        except Exception as e:
            logger.error(
                "Failed to deliver notification %s: %s",
                notification_key(trigger),
                str(e),
            )

    def nearby_incidents(self, center: Coordinate | None = None) -> list[Incident]:
        """Incidents around a map center (the user's position by default).

        Returns every incident when there is no center to filter by.
        """
        center = center or self.location
        incidents = self.incidents
        if center is None:
            return incidents
        return filter_for_viewport(center, incidents, self.viewport_radius_m)

    def relevant_incidents(self, zones: list[Zone]) -> list[Incident]:
        """Incidents that would alert the user at the current position."""
        return relevant_incidents(self.location, self.incidents, zones, self.direct_radius_m)

    def zone_incidents(self, zones: list[Zone]) -> list[Incident]:
        """Incidents inside any of the user's zones."""
        return incidents_in_zones(self.incidents, zones)
