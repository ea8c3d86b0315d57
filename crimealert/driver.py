"""Background Location Driver - Wires Functional Core and Imperative Shell.

The driver owns background monitoring. Once started, every location fix
runs one cycle: pull the incident feed, fetch the user's zones, evaluate
proximity, admit triggers through the deduplicator and hand the admitted
notifications to the sink without waiting for delivery.

The deduplicator lives exactly as long as one start/stop session.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from crimealert.core.dedup import Deduplicator, notification_key
from crimealert.core.errors import FeedUnavailable, NotAuthenticated, PermissionDenied
from crimealert.core.formatter import format_incident_summary, format_notification
from crimealert.core.geo import Coordinate
from crimealert.core.location import LocationFix, LocationUpdateOptions
from crimealert.core.permissions import PERMISSION_ORDER
from crimealert.core.proximity import DIRECT_RADIUS_M, Trigger, evaluate
from crimealert.core.zone import Zone
from crimealert.shell.incident_feed import IncidentSource
from crimealert.shell.location_provider import LocationProvider, LocationSubscription
from crimealert.shell.permissions import PermissionProvider
from crimealert.shell.push_client import NotificationSink


logger = logging.getLogger(__name__)


class DriverState(str, Enum):
    """Lifecycle of the background driver."""
    UNREGISTERED = "unregistered"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPED = "stopped"


class ZoneSource(Protocol):
    """Something that can list the signed-in user's zones."""

    def fetch_current_user_zones(self) -> list[Zone]:
        """Raises NotAuthenticated when nobody is signed in."""
        ...


@dataclass
class DispatchResult:
    """Outcome of delivering one admitted trigger.

    Attributes:
        trigger: The trigger that was dispatched
        success: Whether the sink accepted the notification
        error: Error message if failed
    """
    trigger: Trigger
    success: bool
    error: str | None = None


@dataclass
class CycleResult:
    """Result of handling one location fix.

    Attributes:
        location: Position of the fix (None if it had none)
        incidents_checked: Incidents in the pulled snapshot
        zones_checked: Zones of the signed-in user
        triggers: Every trigger the evaluator produced
        dispatched: Triggers admitted by the deduplicator and dispatched
        skipped: True if the cycle did not evaluate the fix
        errors: Any errors that occurred
        dispatch_tasks: Delivery tasks this cycle started, on its own loop
    """
    location: Coordinate | None = None
    incidents_checked: int = 0
    zones_checked: int = 0
    triggers: list[Trigger] = field(default_factory=list)
    dispatched: list[Trigger] = field(default_factory=list)
    skipped: bool = False
    errors: list[str] = field(default_factory=list)
    dispatch_tasks: list[asyncio.Task[DispatchResult]] = field(
        default_factory=list, repr=False, compare=False
    )

    @property
    def success(self) -> bool:
        """Returns True if no errors occurred."""
        return len(self.errors) == 0

    @property
    def summary(self) -> str:
        """Human-readable summary of the cycle."""
        if self.skipped:
            reason = self.errors[0] if self.errors else "driver not active"
            return f"Skipped fix: {reason}"
        return (
            f"Checked {self.incidents_checked} incidents and "
            f"{self.zones_checked} zones, "
            f"{len(self.triggers)} triggers, "
            f"{len(self.dispatched)} dispatched"
        )


class BackgroundLocationDriver:
    """Runs proximity checks on background location fixes.

    This class wires together:
    - Permission provider (checked before monitoring starts)
    - Location provider (delivers fixes to handle_fix)
    - Incident source and zone source (inputs of each cycle)
    - Core functions (evaluation, deduplication, formatting)
    - Notification sink (delivers admitted notifications)
    """

    def __init__(
        self,
        incidents: IncidentSource,
        zones: ZoneSource,
        sink: NotificationSink,
        location_provider: LocationProvider,
        permissions: PermissionProvider,
        direct_radius_m: float = DIRECT_RADIUS_M,
        update_options: LocationUpdateOptions | None = None,
    ) -> None:
        """Initialize driver.

        Args:
            incidents: Source of incident snapshots
            zones: Source of the signed-in user's zones
            sink: Where admitted notifications are delivered
            location_provider: Installs the location update subscription
            permissions: Checks and requests device permissions
            direct_radius_m: Personal alert radius
            update_options: Background location cadence
        """
        self.incidents = incidents
        self.zones = zones
        self.sink = sink
        self.location_provider = location_provider
        self.permissions = permissions
        self.direct_radius_m = direct_radius_m
        self.update_options = update_options or LocationUpdateOptions()

        self._state = DriverState.UNREGISTERED
        self._deduplicator: Deduplicator | None = None
        self._subscription: LocationSubscription | None = None
        self._pending: set[asyncio.Task[DispatchResult]] = set()
        self._pending_lock = threading.Lock()

    @property
    def state(self) -> DriverState:
        return self._state

    @property
    def deduplicator(self) -> Deduplicator | None:
        """Deduplicator of the current session (None unless started)."""
        return self._deduplicator

    @property
    def pending_dispatches(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    async def _check_permissions(self) -> None:
        """Check each required permission in order, requesting it once.

        Raises:
            PermissionDenied: For the first permission that is refused
        """
        for permission in PERMISSION_ORDER:
            if await self.permissions.is_granted(permission):
                continue
            if not await self.permissions.request(permission):
                logger.warning("Permission %s denied", permission.value)
                raise PermissionDenied(permission)

    async def start(self) -> None:
        """Start background monitoring.

        Does nothing if already starting or active. A stopped driver can
        be started again and begins with an empty deduplicator.

        Raises:
            PermissionDenied: If a required permission is refused; the
                state is left as it was
        """
        if self._state in (DriverState.STARTING, DriverState.ACTIVE):
            logger.debug("Driver already %s", self._state.value)
            return

        previous = self._state
        self._state = DriverState.STARTING

        try:
            await self._check_permissions()
        except PermissionDenied:
            self._state = previous
            raise

        if self._state is not DriverState.STARTING:
            # stop() was called while permissions were being checked
            return

        self._deduplicator = Deduplicator()
        try:
            self._subscription = self.location_provider.start_updates(
                self.update_options,
                self.handle_fix,
            )
        except Exception:
            self._deduplicator = None
            self._state = previous
            raise

        self._state = DriverState.ACTIVE
        logger.info(
            "Background monitoring active (every %.0fs or %.0fm)",
            self.update_options.time_interval_seconds,
            self.update_options.distance_interval_m,
        )

    async def stop(self) -> None:
        """Stop background monitoring.

        Idempotent. A cycle already in progress completes, but no new
        fixes are handled.
        """
        if self._state not in (DriverState.STARTING, DriverState.ACTIVE):
            return

        subscription = self._subscription
        self._subscription = None
        self._deduplicator = None
        self._state = DriverState.STOPPED

        if subscription is not None:
            await subscription.cancel()

        logger.info("Background monitoring stopped")

    async def _fetch_zones(self) -> list[Zone]:
        try:
            return await asyncio.to_thread(self.zones.fetch_current_user_zones)
        except NotAuthenticated:
            logger.debug("No signed-in user, skipping zone checks")
            return []

    async def handle_fix(self, fix: LocationFix) -> CycleResult:
        """Run one proximity cycle for a location fix.

        Fixes that arrive while the driver is not active are ignored.
        A feed or zone failure skips this fix; the next one is handled
        normally.

        Args:
            fix: Location fix from the location provider

        Returns:
            CycleResult describing what happened
        """
        if self._state is not DriverState.ACTIVE:
            logger.debug("Ignoring location fix, driver is %s", self._state.value)
            return CycleResult(location=fix.coordinate, skipped=True)

        # Owned by this session even if stop() runs mid-cycle
        deduplicator = self._deduplicator
        if deduplicator is None:
            return CycleResult(location=fix.coordinate, skipped=True)

        result = CycleResult(location=fix.coordinate)

        if fix.coordinate is None:
            logger.debug("Location fix has no position")
            return result

        try:
            incidents = await self.incidents.current()
        except FeedUnavailable as e:
            logger.warning("Skipping location fix, incident feed unavailable: %s", str(e))
            result.skipped = True
            result.errors.append(f"Incident feed unavailable: {e}")
            return result

        try:
            zones = await self._fetch_zones()
        except Exception as e:
            logger.error("Skipping location fix, failed to fetch zones: %s", str(e))
            result.skipped = True
            result.errors.append(f"Failed to fetch zones: {e}")
            return result

        result.incidents_checked = len(incidents)
        result.zones_checked = len(zones)

        result.triggers = evaluate(fix.coordinate, incidents, zones, self.direct_radius_m)
        result.dispatched = deduplicator.admit_all(result.triggers)

        result.dispatch_tasks = [self._dispatch(t) for t in result.dispatched]

        logger.info("Location cycle: %s", result.summary)
        return result

    def _dispatch(self, trigger: Trigger) -> asyncio.Task[DispatchResult]:
        task = asyncio.create_task(self._deliver(trigger))
        with self._pending_lock:
            self._pending.add(task)
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task[DispatchResult]) -> None:
        with self._pending_lock:
            self._pending.discard(task)

    async def _deliver(self, trigger: Trigger) -> DispatchResult:
        notification = format_notification(trigger)
        key = notification_key(trigger)

        try:
            await asyncio.to_thread(self.sink.schedule_immediate, notification)
        except Exception as e:
            logger.error("Failed to deliver notification %s: %s", key, str(e))
            return DispatchResult(trigger=trigger, success=False, error=str(e))

        logger.info(
            "Delivered notification %s: %s",
            key,
            format_incident_summary(trigger.incident),
        )
        return DispatchResult(trigger=trigger, success=True)

    def _pending_on(
        self,
        loop: asyncio.AbstractEventLoop,
    ) -> list[asyncio.Task[DispatchResult]]:
        with self._pending_lock:
            return [t for t in self._pending if t.get_loop() is loop]

    async def drain(self) -> list[DispatchResult]:
        """Wait for every outstanding notification dispatch on this loop.

        Dispatches started by cycles on other event loops (other request
        threads) are left to those loops.

        Returns:
            Results of the dispatches that were outstanding
        """
        loop = asyncio.get_running_loop()
        results: list[DispatchResult] = []
        tasks = self._pending_on(loop)
        while tasks:
            results.extend(await asyncio.gather(*tasks))
            with self._pending_lock:
                self._pending.difference_update(tasks)
            tasks = self._pending_on(loop)
        return results
