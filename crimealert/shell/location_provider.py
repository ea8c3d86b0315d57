"""Location Update Providers - Imperative Shell.

A provider delivers LocationFix messages to one handler at the cadence
given by LocationUpdateOptions. The polled provider reads a position
source on a timer; the pushed provider forwards fixes the host sends in.
"""

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Protocol

from crimealert.core.geo import Coordinate
from crimealert.core.location import LocationFix, LocationUpdateOptions, should_deliver


logger = logging.getLogger(__name__)


FixHandler = Callable[[LocationFix], Awaitable[Any]]
PositionSource = Callable[[], Awaitable[Coordinate | None]]


class LocationSubscription(Protocol):
    """Handle for an installed location update subscription."""

    @property
    def active(self) -> bool:
        ...

    async def cancel(self) -> None:
        """Stop delivering fixes. A fix already being handled completes."""
        ...


class LocationProvider(Protocol):
    """Source of location update subscriptions."""

    def start_updates(
        self,
        options: LocationUpdateOptions,
        handler: FixHandler,
    ) -> LocationSubscription:
        ...


class PolledSubscription:
    """Polling loop created by PolledLocationProvider."""

    def __init__(
        self,
        get_position: PositionSource,
        options: LocationUpdateOptions,
        handler: FixHandler,
    ) -> None:
        self.get_position = get_position
        self.options = options
        self.handler = handler
        self._previous: LocationFix | None = None
        self._in_flight: asyncio.Future[Any] | None = None
        self._task = asyncio.create_task(self._run())

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def _poll_once(self) -> None:
        try:
            coordinate = await self.get_position()
        except Exception as e:
            logger.warning("Failed to read position: %s", str(e))
            return

        fix = LocationFix(coordinate)
        if not should_deliver(self._previous, fix, self.options):
            return
        self._previous = fix

        self._in_flight = asyncio.ensure_future(self.handler(fix))
        try:
            await asyncio.shield(self._in_flight)
        except Exception:
            logger.exception("Location handler failed")

    async def _run(self) -> None:
        while True:
            await self._poll_once()
            await asyncio.sleep(self.options.time_interval_seconds)

    async def cancel(self) -> None:
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

        in_flight = self._in_flight
        if in_flight is not None and not in_flight.done():
            try:
                await in_flight
            except Exception:
                logger.exception("Location handler failed")


class PolledLocationProvider:
    """Provider that polls an async position source.

    Polls every time_interval_seconds of the subscription options.
    """

    def __init__(self, get_position: PositionSource) -> None:
        self.get_position = get_position

    def start_updates(
        self,
        options: LocationUpdateOptions,
        handler: FixHandler,
    ) -> PolledSubscription:
        logger.info(
            "Polling location every %.0fs (min move %.0fm)",
            options.time_interval_seconds,
            options.distance_interval_m,
        )
        return PolledSubscription(self.get_position, options, handler)


class PushedSubscription:
    """Subscription created by PushedLocationProvider."""

    def __init__(
        self,
        provider: "PushedLocationProvider",
        options: LocationUpdateOptions,
        handler: FixHandler,
    ) -> None:
        self.provider = provider
        self.options = options
        self.handler = handler
        self._previous: LocationFix | None = None
        self._previous_lock = threading.Lock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    async def offer(self, fix: LocationFix) -> Any | None:
        """Forward a fix to the handler if it passes the cadence.

        Returns:
            The handler's result, or None if the fix was filtered out
        """
        if not self._active:
            return None
        # Fixes may be offered from several request threads at once
        with self._previous_lock:
            if not should_deliver(self._previous, fix, self.options):
                logger.debug("Location fix filtered by update cadence")
                return None
            self._previous = fix
        return await self.handler(fix)

    async def cancel(self) -> None:
        self._active = False
        self.provider._detach(self)


class PushedLocationProvider:
    """Provider fed by fixes the host pushes in (e.g., over HTTP).

    Holds at most one subscription; a new one replaces the previous.
    """

    def __init__(self) -> None:
        self._subscription: PushedSubscription | None = None

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    def start_updates(
        self,
        options: LocationUpdateOptions,
        handler: FixHandler,
    ) -> PushedSubscription:
        self._subscription = PushedSubscription(self, options, handler)
        return self._subscription

    def _detach(self, subscription: PushedSubscription) -> None:
        if self._subscription is subscription:
            self._subscription = None

    async def deliver(self, fix: LocationFix) -> Any | None:
        """Deliver a fix from the host.

        Returns:
            The handler's result, or None if nobody is subscribed or the
            fix was filtered out
        """
        subscription = self._subscription
        if subscription is None:
            logger.debug("Location fix dropped, no subscription")
            return None
        return await subscription.offer(fix)
