"""Incident Feed Adapters - Imperative Shell.

Both feeds implement the IncidentSource capability, so the driver and the
evaluator do not care whether incidents come from a live subscription or
an on-demand pull. Every snapshot is a full, newest-first replacement
collection.
"""

import asyncio
import logging
import threading
from typing import Callable, Protocol

from crimealert.core.errors import FeedUnavailable
from crimealert.core.incident import Incident
from crimealert.shell.incident_store import IncidentStore


logger = logging.getLogger(__name__)


UpdateListener = Callable[[list[Incident]], None]
ErrorListener = Callable[[FeedUnavailable], None]


class IncidentSource(Protocol):
    """Something that can produce the current incident snapshot."""

    async def current(self) -> list[Incident]:
        """Get the current incidents, newest first.

        Raises:
            FeedUnavailable: If no snapshot can be produced
        """
        ...


class PolledIncidentFeed:
    """On-demand pull of the full incident collection.

    Used by the background driver, which cannot keep a live subscription
    across process suspensions.
    """

    def __init__(self, store: IncidentStore) -> None:
        self.store = store

    def fetch_all_once(self) -> list[Incident]:
        """Fetch the incident collection once.

        This method performs database I/O.

        Raises:
            FeedUnavailable: If the fetch fails
        """
        try:
            incidents = self.store.fetch_all()
        except Exception as e:
            logger.error("Failed to fetch incidents: %s", str(e))
            raise FeedUnavailable(f"Failed to fetch incidents: {e}") from e

        logger.info("Pulled %d incidents", len(incidents))
        return incidents

    async def current(self) -> list[Incident]:
        return await asyncio.to_thread(self.fetch_all_once)


class LiveIncidentFeed:
    """Live subscription to the incident collection.

    Keeps the last known good snapshot. A failed update is reported to
    error listeners and the previous snapshot stays current.
    """

    def __init__(self, store: IncidentStore) -> None:
        self.store = store
        self._snapshot: tuple[Incident, ...] = ()
        self._listeners: list[tuple[UpdateListener, ErrorListener | None]] = []
        self._unsubscribe: Callable[[], None] | None = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    @property
    def snapshot(self) -> list[Incident]:
        """Last known good incidents, newest first."""
        with self._lock:
            return list(self._snapshot)

    def add_listener(
        self,
        on_update: UpdateListener,
        on_error: ErrorListener | None = None,
    ) -> None:
        """Register callbacks for snapshots and feed errors."""
        self._listeners.append((on_update, on_error))

    def start(self) -> None:
        """Open the subscription. Does nothing if already running.

        Raises:
            FeedUnavailable: If the subscription cannot be opened
        """
        if self._unsubscribe is not None:
            return

        try:
            self._unsubscribe = self.store.subscribe_all(
                self._handle_update,
                self._handle_error,
            )
        except Exception as e:
            logger.error("Failed to subscribe to incidents: %s", str(e))
            raise FeedUnavailable(f"Failed to subscribe to incidents: {e}") from e

    def stop(self) -> None:
        """Cancel the subscription. Does nothing if not running."""
        if self._unsubscribe is None:
            return
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        unsubscribe()

    async def current(self) -> list[Incident]:
        return self.snapshot

    def _handle_update(self, incidents: list[Incident]) -> None:
        with self._lock:
            self._snapshot = tuple(incidents)
        snapshot = list(incidents)

        logger.debug("Incident feed updated: %d incidents", len(snapshot))

        for on_update, _ in list(self._listeners):
            try:
                on_update(snapshot)
            except Exception:
                logger.exception("Incident feed listener failed")

    def _handle_error(self, error: Exception) -> None:
        logger.warning(
            "Incident feed error, keeping last snapshot of %d incidents: %s",
            len(self._snapshot),
            str(error),
        )
        failure = FeedUnavailable(f"Incident subscription failed: {error}")

        for _, on_error in list(self._listeners):
            if on_error is None:
                continue
            try:
                on_error(failure)
            except Exception:
                logger.exception("Incident feed error listener failed")
