"""Notification deduplication.

Each (incident, context) pair may trigger at most one device notification
for the life of a Deduplicator. Direct and zone contexts for the same
incident are tracked independently.

Note: admitted keys are never evicted or persisted. A long-running process
grows the set without bound, and a restart forgets it, so a user may be
notified again after the app restarts.
"""

import threading
from dataclasses import dataclass

from crimealert.core.proximity import Trigger


@dataclass(frozen=True)
class NotificationKey:
    """Identifies a single notifiable event.

    Attributes:
        incident_id: The incident's ID
        context: "direct" or "zone:<zone_id>"
    """
    incident_id: str
    context: str

    def __str__(self) -> str:
        return f"{self.incident_id}|{self.context}"


def notification_key(trigger: Trigger) -> NotificationKey:
    """Get the dedup key for a trigger.

    Pure function.
    """
    return NotificationKey(incident_id=trigger.incident.id, context=trigger.context)


class Deduplicator:
    """Process-lifetime set of notification keys already dispatched.

    Admission is an atomic test-and-set under a lock. Fixes can arrive
    from the event loop and from store snapshot threads at the same time.
    """

    def __init__(self) -> None:
        self._admitted: set[NotificationKey] = set()
        self._lock = threading.Lock()

    def admit_key(self, key: NotificationKey) -> bool:
        """Admit a key exactly once.

        Returns:
            True the first time a key is seen, False afterwards
        """
        with self._lock:
            if key in self._admitted:
                return False
            self._admitted.add(key)
            return True

    def admit(self, trigger: Trigger) -> bool:
        """Admit a trigger for dispatch exactly once per NotificationKey."""
        return self.admit_key(notification_key(trigger))

    def admit_all(self, triggers: list[Trigger]) -> list[Trigger]:
        """Admit each trigger and return the ones permitted to dispatch."""
        return [t for t in triggers if self.admit(t)]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._admitted

    def __len__(self) -> int:
        with self._lock:
            return len(self._admitted)
