"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- Firestore document store, incident store and zone registry (database)
- Incident feeds (polled and live)
- Expo push client (HTTP)
- Location, permission and identity providers
- Configuration loading (environment/files/Secret Manager)

Keep this layer thin and simple. All business logic should be in core.
"""

from crimealert.shell.firestore_client import FirestoreClient
from crimealert.shell.incident_store import IncidentStore
from crimealert.shell.incident_feed import LiveIncidentFeed, PolledIncidentFeed
from crimealert.shell.zone_registry import ZoneRegistry
from crimealert.shell.push_client import ExpoPushClient, PushNotificationSink
from crimealert.shell.config_loader import load_config

__all__ = [
    "FirestoreClient",
    "IncidentStore",
    "LiveIncidentFeed",
    "PolledIncidentFeed",
    "ZoneRegistry",
    "ExpoPushClient",
    "PushNotificationSink",
    "load_config",
]
