"""Incident Store - Imperative Shell.

Reads and writes incident documents through the Firestore document store.
Parsing and the confirmation rules live in core.incident.
"""

import logging
from typing import Any, Callable

from google.api_core import exceptions as google_exceptions

from crimealert.core.errors import IncidentNotFound, InvalidCoordinate, NotAuthenticated
from crimealert.core.geo import Coordinate
from crimealert.core.incident import (
    SOS_INCIDENT_TYPE,
    Incident,
    Severity,
    build_incident_record,
    confirm_incident,
    format_sos_message,
    parse_incident,
    parse_incidents,
)
from crimealert.shell.firestore_client import FirestoreClient


logger = logging.getLogger(__name__)


# Default collection name for incident reports
DEFAULT_COLLECTION = "alerts"


class IncidentStore:
    """Incident persistence on top of FirestoreClient.

    This is part of the imperative shell - it handles database I/O.
    """

    def __init__(
        self,
        firestore_client: FirestoreClient,
        collection: str = DEFAULT_COLLECTION,
    ) -> None:
        self.firestore_client = firestore_client
        self.collection = collection

    def report(
        self,
        incident_type: str,
        message: str,
        location: Coordinate,
        severity: Severity,
        reporter_id: str | None,
    ) -> str:
        """Create a new incident report.

        The creation timestamp is assigned by the store.

        Returns:
            The new incident ID

        Raises:
            InvalidCoordinate: If the location is out of range
        """
        if not location.is_valid:
            raise InvalidCoordinate(
                f"Incident location ({location.latitude}, {location.longitude}) is out of range"
            )

        record = build_incident_record(
            incident_type,
            message,
            location,
            severity,
            reporter_id,
        )
        incident_id = self.firestore_client.create(
            self.collection,
            record,
            server_timestamp=True,
        )

        logger.info(
            "Reported %s incident %s (%s)",
            severity.value,
            incident_id,
            incident_type,
        )
        return incident_id

    def report_sos(
        self,
        location: Coordinate,
        reporter_id: str | None,
        display_name: str | None = None,
    ) -> str:
        """Create an SOS report at the user's position.

        Returns:
            The new incident ID

        Raises:
            NotAuthenticated: If reporter_id is None
            InvalidCoordinate: If the location is out of range
        """
        if reporter_id is None:
            raise NotAuthenticated()

        return self.report(
            SOS_INCIDENT_TYPE,
            format_sos_message(display_name),
            location,
            Severity.SOS,
            reporter_id,
        )

    def fetch_all(self) -> list[Incident]:
        """Fetch every incident, newest first."""
        return parse_incidents(self.firestore_client.fetch_all(self.collection))

    def subscribe_all(
        self,
        on_update: Callable[[list[Incident]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Callable[[], None]:
        """Subscribe to the full incident collection, newest first.

        Returns:
            Function that cancels the subscription
        """
        def _on_records(records: list[dict[str, Any]]) -> None:
            on_update(parse_incidents(records))

        return self.firestore_client.subscribe_all(
            self.collection,
            _on_records,
            on_error,
        )

    def get(self, incident_id: str) -> Incident:
        """Fetch a single incident.

        Raises:
            IncidentNotFound: If no valid incident has this ID
        """
        record = self.firestore_client.get(self.collection, incident_id)
        incident = parse_incident(record) if record is not None else None
        if incident is None:
            raise IncidentNotFound(incident_id)
        return incident

    def confirm(self, incident_id: str, user_id: str) -> Incident:
        """Record a confirmation from user_id.

        Runs in a transaction; a rejected confirmation writes nothing.

        Returns:
            The incident with the new confirmation

        Raises:
            IncidentNotFound: If the incident does not exist
            SelfConfirmation: If user_id reported the incident
            DuplicateConfirmation: If user_id already confirmed it
        """
        confirmed: list[Incident] = []

        def _mutate(record: dict[str, Any] | None) -> dict[str, Any]:
            incident = parse_incident(record) if record is not None else None
            if incident is None:
                raise IncidentNotFound(incident_id)

            updated = confirm_incident(incident, user_id)
            # Transactions may retry; keep only the last attempt
            confirmed[:] = [updated]
            return {"confirmedBy": sorted(updated.confirmations)}

        self.firestore_client.update_in_transaction(
            self.collection,
            incident_id,
            _mutate,
        )

        logger.info(
            "Incident %s confirmed (%d confirmations)",
            incident_id,
            confirmed[0].confirmation_count,
        )
        return confirmed[0]

    def mark_read(self, incident_id: str) -> None:
        """Set the read flag on an incident.

        Raises:
            IncidentNotFound: If the incident does not exist
        """
        try:
            self.firestore_client.update(self.collection, incident_id, {"isRead": True})
        except google_exceptions.NotFound as e:
            raise IncidentNotFound(incident_id) from e
