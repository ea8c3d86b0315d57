"""Zone Registry - Imperative Shell.

Reads and manages the safe zones owned by a user. Every operation needs
a signed-in identity; zones are always scoped to their owner.
"""

import logging
from dataclasses import replace
from typing import Any

from crimealert.core.errors import NotAuthenticated, ZoneNotFound
from crimealert.core.geo import Coordinate
from crimealert.core.zone import (
    Zone,
    build_zone_record,
    parse_zone,
    parse_zones,
    validate_zone_fields,
)
from crimealert.shell.firestore_client import FirestoreClient
from crimealert.shell.identity import IdentityProvider


logger = logging.getLogger(__name__)


# Default collection name for safe zones
DEFAULT_COLLECTION = "zones"

# Owner field on zone documents
OWNER_FIELD = "userId"


class ZoneRegistry:
    """Zone persistence on top of FirestoreClient.

    This is part of the imperative shell - it handles database I/O.
    """

    def __init__(
        self,
        firestore_client: FirestoreClient,
        identity: IdentityProvider,
        collection: str = DEFAULT_COLLECTION,
    ) -> None:
        self.firestore_client = firestore_client
        self.identity = identity
        self.collection = collection

    def _require_user(self) -> str:
        user_id = self.identity.current_user_id()
        if user_id is None:
            raise NotAuthenticated()
        return user_id

    def fetch_owner_zones(self, owner_id: str | None) -> list[Zone]:
        """Fetch every zone owned by owner_id.

        Raises:
            NotAuthenticated: If owner_id is None
        """
        if owner_id is None:
            raise NotAuthenticated()

        records = self.firestore_client.query_by_field(self.collection, OWNER_FIELD, owner_id)
        zones = parse_zones(records)

        if len(zones) != len(records):
            logger.warning(
                "Dropped %d invalid zones for user %s",
                len(records) - len(zones),
                owner_id,
            )
        return zones

    def fetch_current_user_zones(self) -> list[Zone]:
        """Fetch the zones of the signed-in user.

        Raises:
            NotAuthenticated: If nobody is signed in
        """
        return self.fetch_owner_zones(self.identity.current_user_id())

    def _owned_zone(self, zone_id: str, user_id: str) -> Zone:
        record = self.firestore_client.get(self.collection, zone_id)
        zone = parse_zone(record) if record is not None else None
        # Someone else's zone looks the same as a missing one
        if zone is None or zone.owner_id != user_id:
            raise ZoneNotFound(zone_id)
        return zone

    def get_zone(self, zone_id: str) -> Zone:
        """Fetch one zone owned by the signed-in user.

        Raises:
            NotAuthenticated: If nobody is signed in
            ZoneNotFound: If the zone does not exist
        """
        return self._owned_zone(zone_id, self._require_user())

    def create_zone(
        self,
        name: str,
        center: Coordinate,
        radius_m: float,
        phone_name_only: bool = False,
        high_risk_alerts: bool = False,
    ) -> Zone:
        """Create a zone for the signed-in user.

        Raises:
            NotAuthenticated: If nobody is signed in
            InvalidZone: If the name is blank or the radius is not positive
            InvalidCoordinate: If the center is out of range
        """
        user_id = self._require_user()
        record = build_zone_record(
            user_id,
            name,
            center,
            radius_m,
            phone_name_only=phone_name_only,
            high_risk_alerts=high_risk_alerts,
        )
        zone_id = self.firestore_client.create(self.collection, record)

        logger.info("Created zone %s (%s, %.0fm)", zone_id, name, radius_m)

        return Zone(
            id=zone_id,
            owner_id=user_id,
            name=name,
            center=center,
            radius_m=radius_m,
            phone_name_only=phone_name_only,
            high_risk_alerts=high_risk_alerts,
        )

    def update_zone(
        self,
        zone_id: str,
        name: str | None = None,
        center: Coordinate | None = None,
        radius_m: float | None = None,
        phone_name_only: bool | None = None,
        high_risk_alerts: bool | None = None,
    ) -> Zone:
        """Update fields of a zone owned by the signed-in user.

        Only provided fields change.

        Returns:
            The updated zone

        Raises:
            NotAuthenticated: If nobody is signed in
            ZoneNotFound: If the zone does not exist
            InvalidZone: If a field is invalid
            InvalidCoordinate: If the center is out of range
        """
        user_id = self._require_user()
        validate_zone_fields(name=name, center=center, radius_m=radius_m)
        zone = self._owned_zone(zone_id, user_id)

        fields: dict[str, Any] = {}
        if name is not None:
            fields["name"] = name
        if center is not None:
            fields["latitude"] = center.latitude
            fields["longitude"] = center.longitude
        if radius_m is not None:
            fields["radius"] = radius_m
        if phone_name_only is not None:
            fields["phoneNameOnly"] = phone_name_only
        if high_risk_alerts is not None:
            fields["highRiskAlerts"] = high_risk_alerts

        if not fields:
            return zone

        self.firestore_client.update(self.collection, zone_id, fields)

        changes: dict[str, Any] = {
            "name": name,
            "center": center,
            "radius_m": radius_m,
            "phone_name_only": phone_name_only,
            "high_risk_alerts": high_risk_alerts,
        }
        return replace(zone, **{k: v for k, v in changes.items() if v is not None})

    def delete_zone(self, zone_id: str) -> None:
        """Delete a zone owned by the signed-in user.

        Raises:
            NotAuthenticated: If nobody is signed in
            ZoneNotFound: If the zone does not exist
        """
        user_id = self._require_user()
        self._owned_zone(zone_id, user_id)
        self.firestore_client.delete(self.collection, zone_id)
