"""Tests for zone persistence.

Uses a mocked FirestoreClient and a session identity.
"""

import pytest
from unittest.mock import Mock

from crimealert.core.errors import InvalidCoordinate, InvalidZone, NotAuthenticated, ZoneNotFound
from crimealert.core.geo import Coordinate
from crimealert.shell.firestore_client import FirestoreClient
from crimealert.shell.identity import SessionIdentity
from crimealert.shell.zone_registry import ZoneRegistry


def _zone_record(zone_id="z1", owner="user1", **overrides):
    record = {
        "id": zone_id,
        "userId": owner,
        "name": "Home",
        "latitude": 6.0,
        "longitude": 80.5,
        "radius": 300,
        "phoneNameOnly": False,
        "highRiskAlerts": True,
    }
    record.update(overrides)
    return record


@pytest.fixture
def firestore_client():
    return Mock(spec=FirestoreClient)


@pytest.fixture
def identity():
    return SessionIdentity("user1")


@pytest.fixture
def registry(firestore_client, identity):
    return ZoneRegistry(firestore_client, identity)


class TestFetchZones:
    """Tests for listing a user's zones."""

    def test_queries_by_owner(self, registry, firestore_client):
        firestore_client.query_by_field.return_value = [_zone_record("z1"), _zone_record("z2")]

        zones = registry.fetch_current_user_zones()

        assert [z.id for z in zones] == ["z1", "z2"]
        assert zones[0].high_risk_alerts is True
        firestore_client.query_by_field.assert_called_once_with("zones", "userId", "user1")

    def test_invalid_zones_dropped(self, registry, firestore_client):
        firestore_client.query_by_field.return_value = [
            _zone_record("z1"),
            _zone_record("z2", radius=0),
        ]

        assert [z.id for z in registry.fetch_current_user_zones()] == ["z1"]

    def test_signed_out(self, registry, identity, firestore_client):
        identity.logout()

        with pytest.raises(NotAuthenticated):
            registry.fetch_current_user_zones()

        firestore_client.query_by_field.assert_not_called()

    def test_fetch_owner_zones_requires_owner(self, registry):
        with pytest.raises(NotAuthenticated):
            registry.fetch_owner_zones(None)


class TestGetZone:
    """Tests for get_zone()."""

    def test_own_zone(self, registry, firestore_client):
        firestore_client.get.return_value = _zone_record("z1")

        assert registry.get_zone("z1").name == "Home"

    def test_missing_zone(self, registry, firestore_client):
        firestore_client.get.return_value = None

        with pytest.raises(ZoneNotFound):
            registry.get_zone("z1")

    def test_other_users_zone_is_not_found(self, registry, firestore_client):
        firestore_client.get.return_value = _zone_record("z1", owner="someone-else")

        with pytest.raises(ZoneNotFound):
            registry.get_zone("z1")


class TestCreateZone:
    """Tests for create_zone()."""

    def test_creates_owned_zone(self, registry, firestore_client):
        firestore_client.create.return_value = "new-zone"

        zone = registry.create_zone("Office", Coordinate(6.9, 79.8), 500, high_risk_alerts=True)

        assert zone.id == "new-zone"
        assert zone.owner_id == "user1"
        collection, record = firestore_client.create.call_args[0]
        assert collection == "zones"
        assert record["userId"] == "user1"
        assert record["radius"] == 500
        assert record["highRiskAlerts"] is True

    def test_rejects_non_positive_radius(self, registry, firestore_client):
        with pytest.raises(InvalidZone):
            registry.create_zone("Office", Coordinate(6.9, 79.8), 0)

        firestore_client.create.assert_not_called()

    def test_rejects_blank_name(self, registry):
        with pytest.raises(InvalidZone):
            registry.create_zone("  ", Coordinate(6.9, 79.8), 100)

    def test_rejects_invalid_center(self, registry):
        with pytest.raises(InvalidCoordinate):
            registry.create_zone("Office", Coordinate(6.9, 200.0), 100)

    def test_signed_out(self, registry, identity):
        identity.logout()

        with pytest.raises(NotAuthenticated):
            registry.create_zone("Office", Coordinate(6.9, 79.8), 100)


class TestUpdateZone:
    """Tests for update_zone()."""

    def test_updates_only_given_fields(self, registry, firestore_client):
        firestore_client.get.return_value = _zone_record("z1")

        zone = registry.update_zone("z1", radius_m=800, high_risk_alerts=False)

        firestore_client.update.assert_called_once_with(
            "zones",
            "z1",
            {"radius": 800, "highRiskAlerts": False},
        )
        assert zone.radius_m == 800
        assert zone.high_risk_alerts is False
        assert zone.name == "Home"

    def test_moving_center(self, registry, firestore_client):
        firestore_client.get.return_value = _zone_record("z1")

        zone = registry.update_zone("z1", center=Coordinate(7.0, 81.0))

        fields = firestore_client.update.call_args[0][2]
        assert fields == {"latitude": 7.0, "longitude": 81.0}
        assert zone.center == Coordinate(7.0, 81.0)

    def test_no_changes_writes_nothing(self, registry, firestore_client):
        firestore_client.get.return_value = _zone_record("z1")

        registry.update_zone("z1")

        firestore_client.update.assert_not_called()

    def test_invalid_radius_rejected_before_read(self, registry, firestore_client):
        with pytest.raises(InvalidZone):
            registry.update_zone("z1", radius_m=-5)

        firestore_client.get.assert_not_called()

    def test_other_users_zone(self, registry, firestore_client):
        firestore_client.get.return_value = _zone_record("z1", owner="someone-else")

        with pytest.raises(ZoneNotFound):
            registry.update_zone("z1", name="Mine now")

        firestore_client.update.assert_not_called()


class TestDeleteZone:
    """Tests for delete_zone()."""

    def test_deletes_own_zone(self, registry, firestore_client):
        firestore_client.get.return_value = _zone_record("z1")

        registry.delete_zone("z1")

        firestore_client.delete.assert_called_once_with("zones", "z1")

    def test_missing_zone(self, registry, firestore_client):
        firestore_client.get.return_value = None

        with pytest.raises(ZoneNotFound):
            registry.delete_zone("z1")

        firestore_client.delete.assert_not_called()
