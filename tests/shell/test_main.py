"""Tests for the Cloud Function entry points.

Requests are Mock objects standing in for Flask requests. The runtime is
built from an in-memory Config with its Firestore and push adapters mocked.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from unittest.mock import AsyncMock, Mock, patch

from crimealert import main
from crimealert.core.config import Config, PermissionGrants, PushConfig
from crimealert.core.errors import FeedUnavailable
from crimealert.core.geo import Coordinate
from crimealert.core.location import LocationUpdateOptions
from crimealert.core.permissions import Permission


HOME = Coordinate(6.0, 80.5)
OFFICE = Coordinate(6.9, 79.8)


def _request(body):
    request = Mock()
    request.get_json.return_value = body
    return request


def _config(**overrides):
    values = {
        "user_id": "user1",
        "push": PushConfig(device_token="ExponentPushToken[abc]"),
        "permissions": PermissionGrants(True, True, True),
    }
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def runtime(make_incident):
    # Every fix passes the cadence
    runtime = main.Runtime(_config(background_updates=LocationUpdateOptions(0, 0)))

    runtime.driver.incidents = Mock()
    runtime.driver.incidents.current = AsyncMock(
        return_value=[make_incident("i1", location=HOME)],
    )
    runtime.driver.zones = Mock()
    runtime.driver.zones.fetch_current_user_zones.return_value = []
    runtime.driver.sink = Mock()
    return runtime


@pytest.fixture(autouse=True)
def fresh_runtime():
    main.reset_runtime()
    yield
    main.reset_runtime()


class TestParseFix:
    """Tests for _parse_fix function."""

    def test_position_only(self):
        fix = main._parse_fix({"latitude": 6.0, "longitude": "80.5"})

        assert fix.coordinate == HOME
        assert fix.timestamp.tzinfo is not None

    def test_with_timestamp(self):
        fix = main._parse_fix({
            "latitude": 6.0,
            "longitude": 80.5,
            "timestamp": "2024-03-01T12:00:00Z",
        })

        assert fix.timestamp.isoformat() == "2024-03-01T12:00:00+00:00"

    def test_missing_longitude(self):
        with pytest.raises(ValueError):
            main._parse_fix({"latitude": 6.0})

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            main._parse_fix({"latitude": 91.0, "longitude": 80.5})

    @pytest.mark.parametrize("timestamp", [1e22, "yesterday"])
    def test_invalid_timestamp(self, timestamp):
        with pytest.raises(ValueError, match="timestamp"):
            main._parse_fix({"latitude": 6.0, "longitude": 80.5, "timestamp": timestamp})


class TestGetRuntime:
    """Tests for runtime construction."""

    def test_built_once(self):
        with patch("crimealert.main._get_config", return_value=_config()) as get_config:
            first = main.get_runtime()
            second = main.get_runtime()

        assert first is second
        get_config.assert_called_once()

    def test_invalid_config_raises(self):
        with patch("crimealert.main._get_config", return_value=_config(direct_radius_m=0)):
            with pytest.raises(ValueError, match="direct_radius_m"):
                main.get_runtime()

    def test_wires_config(self):
        config = _config(incidents_collection="incidents", direct_radius_m=250)
        runtime = main.Runtime(config)

        assert runtime.identity.current_user_id() == "user1"
        assert runtime.driver.direct_radius_m == 250
        assert runtime.driver.incidents.store.collection == "incidents"
        assert runtime.driver.sink.device_token == "ExponentPushToken[abc]"


class TestMonitoringControl:
    """Tests for monitoring_control entry point."""

    def test_start(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            body, status = main.monitoring_control(_request({"action": "start"}))

        assert status == 200
        assert body["status"] == "success"
        assert body["state"] == "active"
        assert body["user_id"] == "user1"
        assert body["notified"] == 0

    def test_start_applies_session(self, runtime):
        runtime.identity.logout()
        runtime.permissions.grant(Permission.NOTIFICATIONS, granted=False)

        with patch("crimealert.main.get_runtime", return_value=runtime):
            body, status = main.monitoring_control(_request({
                "action": "start",
                "user_id": "user2",
                "permissions": {"notifications": True, "camera": True},
            }))

        assert status == 200
        assert body["user_id"] == "user2"
        assert body["state"] == "active"

    def test_permission_denied(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            body, status = main.monitoring_control(_request({
                "action": "start",
                "permissions": {"background_location": False},
            }))

        assert status == 403
        assert body["status"] == "permission_denied"
        assert body["permission"] == "background_location"
        assert "Settings" in body["message"]
        assert runtime.driver.state.value == "unregistered"

    def test_stop(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            main.monitoring_control(_request({"action": "start"}))
            body, status = main.monitoring_control(_request({"action": "stop"}))

        assert status == 200
        assert body["state"] == "stopped"

    def test_logout(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            body, _ = main.monitoring_control(_request({"action": "logout"}))

        assert body["user_id"] is None

    def test_status_is_default(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            body, status = main.monitoring_control(_request(None))

        assert status == 200
        assert body["state"] == "unregistered"

    def test_unknown_action(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            body, status = main.monitoring_control(_request({"action": "reboot"}))

        assert status == 400
        assert "reboot" in body["message"]

    def test_config_error(self):
        with patch("crimealert.main.get_runtime", side_effect=ValueError("Invalid configuration")):
            body, status = main.monitoring_control(_request({"action": "start"}))

        assert status == 500
        assert body["status"] == "error"


class TestLocationFix:
    """Tests for location_fix entry point."""

    def test_bad_body(self):
        body, status = main.location_fix(_request({"latitude": "north"}))

        assert status == 400
        assert body["status"] == "error"

    def test_ignored_when_not_monitoring(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            body, status = main.location_fix(_request({"latitude": 6.0, "longitude": 80.5}))

        assert status == 200
        assert body["status"] == "ignored"
        runtime.driver.incidents.current.assert_not_awaited()

    def test_fix_dispatches_notification(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            main.monitoring_control(_request({"action": "start"}))
            body, status = main.location_fix(_request({"latitude": 6.0, "longitude": 80.5}))

        assert status == 200
        assert body["status"] == "success"
        assert body["incidents_checked"] == 1
        assert body["notifications_sent"] == 1
        assert body["notifications_failed"] == 0
        runtime.driver.sink.schedule_immediate.assert_called_once()

    def test_second_fix_does_not_renotify(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            main.monitoring_control(_request({"action": "start"}))
            main.location_fix(_request({"latitude": 6.0, "longitude": 80.5}))
            body, _ = main.location_fix(_request({"latitude": 6.0, "longitude": 80.5}))

        assert body["notifications_sent"] == 0
        runtime.driver.sink.schedule_immediate.assert_called_once()

    def test_failed_delivery_counted(self, runtime):
        runtime.driver.sink.schedule_immediate.side_effect = RuntimeError("push down")

        with patch("crimealert.main.get_runtime", return_value=runtime):
            main.monitoring_control(_request({"action": "start"}))
            body, status = main.location_fix(_request({"latitude": 6.0, "longitude": 80.5}))

        assert status == 200
        assert body["notifications_failed"] == 1

    def test_feed_unavailable_is_partial(self, runtime):
        runtime.driver.incidents.current.side_effect = FeedUnavailable("offline")

        with patch("crimealert.main.get_runtime", return_value=runtime):
            main.monitoring_control(_request({"action": "start"}))
            body, status = main.location_fix(_request({"latitude": 6.0, "longitude": 80.5}))

        assert status == 207
        assert body["status"] == "skipped"
        assert "offline" in body["errors"][0]

    def test_unexpected_error(self, runtime):
        with patch("crimealert.main.get_runtime", side_effect=RuntimeError("boom")):
            body, status = main.location_fix(_request({"latitude": 6.0, "longitude": 80.5}))

        assert status == 500
        assert body["message"] == "boom"

    def test_out_of_range_timestamp_is_bad_request(self, runtime):
        with patch("crimealert.main.get_runtime", return_value=runtime):
            body, status = main.location_fix(_request({
                "latitude": 6.0,
                "longitude": 80.5,
                "timestamp": 1e22,
            }))

        assert status == 400
        assert body["status"] == "error"

    def test_overlapping_fixes_each_report_own_dispatches(self, runtime, make_incident):
        """Concurrent requests run on separate event loops and share the driver."""
        runtime.driver.incidents.current.return_value = [
            make_incident("near-home", location=HOME),
            make_incident("near-office", location=OFFICE),
        ]
        # Each delivery blocks until the other request is also delivering
        both_delivering = threading.Barrier(2, timeout=5)
        runtime.driver.sink.schedule_immediate.side_effect = (
            lambda notification: both_delivering.wait()
        )

        def _fix_at(coordinate):
            return main.location_fix(_request({
                "latitude": coordinate.latitude,
                "longitude": coordinate.longitude,
                "timestamp": "2024-03-01T12:00:00Z",
            }))

        with patch("crimealert.main.get_runtime", return_value=runtime):
            main.monitoring_control(_request({"action": "start"}))
            with ThreadPoolExecutor(max_workers=2) as pool:
                responses = list(pool.map(_fix_at, [HOME, OFFICE]))

        assert [status for _, status in responses] == [200, 200]
        assert [body["notifications_sent"] for body, _ in responses] == [1, 1]
        assert [body["notifications_failed"] for body, _ in responses] == [0, 0]
        assert runtime.driver.pending_dispatches == 0
