"""Unit tests for the location update cadence."""

import pytest
from datetime import datetime, timedelta, timezone

from crimealert.core.geo import Coordinate
from crimealert.core.location import LocationFix, LocationUpdateOptions, should_deliver


T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
HOME = Coordinate(6.0, 80.5)


@pytest.fixture
def options():
    return LocationUpdateOptions(time_interval_seconds=60, distance_interval_m=100)


def fix_at(seconds: float, coordinate: Coordinate | None = HOME) -> LocationFix:
    return LocationFix(coordinate, T0 + timedelta(seconds=seconds))


class TestShouldDeliver:
    """Tests for should_deliver() function."""

    def test_first_fix_always_delivered(self, options):
        assert should_deliver(None, fix_at(0), options)

    def test_first_fix_without_position_delivered(self, options):
        assert should_deliver(None, fix_at(0, None), options)

    def test_too_soon_is_filtered(self, options, north_of):
        assert not should_deliver(fix_at(0), fix_at(30, north_of(HOME, 500)), options)

    def test_not_far_enough_is_filtered(self, options, north_of):
        assert not should_deliver(fix_at(0), fix_at(120, north_of(HOME, 50)), options)

    def test_time_and_distance_met(self, options, north_of):
        assert should_deliver(fix_at(0), fix_at(60, north_of(HOME, 150)), options)

    def test_stationary_user_gets_no_new_fixes(self, options):
        assert not should_deliver(fix_at(0), fix_at(3600), options)

    def test_zero_distance_interval_only_needs_time(self):
        options = LocationUpdateOptions(time_interval_seconds=10, distance_interval_m=0)
        assert should_deliver(fix_at(0), fix_at(10), options)

    def test_fix_without_position_filtered_after_first(self, options):
        assert not should_deliver(fix_at(0), fix_at(120, None), options)

    def test_position_after_missing_position_delivered(self, options):
        assert should_deliver(fix_at(0, None), fix_at(120), options)

    def test_default_timestamp_is_aware(self):
        assert LocationFix(HOME).timestamp.tzinfo is not None
