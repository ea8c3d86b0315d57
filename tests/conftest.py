"""Shared fixtures for building incidents and zones."""

import pytest
from datetime import datetime, timedelta, timezone

from crimealert.core.geo import Coordinate
from crimealert.core.incident import Incident, Severity
from crimealert.core.zone import Zone


# Meters per degree of latitude for the 6,371 km sphere
METERS_PER_DEGREE = 111_194.93

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _north_of(origin: Coordinate, meters: float) -> Coordinate:
    return Coordinate(origin.latitude + meters / METERS_PER_DEGREE, origin.longitude)


@pytest.fixture
def north_of():
    """Point the given distance due north of an origin."""
    return _north_of


@pytest.fixture
def make_incident():
    """Factory for incidents; later calls get older timestamps."""
    counter = {"n": 0}

    def _make(
        incident_id: str | None = None,
        location: Coordinate = Coordinate(6.0, 80.5),
        severity: Severity = Severity.MEDIUM,
        reporter_id: str | None = "reporter",
        confirmations: frozenset[str] = frozenset(),
        incident_type: str = "Theft",
        message: str = "Phone snatched near the bus stand",
    ) -> Incident:
        counter["n"] += 1
        return Incident(
            id=incident_id or f"inc{counter['n']}",
            type=incident_type,
            message=message,
            location=location,
            created_at=BASE_TIME - timedelta(minutes=counter["n"]),
            severity=severity,
            reporter_id=reporter_id,
            confirmations=confirmations,
        )

    return _make


@pytest.fixture
def make_zone():
    """Factory for zones owned by user1."""
    def _make(
        zone_id: str = "zone1",
        center: Coordinate = Coordinate(6.0, 80.5),
        radius_m: float = 300.0,
        high_risk_alerts: bool = False,
        name: str = "Home",
        owner_id: str = "user1",
    ) -> Zone:
        return Zone(
            id=zone_id,
            owner_id=owner_id,
            name=name,
            center=center,
            radius_m=radius_m,
            high_risk_alerts=high_risk_alerts,
        )

    return _make
