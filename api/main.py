"""Crime Alert API - FastAPI service for the crime alert app.

Incident reporting, confirmation and listing, plus safe zone management.
The signed-in user is passed in the X-User-Id header.
"""

import logging
import os
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from crimealert.core.errors import (
    ConfirmationRejected,
    CrimeAlertError,
    IncidentNotFound,
    InvalidCoordinate,
    InvalidZone,
    NotAuthenticated,
    ZoneNotFound,
)
from crimealert.core.geo import Coordinate
from crimealert.core.incident import incident_to_dict, parse_severity
from crimealert.core.proximity import (
    DIRECT_RADIUS_M,
    VIEWPORT_RADIUS_M,
    filter_for_viewport,
    incidents_in_zones,
    relevant_incidents,
)
from crimealert.core.zone import zone_to_dict
from crimealert.shell.firestore_client import FirestoreClient, FirestoreConfig
from crimealert.shell.identity import SessionIdentity
from crimealert.shell.incident_store import IncidentStore
from crimealert.shell.zone_registry import ZoneRegistry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Crime Alert API",
    description="Community crime reports and safe zones",
    version="1.0.0",
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:8081",
        "http://localhost:19006",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# Firestore configuration
FIRESTORE_PROJECT = os.environ.get("GCP_PROJECT")
FIRESTORE_DATABASE = os.environ.get("FIRESTORE_DATABASE")
INCIDENTS_COLLECTION = os.environ.get("INCIDENTS_COLLECTION", "alerts")
ZONES_COLLECTION = os.environ.get("ZONES_COLLECTION", "zones")

_firestore_client: FirestoreClient | None = None


# ===== Data Models =====

class IncidentCreate(BaseModel):
    type: str = Field(min_length=1)
    message: str = ""
    latitude: float
    longitude: float
    severity: str = "MEDIUM"


class SOSCreate(BaseModel):
    latitude: float
    longitude: float
    display_name: str | None = None


class ZoneCreate(BaseModel):
    name: str
    latitude: float
    longitude: float
    radius: float
    phone_name_only: bool = False
    high_risk_alerts: bool = False


class ZoneUpdate(BaseModel):
    name: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    radius: float | None = None
    phone_name_only: bool | None = None
    high_risk_alerts: bool | None = None


# ===== Dependencies =====

def get_firestore_client() -> FirestoreClient:
    """Get or create the shared Firestore client."""
    global _firestore_client
    if _firestore_client is None:
        _firestore_client = FirestoreClient(
            FirestoreConfig(project_id=FIRESTORE_PROJECT, database=FIRESTORE_DATABASE)
        )
        logger.info("Firestore client initialized for database: %s", FIRESTORE_DATABASE)
    return _firestore_client


def get_identity(x_user_id: str | None = Header(default=None)) -> SessionIdentity:
    """Identity of the caller for this request."""
    return SessionIdentity(x_user_id or None)


def get_incident_store(
    client: FirestoreClient = Depends(get_firestore_client),
) -> IncidentStore:
    return IncidentStore(client, INCIDENTS_COLLECTION)


def get_zone_registry(
    client: FirestoreClient = Depends(get_firestore_client),
    identity: SessionIdentity = Depends(get_identity),
) -> ZoneRegistry:
    return ZoneRegistry(client, identity, ZONES_COLLECTION)


def _require_user(identity: SessionIdentity) -> str:
    user_id = identity.current_user_id()
    if user_id is None:
        raise NotAuthenticated()
    return user_id


def _optional_center(latitude: float | None, longitude: float | None) -> Coordinate | None:
    if latitude is None and longitude is None:
        return None
    if latitude is None or longitude is None:
        raise HTTPException(
            status_code=400,
            detail="latitude and longitude must be given together",
        )
    return Coordinate(latitude, longitude)


# ===== Error Mapping =====

_STATUS_CODES: list[tuple[type[CrimeAlertError], int]] = [
    (NotAuthenticated, 401),
    (IncidentNotFound, 404),
    (ZoneNotFound, 404),
    (ConfirmationRejected, 409),
    (InvalidCoordinate, 400),
    (InvalidZone, 400),
]


@app.exception_handler(CrimeAlertError)
async def crime_alert_error_handler(request: Request, exc: CrimeAlertError) -> JSONResponse:
    """Map domain errors to HTTP status codes."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    logger.error("Unhandled domain error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# ===== Incident Endpoints =====

@app.get("/api/incidents")
def list_incidents(
    latitude: float | None = Query(default=None),
    longitude: float | None = Query(default=None),
    radius_m: float = Query(default=VIEWPORT_RADIUS_M, gt=0),
    store: IncidentStore = Depends(get_incident_store),
) -> dict[str, Any]:
    """List incidents, newest first, optionally around a map center."""
    center = _optional_center(latitude, longitude)

    incidents = store.fetch_all()
    if center is not None:
        incidents = filter_for_viewport(center, incidents, radius_m)

    return {
        "incidents": [incident_to_dict(i) for i in incidents],
        "count": len(incidents),
    }


@app.get("/api/incidents/relevant")
def list_relevant_incidents(
    latitude: float = Query(),
    longitude: float = Query(),
    radius_m: float = Query(default=DIRECT_RADIUS_M, gt=0),
    store: IncidentStore = Depends(get_incident_store),
    registry: ZoneRegistry = Depends(get_zone_registry),
) -> dict[str, Any]:
    """Incidents that would alert the caller at the given position.

    Zone alerts are included only for signed-in callers.
    """
    try:
        zones = registry.fetch_current_user_zones()
    except NotAuthenticated:
        zones = []

    incidents = relevant_incidents(
        Coordinate(latitude, longitude),
        store.fetch_all(),
        zones,
        radius_m,
    )
    return {
        "incidents": [incident_to_dict(i) for i in incidents],
        "count": len(incidents),
    }


@app.get("/api/incidents/in-zones")
def list_zone_incidents(
    store: IncidentStore = Depends(get_incident_store),
    registry: ZoneRegistry = Depends(get_zone_registry),
) -> dict[str, Any]:
    """Incidents inside any of the caller's zones."""
    zones = registry.fetch_current_user_zones()
    incidents = incidents_in_zones(store.fetch_all(), zones)
    return {
        "incidents": [incident_to_dict(i) for i in incidents],
        "count": len(incidents),
    }


@app.get("/api/incidents/{incident_id}")
def get_incident(
    incident_id: str,
    store: IncidentStore = Depends(get_incident_store),
) -> dict[str, Any]:
    """Get a single incident."""
    return incident_to_dict(store.get(incident_id))


@app.post("/api/incidents", status_code=201)
def report_incident(
    incident: IncidentCreate,
    store: IncidentStore = Depends(get_incident_store),
    identity: SessionIdentity = Depends(get_identity),
) -> dict[str, Any]:
    """Report a new incident."""
    incident_id = store.report(
        incident.type,
        incident.message,
        Coordinate(incident.latitude, incident.longitude),
        parse_severity(incident.severity),
        identity.current_user_id(),
    )
    return {"message": "Incident reported", "id": incident_id}


@app.post("/api/incidents/sos", status_code=201)
def report_sos(
    sos: SOSCreate,
    store: IncidentStore = Depends(get_incident_store),
    identity: SessionIdentity = Depends(get_identity),
) -> dict[str, Any]:
    """Send an SOS report at the caller's position."""
    incident_id = store.report_sos(
        Coordinate(sos.latitude, sos.longitude),
        identity.current_user_id(),
        sos.display_name,
    )
    return {"message": "SOS sent", "id": incident_id}


@app.post("/api/incidents/{incident_id}/confirm")
def confirm_incident(
    incident_id: str,
    store: IncidentStore = Depends(get_incident_store),
    identity: SessionIdentity = Depends(get_identity),
) -> dict[str, Any]:
    """Confirm someone else's report."""
    incident = store.confirm(incident_id, _require_user(identity))
    return incident_to_dict(incident)


@app.put("/api/incidents/{incident_id}/read")
def mark_incident_read(
    incident_id: str,
    store: IncidentStore = Depends(get_incident_store),
) -> dict[str, Any]:
    """Mark an incident as read."""
    store.mark_read(incident_id)
    return {"message": "Incident marked as read", "id": incident_id}


# ===== Zone Endpoints =====

@app.get("/api/zones")
def list_zones(registry: ZoneRegistry = Depends(get_zone_registry)) -> dict[str, Any]:
    """List the caller's zones."""
    zones = registry.fetch_current_user_zones()
    return {"zones": [zone_to_dict(z) for z in zones], "count": len(zones)}


@app.get("/api/zones/{zone_id}/incidents")
def list_incidents_in_zone(
    zone_id: str,
    store: IncidentStore = Depends(get_incident_store),
    registry: ZoneRegistry = Depends(get_zone_registry),
) -> dict[str, Any]:
    """Incidents inside one of the caller's zones."""
    zone = registry.get_zone(zone_id)
    incidents = incidents_in_zones(store.fetch_all(), [zone])
    return {
        "zone": zone_to_dict(zone),
        "incidents": [incident_to_dict(i) for i in incidents],
        "count": len(incidents),
    }


@app.post("/api/zones", status_code=201)
def create_zone(
    zone: ZoneCreate,
    registry: ZoneRegistry = Depends(get_zone_registry),
) -> dict[str, Any]:
    """Create a zone for the caller."""
    created = registry.create_zone(
        zone.name,
        Coordinate(zone.latitude, zone.longitude),
        zone.radius,
        phone_name_only=zone.phone_name_only,
        high_risk_alerts=zone.high_risk_alerts,
    )
    return zone_to_dict(created)


@app.put("/api/zones/{zone_id}")
def update_zone(
    zone_id: str,
    updates: ZoneUpdate,
    registry: ZoneRegistry = Depends(get_zone_registry),
) -> dict[str, Any]:
    """Update one of the caller's zones."""
    updated = registry.update_zone(
        zone_id,
        name=updates.name,
        center=_optional_center(updates.latitude, updates.longitude),
        radius_m=updates.radius,
        phone_name_only=updates.phone_name_only,
        high_risk_alerts=updates.high_risk_alerts,
    )
    return zone_to_dict(updated)


@app.delete("/api/zones/{zone_id}")
def delete_zone(
    zone_id: str,
    registry: ZoneRegistry = Depends(get_zone_registry),
) -> dict[str, Any]:
    """Delete one of the caller's zones."""
    registry.delete_zone(zone_id)
    return {"message": f"Zone '{zone_id}' deleted", "id": zone_id}


@app.get("/health")
def health_check() -> dict[str, str]:
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy"}
