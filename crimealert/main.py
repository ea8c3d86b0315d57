"""Cloud Function Entry Points.

This module provides the entry points for Google Cloud Functions.
They are thin wrappers that load configuration, build the background
driver once per process and pass requests to it.

- location_fix: the device posts each background location fix here
- monitoring_control: start, stop or inspect background monitoring
"""

import asyncio
import json
import logging
import os
import sys
from typing import Any

import functions_framework
from flask import Request

from crimealert.core.config import Config, validate_config
from crimealert.core.errors import PermissionDenied
from crimealert.core.geo import Coordinate
from crimealert.core.incident import parse_timestamp
from crimealert.core.location import LocationFix
from crimealert.core.permissions import Permission
from crimealert.driver import BackgroundLocationDriver
from crimealert.shell.config_loader import load_config, load_config_from_env
from crimealert.shell.firestore_client import FirestoreClient, FirestoreConfig
from crimealert.shell.identity import SessionIdentity
from crimealert.shell.incident_feed import PolledIncidentFeed
from crimealert.shell.incident_store import IncidentStore
from crimealert.shell.location_provider import PushedLocationProvider
from crimealert.shell.permissions import StaticPermissionProvider
from crimealert.shell.push_client import ExpoPushClient, PushNotificationSink
from crimealert.shell.zone_registry import ZoneRegistry


# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class Runtime:
    """The driver and the adapters the entry points talk to directly."""

    def __init__(self, config: Config) -> None:
        self.config = config

        firestore_client = FirestoreClient(
            FirestoreConfig(
                project_id=config.firestore_project,
                database=config.firestore_database,
            )
        )
        self.identity = SessionIdentity(config.user_id)
        self.permissions = StaticPermissionProvider(config.permissions)
        self.location_provider = PushedLocationProvider()

        self.driver = BackgroundLocationDriver(
            incidents=PolledIncidentFeed(
                IncidentStore(firestore_client, config.incidents_collection)
            ),
            zones=ZoneRegistry(
                firestore_client,
                self.identity,
                config.zones_collection,
            ),
            sink=PushNotificationSink(
                ExpoPushClient(
                    push_url=config.push.push_url,
                    access_token=config.push.access_token,
                ),
                config.push.device_token,
            ),
            location_provider=self.location_provider,
            permissions=self.permissions,
            direct_radius_m=config.direct_radius_m,
            update_options=config.background_updates,
        )


_runtime: Runtime | None = None


def _get_config() -> Config:
    """Load configuration from file or environment."""
    config_path = os.environ.get("CONFIG_PATH")

    if config_path:
        return load_config(config_path)
    elif os.environ.get("EXPO_PUSH_TOKEN"):
        # Simple env-based config
        return load_config_from_env()
    else:
        # Try default config path
        return load_config()


def get_runtime() -> Runtime:
    """Get the process-wide runtime, building it on first use.

    Raises:
        ValueError: If the configuration has critical errors
    """
    global _runtime
    if _runtime is None:
        config = _get_config()
        validation = validate_config(config)
        for warning in validation.warnings:
            logger.warning("Config %s: %s", warning.field, warning.message)
        if not validation.valid:
            messages = "; ".join(
                f"{e.field}: {e.message}" for e in validation.critical_errors
            )
            raise ValueError(f"Invalid configuration: {messages}")
        _runtime = Runtime(config)
    return _runtime


def reset_runtime() -> None:
    """Forget the process-wide runtime (tests, config reloads)."""
    global _runtime
    _runtime = None


def _parse_fix(data: dict[str, Any]) -> LocationFix:
    """Parse a location fix from a request body.

    Raises:
        ValueError: If the body has no valid position, or carries a
            timestamp that cannot be parsed
    """
    try:
        coordinate = Coordinate(float(data["latitude"]), float(data["longitude"]))
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError("latitude and longitude are required numbers") from e

    if not coordinate.is_valid:
        raise ValueError(
            f"Coordinate ({coordinate.latitude}, {coordinate.longitude}) is out of range"
        )

    raw_timestamp = data.get("timestamp")
    if raw_timestamp is None:
        return LocationFix(coordinate)

    timestamp = parse_timestamp(raw_timestamp)
    if timestamp is None:
        raise ValueError(f"Invalid timestamp: {raw_timestamp!r}")
    return LocationFix(coordinate, timestamp)


async def _deliver_fix(runtime: Runtime, fix: LocationFix) -> dict[str, Any]:
    result = await runtime.location_provider.deliver(fix)
    if result is None or (result.skipped and not result.errors):
        return {"status": "ignored", "state": runtime.driver.state.value}

    # Only this request's dispatches; concurrent requests run on other loops
    dispatches = await asyncio.gather(*result.dispatch_tasks)

    response: dict[str, Any] = {
        "status": "success" if result.success else "skipped",
        "summary": result.summary,
        "incidents_checked": result.incidents_checked,
        "zones_checked": result.zones_checked,
        "notifications_sent": sum(1 for d in dispatches if d.success),
        "notifications_failed": sum(1 for d in dispatches if not d.success),
    }
    if result.errors:
        response["errors"] = result.errors
    return response


@functions_framework.http
def location_fix(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function entry point for background location fixes.

    Expects a JSON body with latitude, longitude and an optional ISO
    timestamp. Fixes that do not pass the background cadence, or arrive
    while monitoring is off, are ignored.

    Args:
        request: Flask request object

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    data = request.get_json(silent=True) or {}

    try:
        fix = _parse_fix(data)
    except ValueError as e:
        return {"status": "error", "message": str(e)}, 400

    try:
        runtime = get_runtime()
        response = asyncio.run(_deliver_fix(runtime, fix))
    except Exception as e:
        logger.exception("Unexpected error handling location fix")
        return {"status": "error", "message": str(e)}, 500

    status_code = 207 if response["status"] == "skipped" else 200
    return response, status_code


def _status(runtime: Runtime) -> dict[str, Any]:
    deduplicator = runtime.driver.deduplicator
    return {
        "state": runtime.driver.state.value,
        "user_id": runtime.identity.current_user_id(),
        "notified": len(deduplicator) if deduplicator is not None else 0,
    }


def _apply_session(runtime: Runtime, data: dict[str, Any]) -> None:
    """Apply the identity and permission grants the device reports."""
    user_id = data.get("user_id")
    if user_id:
        runtime.identity.login(str(user_id))

    for name, granted in (data.get("permissions") or {}).items():
        try:
            permission = Permission(name)
        except ValueError:
            logger.warning("Ignoring unknown permission %s", name)
            continue
        runtime.permissions.grant(permission, bool(granted))


@functions_framework.http
def monitoring_control(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function entry point for starting and stopping monitoring.

    Expects a JSON body with an action of "start", "stop", "status" or
    "logout". A start request may carry user_id and the device's
    permission grants.

    Args:
        request: Flask request object

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    data = request.get_json(silent=True) or {}
    action = data.get("action", "status")

    try:
        runtime = get_runtime()

        if action == "start":
            _apply_session(runtime, data)
            asyncio.run(runtime.driver.start())
        elif action == "stop":
            asyncio.run(runtime.driver.stop())
        elif action == "logout":
            runtime.identity.logout()
        elif action != "status":
            return {"status": "error", "message": f"Unknown action: {action}"}, 400

    except PermissionDenied as e:
        logger.warning("Monitoring not started: %s", e.reason)
        return {
            "status": "permission_denied",
            "permission": e.permission.value,
            "message": e.reason,
        }, 403
    except Exception as e:
        logger.exception("Unexpected error in monitoring control")
        return {"status": "error", "message": str(e)}, 500

    return {"status": "success", **_status(runtime)}, 200


# For local testing
if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run one location fix locally")
    parser.add_argument("latitude", type=float)
    parser.add_argument("longitude", type=float)
    parser.add_argument("--user-id", help="Signed-in user for zone checks")
    args = parser.parse_args()

    async def _run_once() -> dict[str, Any]:
        runtime = get_runtime()
        if args.user_id:
            runtime.identity.login(args.user_id)
        for permission in Permission:
            runtime.permissions.grant(permission)
        await runtime.driver.start()
        fix = LocationFix(Coordinate(args.latitude, args.longitude))
        return await _deliver_fix(runtime, fix)

    try:
        print(json.dumps(asyncio.run(_run_once()), indent=2))
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
