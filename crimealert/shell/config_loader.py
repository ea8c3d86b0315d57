"""Configuration Loader - Imperative Shell.

This module handles loading configuration from YAML files and
environment variables. All I/O is contained here.

Models (Config, PushConfig, ...) are defined in crimealert/core/config.py
to avoid information leakage between layers.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from crimealert.core.config import EXPO_PUSH_URL, Config, PermissionGrants, PushConfig
from crimealert.core.location import LocationUpdateOptions
from crimealert.core.proximity import DIRECT_RADIUS_M, VIEWPORT_RADIUS_M
from crimealert.shell.secret_manager_client import (
    SECRET_PREFIX,
    SecretManagerClient,
    SecretManagerConfig,
    parse_placeholder,
)


logger = logging.getLogger(__name__)


def _get_secret_manager_client() -> SecretManagerClient | None:
    """Get a Secret Manager client.

    Returns None if GCP_PROJECT is not set (e.g., local development).
    """
    project_id = os.environ.get("GCP_PROJECT")
    if project_id:
        return SecretManagerClient(SecretManagerConfig(project_id=project_id))
    return None


def _resolve_value(value: Any, secret_client: SecretManagerClient | None = None) -> Any:
    """Resolve a value that may contain secret or env var placeholders.

    Args:
        value: Value to resolve (may contain ${...} placeholders)
        secret_client: Client for resolving secrets

    Returns:
        Resolved value
    """
    if not isinstance(value, str):
        return value

    if secret_client:
        return secret_client.resolve(value)

    # No secret client - only handle env vars
    body = parse_placeholder(value)
    if body is not None and not body.startswith(SECRET_PREFIX):
        env_value = os.environ.get(body)
        if env_value:
            return env_value
        logger.warning("Environment variable %s not set", body)

    return value


def _parse_update_options(
    data: dict[str, Any] | None,
    default: LocationUpdateOptions,
) -> LocationUpdateOptions:
    """Parse a location update cadence from config data."""
    if not data:
        return default
    return LocationUpdateOptions(
        time_interval_seconds=float(
            data.get("time_interval_seconds", default.time_interval_seconds)
        ),
        distance_interval_m=float(
            data.get("distance_interval_m", default.distance_interval_m)
        ),
    )


def _parse_push(
    data: dict[str, Any],
    secret_client: SecretManagerClient | None = None,
) -> PushConfig:
    """Parse push settings, resolving token placeholders."""
    access_token = data.get("access_token")
    if access_token is not None:
        access_token = _resolve_value(access_token, secret_client)

    return PushConfig(
        device_token=_resolve_value(data.get("device_token", ""), secret_client),
        access_token=access_token,
        push_url=data.get("push_url", EXPO_PUSH_URL),
    )


def _parse_permissions(data: dict[str, Any]) -> PermissionGrants:
    """Parse device permission grants from config data."""
    return PermissionGrants(
        foreground_location=bool(data.get("foreground_location", False)),
        background_location=bool(data.get("background_location", False)),
        notifications=bool(data.get("notifications", False)),
    )


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Load configuration from a dictionary.

    This is a pure-ish function (only placeholder expansion has side effects).

    Args:
        data: Configuration dictionary

    Returns:
        Parsed Config object
    """
    secret_client = _get_secret_manager_client()
    defaults = Config()

    updates = data.get("location_updates", {})
    firestore_data = data.get("firestore", {})

    user_id = data.get("user_id")
    if user_id is not None:
        user_id = _resolve_value(str(user_id), secret_client)
        # An unresolved placeholder means nobody is signed in
        if not user_id or parse_placeholder(user_id) is not None:
            user_id = None

    return Config(
        user_id=user_id,
        direct_radius_m=float(data.get("direct_radius_m", DIRECT_RADIUS_M)),
        viewport_radius_m=float(data.get("viewport_radius_m", VIEWPORT_RADIUS_M)),
        background_updates=_parse_update_options(
            updates.get("background"),
            defaults.background_updates,
        ),
        foreground_updates=_parse_update_options(
            updates.get("foreground"),
            defaults.foreground_updates,
        ),
        firestore_project=firestore_data.get("project"),
        firestore_database=firestore_data.get("database"),
        incidents_collection=firestore_data.get(
            "incidents_collection",
            defaults.incidents_collection,
        ),
        zones_collection=firestore_data.get(
            "zones_collection",
            defaults.zones_collection,
        ),
        push=_parse_push(data.get("push", {}), secret_client),
        permissions=_parse_permissions(data.get("permissions", {})),
    )


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file.

    This method performs file I/O.

    Args:
        config_path: Path to YAML config file.
                    If None, uses CONFIG_PATH env var or default.

    Returns:
        Parsed Config object

    Raises:
        yaml.YAMLError: If config file is invalid YAML
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "config/config.yaml")

    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return Config()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        logger.warning("Config file is empty, using defaults")
        return Config()

    config = load_config_from_dict(data)

    logger.info(
        "Loaded config: direct radius %.0fm, collections %s/%s",
        config.direct_radius_m,
        config.incidents_collection,
        config.zones_collection,
    )

    return config


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def load_config_from_env() -> Config:
    """Load configuration from environment variables.

    Useful for simple deployments without a YAML file.

    Environment variables:
        CRIMEALERT_USER_ID: Signed-in user of the monitored device
        EXPO_PUSH_TOKEN: Device push token
        EXPO_ACCESS_TOKEN_SECRET: Secret name holding the Expo access token
        DIRECT_RADIUS_M: Personal alert radius in meters
        FIRESTORE_DATABASE: Firestore database name
        GRANT_FOREGROUND_LOCATION, GRANT_BACKGROUND_LOCATION,
        GRANT_NOTIFICATIONS: Device permission grants

    Returns:
        Config object from environment
    """
    secret_client = _get_secret_manager_client()

    access_token = None
    secret_name = os.environ.get("EXPO_ACCESS_TOKEN_SECRET")
    if secret_client and secret_name:
        access_token = secret_client.get_secret(secret_name)
        if access_token:
            logger.info("Using Expo access token from Secret Manager")

    device_token = os.environ.get("EXPO_PUSH_TOKEN", "")
    if not device_token:
        logger.warning("EXPO_PUSH_TOKEN not set")

    return Config(
        user_id=os.environ.get("CRIMEALERT_USER_ID") or None,
        direct_radius_m=float(os.environ.get("DIRECT_RADIUS_M", str(DIRECT_RADIUS_M))),
        firestore_project=os.environ.get("GCP_PROJECT"),
        firestore_database=os.environ.get("FIRESTORE_DATABASE"),
        push=PushConfig(device_token=device_token, access_token=access_token),
        permissions=PermissionGrants(
            foreground_location=_env_flag("GRANT_FOREGROUND_LOCATION"),
            background_location=_env_flag("GRANT_BACKGROUND_LOCATION"),
            notifications=_env_flag("GRANT_NOTIFICATIONS"),
        ),
    )
