"""Secret Manager Client - Imperative Shell.

This module reads secrets from Google Cloud Secret Manager and resolves
the ${...} placeholders used in configuration files.
All I/O is contained here; configuration logic is in the core module.
"""

import logging
import os
from dataclasses import dataclass

from google.cloud import secretmanager


logger = logging.getLogger(__name__)


# Placeholder prefix selecting Secret Manager instead of the environment
SECRET_PREFIX = "secret:"


@dataclass
class SecretManagerConfig:
    """Configuration for Secret Manager client.

    Attributes:
        project_id: GCP project ID (None for default)
    """
    project_id: str | None = None


def parse_placeholder(value: str) -> str | None:
    """Get the inside of a ${...} placeholder.

    Pure function.

    Returns:
        The placeholder body, or None if value is not a placeholder
    """
    if value.startswith("${") and value.endswith("}") and len(value) > 3:
        return value[2:-1]
    return None


class SecretManagerClient:
    """Client for reading secrets from Google Cloud Secret Manager.

    This is part of the imperative shell - it handles secret I/O.
    """

    def __init__(self, config: SecretManagerConfig | None = None) -> None:
        self.config = config or SecretManagerConfig()
        self._client: secretmanager.SecretManagerServiceClient | None = None

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy initialization of Secret Manager client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def get_secret(
        self,
        secret_name: str,
        version: str = "latest",
    ) -> str | None:
        """Fetch a secret value from Secret Manager.

        This method performs I/O.

        Args:
            secret_name: Name of the secret (not the full resource path)
            version: Version of the secret (default: "latest")

        Returns:
            Secret value as string, or None if not found
        """
        if not self.config.project_id:
            logger.error("No project ID configured for Secret Manager")
            return None

        name = f"projects/{self.config.project_id}/secrets/{secret_name}/versions/{version}"

        try:
            logger.info("Fetching secret: %s", secret_name)
            response = self.client.access_secret_version(request={"name": name})
            return response.payload.data.decode("UTF-8")
        except Exception as e:
            logger.error("Failed to fetch secret %s: %s", secret_name, str(e))
            return None

    def resolve(self, value: str) -> str:
        """Resolve a ${VAR} or ${secret:name} placeholder.

        Values that are not placeholders, and placeholders that cannot be
        resolved, are returned unchanged.

        Args:
            value: Configuration value

        Returns:
            Resolved value
        """
        body = parse_placeholder(value)
        if body is None:
            return value

        if body.startswith(SECRET_PREFIX):
            secret = self.get_secret(body[len(SECRET_PREFIX):])
            if secret is not None:
                return secret
            return value

        env_value = os.environ.get(body)
        if env_value:
            return env_value

        logger.warning("Environment variable %s not set", body)
        return value
