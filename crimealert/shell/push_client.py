"""Push Notification Client - Imperative Shell.

This module handles HTTP communication with the Expo push service and
exposes the notification sink used by the background driver.
All I/O is contained here; notification content is built in the core module.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from crimealert.core.config import EXPO_PUSH_URL
from crimealert.core.errors import NotificationDeliveryError
from crimealert.core.formatter import Notification


logger = logging.getLogger(__name__)


# Default timeout for push requests (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class PushResponse:
    """Response from the push service.

    Attributes:
        success: Whether the push ticket was accepted
        status_code: HTTP status code
        error: Error message if failed
    """
    success: bool
    status_code: int
    error: str | None = None


def build_push_message(
    device_token: str,
    notification: Notification,
) -> dict[str, Any]:
    """Build the Expo push message for a notification.

    Pure function.
    """
    message: dict[str, Any] = {
        "to": device_token,
        "title": notification.title,
        "body": notification.body,
        "data": dict(notification.metadata),
        "sound": "default",
    }
    if notification.high_priority:
        message["priority"] = "high"
    return message


def _ticket_error(body: Any) -> str | None:
    """Extract the error from an Expo push ticket, if any."""
    if not isinstance(body, dict):
        return None

    errors = body.get("errors")
    if errors:
        return "; ".join(str(e.get("message", e)) for e in errors)

    data = body.get("data")
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict) and data.get("status") == "error":
        return str(data.get("message", "Push ticket rejected"))

    return None


class ExpoPushClient:
    """Client for sending push notifications through Expo.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(
        self,
        push_url: str = EXPO_PUSH_URL,
        access_token: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize push client.

        Args:
            push_url: Push service endpoint
            access_token: Expo access token (None when push security is off)
            timeout: Request timeout in seconds
        """
        self.push_url = push_url
        self.access_token = access_token
        self.timeout = timeout

    def send(self, message: dict[str, Any]) -> PushResponse:
        """Send one push message.

        This method performs HTTP I/O.

        Args:
            message: Expo push message (from build_push_message)

        Returns:
            PushResponse indicating success or failure
        """
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        logger.info("Sending push notification")

        try:
            response = requests.post(
                self.push_url,
                json=message,
                timeout=self.timeout,
                headers=headers,
            )
        except requests.Timeout:
            logger.error("Push request timed out")
            return PushResponse(
                success=False,
                status_code=0,
                error="Request timed out",
            )
        except requests.RequestException as e:
            logger.error("Push request failed: %s", str(e))
            return PushResponse(
                success=False,
                status_code=0,
                error=str(e),
            )

        if response.status_code != 200:
            logger.warning(
                "Push service returned non-200: %d - %s",
                response.status_code,
                response.text,
            )
            return PushResponse(
                success=False,
                status_code=response.status_code,
                error=response.text,
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        error = _ticket_error(body)
        if error:
            logger.warning("Push ticket rejected: %s", error)
            return PushResponse(
                success=False,
                status_code=response.status_code,
                error=error,
            )

        logger.info("Push notification accepted")
        return PushResponse(success=True, status_code=response.status_code)


class NotificationSink(Protocol):
    """Somewhere notifications can be shown immediately."""

    def schedule_immediate(self, notification: Notification) -> None:
        """Show the notification now.

        Raises:
            NotificationDeliveryError: If delivery fails
        """
        ...


class PushNotificationSink:
    """Notification sink that pushes to a single device."""

    def __init__(self, client: ExpoPushClient, device_token: str) -> None:
        self.client = client
        self.device_token = device_token

    def schedule_immediate(self, notification: Notification) -> None:
        if not self.device_token:
            raise NotificationDeliveryError("No device push token configured")

        response = self.client.send(build_push_message(self.device_token, notification))
        if not response.success:
            raise NotificationDeliveryError(
                f"Push delivery failed ({response.status_code}): {response.error}"
            )
