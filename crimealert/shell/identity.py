"""Signed-in identity of the monitored device - Imperative Shell."""

import logging
import threading
from typing import Protocol


logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    """Source of the current signed-in user."""

    def current_user_id(self) -> str | None:
        """Get the signed-in user ID, or None if signed out."""
        ...


class SessionIdentity:
    """Identity that changes on login and logout.

    Read from the event loop and from Firestore snapshot threads.
    """

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id
        self._lock = threading.Lock()

    def current_user_id(self) -> str | None:
        with self._lock:
            return self._user_id

    def login(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id must not be empty")
        with self._lock:
            self._user_id = user_id
        logger.info("User %s signed in", user_id)

    def logout(self) -> None:
        with self._lock:
            previous, self._user_id = self._user_id, None
        if previous is not None:
            logger.info("User %s signed out", previous)
