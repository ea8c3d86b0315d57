"""Device permission grants - Imperative Shell.

The host reports which permissions the user granted. The background
driver asks for each one it needs before it starts.
"""

import logging
from typing import Protocol

from crimealert.core.config import PermissionGrants
from crimealert.core.permissions import Permission


logger = logging.getLogger(__name__)


class PermissionProvider(Protocol):
    """Checks and requests device permissions."""

    async def is_granted(self, permission: Permission) -> bool:
        ...

    async def request(self, permission: Permission) -> bool:
        """Ask the user for a permission.

        Returns:
            True if the permission is granted after the request
        """
        ...


class StaticPermissionProvider:
    """Permissions backed by grants the device already reported.

    A request cannot prompt the user from here, so it only reports the
    recorded grant.
    """

    def __init__(self, grants: PermissionGrants | dict[Permission, bool] | None = None) -> None:
        if isinstance(grants, PermissionGrants):
            grants = grants.as_dict()
        self._grants: dict[Permission, bool] = dict(grants or {})

    def grant(self, permission: Permission, granted: bool = True) -> None:
        """Record a grant reported by the device."""
        self._grants[permission] = granted

    async def is_granted(self, permission: Permission) -> bool:
        return self._grants.get(permission, False)

    async def request(self, permission: Permission) -> bool:
        granted = self._grants.get(permission, False)
        logger.info(
            "Requested %s permission: %s",
            permission.value,
            "granted" if granted else "denied",
        )
        return granted
