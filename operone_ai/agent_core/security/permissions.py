"""
Role-based permissions.

This module defines the permission catalogue understood by tool definitions and
a ``PermissionValidator`` implementation that resolves a user's permissions
from their role plus optional per-user grants.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Set

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "ADMIN"
    DEVELOPER = "DEVELOPER"
    OPERATOR = "OPERATOR"
    VIEWER = "VIEWER"


class Permission(str, Enum):
    FILE_READ = "file:read"
    FILE_WRITE = "file:write"
    FILE_DELETE = "file:delete"
    SHELL_EXECUTE = "shell:execute"
    SHELL_READ = "shell:read"
    NETWORK_DISCOVER = "network:discover"
    NETWORK_READ = "network:read"
    NETWORK_TRANSFER = "network:transfer"
    NETWORK_EXECUTE = "network:execute"
    NETWORK_MANAGE = "network:manage"
    SYSTEM_READ = "system:read"
    SYSTEM_WRITE = "system:write"
    SYSTEM_ADMIN = "system:admin"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[str]] = {
    Role.ADMIN: frozenset(p.value for p in Permission),
    Role.DEVELOPER: frozenset(
        {
            Permission.FILE_READ.value,
            Permission.FILE_WRITE.value,
            Permission.SHELL_READ.value,
            Permission.SHELL_EXECUTE.value,
            Permission.NETWORK_DISCOVER.value,
            Permission.NETWORK_READ.value,
            Permission.SYSTEM_READ.value,
        }
    ),
    Role.OPERATOR: frozenset(
        {
            Permission.FILE_READ.value,
            Permission.SHELL_EXECUTE.value,
            Permission.NETWORK_DISCOVER.value,
            Permission.NETWORK_READ.value,
            Permission.NETWORK_TRANSFER.value,
            Permission.NETWORK_MANAGE.value,
            Permission.SYSTEM_READ.value,
        }
    ),
    Role.VIEWER: frozenset(
        {
            Permission.FILE_READ.value,
            Permission.SHELL_READ.value,
            Permission.NETWORK_DISCOVER.value,
            Permission.NETWORK_READ.value,
            Permission.SYSTEM_READ.value,
        }
    ),
}


def coerce_role(role: Role | str) -> Role:
    """Helper to ensure a role is a Role enum member."""
    if isinstance(role, Role):
        return role
    return Role(str(role).upper())


def permissions_for(role: Role | str, extra: Iterable[str] = ()) -> Set[str]:
    """Role permissions combined with any custom grants."""
    return set(ROLE_PERMISSIONS[coerce_role(role)]) | set(extra)


def has_all_permissions(granted: Iterable[str], required: Iterable[str]) -> bool:
    held = set(granted)
    return all(p in held for p in required)


def has_any_permission(granted: Iterable[str], required: Iterable[str]) -> bool:
    held = set(granted)
    return any(p in held for p in required)


class RolePermissionValidator:
    """
    ``PermissionValidator`` backed by a user-id to role mapping.

    Unknown users hold no permissions, so any tool that declares at least one
    required permission is denied to them. Tools without required permissions
    are allowed for everyone.
    """

    def __init__(
        self,
        user_roles: Optional[Mapping[str, Role | str]] = None,
        *,
        custom_permissions: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self._roles: Dict[str, Role] = {u: coerce_role(r) for u, r in (user_roles or {}).items()}
        self._custom: Dict[str, Set[str]] = {u: set(p) for u, p in (custom_permissions or {}).items()}

    def assign_role(self, user_id: str, role: Role | str) -> None:
        self._roles[user_id] = coerce_role(role)

    def grant(self, user_id: str, *permissions: str) -> None:
        self._custom.setdefault(user_id, set()).update(permissions)

    def get_permissions(self, user_id: str) -> Set[str]:
        role = self._roles.get(user_id)
        extra = self._custom.get(user_id, set())
        if role is None:
            return set(extra)
        return permissions_for(role, extra)

    async def validate(self, user_id: str, required_permissions: Sequence[str]) -> bool:
        allowed = has_all_permissions(self.get_permissions(user_id), required_permissions)
        if not allowed:
            logger.debug(f"User '{user_id}' lacks one of {list(required_permissions)}")
        return allowed
