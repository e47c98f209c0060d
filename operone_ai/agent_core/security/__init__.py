"""Role-based permission catalogue and validator."""

from .permissions import (
    ROLE_PERMISSIONS,
    Permission,
    Role,
    RolePermissionValidator,
    coerce_role,
    has_all_permissions,
    has_any_permission,
    permissions_for,
)

__all__ = [
    "ROLE_PERMISSIONS",
    "Permission",
    "Role",
    "RolePermissionValidator",
    "coerce_role",
    "has_all_permissions",
    "has_any_permission",
    "permissions_for",
]
