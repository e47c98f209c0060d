from __future__ import annotations

import pytest

from operone_ai.agent_core.security.permissions import (
    ROLE_PERMISSIONS,
    Permission,
    Role,
    RolePermissionValidator,
    coerce_role,
    has_all_permissions,
    has_any_permission,
    permissions_for,
)


def test_admin_holds_every_permission() -> None:
    assert ROLE_PERMISSIONS[Role.ADMIN] == {p.value for p in Permission}


@pytest.mark.parametrize(
    ("role", "granted", "denied"),
    [
        (Role.DEVELOPER, "shell:execute", "file:delete"),
        (Role.OPERATOR, "network:transfer", "file:write"),
        (Role.VIEWER, "system:read", "shell:execute"),
    ],
)
def test_role_catalogue(role: Role, granted: str, denied: str) -> None:
    assert granted in ROLE_PERMISSIONS[role]
    assert denied not in ROLE_PERMISSIONS[role]


def test_coerce_role_accepts_strings() -> None:
    assert coerce_role("viewer") is Role.VIEWER
    assert coerce_role(Role.ADMIN) is Role.ADMIN
    with pytest.raises(ValueError):
        coerce_role("superuser")


def test_permission_helpers() -> None:
    assert permissions_for("viewer", ["file:write"]) >= {"file:read", "file:write"}
    assert has_all_permissions(["a", "b"], ["a"])
    assert not has_all_permissions(["a"], ["a", "b"])
    assert has_any_permission(["a"], ["b", "a"])
    assert not has_any_permission([], ["a"])


@pytest.mark.asyncio
async def test_validator_uses_roles_and_custom_grants() -> None:
    v = RolePermissionValidator({"dev": Role.DEVELOPER})
    assert await v.validate("dev", ["file:write", "shell:execute"]) is True
    assert await v.validate("dev", ["system:admin"]) is False

    v.grant("dev", "system:admin")
    assert await v.validate("dev", ["system:admin"]) is True

    v.assign_role("ops", "OPERATOR")
    assert "network:manage" in v.get_permissions("ops")


@pytest.mark.asyncio
async def test_unknown_user_holds_no_permissions() -> None:
    v = RolePermissionValidator()
    assert v.get_permissions("ghost") == set()
    assert await v.validate("ghost", ["file:read"]) is False
    assert await v.validate("ghost", []) is True
