from __future__ import annotations

import pytest

from controlplane.models.user import UserRole
from controlplane.security.roles import authorize, role_level


def test_role_levels_are_ordered() -> None:
    assert role_level(UserRole.CLIENT) < role_level(UserRole.SUPPORT)
    assert role_level(UserRole.SUPPORT) < role_level(UserRole.ADMIN)
    assert role_level(UserRole.ADMIN) < role_level(UserRole.OWNER)


@pytest.mark.parametrize("role", [None, "", "ROOT", "superuser"])
def test_unknown_roles_have_no_level(role) -> None:
    assert role_level(role) == 0


def test_role_level_accepts_plain_strings() -> None:
    assert role_level("admin") == role_level(UserRole.ADMIN)


@pytest.mark.parametrize("principal", list(UserRole))
def test_no_requirement_admits_everyone(principal: UserRole) -> None:
    assert authorize(principal, []) is True
    assert authorize(principal, None) is True


@pytest.mark.parametrize(
    ("principal", "required", "expected"),
    [
        (UserRole.OWNER, [UserRole.ADMIN], True),
        (UserRole.ADMIN, [UserRole.ADMIN], True),
        (UserRole.SUPPORT, [UserRole.ADMIN], False),
        (UserRole.CLIENT, [UserRole.CLIENT], True),
        (UserRole.ADMIN, [UserRole.ADMIN, UserRole.SUPPORT], True),
        (UserRole.SUPPORT, [UserRole.ADMIN, UserRole.SUPPORT], False),
        (UserRole.ADMIN, [UserRole.OWNER, UserRole.ADMIN], False),
        (UserRole.OWNER, [UserRole.OWNER, UserRole.ADMIN], True),
        (UserRole.SUPPORT, [UserRole.CLIENT, UserRole.SUPPORT], True),
    ],
)
def test_highest_required_role_wins(principal: UserRole, required: list[UserRole], expected: bool) -> None:
    assert authorize(principal, required) is expected


def test_unknown_principal_is_denied_when_anything_is_required() -> None:
    assert authorize(None, [UserRole.CLIENT]) is False
    assert authorize("GUEST", [UserRole.CLIENT]) is False


def test_unknown_required_role_denies_everyone() -> None:
    assert authorize(UserRole.OWNER, ["ROOT"]) is False
    assert authorize(UserRole.OWNER, [UserRole.CLIENT, "ROOT"]) is False
