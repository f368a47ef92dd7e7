from __future__ import annotations

from collections.abc import Iterable

from controlplane.models.user import UserRole


ROLE_LEVELS: dict[str, int] = {
    UserRole.CLIENT.value: 1,
    UserRole.SUPPORT.value: 2,
    UserRole.ADMIN.value: 3,
    UserRole.OWNER.value: 4,
}


def role_level(role: UserRole | str | None) -> int:
    if role is None:
        return 0
    value = role.value if isinstance(role, UserRole) else str(role).strip().upper()
    return ROLE_LEVELS.get(value, 0)


def authorize(principal_role: UserRole | str | None, required_roles: Iterable[UserRole | str] | None) -> bool:
    """Check ``principal_role`` against the highest of ``required_roles``.

    Listing several roles does not mean "any of them": the principal must
    reach the level of the most privileged one, so ``{ADMIN, SUPPORT}``
    admits ADMIN and OWNER but not SUPPORT. No requirement admits everyone.
    """
    required_levels = [role_level(role) for role in required_roles or ()]
    if not required_levels:
        return True
    if 0 in required_levels:
        # An unrecognised required role can never be satisfied.
        return False
    return role_level(principal_role) >= max(required_levels)
