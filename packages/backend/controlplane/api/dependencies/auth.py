from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from controlplane.api.dependencies.services import get_auth_service, get_entitlement_store
from controlplane.models.user import UserRole
from controlplane.security.roles import authorize, role_level
from controlplane.services.auth import AuthService, InvalidOrExpiredSessionError, Principal
from controlplane.services.licensing import EntitlementStore, OrganizationNotFoundError


logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Invalid or expired access token.") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(detail: str = "Insufficient permissions for this resource.") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def get_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise _unauthorized("Missing bearer token.")
    if credentials.scheme.lower() != "bearer" or not credentials.credentials.strip():
        raise _unauthorized("Invalid authorization scheme.")
    return credentials.credentials


async def get_current_principal(
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> Principal:
    try:
        return await auth_service.resolve_principal(access_token)
    except InvalidOrExpiredSessionError as exc:
        raise _unauthorized() from exc


def require_roles(*required_roles: UserRole | str) -> Callable[..., Awaitable[Principal]]:
    """Guard a route with :func:`authorize`; the required set is the highest role listed."""
    for role in required_roles:
        if role_level(role) == 0:
            raise ValueError(f"Unsupported role: {role!r}")

    async def role_dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not authorize(principal.role, required_roles):
            logger.info(
                "Denied %s (role %s) for required roles %s",
                principal.user_id,
                principal.role.value,
                [getattr(role, "value", role) for role in required_roles],
            )
            raise _forbidden()
        return principal

    return role_dependency


def require_feature(feature: str) -> Callable[..., Awaitable[Principal]]:
    async def feature_dependency(
        principal: Principal = Depends(get_current_principal),
        store: EntitlementStore = Depends(get_entitlement_store),
    ) -> Principal:
        if principal.organization_id is None:
            raise _forbidden("Feature not available for this organization.")
        try:
            has_access = await store.has_feature(principal.organization_id, feature)
        except OrganizationNotFoundError as exc:
            raise _forbidden("Feature not available for this organization.") from exc
        if not has_access:
            raise _forbidden("Feature not available for this organization.")
        return principal

    return feature_dependency
