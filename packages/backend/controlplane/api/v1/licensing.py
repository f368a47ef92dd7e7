import uuid

from fastapi import APIRouter, Depends

from controlplane.api.dependencies.auth import get_current_principal, require_roles
from controlplane.api.dependencies.services import get_entitlement_store
from controlplane.core.problems import problem_response, problem_type
from controlplane.models.user import UserRole
from controlplane.schemas.auth import MessageResponse
from controlplane.schemas.licensing import (
    AssignLicenseRequest,
    CheckFeatureRequest,
    CheckFeatureResponse,
    GenerateLicenseRequest,
    GenerateLicenseResponse,
    LicenseResponse,
    ValidateLicenseResponse,
)
from controlplane.services.auth import Principal
from controlplane.services.licensing import EntitlementStore, InvalidLicenseError, OrganizationNotFoundError


router = APIRouter(prefix="/api/v1/licensing", tags=["licensing"])


def _organization_not_found_problem():
    return problem_response(
        status=404,
        title="Not Found",
        detail="Organization not found.",
        type_=problem_type("organization-not-found"),
    )


@router.post("/generate", response_model=GenerateLicenseResponse, status_code=201)
async def generate_license(
    payload: GenerateLicenseRequest,
    _: Principal = Depends(require_roles(UserRole.OWNER)),
    store: EntitlementStore = Depends(get_entitlement_store),
) -> GenerateLicenseResponse:
    license_key = store.issue(payload.tier, payload.organization_id, payload.days)
    return GenerateLicenseResponse(license_key=license_key, tier=payload.tier, expires_in=payload.days)


# OWNER and ADMIN are both listed, but the highest listed role is what is
# enforced, so only OWNER passes.
@router.post("/assign", response_model=MessageResponse)
async def assign_license(
    payload: AssignLicenseRequest,
    _: Principal = Depends(require_roles(UserRole.OWNER, UserRole.ADMIN)),
    store: EntitlementStore = Depends(get_entitlement_store),
) -> MessageResponse:
    try:
        await store.assign(payload.organization_id, payload.license_key)
    except InvalidLicenseError:
        return problem_response(
            status=400,
            title="Bad Request",
            detail="Invalid or expired license.",
            type_=problem_type("invalid-license"),
        )
    except OrganizationNotFoundError:
        return _organization_not_found_problem()
    return MessageResponse(message="License assigned successfully")


@router.post("/check-feature", response_model=CheckFeatureResponse)
async def check_feature(
    payload: CheckFeatureRequest,
    principal: Principal = Depends(get_current_principal),
    store: EntitlementStore = Depends(get_entitlement_store),
) -> CheckFeatureResponse:
    if principal.organization_id is None:
        return CheckFeatureResponse(has_access=False)
    try:
        has_access = await store.has_feature(principal.organization_id, payload.feature)
    except OrganizationNotFoundError:
        return _organization_not_found_problem()
    return CheckFeatureResponse(has_access=has_access)


@router.post("/validate", response_model=ValidateLicenseResponse)
async def validate_license(
    principal: Principal = Depends(get_current_principal),
    store: EntitlementStore = Depends(get_entitlement_store),
) -> ValidateLicenseResponse:
    if principal.organization_id is None:
        return ValidateLicenseResponse(is_valid=False)
    try:
        is_valid = await store.is_valid(principal.organization_id)
    except OrganizationNotFoundError:
        return _organization_not_found_problem()
    return ValidateLicenseResponse(is_valid=is_valid)


@router.get("/organizations/{organization_id}", response_model=LicenseResponse | None)
async def get_organization_license(
    organization_id: uuid.UUID,
    _: Principal = Depends(require_roles(UserRole.OWNER, UserRole.ADMIN)),
    store: EntitlementStore = Depends(get_entitlement_store),
) -> LicenseResponse | None:
    try:
        license_payload = await store.get_license(organization_id)
    except OrganizationNotFoundError:
        return _organization_not_found_problem()
    if license_payload is None:
        return None
    return LicenseResponse.from_payload(license_payload)
