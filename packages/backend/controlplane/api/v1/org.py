import uuid

from fastapi import APIRouter, Depends

from controlplane.api.dependencies.auth import require_roles
from controlplane.api.dependencies.services import get_organization_service
from controlplane.core.problems import problem_response, problem_type
from controlplane.models.user import UserRole
from controlplane.repositories.organizations import DuplicateSlugError
from controlplane.schemas.org import CreateOrganizationRequest, OrganizationResponse
from controlplane.services.auth import Principal
from controlplane.services.licensing import OrganizationNotFoundError
from controlplane.services.organizations import OrganizationService


router = APIRouter(prefix="/api/v1/organizations", tags=["organizations"])


@router.post("", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    payload: CreateOrganizationRequest,
    _: Principal = Depends(require_roles(UserRole.OWNER, UserRole.ADMIN)),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationResponse:
    try:
        organization = await service.create(name=payload.name, slug=payload.slug, domain=payload.domain)
    except DuplicateSlugError:
        return problem_response(
            status=409,
            title="Conflict",
            detail="Organization with this slug already exists.",
            type_=problem_type("duplicate-slug"),
        )
    return OrganizationResponse.from_organization(organization)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: uuid.UUID,
    _: Principal = Depends(require_roles(UserRole.OWNER, UserRole.ADMIN)),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationResponse:
    try:
        organization = await service.get(organization_id)
    except OrganizationNotFoundError:
        return problem_response(
            status=404,
            title="Not Found",
            detail="Organization not found.",
            type_=problem_type("organization-not-found"),
        )
    return OrganizationResponse.from_organization(organization)
