from __future__ import annotations

import uuid

from controlplane.models.organization import Organization
from controlplane.repositories.organizations import OrganizationRepository
from controlplane.services.licensing import OrganizationNotFoundError


class OrganizationService:
    def __init__(self, organizations: OrganizationRepository) -> None:
        self._organizations = organizations

    async def create(self, *, name: str, slug: str, domain: str | None = None) -> Organization:
        organization = Organization(
            id=uuid.uuid4(),
            name=name.strip(),
            slug=slug,
            domain=domain,
            is_active=True,
        )
        return await self._organizations.add(organization)

    async def get(self, organization_id: uuid.UUID) -> Organization:
        organization = await self._organizations.get(organization_id)
        if organization is None:
            raise OrganizationNotFoundError("organization not found")
        return organization
