from __future__ import annotations

import logging
import uuid

from controlplane.models.organization import LicenseTier
from controlplane.repositories.organizations import OrganizationRepository
from controlplane.security.license import LicenseCodec, LicensePayload


logger = logging.getLogger(__name__)


class InvalidLicenseError(Exception):
    pass


class OrganizationNotFoundError(Exception):
    pass


class EntitlementStore:
    """Binds license tokens to organizations and answers feature queries.

    Missing, expired and tampered licenses all read as "no access"; only a
    missing organization or missing key material raises.
    """

    def __init__(self, organizations: OrganizationRepository, codec: LicenseCodec) -> None:
        self._organizations = organizations
        self._codec = codec

    def issue(
        self,
        tier: LicenseTier | str,
        organization_id: str | None = None,
        validity_days: int = 365,
    ) -> str:
        return self._codec.issue(tier, organization_id, validity_days)

    async def assign(self, organization_id: uuid.UUID, token: str) -> LicensePayload:
        license_payload = self._codec.verify(token)
        if license_payload is None:
            logger.info("Rejected license assignment for organization %s", organization_id)
            raise InvalidLicenseError("invalid or expired license")

        updated = await self._organizations.update_license(
            organization_id,
            license_key=token,
            tier=license_payload.tier,
            expires_at=license_payload.expires_at_datetime,
        )
        if not updated:
            raise OrganizationNotFoundError("organization not found")

        logger.info(
            "Assigned %s license to organization %s",
            license_payload.tier.value,
            organization_id,
        )
        return license_payload

    async def get_license(self, organization_id: uuid.UUID) -> LicensePayload | None:
        organization = await self._organizations.get(organization_id)
        if organization is None:
            raise OrganizationNotFoundError("organization not found")
        if not organization.license_key:
            return None
        return self._codec.verify(organization.license_key)

    async def has_feature(self, organization_id: uuid.UUID, feature: str) -> bool:
        license_payload = await self.get_license(organization_id)
        if license_payload is None:
            return False
        return feature in license_payload.features

    async def is_valid(self, organization_id: uuid.UUID) -> bool:
        return await self.get_license(organization_id) is not None
