from __future__ import annotations

import datetime
import uuid
from typing import Any

from pydantic import BaseModel, Field


class CreateOrganizationRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255, pattern=r"^[a-z0-9-]+$")
    domain: str | None = Field(default=None, max_length=255)


class OrganizationResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    domain: str | None
    is_active: bool
    license_tier: str | None
    license_expires_at: datetime.datetime | None

    @classmethod
    def from_organization(cls, organization: Any) -> "OrganizationResponse":
        tier = organization.license_tier
        return cls(
            id=organization.id,
            name=organization.name,
            slug=organization.slug,
            domain=organization.domain,
            is_active=organization.is_active,
            license_tier=tier.value if hasattr(tier, "value") else tier,
            license_expires_at=organization.license_expires_at,
        )
