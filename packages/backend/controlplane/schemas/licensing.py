from __future__ import annotations

import datetime
import uuid

from pydantic import BaseModel, Field

from controlplane.core.settings import settings
from controlplane.models.organization import LicenseTier
from controlplane.security.license import MAX_VALIDITY_DAYS, LicensePayload


class GenerateLicenseRequest(BaseModel):
    tier: LicenseTier
    organization_id: str | None = Field(default=None, max_length=255)
    days: int = Field(
        default_factory=lambda: settings.license_default_validity_days,
        gt=0,
        le=MAX_VALIDITY_DAYS,
    )


class GenerateLicenseResponse(BaseModel):
    license_key: str
    tier: LicenseTier
    expires_in: int


class AssignLicenseRequest(BaseModel):
    organization_id: uuid.UUID
    license_key: str = Field(min_length=16, max_length=16384)


class CheckFeatureRequest(BaseModel):
    feature: str = Field(min_length=1, max_length=128)


class CheckFeatureResponse(BaseModel):
    has_access: bool


class ValidateLicenseResponse(BaseModel):
    is_valid: bool


class LicenseResponse(BaseModel):
    tier: LicenseTier
    organization_id: str | None
    features: list[str]
    issued_at: datetime.datetime
    expires_at: datetime.datetime

    @classmethod
    def from_payload(cls, payload: LicensePayload) -> "LicenseResponse":
        return cls(
            tier=payload.tier,
            organization_id=payload.organization_id,
            features=sorted(payload.features),
            issued_at=datetime.datetime.fromtimestamp(payload.issued_at, tz=datetime.UTC),
            expires_at=payload.expires_at_datetime,
        )
