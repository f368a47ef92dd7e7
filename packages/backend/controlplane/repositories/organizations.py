from __future__ import annotations

import datetime
import uuid
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from controlplane.models.organization import LicenseTier, Organization


class DuplicateSlugError(Exception):
    pass


class OrganizationRepository(Protocol):
    async def get(self, organization_id: uuid.UUID) -> Organization | None: ...

    async def add(self, organization: Organization) -> Organization: ...

    async def update_license(
        self,
        organization_id: uuid.UUID,
        *,
        license_key: str,
        tier: LicenseTier,
        expires_at: datetime.datetime,
    ) -> bool: ...


def _is_duplicate_slug_error(exc: IntegrityError) -> bool:
    if exc.orig is None:
        return False
    message = str(exc.orig).lower()
    return (
        "uq_organizations_slug" in message
        or "duplicate entry" in message
        or "unique constraint failed: organizations.slug" in message
    )


class SqlAlchemyOrganizationRepository:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get(self, organization_id: uuid.UUID) -> Organization | None:
        return await self._db.get(Organization, organization_id, populate_existing=True)

    async def add(self, organization: Organization) -> Organization:
        self._db.add(organization)
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            if _is_duplicate_slug_error(exc):
                raise DuplicateSlugError("slug already exists") from exc
            raise
        await self._db.refresh(organization)
        return organization

    async def update_license(
        self,
        organization_id: uuid.UUID,
        *,
        license_key: str,
        tier: LicenseTier,
        expires_at: datetime.datetime,
    ) -> bool:
        result = await self._db.execute(
            update(Organization)
            .where(Organization.id == organization_id)
            .values(
                license_key=license_key,
                license_tier=tier,
                license_expires_at=expires_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        await self._db.commit()
        return bool(result.rowcount)
