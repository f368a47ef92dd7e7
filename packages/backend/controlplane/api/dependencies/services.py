from __future__ import annotations

import datetime

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from controlplane.core.settings import settings
from controlplane.db.session import get_db_session
from controlplane.repositories.organizations import SqlAlchemyOrganizationRepository
from controlplane.repositories.sessions import SqlAlchemySessionRepository
from controlplane.repositories.users import SqlAlchemyUserRepository
from controlplane.security.license import LicenseCodec
from controlplane.security.tokens import AccessTokenSigner
from controlplane.services.auth import AuthService
from controlplane.services.licensing import EntitlementStore
from controlplane.services.organizations import OrganizationService


def get_access_token_signer() -> AccessTokenSigner:
    return AccessTokenSigner(
        private_key=settings.normalized_jwt_private_key,
        public_key=settings.normalized_jwt_public_key,
        issuer=settings.jwt_issuer,
    )


def get_license_codec() -> LicenseCodec:
    return LicenseCodec(
        private_key=settings.normalized_license_private_key,
        public_key=settings.normalized_license_public_key,
    )


def get_auth_service(
    db: AsyncSession = Depends(get_db_session),
    signer: AccessTokenSigner = Depends(get_access_token_signer),
) -> AuthService:
    return AuthService(
        SqlAlchemyUserRepository(db),
        SqlAlchemySessionRepository(db),
        signer,
        totp_issuer=settings.totp_issuer,
        session_ttl=datetime.timedelta(days=settings.session_ttl_days),
    )


def get_entitlement_store(
    db: AsyncSession = Depends(get_db_session),
    codec: LicenseCodec = Depends(get_license_codec),
) -> EntitlementStore:
    return EntitlementStore(SqlAlchemyOrganizationRepository(db), codec)


def get_organization_service(db: AsyncSession = Depends(get_db_session)) -> OrganizationService:
    return OrganizationService(SqlAlchemyOrganizationRepository(db))
