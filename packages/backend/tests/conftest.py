from __future__ import annotations

import datetime
import uuid
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from argon2 import PasswordHasher
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from controlplane.api.dependencies.services import get_access_token_signer, get_license_codec
from controlplane.db.base import Base
from controlplane.db.session import get_db_session
from controlplane.main import app
from controlplane.models.auth_session import Session
from controlplane.models.organization import LicenseTier, Organization
from controlplane.models.user import User
from controlplane.repositories.organizations import DuplicateSlugError
from controlplane.repositories.users import DuplicateEmailError
from controlplane.security.license import LicenseCodec
from controlplane.security.tokens import AccessTokenSigner
from controlplane.services.auth import login_rate_limiter


def _rsa_key_pair() -> tuple[str, str]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )
    return private_pem, public_pem


@pytest.fixture(scope="session")
def license_keys() -> tuple[str, str]:
    return _rsa_key_pair()


@pytest.fixture(scope="session")
def foreign_license_keys() -> tuple[str, str]:
    return _rsa_key_pair()


@pytest.fixture(scope="session")
def session_keys() -> tuple[str, str]:
    return _rsa_key_pair()


@pytest.fixture(scope="session")
def fast_hasher() -> PasswordHasher:
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


class FrozenClock:
    def __init__(self, start: datetime.datetime | None = None) -> None:
        self.now = start or datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.UTC)

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + datetime.timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


class InMemoryUserRepository:
    def __init__(self) -> None:
        self.users: dict[uuid.UUID, User] = {}
        self.fail_record_login = False

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        return self.users.get(user_id)

    async def find_by_email(self, email: str) -> User | None:
        return next((user for user in self.users.values() if user.email == email), None)

    async def add(self, user: User) -> User:
        if await self.find_by_email(user.email) is not None:
            raise DuplicateEmailError("email already exists")
        self.users[user.id] = user
        return user

    async def update_secret(self, user_id: uuid.UUID, secret: str) -> None:
        self.users[user_id].two_factor_secret = secret

    async def enable_two_factor(self, user_id: uuid.UUID) -> None:
        self.users[user_id].two_factor_enabled = True

    async def disable_two_factor(self, user_id: uuid.UUID) -> None:
        self.users[user_id].two_factor_enabled = False
        self.users[user_id].two_factor_secret = None

    async def record_login(self, user_id: uuid.UUID, at: datetime.datetime) -> None:
        if self.fail_record_login:
            raise RuntimeError("database unavailable")
        self.users[user_id].last_login = at


class InMemorySessionRepository:
    def __init__(self) -> None:
        self.sessions: list[Session] = []

    async def create(self, *, user_id: uuid.UUID, token_hash: str, expires_at: datetime.datetime) -> Session:
        session = Session(
            id=uuid.uuid4(),
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            is_active=True,
        )
        self.sessions.append(session)
        return session

    async def find_active(self, token_hash: str) -> Session | None:
        return next(
            (row for row in self.sessions if row.token_hash == token_hash and row.is_active),
            None,
        )

    async def replace_token(self, session_id: uuid.UUID, token_hash: str) -> None:
        for row in self.sessions:
            if row.id == session_id:
                row.token_hash = token_hash

    async def deactivate(self, token_hash: str) -> int:
        matched = [row for row in self.sessions if row.token_hash == token_hash and row.is_active]
        for row in matched:
            row.is_active = False
        return len(matched)


class InMemoryOrganizationRepository:
    def __init__(self) -> None:
        self.organizations: dict[uuid.UUID, Organization] = {}
        self.license_writes = 0

    async def get(self, organization_id: uuid.UUID) -> Organization | None:
        return self.organizations.get(organization_id)

    async def add(self, organization: Organization) -> Organization:
        if any(existing.slug == organization.slug for existing in self.organizations.values()):
            raise DuplicateSlugError("slug already exists")
        self.organizations[organization.id] = organization
        return organization

    async def update_license(
        self,
        organization_id: uuid.UUID,
        *,
        license_key: str,
        tier: LicenseTier,
        expires_at: datetime.datetime,
    ) -> bool:
        organization = self.organizations.get(organization_id)
        if organization is None:
            return False
        self.license_writes += 1
        organization.license_key = license_key
        organization.license_tier = tier
        organization.license_expires_at = expires_at
        return True


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def organization_repository() -> InMemoryOrganizationRepository:
    return InMemoryOrganizationRepository()


@pytest_asyncio.fixture
async def db_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield session_factory
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session_factory, session_keys, license_keys) -> AsyncIterator[AsyncClient]:
    async def override_get_db_session() -> AsyncIterator[AsyncSession]:
        async with db_session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_access_token_signer] = lambda: AccessTokenSigner(
        private_key=session_keys[0],
        public_key=session_keys[1],
        issuer="test-panel",
    )
    app.dependency_overrides[get_license_codec] = lambda: LicenseCodec(
        private_key=license_keys[0],
        public_key=license_keys[1],
    )
    await login_rate_limiter.reset("127.0.0.1")
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
            yield http_client
    finally:
        app.dependency_overrides.clear()
        await login_rate_limiter.reset("127.0.0.1")
