from __future__ import annotations

import uuid

import jwt
import pytest

from controlplane.core.settings import settings
from controlplane.models.organization import Organization
from controlplane.models.user import User, UserRole
from controlplane.security.password import argon2_hasher


PASSWORD = "ValidPassword123!"


async def _seed_organization(session_factory, slug: str = "acme") -> uuid.UUID:
    organization_id = uuid.uuid4()
    async with session_factory() as session:
        session.add(Organization(id=organization_id, name="Acme", slug=slug, is_active=True))
        await session.commit()
    return organization_id


async def _seed_user(session_factory, email: str, role: UserRole, organization_id: uuid.UUID | None) -> None:
    async with session_factory() as session:
        session.add(
            User(
                id=uuid.uuid4(),
                organization_id=organization_id,
                email=email,
                password_hash=argon2_hasher.hash(PASSWORD),
                first_name="Test",
                last_name=role.value.title(),
                role=role,
                is_active=True,
                two_factor_enabled=False,
            )
        )
        await session.commit()


async def _headers(client, email: str) -> dict[str, str]:
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.mark.asyncio
async def test_owner_generates_and_assigns_license_that_members_can_check(client, db_session_factory) -> None:
    organization_id = await _seed_organization(db_session_factory)
    await _seed_user(db_session_factory, "owner@example.com", UserRole.OWNER, organization_id)
    await _seed_user(db_session_factory, "client@example.com", UserRole.CLIENT, organization_id)
    owner = await _headers(client, "owner@example.com")
    member = await _headers(client, "client@example.com")

    before = await client.post("/api/v1/licensing/validate", headers=member)
    assert before.json() == {"is_valid": False}

    generated = await client.post(
        "/api/v1/licensing/generate",
        json={"tier": "PREMIUM", "organization_id": str(organization_id), "days": 30},
        headers=owner,
    )
    assert generated.status_code == 201
    assert generated.json()["tier"] == "PREMIUM"
    assert generated.json()["expires_in"] == 30

    assigned = await client.post(
        "/api/v1/licensing/assign",
        json={"organization_id": str(organization_id), "license_key": generated.json()["license_key"]},
        headers=owner,
    )
    assert assigned.status_code == 200

    allowed = await client.post("/api/v1/licensing/check-feature", json={"feature": "backups:s3"}, headers=member)
    denied = await client.post("/api/v1/licensing/check-feature", json={"feature": "white-label"}, headers=member)
    assert allowed.json() == {"has_access": True}
    assert denied.json() == {"has_access": False}

    valid = await client.post("/api/v1/licensing/validate", headers=member)
    assert valid.json() == {"is_valid": True}

    details = await client.get(f"/api/v1/licensing/organizations/{organization_id}", headers=owner)
    assert details.status_code == 200
    assert details.json()["tier"] == "PREMIUM"
    assert details.json()["organization_id"] == str(organization_id)
    assert "backups:s3" in details.json()["features"]


@pytest.mark.asyncio
async def test_admin_cannot_generate_or_assign(client, db_session_factory) -> None:
    organization_id = await _seed_organization(db_session_factory)
    await _seed_user(db_session_factory, "admin@example.com", UserRole.ADMIN, organization_id)
    admin = await _headers(client, "admin@example.com")

    generated = await client.post("/api/v1/licensing/generate", json={"tier": "COMMUNITY"}, headers=admin)
    assigned = await client.post(
        "/api/v1/licensing/assign",
        json={"organization_id": str(organization_id), "license_key": "x" * 64},
        headers=admin,
    )
    details = await client.get(f"/api/v1/licensing/organizations/{organization_id}", headers=admin)

    assert generated.status_code == 403
    assert assigned.status_code == 403
    # OWNER is the highest role listed on this route too.
    assert details.status_code == 403


@pytest.mark.asyncio
async def test_assign_rejects_invalid_license_and_unknown_organization(client, db_session_factory) -> None:
    organization_id = await _seed_organization(db_session_factory)
    await _seed_user(db_session_factory, "owner@example.com", UserRole.OWNER, organization_id)
    owner = await _headers(client, "owner@example.com")

    invalid = await client.post(
        "/api/v1/licensing/assign",
        json={"organization_id": str(organization_id), "license_key": "not.a.valid-license-token"},
        headers=owner,
    )
    assert invalid.status_code == 400
    assert invalid.json()["type"].endswith("/invalid-license")

    token = (
        await client.post("/api/v1/licensing/generate", json={"tier": "ENTERPRISE"}, headers=owner)
    ).json()["license_key"]
    missing = await client.post(
        "/api/v1/licensing/assign",
        json={"organization_id": str(uuid.uuid4()), "license_key": token},
        headers=owner,
    )
    assert missing.status_code == 404

    details = await client.get(f"/api/v1/licensing/organizations/{organization_id}", headers=owner)
    assert details.status_code == 200
    assert details.json() is None


@pytest.mark.asyncio
async def test_generate_validates_request(client, db_session_factory) -> None:
    await _seed_user(db_session_factory, "owner@example.com", UserRole.OWNER, None)
    owner = await _headers(client, "owner@example.com")

    unknown_tier = await client.post("/api/v1/licensing/generate", json={"tier": "GOLD"}, headers=owner)
    zero_days = await client.post("/api/v1/licensing/generate", json={"tier": "PREMIUM", "days": 0}, headers=owner)

    assert unknown_tier.status_code == 422
    assert zero_days.status_code == 422


@pytest.mark.asyncio
async def test_user_without_organization_has_no_features(client, db_session_factory) -> None:
    await _seed_user(db_session_factory, "loner@example.com", UserRole.CLIENT, None)
    headers = await _headers(client, "loner@example.com")

    checked = await client.post("/api/v1/licensing/check-feature", json={"feature": "sites:create"}, headers=headers)
    validated = await client.post("/api/v1/licensing/validate", headers=headers)

    assert checked.json() == {"has_access": False}
    assert validated.json() == {"is_valid": False}


@pytest.mark.asyncio
async def test_licensing_requires_authentication(client) -> None:
    response = await client.post("/api/v1/licensing/check-feature", json={"feature": "sites:create"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_organization_endpoints(client, db_session_factory) -> None:
    await _seed_user(db_session_factory, "owner@example.com", UserRole.OWNER, None)
    await _seed_user(db_session_factory, "support@example.com", UserRole.SUPPORT, None)
    owner = await _headers(client, "owner@example.com")
    support = await _headers(client, "support@example.com")

    created = await client.post(
        "/api/v1/organizations",
        json={"name": "Globex", "slug": "globex", "domain": "globex.example"},
        headers=owner,
    )
    assert created.status_code == 201
    organization_id = created.json()["id"]

    duplicate = await client.post("/api/v1/organizations", json={"name": "Globex 2", "slug": "globex"}, headers=owner)
    assert duplicate.status_code == 409

    fetched = await client.get(f"/api/v1/organizations/{organization_id}", headers=owner)
    assert fetched.status_code == 200
    assert fetched.json()["slug"] == "globex"

    missing = await client.get(f"/api/v1/organizations/{uuid.uuid4()}", headers=owner)
    assert missing.status_code == 404

    forbidden = await client.get(f"/api/v1/organizations/{organization_id}", headers=support)
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_generate_defaults_to_configured_validity(
    client, db_session_factory, license_keys, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings, "license_default_validity_days", 90)
    await _seed_user(db_session_factory, "owner@example.com", UserRole.OWNER, None)
    owner = await _headers(client, "owner@example.com")

    generated = await client.post("/api/v1/licensing/generate", json={"tier": "COMMUNITY"}, headers=owner)
    too_long = await client.post(
        "/api/v1/licensing/generate", json={"tier": "COMMUNITY", "days": 36501}, headers=owner
    )

    assert generated.status_code == 201
    assert generated.json()["expires_in"] == 90
    claims = jwt.decode(generated.json()["license_key"], license_keys[1], algorithms=["RS256"])
    assert claims["expiresAt"] - claims["issuedAt"] == 90 * 86400
    assert too_long.status_code == 422
