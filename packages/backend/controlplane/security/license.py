"""Signed license tokens.

A license is an RS256 JWT whose claims carry the tier, the optional owning
organization, the features unlocked by that tier and the issue/expiry
timestamps. The control plane holds the private key; anything that only
needs to check a license (for example an agent on a customer server) can
do so offline with the public key.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass

import jwt
from jwt import PyJWTError

from controlplane.models.organization import LicenseTier
from controlplane.security.errors import ConfigurationError


logger = logging.getLogger(__name__)

ALGORITHM = "RS256"
SECONDS_PER_DAY = 24 * 60 * 60
MAX_VALIDITY_DAYS = 36500
# 9999-12-31T23:59:59Z, the last instant a datetime can represent.
MAX_TIMESTAMP = 253402300799

COMMUNITY_FEATURES: tuple[str, ...] = (
    "sites:create",
    "sites:manage",
    "databases:create",
    "databases:manage",
    "ssl:basic",
    "support:basic",
)
PREMIUM_FEATURES: tuple[str, ...] = COMMUNITY_FEATURES + (
    "backups:automated",
    "backups:s3",
    "monitoring:advanced",
    "servers:multiple",
    "ssl:wildcard",
    "support:priority",
)
ENTERPRISE_FEATURES: tuple[str, ...] = PREMIUM_FEATURES + (
    "white-label",
    "custom-branding",
    "api:unlimited",
    "support:dedicated",
)

TIER_FEATURES: dict[LicenseTier, tuple[str, ...]] = {
    LicenseTier.COMMUNITY: COMMUNITY_FEATURES,
    LicenseTier.PREMIUM: PREMIUM_FEATURES,
    LicenseTier.ENTERPRISE: ENTERPRISE_FEATURES,
}


def features_for_tier(tier: LicenseTier | str) -> frozenset[str]:
    return frozenset(TIER_FEATURES[LicenseTier(tier)])


@dataclass(frozen=True)
class LicensePayload:
    tier: LicenseTier
    organization_id: str | None
    features: frozenset[str]
    issued_at: int
    expires_at: int

    @property
    def expires_at_datetime(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self.expires_at, tz=datetime.UTC)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


@dataclass(frozen=True)
class LicenseCodec:
    private_key: str | None
    public_key: str | None
    clock: Callable[[], datetime.datetime] = _utcnow

    def issue(
        self,
        tier: LicenseTier | str,
        organization_id: str | None = None,
        validity_days: int = 365,
    ) -> str:
        if not self.private_key:
            raise ConfigurationError("license private key is not configured")

        tier = LicenseTier(tier)
        if validity_days <= 0:
            logger.warning(
                "Issuing an already-expired %s license (validity_days=%s)",
                tier.value,
                validity_days,
            )

        now = int(self.clock().timestamp())
        payload: dict[str, object] = {
            "tier": tier.value,
            "features": list(TIER_FEATURES[tier]),
            "issuedAt": now,
            "expiresAt": now + validity_days * SECONDS_PER_DAY,
        }
        if organization_id is not None:
            payload["organizationId"] = organization_id
        return jwt.encode(payload, self.private_key, algorithm=ALGORITHM)

    def verify(self, token: str) -> LicensePayload | None:
        """Return the decoded payload, or ``None`` when the token must not be trusted."""
        if not self.public_key:
            raise ConfigurationError("license public key is not configured")

        try:
            claims = jwt.decode(token, self.public_key, algorithms=[ALGORITHM])
            decoded = _payload_from_claims(claims)
        except (PyJWTError, ValueError, TypeError, KeyError):
            return None

        if decoded.expires_at <= int(self.clock().timestamp()):
            return None
        return decoded


def _payload_from_claims(claims: dict[str, object]) -> LicensePayload:
    features = claims["features"]
    if not isinstance(features, list) or not all(isinstance(item, str) for item in features):
        raise TypeError("features must be a list of strings")

    issued_at = claims["issuedAt"]
    expires_at = claims["expiresAt"]
    # bool is an int subclass; neither belongs in a timestamp.
    for value in (issued_at, expires_at):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("timestamps must be integers")
        if not 0 <= value <= MAX_TIMESTAMP:
            raise ValueError("timestamp out of range")

    organization_id = claims.get("organizationId")
    if organization_id is not None and not isinstance(organization_id, str):
        raise TypeError("organizationId must be a string")

    return LicensePayload(
        tier=LicenseTier(claims["tier"]),
        organization_id=organization_id,
        features=frozenset(features),
        issued_at=issued_at,
        expires_at=expires_at,
    )
