from __future__ import annotations

import datetime
import hashlib
import uuid
from dataclasses import dataclass

import jwt
from jwt import InvalidTokenError

from controlplane.security.errors import ConfigurationError


ALGORITHM = "RS256"


class AccessTokenValidationError(Exception):
    pass


@dataclass(frozen=True)
class AccessTokenPayload:
    sub: uuid.UUID
    email: str
    role: str
    jti: str
    iat: datetime.datetime
    exp: datetime.datetime
    iss: str


@dataclass(frozen=True)
class AccessTokenSigner:
    """Signs and validates session credentials.

    The private key is only needed to issue; validation needs the public key.
    """

    private_key: str | None
    public_key: str | None
    issuer: str

    def issue(
        self,
        *,
        user_id: uuid.UUID,
        email: str,
        role: str,
        expires_at: datetime.datetime,
        now: datetime.datetime | None = None,
    ) -> str:
        if not self.private_key:
            raise ConfigurationError("session signing private key is not configured")

        issued_at = now or datetime.datetime.now(datetime.UTC)
        payload = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "iss": self.issuer,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            # Two credentials minted in the same second must still hash differently.
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.private_key, algorithm=ALGORITHM)

    def validate(self, token: str, *, now: datetime.datetime | None = None) -> AccessTokenPayload:
        if not self.public_key:
            raise ConfigurationError("session signing public key is not configured")

        try:
            payload = jwt.decode(
                token,
                self.public_key,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options={
                    "require": ["sub", "email", "role", "iat", "exp", "iss", "jti"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except InvalidTokenError as exc:
            raise AccessTokenValidationError("invalid access token") from exc

        try:
            decoded = AccessTokenPayload(
                sub=uuid.UUID(payload["sub"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                jti=str(payload["jti"]),
                iat=datetime.datetime.fromtimestamp(int(payload["iat"]), tz=datetime.UTC),
                exp=datetime.datetime.fromtimestamp(int(payload["exp"]), tz=datetime.UTC),
                iss=str(payload["iss"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise AccessTokenValidationError("malformed access token payload") from exc

        current_time = now or datetime.datetime.now(datetime.UTC)
        if decoded.exp <= current_time:
            raise AccessTokenValidationError("access token expired")
        return decoded


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
