from __future__ import annotations

import datetime
import uuid
from typing import Any

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=8, max_length=1024)
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)


class UserResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID | None
    email: str
    first_name: str
    last_name: str
    role: str
    two_factor_enabled: bool

    @classmethod
    def from_user(cls, user: Any) -> "UserResponse":
        return cls(
            id=user.id,
            organization_id=user.organization_id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role.value if hasattr(user.role, "value") else str(user.role),
            two_factor_enabled=bool(user.two_factor_enabled),
        )


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=1024)
    two_factor_code: str | None = Field(default=None, min_length=6, max_length=6)


class LoginResponse(BaseModel):
    access_token: str | None = None
    expires_at: datetime.datetime | None = None
    user: UserResponse | None = None
    requires_two_factor: bool = False
    message: str | None = None


class RefreshResponse(BaseModel):
    access_token: str
    expires_at: datetime.datetime
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


class ProfileResponse(BaseModel):
    id: uuid.UUID
    email: str
    role: str
    organization_id: uuid.UUID | None


class TwoFactorSetupResponse(BaseModel):
    secret: str
    provisioning_uri: str
    qr_code: str


class VerifyTwoFactorRequest(BaseModel):
    code: str = Field(min_length=6, max_length=6)
