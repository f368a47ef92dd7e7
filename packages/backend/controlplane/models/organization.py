from __future__ import annotations

import datetime
import enum
import uuid

from sqlalchemy import DateTime, Enum, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from controlplane.db.base import Base


class LicenseTier(str, enum.Enum):
    COMMUNITY = "COMMUNITY"
    PREMIUM = "PREMIUM"
    ENTERPRISE = "ENTERPRISE"


class Organization(Base):
    __tablename__ = "organizations"
    __table_args__ = (UniqueConstraint("slug", name="uq_organizations_slug"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    license_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    license_tier: Mapped[LicenseTier | None] = mapped_column(
        Enum(LicenseTier, name="license_tier", native_enum=True),
        nullable=True,
    )
    license_expires_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
