"""Add license binding columns to organizations.

Revision ID: 0003_add_license_fields_to_organizations
Revises: 0002_create_sessions
Create Date: 2026-10-12 00:00:02
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0003_add_license_fields_to_organizations"
down_revision: Union[str, None] = "0002_create_sessions"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


license_tier_enum = sa.Enum(
    "COMMUNITY",
    "PREMIUM",
    "ENTERPRISE",
    name="license_tier",
)


def upgrade() -> None:
    op.add_column("organizations", sa.Column("license_key", sa.Text(), nullable=True))
    op.add_column("organizations", sa.Column("license_tier", license_tier_enum, nullable=True))
    op.add_column(
        "organizations",
        sa.Column("license_expires_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("organizations", "license_expires_at")
    op.drop_column("organizations", "license_tier")
    op.drop_column("organizations", "license_key")
    license_tier_enum.drop(op.get_bind(), checkfirst=True)
