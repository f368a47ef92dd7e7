"""Import all models so SQLAlchemy metadata is fully populated."""

from controlplane.models.auth_session import Session  # noqa: F401
from controlplane.models.organization import Organization  # noqa: F401
from controlplane.models.user import User  # noqa: F401
