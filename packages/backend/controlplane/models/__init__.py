from controlplane.models.auth_session import Session
from controlplane.models.organization import LicenseTier, Organization
from controlplane.models.user import User, UserRole

__all__ = [
    "LicenseTier",
    "Organization",
    "Session",
    "User",
    "UserRole",
]
