from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

PERM_WILDCARD = "*"
PERM_PROFILE_READ = "profile.read"
PERM_IDENTITY_ADMIN = "identity.admin"
PERM_REFERENCE_READ = "reference.read"
PERM_REFERENCE_WRITE = "reference.write"
PERM_ASSET_READ = "asset.read"
PERM_ASSET_WRITE = "asset.write"
PERM_ASSET_READ_ALL = "asset.read_all"
PERM_ASSET_MANAGE_ALL = "asset.manage_all"
PERM_ASSET_DELETE = "asset.delete"
PERM_WARRANTY_REGISTER = "warranty.register"
PERM_ANALYTICS_READ = "analytics.read"


class UserRole(StrEnum):
    ADMIN = "admin"
    USER = "user"


ROLE_PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.ADMIN: [PERM_WILDCARD],
    UserRole.USER: [
        PERM_PROFILE_READ,
        PERM_REFERENCE_READ,
        PERM_ASSET_READ,
        PERM_ASSET_WRITE,
        PERM_WARRANTY_REGISTER,
    ],
}


def permissions_for_role(role: UserRole | str) -> list[str]:
    try:
        return list(ROLE_PERMISSIONS[UserRole(role)])
    except ValueError:
        return []


@dataclass(frozen=True)
class Actor:
    """The resolved caller, passed explicitly into every service call.

    Built from the stored user profile on each request, so a role change or
    account deletion takes effect without waiting for the token to expire.
    """

    user_id: str
    role: UserRole
    email: str | None = None

    def can(self, permission: str) -> bool:
        permissions = permissions_for_role(self.role)
        return permission in permissions or PERM_WILDCARD in permissions

    def can_manage(self, owner_id: str | None) -> bool:
        return owner_id == self.user_id or self.can(PERM_ASSET_MANAGE_ALL)
