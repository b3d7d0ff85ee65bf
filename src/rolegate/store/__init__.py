"""Entity store: identities, roles, permissions and their associations."""

from rolegate.store.models import (
    Identity,
    IdentityPermission,
    IdentityRole,
    Permission,
    Role,
    role_permissions,
)
from rolegate.store.repository import (
    ChangeListener,
    EntityStore,
    ResolvedIdentity,
    RoleSummary,
    StoreChange,
)


__all__ = [
    "ChangeListener",
    "EntityStore",
    "Identity",
    "IdentityPermission",
    "IdentityRole",
    "Permission",
    "ResolvedIdentity",
    "Role",
    "RoleSummary",
    "StoreChange",
    "role_permissions",
]
