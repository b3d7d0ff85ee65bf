"""Declarative seeding of roles, permissions and assignments.

Seeding is idempotent: entities are created only when absent and grants
skip existing associations, so a seed can be applied on every deploy.
A role or identity that references a permission or role which is
neither declared in the seed nor present in the store is an error.

Seed files are YAML:

    permissions:
      - name: create-post
        description: Create blog posts
    roles:
      - name: admin
        permissions: [create-post]
    identities:
      - ref: "42"
        roles: [admin]
        permissions: []
"""

from dataclasses import dataclass, field
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from rolegate.core.errors import NotFoundError, ValidationError
from rolegate.store.repository import EntityStore


logger = structlog.get_logger()


# ============================================================
# Definitions
# ============================================================


class PermissionSeed(BaseModel):
    name: str
    description: str | None = None


class RoleSeed(BaseModel):
    name: str
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)


class IdentitySeed(BaseModel):
    ref: str
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)


class SeedDefinition(BaseModel):
    """Complete seed: permissions first, then roles, then identities."""

    model_config = {"extra": "forbid"}

    permissions: list[PermissionSeed] = Field(default_factory=list)
    roles: list[RoleSeed] = Field(default_factory=list)
    identities: list[IdentitySeed] = Field(default_factory=list)


DEFAULT_SEED = SeedDefinition(
    permissions=[
        PermissionSeed(name="create-post", description="Create posts"),
        PermissionSeed(name="create-user", description="Create users"),
    ],
    roles=[
        RoleSeed(
            name="admin", description="Administrator", permissions=["create-post"]
        ),
        RoleSeed(name="user", description="Regular user", permissions=["create-user"]),
    ],
)


@dataclass
class SeedReport:
    """What a seed run changed."""

    created_permissions: list[str] = field(default_factory=list)
    created_roles: list[str] = field(default_factory=list)
    registered_identities: list[str] = field(default_factory=list)
    grants: int = 0

    @property
    def changed(self) -> bool:
        return bool(
            self.created_permissions
            or self.created_roles
            or self.registered_identities
            or self.grants
        )


def load_seed_file(path: str | Path) -> SeedDefinition:
    """Load and validate a YAML seed file.

    Args:
        path: Path to the seed file

    Returns:
        The parsed seed definition

    Raises:
        ValidationError: If the file cannot be read, is not valid YAML or
            does not match the seed schema
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(
            f"Seed file {path} cannot be read", details={"error": str(exc)}
        ) from exc

    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ValidationError(
            f"Seed file {path} is not valid YAML", details={"error": str(exc)}
        ) from exc

    try:
        return SeedDefinition.model_validate(raw)
    except PydanticValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]) or "root",
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        raise ValidationError(f"Seed file {path} is invalid", errors=errors) from exc


# ============================================================
# Seeder
# ============================================================


class Seeder:
    """Applies seed definitions through the entity store."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    async def apply(self, definition: SeedDefinition = DEFAULT_SEED) -> SeedReport:
        """Apply a seed definition.

        Args:
            definition: Seed to apply (defaults to ``DEFAULT_SEED``)

        Returns:
            Report of created entities and new grants

        Raises:
            NotFoundError: If a referenced role or permission exists
                neither in the seed nor in the store
        """
        await self._check_references(definition)
        report = SeedReport()

        for permission in definition.permissions:
            _, created = await self.store.get_or_create_permission(
                permission.name, permission.description
            )
            if created:
                report.created_permissions.append(permission.name)

        for role in definition.roles:
            _, created = await self.store.get_or_create_role(
                role.name, role.description
            )
            if created:
                report.created_roles.append(role.name)
            for permission_name in role.permissions:
                if await self.store.grant_permission_to_role(
                    role.name, permission_name
                ):
                    report.grants += 1

        for identity in definition.identities:
            if await self.store.register_identity(identity.ref):
                report.registered_identities.append(identity.ref)
            for role_name in identity.roles:
                if await self.store.grant_role_to_identity(identity.ref, role_name):
                    report.grants += 1
            for permission_name in identity.permissions:
                if await self.store.grant_permission_to_identity(
                    identity.ref, permission_name
                ):
                    report.grants += 1

        logger.info(
            "seed_applied",
            created_permissions=len(report.created_permissions),
            created_roles=len(report.created_roles),
            registered_identities=len(report.registered_identities),
            grants=report.grants,
        )
        return report

    async def _check_references(self, definition: SeedDefinition) -> None:
        """Fail before writing anything if a reference cannot be satisfied."""
        known_permissions = {p.name for p in definition.permissions}
        known_permissions.update(await self.store.all_permissions())
        known_roles = {r.name for r in definition.roles}
        known_roles.update(await self.store.all_roles())

        referenced_permissions = {
            name for role in definition.roles for name in role.permissions
        }
        referenced_permissions.update(
            name for identity in definition.identities for name in identity.permissions
        )
        referenced_roles = {
            name for identity in definition.identities for name in identity.roles
        }
        missing_permissions = sorted(referenced_permissions - known_permissions)
        missing_roles = sorted(referenced_roles - known_roles)
        if missing_permissions or missing_roles:
            raise NotFoundError(
                "Seed references unknown roles or permissions",
                details={
                    "missing_permissions": missing_permissions,
                    "missing_roles": missing_roles,
                },
            )
