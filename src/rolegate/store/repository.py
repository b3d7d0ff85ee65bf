"""Entity store for identities, roles and permissions.

Every mutation runs in its own database transaction, so a grant, revoke
or delete is applied completely or not at all. After a mutation that
changed an association commits, subscribed listeners receive a
``StoreChange`` describing which identities may resolve differently.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TypeVar
from uuid import UUID

import structlog
from sqlalchemy import delete, insert, literal_column, select, union_all
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from rolegate.core.constants import (
    MAX_IDENTITY_REF_LENGTH,
    MAX_PERMISSION_NAME_LENGTH,
    MAX_ROLE_NAME_LENGTH,
)
from rolegate.core.errors import (
    CacheInvalidationError,
    ConflictError,
    DuplicateNameError,
    NotFoundError,
    RoleGateError,
    StoreUnavailableError,
)
from rolegate.core.validation import validate_name
from rolegate.store.models import (
    Identity,
    IdentityPermission,
    IdentityRole,
    Permission,
    Role,
    role_permissions,
)


logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class StoreChange:
    """Notification emitted after a committed mutation.

    Attributes:
        operation: Name of the store method that ran
        identities: Identities whose assignments changed
        everyone: True when a role or permission changed, which may
            affect any identity
    """

    operation: str
    identities: frozenset[str] = frozenset()
    everyone: bool = False


@dataclass(frozen=True)
class ResolvedIdentity:
    """Roles and effective permissions of an identity at one point in time."""

    identity: str
    roles: tuple[str, ...]
    permissions: frozenset[str]


@dataclass(frozen=True)
class RoleSummary:
    """A role with its description and sorted permission names."""

    name: str
    description: str | None
    permissions: tuple[str, ...]


ChangeListener = Callable[[StoreChange], Awaitable[None]]


class EntityStore:
    """Repository for identity, role and permission associations.

    Roles, permissions and identities are referenced by name. Creation
    returns the new entity's UUID.

    Listeners are notified after each mutation commits. If a listener
    fails, every other listener still runs and the mutation raises
    ``CacheInvalidationError``; the change itself stays committed.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._listeners: list[ChangeListener] = []

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> None:
        """Register an async callable invoked after each committed change."""
        self._listeners.append(listener)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Open a session and transaction, committed when the block exits.

        Raises:
            StoreUnavailableError: If the database cannot be reached or
                fails for reasons other than an integrity violation
        """
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except IntegrityError:
            raise
        except (DBAPIError, OSError) as exc:
            logger.error(
                "store_unavailable", error=str(exc), error_type=type(exc).__name__
            )
            raise StoreUnavailableError(
                details={"error_type": type(exc).__name__}
            ) from exc

    async def _write(self, apply: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run a mutation, re-running it once after an integrity race.

        A concurrent writer inserting the same row makes the first attempt
        fail on a unique constraint; the second attempt then observes that
        row and takes its idempotent path.
        """
        try:
            async with self.transaction() as session:
                return await apply(session)
        except IntegrityError:
            logger.info("store_write_conflict_retry")
        try:
            async with self.transaction() as session:
                return await apply(session)
        except IntegrityError as exc:
            raise ConflictError("Concurrent modification, try again") from exc

    async def _notify(self, change: StoreChange) -> None:
        failure: RoleGateError | None = None
        for listener in list(self._listeners):
            try:
                await listener(change)
            except RoleGateError as exc:
                logger.error(
                    "change_notification_failed",
                    operation=change.operation,
                    error=exc.message,
                )
                failure = failure or exc
        if failure is not None:
            raise CacheInvalidationError(
                details={"operation": change.operation, "committed": True}
            ) from failure

    @staticmethod
    async def _find_role_id(session: AsyncSession, name: str) -> UUID | None:
        return await session.scalar(select(Role.id).where(Role.name == name))

    @staticmethod
    async def _find_permission_id(session: AsyncSession, name: str) -> UUID | None:
        return await session.scalar(
            select(Permission.id).where(Permission.name == name)
        )

    async def _require_role_id(self, session: AsyncSession, name: str) -> UUID:
        role_id = await self._find_role_id(session, name)
        if role_id is None:
            raise NotFoundError(
                f"Role '{name}' not found", resource="role", resource_id=name
            )
        return role_id

    async def _require_permission_id(self, session: AsyncSession, name: str) -> UUID:
        permission_id = await self._find_permission_id(session, name)
        if permission_id is None:
            raise NotFoundError(
                f"Permission '{name}' not found",
                resource="permission",
                resource_id=name,
            )
        return permission_id

    @staticmethod
    async def _require_identity(session: AsyncSession, identity: str) -> None:
        if await session.get(Identity, identity) is None:
            raise NotFoundError(
                f"Identity '{identity}' not found",
                resource="identity",
                resource_id=identity,
            )

    # ------------------------------------------------------------------
    # Roles and permissions
    # ------------------------------------------------------------------

    async def create_role(self, name: str, description: str | None = None) -> UUID:
        """Create a role.

        Args:
            name: Unique, case-sensitive role name
            description: Optional human-readable description

        Returns:
            The new role's id

        Raises:
            DuplicateNameError: If a role with this name exists
        """
        validate_name(name, "role", MAX_ROLE_NAME_LENGTH)

        async def apply(session: AsyncSession) -> UUID:
            if await self._find_role_id(session, name) is not None:
                raise DuplicateNameError(
                    f"Role '{name}' already exists", details={"name": name}
                )
            role = Role(name=name, description=description)
            session.add(role)
            await session.flush()
            return role.id

        role_id = await self._write(apply)
        logger.info("role_created", role=name, role_id=str(role_id))
        return role_id

    async def create_permission(
        self, name: str, description: str | None = None
    ) -> UUID:
        """Create a permission.

        Args:
            name: Unique, case-sensitive permission name
            description: Optional human-readable description

        Returns:
            The new permission's id

        Raises:
            DuplicateNameError: If a permission with this name exists
        """
        validate_name(name, "permission", MAX_PERMISSION_NAME_LENGTH)

        async def apply(session: AsyncSession) -> UUID:
            if await self._find_permission_id(session, name) is not None:
                raise DuplicateNameError(
                    f"Permission '{name}' already exists", details={"name": name}
                )
            permission = Permission(name=name, description=description)
            session.add(permission)
            await session.flush()
            return permission.id

        permission_id = await self._write(apply)
        logger.info(
            "permission_created", permission=name, permission_id=str(permission_id)
        )
        return permission_id

    async def get_or_create_role(
        self, name: str, description: str | None = None
    ) -> tuple[UUID, bool]:
        """Return the role named ``name``, creating it when absent.

        Returns:
            Tuple of (role id, whether it was created)
        """
        validate_name(name, "role", MAX_ROLE_NAME_LENGTH)

        async def apply(session: AsyncSession) -> tuple[UUID, bool]:
            role_id = await self._find_role_id(session, name)
            if role_id is not None:
                return role_id, False
            role = Role(name=name, description=description)
            session.add(role)
            await session.flush()
            return role.id, True

        role_id, created = await self._write(apply)
        if created:
            logger.info("role_created", role=name, role_id=str(role_id))
        return role_id, created

    async def get_or_create_permission(
        self, name: str, description: str | None = None
    ) -> tuple[UUID, bool]:
        """Return the permission named ``name``, creating it when absent.

        Returns:
            Tuple of (permission id, whether it was created)
        """
        validate_name(name, "permission", MAX_PERMISSION_NAME_LENGTH)

        async def apply(session: AsyncSession) -> tuple[UUID, bool]:
            permission_id = await self._find_permission_id(session, name)
            if permission_id is not None:
                return permission_id, False
            permission = Permission(name=name, description=description)
            session.add(permission)
            await session.flush()
            return permission.id, True

        permission_id, created = await self._write(apply)
        if created:
            logger.info(
                "permission_created",
                permission=name,
                permission_id=str(permission_id),
            )
        return permission_id, created

    async def delete_role(self, role: str) -> None:
        """Delete a role and detach it from every identity and permission.

        Raises:
            NotFoundError: If the role does not exist
        """

        async def apply(session: AsyncSession) -> None:
            role_id = await self._require_role_id(session, role)
            await session.execute(
                delete(IdentityRole)
                .where(IdentityRole.role_id == role_id)
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                delete(role_permissions).where(role_permissions.c.role_id == role_id)
            )
            await session.execute(
                delete(Role)
                .where(Role.id == role_id)
                .execution_options(synchronize_session=False)
            )

        await self._write(apply)
        logger.info("role_deleted", role=role)
        await self._notify(StoreChange("delete_role", everyone=True))

    async def delete_permission(self, permission: str) -> None:
        """Delete a permission and detach it from every role and identity.

        Raises:
            NotFoundError: If the permission does not exist
        """

        async def apply(session: AsyncSession) -> None:
            permission_id = await self._require_permission_id(session, permission)
            await session.execute(
                delete(IdentityPermission)
                .where(IdentityPermission.permission_id == permission_id)
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                delete(role_permissions).where(
                    role_permissions.c.permission_id == permission_id
                )
            )
            await session.execute(
                delete(Permission)
                .where(Permission.id == permission_id)
                .execution_options(synchronize_session=False)
            )

        await self._write(apply)
        logger.info("permission_deleted", permission=permission)
        await self._notify(StoreChange("delete_permission", everyone=True))

    async def grant_permission_to_role(self, role: str, permission: str) -> bool:
        """Attach a permission to a role.

        Returns:
            True if the association was added, False if it already existed

        Raises:
            NotFoundError: If the role or the permission does not exist
        """

        async def apply(session: AsyncSession) -> bool:
            role_id = await self._require_role_id(session, role)
            permission_id = await self._require_permission_id(session, permission)
            existing = await session.scalar(
                select(role_permissions.c.role_id).where(
                    role_permissions.c.role_id == role_id,
                    role_permissions.c.permission_id == permission_id,
                )
            )
            if existing is not None:
                return False
            await session.execute(
                insert(role_permissions).values(
                    role_id=role_id, permission_id=permission_id
                )
            )
            return True

        added = await self._write(apply)
        if added:
            logger.info("permission_granted_to_role", role=role, permission=permission)
            await self._notify(StoreChange("grant_permission_to_role", everyone=True))
        return added

    async def revoke_permission_from_role(self, role: str, permission: str) -> bool:
        """Detach a permission from a role; a missing association is a no-op.

        Returns:
            True if an association was removed
        """

        async def apply(session: AsyncSession) -> bool:
            result = await session.execute(
                delete(role_permissions).where(
                    role_permissions.c.role_id
                    == select(Role.id).where(Role.name == role).scalar_subquery(),
                    role_permissions.c.permission_id
                    == select(Permission.id)
                    .where(Permission.name == permission)
                    .scalar_subquery(),
                )
            )
            return result.rowcount > 0

        removed = await self._write(apply)
        if removed:
            logger.info(
                "permission_revoked_from_role", role=role, permission=permission
            )
            await self._notify(
                StoreChange("revoke_permission_from_role", everyone=True)
            )
        return removed

    # ------------------------------------------------------------------
    # Identities
    # ------------------------------------------------------------------

    async def register_identity(self, identity: str) -> bool:
        """Make an identity known to the store.

        Returns:
            True if the identity was newly registered
        """
        validate_name(identity, "identity", MAX_IDENTITY_REF_LENGTH)

        async def apply(session: AsyncSession) -> bool:
            if await session.get(Identity, identity) is not None:
                return False
            session.add(Identity(ref=identity))
            await session.flush()
            return True

        created = await self._write(apply)
        if created:
            logger.info("identity_registered", identity=identity)
        return created

    async def delete_identity(self, identity: str) -> None:
        """Forget an identity and all of its assignments.

        Raises:
            NotFoundError: If the identity is not registered
        """

        async def apply(session: AsyncSession) -> None:
            await self._require_identity(session, identity)
            for model in (IdentityRole, IdentityPermission):
                await session.execute(
                    delete(model)
                    .where(model.identity_ref == identity)
                    .execution_options(synchronize_session=False)
                )
            await session.execute(
                delete(Identity)
                .where(Identity.ref == identity)
                .execution_options(synchronize_session=False)
            )

        await self._write(apply)
        logger.info("identity_deleted", identity=identity)
        await self._notify(
            StoreChange("delete_identity", identities=frozenset({identity}))
        )

    async def grant_role_to_identity(self, identity: str, role: str) -> bool:
        """Assign a role to an identity.

        Returns:
            True if the role was assigned, False if it already was

        Raises:
            NotFoundError: If the identity or the role does not exist
        """

        async def apply(session: AsyncSession) -> bool:
            await self._require_identity(session, identity)
            role_id = await self._require_role_id(session, role)
            existing = await session.scalar(
                select(IdentityRole.id).where(
                    IdentityRole.identity_ref == identity,
                    IdentityRole.role_id == role_id,
                )
            )
            if existing is not None:
                return False
            session.add(IdentityRole(identity_ref=identity, role_id=role_id))
            await session.flush()
            return True

        added = await self._write(apply)
        if added:
            logger.info("role_granted", identity=identity, role=role)
            await self._notify(
                StoreChange("grant_role_to_identity", identities=frozenset({identity}))
            )
        return added

    async def revoke_role_from_identity(self, identity: str, role: str) -> bool:
        """Remove a role from an identity; a missing assignment is a no-op.

        Returns:
            True if an assignment was removed
        """

        async def apply(session: AsyncSession) -> bool:
            result = await session.execute(
                delete(IdentityRole)
                .where(
                    IdentityRole.identity_ref == identity,
                    IdentityRole.role_id
                    == select(Role.id).where(Role.name == role).scalar_subquery(),
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        removed = await self._write(apply)
        if removed:
            logger.info("role_revoked", identity=identity, role=role)
            await self._notify(
                StoreChange(
                    "revoke_role_from_identity", identities=frozenset({identity})
                )
            )
        return removed

    async def grant_permission_to_identity(
        self, identity: str, permission: str
    ) -> bool:
        """Assign a permission directly to an identity, bypassing roles.

        Returns:
            True if the permission was assigned, False if it already was

        Raises:
            NotFoundError: If the identity or the permission does not exist
        """

        async def apply(session: AsyncSession) -> bool:
            await self._require_identity(session, identity)
            permission_id = await self._require_permission_id(session, permission)
            existing = await session.scalar(
                select(IdentityPermission.id).where(
                    IdentityPermission.identity_ref == identity,
                    IdentityPermission.permission_id == permission_id,
                )
            )
            if existing is not None:
                return False
            session.add(
                IdentityPermission(identity_ref=identity, permission_id=permission_id)
            )
            await session.flush()
            return True

        added = await self._write(apply)
        if added:
            logger.info(
                "permission_granted_to_identity",
                identity=identity,
                permission=permission,
            )
            await self._notify(
                StoreChange(
                    "grant_permission_to_identity", identities=frozenset({identity})
                )
            )
        return added

    async def revoke_permission_from_identity(
        self, identity: str, permission: str
    ) -> bool:
        """Remove a direct permission; a missing assignment is a no-op.

        Returns:
            True if an assignment was removed
        """

        async def apply(session: AsyncSession) -> bool:
            result = await session.execute(
                delete(IdentityPermission)
                .where(
                    IdentityPermission.identity_ref == identity,
                    IdentityPermission.permission_id
                    == select(Permission.id)
                    .where(Permission.name == permission)
                    .scalar_subquery(),
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        removed = await self._write(apply)
        if removed:
            logger.info(
                "permission_revoked_from_identity",
                identity=identity,
                permission=permission,
            )
            await self._notify(
                StoreChange(
                    "revoke_permission_from_identity",
                    identities=frozenset({identity}),
                )
            )
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_roles(self, identity: str) -> list[str]:
        """Role names assigned to an identity, in assignment order."""
        stmt = (
            select(Role.name)
            .join(IdentityRole, IdentityRole.role_id == Role.id)
            .where(IdentityRole.identity_ref == identity)
            .order_by(IdentityRole.id)
        )
        async with self.transaction() as session:
            return list((await session.scalars(stmt)).all())

    async def list_direct_permissions(self, identity: str) -> list[str]:
        """Permission names assigned directly to an identity, in assignment order."""
        stmt = (
            select(Permission.name)
            .join(
                IdentityPermission, IdentityPermission.permission_id == Permission.id
            )
            .where(IdentityPermission.identity_ref == identity)
            .order_by(IdentityPermission.id)
        )
        async with self.transaction() as session:
            return list((await session.scalars(stmt)).all())

    async def list_role_permissions(self, role: str) -> list[str]:
        """Sorted permission names owned by a role.

        Raises:
            NotFoundError: If the role does not exist
        """
        async with self.transaction() as session:
            role_id = await self._require_role_id(session, role)
            stmt = (
                select(Permission.name)
                .join(
                    role_permissions,
                    role_permissions.c.permission_id == Permission.id,
                )
                .where(role_permissions.c.role_id == role_id)
                .order_by(Permission.name)
            )
            return list((await session.scalars(stmt)).all())

    async def all_roles(self) -> list[str]:
        """Sorted names of every role."""
        async with self.transaction() as session:
            stmt = select(Role.name).order_by(Role.name)
            return list((await session.scalars(stmt)).all())

    async def all_permissions(self) -> list[str]:
        """Sorted names of every permission."""
        async with self.transaction() as session:
            stmt = select(Permission.name).order_by(Permission.name)
            return list((await session.scalars(stmt)).all())

    async def describe_roles(self) -> list[RoleSummary]:
        """Every role with its permissions, sorted by role name."""
        stmt = select(Role).options(selectinload(Role.permissions)).order_by(Role.name)
        async with self.transaction() as session:
            roles = (await session.scalars(stmt)).all()
            return [
                RoleSummary(
                    name=role.name,
                    description=role.description,
                    permissions=tuple(sorted(p.name for p in role.permissions)),
                )
                for role in roles
            ]

    async def identity_exists(self, identity: str) -> bool:
        async with self.transaction() as session:
            return await session.get(Identity, identity) is not None

    async def read_identity_snapshot(self, identity: str) -> ResolvedIdentity:
        """Read roles and effective permissions of an identity.

        Roles, direct permissions and role-inherited permissions are
        fetched by a single UNION ALL statement, so the snapshot always
        reflects one committed database state. Roles do not nest, so
        inheritance is exactly one level deep.
        """
        assigned_roles = (
            select(
                literal_column("'role'").label("kind"),
                Role.name.label("name"),
                IdentityRole.id.label("position"),
            )
            .join(IdentityRole, IdentityRole.role_id == Role.id)
            .where(IdentityRole.identity_ref == identity)
        )
        direct_permissions = (
            select(
                literal_column("'permission'"),
                Permission.name,
                IdentityPermission.id,
            )
            .join(
                IdentityPermission, IdentityPermission.permission_id == Permission.id
            )
            .where(IdentityPermission.identity_ref == identity)
        )
        inherited_permissions = (
            select(
                literal_column("'permission'"),
                Permission.name,
                IdentityRole.id,
            )
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .join(IdentityRole, IdentityRole.role_id == role_permissions.c.role_id)
            .where(IdentityRole.identity_ref == identity)
        )
        stmt = union_all(assigned_roles, direct_permissions, inherited_permissions)

        async with self.transaction() as session:
            rows = (await session.execute(stmt)).all()

        roles = sorted(
            ((row.position, row.name) for row in rows if row.kind == "role"),
        )
        return ResolvedIdentity(
            identity=identity,
            roles=tuple(name for _, name in roles),
            permissions=frozenset(row.name for row in rows if row.kind == "permission"),
        )
