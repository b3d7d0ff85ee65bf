"""Entity store database models.

This module defines the RBAC tables:
- Identity: an opaque subject reference registered by the host
- Role: a uniquely named set of permissions
- Permission: a uniquely named capability
- role_permissions: Role <-> Permission junction table
- IdentityRole / IdentityPermission: identity assignments, kept in
  insertion order through an autoincrement key
"""

from uuid import UUID

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolegate.core.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_IDENTITY_REF_LENGTH,
    MAX_PERMISSION_NAME_LENGTH,
    MAX_ROLE_NAME_LENGTH,
)
from rolegate.core.database.base import Base, TimestampMixin, UUIDMixin


# Junction table for Role <-> Permission many-to-many relationship
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column(
        "role_id", Uuid, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    ),
    Column(
        "permission_id",
        Uuid,
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Identity(Base, TimestampMixin):
    """A subject the host application authorizes.

    The core never authenticates; ``ref`` is whatever the host uses to
    identify its users (an id, an email, a service account name).
    """

    __tablename__ = "identities"

    ref: Mapped[str] = mapped_column(
        String(MAX_IDENTITY_REF_LENGTH),
        primary_key=True,
    )

    def __repr__(self) -> str:
        return f"<Identity({self.ref})>"


class Permission(Base, UUIDMixin, TimestampMixin):
    """Permission model representing a named capability.

    Attributes:
        name: Unique, case-sensitive permission name (e.g., "create-post")
        description: Human-readable description of the permission
    """

    __tablename__ = "permissions"
    __table_args__ = (UniqueConstraint("name", name="uq_permission_name"),)

    name: Mapped[str] = mapped_column(
        String(MAX_PERMISSION_NAME_LENGTH),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )

    roles: Mapped[list["Role"]] = relationship(
        "Role",
        secondary=role_permissions,
        back_populates="permissions",
    )

    def __repr__(self) -> str:
        return f"<Permission({self.name})>"


class Role(Base, UUIDMixin, TimestampMixin):
    """Role model representing a named set of permissions.

    Attributes:
        name: Unique, case-sensitive role name (e.g., "admin", "user")
        description: Human-readable description of the role
    """

    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("name", name="uq_role_name"),)

    name: Mapped[str] = mapped_column(
        String(MAX_ROLE_NAME_LENGTH),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )

    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary=role_permissions,
        back_populates="roles",
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name})>"


class IdentityRole(Base, TimestampMixin):
    """Junction table linking identities to roles."""

    __tablename__ = "identity_roles"
    __table_args__ = (
        UniqueConstraint("identity_ref", "role_id", name="uq_identity_role"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_ref: Mapped[str] = mapped_column(
        ForeignKey("identities.ref", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<IdentityRole(identity_ref={self.identity_ref}, "
            f"role_id={self.role_id})>"
        )


class IdentityPermission(Base, TimestampMixin):
    """Junction table linking identities directly to permissions."""

    __tablename__ = "identity_permissions"
    __table_args__ = (
        UniqueConstraint(
            "identity_ref", "permission_id", name="uq_identity_permission"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_ref: Mapped[str] = mapped_column(
        ForeignKey("identities.ref", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    permission_id: Mapped[UUID] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<IdentityPermission(identity_ref={self.identity_ref}, "
            f"permission_id={self.permission_id})>"
        )
