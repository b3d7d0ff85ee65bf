"""Database layer - engine/session construction, base models, and mixins."""

from rolegate.core.database.base import Base, TimestampMixin, UUIDMixin
from rolegate.core.database.session import (
    create_engine,
    create_schema,
    create_session_factory,
    drop_schema,
)


__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "create_engine",
    "create_schema",
    "create_session_factory",
    "drop_schema",
]
