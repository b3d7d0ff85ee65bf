"""Effective permission resolution and caching."""

from rolegate.resolver.cache import (
    MemoryPermissionCache,
    NullPermissionCache,
    PermissionCache,
    RedisPermissionCache,
    Stamp,
)
from rolegate.resolver.service import Resolver


__all__ = [
    "MemoryPermissionCache",
    "NullPermissionCache",
    "PermissionCache",
    "RedisPermissionCache",
    "Resolver",
    "Stamp",
]
