"""Integration tests for RoleGate assembly from settings."""

import pytest

from rolegate.config import Settings
from rolegate.resolver.cache import (
    MemoryPermissionCache,
    NullPermissionCache,
    RedisPermissionCache,
)
from rolegate.runtime import RoleGate
from rolegate.store.repository import EntityStore


pytestmark = pytest.mark.integration


class TestFromSettings:
    """Tests for RoleGate.from_settings."""

    async def test_end_to_end(self, settings: Settings) -> None:
        """Verify schema creation, seeding and a check on a fresh database."""
        async with RoleGate.from_settings(settings) as rolegate:
            await rolegate.create_schema()
            await rolegate.seed()
            await rolegate.store.register_identity("42")
            await rolegate.store.grant_role_to_identity("42", "admin")

            assert await rolegate.gate.check("42", "role:admin,create-post")

    @pytest.mark.parametrize(
        ("backend", "cache_type"),
        [
            ("memory", MemoryPermissionCache),
            ("none", NullPermissionCache),
            ("redis", RedisPermissionCache),
        ],
    )
    async def test_cache_backend_selection(
        self, settings: Settings, backend: str, cache_type: type
    ) -> None:
        # Redis clients connect lazily, so no server is needed here
        configured = settings.model_copy(update={"cache_backend": backend})

        async with RoleGate.from_settings(configured) as rolegate:
            assert isinstance(rolegate.resolver.cache, cache_type)

    async def test_memory_cache_uses_configured_limits(
        self, settings: Settings
    ) -> None:
        configured = settings.model_copy(
            update={"cache_ttl": 30, "cache_max_entries": 50}
        )

        async with RoleGate.from_settings(configured) as rolegate:
            cache = rolegate.resolver.cache
            assert isinstance(cache, MemoryPermissionCache)
            assert cache.ttl_seconds == 30
            assert cache.max_entries == 50

    async def test_create_schema_needs_engine(self, store: EntityStore) -> None:
        rolegate = RoleGate(store)

        with pytest.raises(RuntimeError):
            await rolegate.create_schema()
