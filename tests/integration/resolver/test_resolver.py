"""Integration tests for the resolver and cache coherence.

These tests verify:
- Effective permissions are direct plus role-inherited permissions
- Cached snapshots are reused until a relevant mutation
- Every grant, revoke and delete is visible on the next resolve
- A resolve racing a mutation never caches stale data
"""

import pytest

from rolegate.resolver.cache import MemoryPermissionCache, NullPermissionCache
from rolegate.resolver.service import Resolver
from rolegate.runtime import RoleGate
from rolegate.store.repository import EntityStore, ResolvedIdentity


pytestmark = pytest.mark.integration


class TestResolve:
    """Tests for effective permission resolution."""

    async def test_role_permissions_inherited(self, blog: RoleGate) -> None:
        assert await blog.resolver.resolve("u1") == {"create-post"}
        assert await blog.resolver.roles("u1") == ("admin",)

    async def test_resolve_contains_direct_permissions(self, blog: RoleGate) -> None:
        """Verify resolve(I) is a superset of the direct permissions."""
        await blog.store.grant_permission_to_identity("u1", "create-user")

        resolved = await blog.resolver.resolve("u1")

        assert set(await blog.store.list_direct_permissions("u1")) <= resolved
        assert resolved == {"create-post", "create-user"}

    async def test_unknown_identity_resolves_empty(self, rolegate: RoleGate) -> None:
        assert await rolegate.resolver.resolve("ghost") == frozenset()


class TestCaching:
    """Tests for snapshot caching."""

    async def test_second_resolve_served_from_cache(
        self, blog: RoleGate, cache: MemoryPermissionCache, monkeypatch
    ) -> None:
        """Verify the store is read once for repeated resolves."""
        reads = 0
        original = blog.store.read_identity_snapshot

        async def counting(identity: str) -> ResolvedIdentity:
            nonlocal reads
            reads += 1
            return await original(identity)

        monkeypatch.setattr(blog.store, "read_identity_snapshot", counting)

        await blog.resolver.resolve("u1")
        await blog.resolver.resolve("u1")

        assert reads == 1
        assert len(cache) == 1

    async def test_null_cache_always_reads_store(self, blog: RoleGate) -> None:
        resolver = Resolver(blog.store, NullPermissionCache())

        assert await resolver.resolve("u1") == {"create-post"}
        assert await resolver.resolve("u1") == {"create-post"}

    async def test_identity_change_keeps_other_entries(
        self, blog: RoleGate, cache: MemoryPermissionCache
    ) -> None:
        """Verify identity-level grants only invalidate that identity."""
        await blog.store.register_identity("u2")
        await blog.resolver.resolve("u1")
        await blog.resolver.resolve("u2")

        await blog.store.grant_role_to_identity("u2", "user")

        assert len(cache) == 1
        assert await blog.resolver.resolve("u2") == {"create-user"}

    async def test_unknown_identities_are_not_cached(
        self, blog: RoleGate, cache: MemoryPermissionCache
    ) -> None:
        """Verify checks for many unknown identities leave the cache empty."""
        for i in range(500):
            assert not await blog.gate.check(f"anon-{i}", "create-post")

        assert len(cache) == 0

    async def test_cache_size_is_bounded(self, blog: RoleGate) -> None:
        cache = MemoryPermissionCache(max_entries=2)
        resolver = Resolver(blog.store, cache)
        for ref in ("u2", "u3", "u4"):
            await blog.store.register_identity(ref)
            await blog.store.grant_role_to_identity(ref, "user")

        for ref in ("u1", "u2", "u3", "u4"):
            await resolver.resolve(ref)

        assert len(cache) == 2
        assert await resolver.resolve("u1") == {"create-post"}


class TestCacheCoherence:
    """Every completed mutation is visible on the next resolve."""

    @pytest.fixture
    async def warm(self, blog: RoleGate) -> RoleGate:
        await blog.resolver.resolve("u1")
        return blog

    async def test_grant_role(self, warm: RoleGate) -> None:
        await warm.store.grant_role_to_identity("u1", "user")

        assert await warm.resolver.resolve("u1") == {"create-post", "create-user"}

    async def test_revoke_role(self, warm: RoleGate) -> None:
        await warm.store.revoke_role_from_identity("u1", "admin")

        assert await warm.resolver.resolve("u1") == frozenset()

    async def test_grant_direct_permission(self, warm: RoleGate) -> None:
        await warm.store.grant_permission_to_identity("u1", "create-user")

        assert "create-user" in await warm.resolver.resolve("u1")

    async def test_grant_permission_to_assigned_role(self, warm: RoleGate) -> None:
        """Verify role-level changes reach identities holding the role."""
        await warm.store.grant_permission_to_role("admin", "create-user")

        assert await warm.resolver.resolve("u1") == {"create-post", "create-user"}

    async def test_revoke_permission_from_assigned_role(self, warm: RoleGate) -> None:
        await warm.store.revoke_permission_from_role("admin", "create-post")

        assert await warm.resolver.resolve("u1") == frozenset()

    async def test_delete_role(self, warm: RoleGate) -> None:
        await warm.store.delete_role("admin")

        assert await warm.resolver.resolve("u1") == frozenset()
        assert await warm.resolver.roles("u1") == ()

    async def test_delete_permission(self, warm: RoleGate) -> None:
        await warm.store.delete_permission("create-post")

        assert await warm.resolver.resolve("u1") == frozenset()

    async def test_delete_identity(self, warm: RoleGate) -> None:
        await warm.store.delete_identity("u1")

        assert await warm.resolver.resolve("u1") == frozenset()


class TestConcurrentMutation:
    """Tests for resolves that race a mutation."""

    async def test_snapshot_read_before_mutation_is_not_cached(
        self,
        blog: RoleGate,
        cache: MemoryPermissionCache,
        store: EntityStore,
        monkeypatch,
    ) -> None:
        """Verify a snapshot computed under an outdated stamp is discarded.

        The store read is paused after it fetched the old state, a revoke
        commits, then the read completes with its now stale result.
        """
        original = store.read_identity_snapshot

        async def read_then_mutate(identity: str) -> ResolvedIdentity:
            snapshot = await original(identity)
            monkeypatch.setattr(store, "read_identity_snapshot", original)
            await store.revoke_role_from_identity(identity, "admin")
            return snapshot

        monkeypatch.setattr(store, "read_identity_snapshot", read_then_mutate)

        stale = await blog.resolver.resolve("u1")

        assert stale == {"create-post"}
        assert len(cache) == 0
        assert await blog.resolver.resolve("u1") == frozenset()
