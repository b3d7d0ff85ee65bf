"""Effective permission resolution.

This module computes what an identity may do: the union of the
permissions assigned to it directly and those inherited from its roles.
"""

import structlog

from rolegate.resolver.cache import MemoryPermissionCache, PermissionCache
from rolegate.store.repository import EntityStore, ResolvedIdentity, StoreChange


logger = structlog.get_logger()


class Resolver:
    """Service resolving and memoizing identity snapshots.

    Subscribe ``handle_change`` to the entity store so mutations
    invalidate the affected cache entries before the mutating call
    returns.
    """

    def __init__(
        self, store: EntityStore, cache: PermissionCache | None = None
    ) -> None:
        self.store = store
        self.cache = cache if cache is not None else MemoryPermissionCache()

    async def snapshot(self, identity: str) -> ResolvedIdentity:
        """Get roles and effective permissions of an identity.

        Args:
            identity: The identity reference

        Returns:
            The cached snapshot when current, otherwise a fresh one read
            from the store (unknown identities resolve to empty sets)

        Empty snapshots are not cached, so lookups of unknown identities
        cannot fill the cache.
        """
        cached = await self.cache.get(identity)
        if cached is not None:
            return cached

        stamp = await self.cache.stamp(identity)
        snapshot = await self.store.read_identity_snapshot(identity)
        if snapshot.roles or snapshot.permissions:
            await self.cache.set(snapshot, stamp)

        logger.debug(
            "identity_resolved",
            identity=identity,
            role_count=len(snapshot.roles),
            permission_count=len(snapshot.permissions),
        )
        return snapshot

    async def resolve(self, identity: str) -> frozenset[str]:
        """Get the effective permission set of an identity."""
        return (await self.snapshot(identity)).permissions

    async def roles(self, identity: str) -> tuple[str, ...]:
        """Get the roles of an identity in assignment order."""
        return (await self.snapshot(identity)).roles

    async def invalidate(self, identity: str) -> None:
        await self.cache.invalidate(identity)
        logger.debug("permission_cache_invalidated", identity=identity)

    async def invalidate_all(self) -> None:
        await self.cache.invalidate_all()
        logger.debug("permission_cache_invalidated", scope="all")

    async def handle_change(self, change: StoreChange) -> None:
        """Invalidate cache entries affected by a committed store change."""
        if change.everyone:
            await self.invalidate_all()
            return
        for identity in change.identities:
            await self.invalidate(identity)
