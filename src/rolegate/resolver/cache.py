"""Permission cache backends for the resolver.

A cached snapshot is only served while the *stamp* it was computed under
is still current. A stamp is the pair (global generation, identity
version): invalidating one identity bumps its version, invalidating
everything bumps the generation. The resolver takes the stamp before it
reads the store, so a computation that races a mutation is stored under
an outdated stamp and never served.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from rolegate.core.cache.serializers import decode_entry, encode_entry
from rolegate.core.constants import (
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_NAMESPACE,
    DEFAULT_CACHE_TTL,
)
from rolegate.core.errors import StoreUnavailableError
from rolegate.store.repository import ResolvedIdentity


logger = structlog.get_logger()

Stamp = tuple[int, int]


class PermissionCache(ABC):
    """Interface implemented by every permission cache backend."""

    @abstractmethod
    async def stamp(self, identity: str) -> Stamp | None:
        """Current stamp for an identity, or None if nothing may be cached."""

    @abstractmethod
    async def get(self, identity: str) -> ResolvedIdentity | None:
        """Cached snapshot if present and still current."""

    @abstractmethod
    async def set(self, snapshot: ResolvedIdentity, stamp: Stamp | None) -> None:
        """Store a snapshot computed under ``stamp``."""

    @abstractmethod
    async def invalidate(self, identity: str) -> None:
        """Drop the cached snapshot of one identity."""

    @abstractmethod
    async def invalidate_all(self) -> None:
        """Drop every cached snapshot."""

    async def aclose(self) -> None:
        """Release backend resources."""
        return None


class NullPermissionCache(PermissionCache):
    """Cache that never stores anything; every resolve reads the store."""

    async def stamp(self, identity: str) -> Stamp | None:
        return None

    async def get(self, identity: str) -> ResolvedIdentity | None:
        return None

    async def set(self, snapshot: ResolvedIdentity, stamp: Stamp | None) -> None:
        return None

    async def invalidate(self, identity: str) -> None:
        return None

    async def invalidate_all(self) -> None:
        return None


class MemoryPermissionCache(PermissionCache):
    """In-process cache guarded by a lock.

    Safe to share between threads and tasks of one process. Each process
    keeps its own copy, so multi-process deployments that mutate the
    store from several processes should use ``RedisPermissionCache``.

    Entries expire ``ttl_seconds`` after they are stored. At most
    ``max_entries`` snapshots are kept; the least recently used one is
    evicted first. Per-identity versions are bounded the same way: once
    more than ``max_entries`` identities carry a version, the cache is
    reset as if ``invalidate_all`` had been called.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_CACHE_TTL,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0 or max_entries <= 0:
            raise ValueError("ttl_seconds and max_entries must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._generation = 0
        self._versions: dict[str, int] = {}
        self._entries: OrderedDict[str, tuple[Stamp, float, ResolvedIdentity]] = (
            OrderedDict()
        )

    def _current(self, identity: str) -> Stamp:
        return self._generation, self._versions.get(identity, 0)

    def _reset(self) -> None:
        # Older stamps carry an older generation, so versions can restart.
        self._generation += 1
        self._versions.clear()
        self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def stamp(self, identity: str) -> Stamp | None:
        with self._lock:
            return self._current(identity)

    async def get(self, identity: str) -> ResolvedIdentity | None:
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None:
                return None
            stamp, expires_at, snapshot = entry
            if stamp != self._current(identity) or self._clock() >= expires_at:
                del self._entries[identity]
                return None
            self._entries.move_to_end(identity)
            return snapshot

    async def set(self, snapshot: ResolvedIdentity, stamp: Stamp | None) -> None:
        if stamp is None:
            return
        with self._lock:
            if stamp != self._current(snapshot.identity):
                return
            expires_at = self._clock() + self.ttl_seconds
            self._entries[snapshot.identity] = (stamp, expires_at, snapshot)
            self._entries.move_to_end(snapshot.identity)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("permission_cache_evicted", identity=evicted)

    async def invalidate(self, identity: str) -> None:
        with self._lock:
            self._versions[identity] = self._versions.get(identity, 0) + 1
            self._entries.pop(identity, None)
            if len(self._versions) > self.max_entries:
                logger.info("permission_cache_reset", versions=len(self._versions))
                self._reset()

    async def invalidate_all(self) -> None:
        with self._lock:
            self._reset()


class RedisPermissionCache(PermissionCache):
    """Cache shared by every process pointing at the same Redis.

    Keys (under ``namespace``):
    - ``generation``: global counter, bumped by ``invalidate_all``
    - ``version:<identity>``: per-identity counter, bumped by ``invalidate``
    - ``entry:<identity>``: JSON snapshot with the stamp it was computed under

    Read failures degrade to cache misses. Invalidation failures raise
    ``StoreUnavailableError`` because the mutation's effect could
    otherwise be hidden behind a stale entry.
    """

    def __init__(
        self,
        client: "Redis[Any]",
        namespace: str = DEFAULT_CACHE_NAMESPACE,
        ttl_seconds: int = DEFAULT_CACHE_TTL,
    ) -> None:
        """Initialize the cache.

        Args:
            client: Redis client created with ``decode_responses=True``
            namespace: Prefix for all keys
            ttl_seconds: Lifetime of cached snapshots
        """
        self.client = client
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds

    def _key(self, *parts: str) -> str:
        return ":".join((self.namespace, *parts))

    @property
    def _generation_key(self) -> str:
        return self._key("generation")

    def _version_key(self, identity: str) -> str:
        return self._key("version", identity)

    def _entry_key(self, identity: str) -> str:
        return self._key("entry", identity)

    async def stamp(self, identity: str) -> Stamp | None:
        try:
            generation, version = await self.client.mget(
                self._generation_key, self._version_key(identity)
            )
        except RedisError as exc:
            logger.warning(
                "permission_cache_read_failed", identity=identity, error=str(exc)
            )
            return None
        return int(generation or 0), int(version or 0)

    async def get(self, identity: str) -> ResolvedIdentity | None:
        try:
            generation, version, raw = await self.client.mget(
                self._generation_key,
                self._version_key(identity),
                self._entry_key(identity),
            )
        except RedisError as exc:
            logger.warning(
                "permission_cache_read_failed", identity=identity, error=str(exc)
            )
            return None

        if raw is None:
            return None
        try:
            stamp, roles, permissions = decode_entry(raw)
        except ValueError as exc:
            logger.warning(
                "permission_cache_entry_invalid", identity=identity, error=str(exc)
            )
            return None
        if stamp != (int(generation or 0), int(version or 0)):
            return None
        return ResolvedIdentity(identity=identity, roles=roles, permissions=permissions)

    async def set(self, snapshot: ResolvedIdentity, stamp: Stamp | None) -> None:
        if stamp is None:
            return
        payload = encode_entry(stamp, snapshot.roles, snapshot.permissions)
        try:
            await self.client.set(
                self._entry_key(snapshot.identity), payload, ex=self.ttl_seconds
            )
        except RedisError as exc:
            logger.warning(
                "permission_cache_write_failed",
                identity=snapshot.identity,
                error=str(exc),
            )

    async def invalidate(self, identity: str) -> None:
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(self._version_key(identity))
                # Outlive any entry written under the previous version.
                pipe.expire(self._version_key(identity), self.ttl_seconds * 2)
                pipe.delete(self._entry_key(identity))
                await pipe.execute()
        except RedisError as exc:
            logger.error(
                "permission_cache_invalidation_failed",
                identity=identity,
                error=str(exc),
            )
            raise StoreUnavailableError("Permission cache unavailable") from exc

    async def invalidate_all(self) -> None:
        try:
            await self.client.incr(self._generation_key)
        except RedisError as exc:
            logger.error("permission_cache_invalidation_failed", error=str(exc))
            raise StoreUnavailableError("Permission cache unavailable") from exc
