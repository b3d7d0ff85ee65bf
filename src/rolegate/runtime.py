"""Wiring of store, cache, resolver and gate."""

from types import TracebackType
from typing import Any

import structlog
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine

from rolegate.config import Settings, get_settings
from rolegate.core.cache.redis import close_redis_client, create_redis_client
from rolegate.core.database import create_engine, create_schema, create_session_factory
from rolegate.gate.policy import PolicyGate
from rolegate.resolver.cache import (
    MemoryPermissionCache,
    NullPermissionCache,
    PermissionCache,
    RedisPermissionCache,
)
from rolegate.resolver.service import Resolver
from rolegate.seeding import DEFAULT_SEED, SeedDefinition, Seeder, SeedReport
from rolegate.store.repository import EntityStore


logger = structlog.get_logger()


class RoleGate:
    """The assembled authorization core.

    Usage:
        async with RoleGate.from_settings() as rolegate:
            await rolegate.create_schema()
            await rolegate.seed()
            allowed = await rolegate.gate.check("42", "role:admin,create-post")
    """

    def __init__(
        self,
        store: EntityStore,
        cache: PermissionCache | None = None,
        engine: AsyncEngine | None = None,
        redis_client: "Redis[Any] | None" = None,
    ) -> None:
        self.store = store
        self.resolver = Resolver(store, cache)
        self.gate = PolicyGate(self.resolver)
        self.seeder = Seeder(store)
        self._engine = engine
        self._redis_client = redis_client
        store.subscribe(self.resolver.handle_change)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RoleGate":
        """Build engine, cache backend and services from settings."""
        settings = settings or get_settings()
        engine = create_engine(settings)
        store = EntityStore(create_session_factory(engine))

        redis_client = None
        cache: PermissionCache
        if settings.cache_backend == "redis":
            redis_client = create_redis_client(settings)
            cache = RedisPermissionCache(
                redis_client,
                namespace=settings.cache_namespace,
                ttl_seconds=settings.cache_ttl,
            )
        elif settings.cache_backend == "none":
            cache = NullPermissionCache()
        else:
            cache = MemoryPermissionCache(
                ttl_seconds=settings.cache_ttl,
                max_entries=settings.cache_max_entries,
            )

        logger.info(
            "rolegate_initialized",
            cache_backend=settings.cache_backend,
            environment=settings.environment,
        )
        return cls(store, cache=cache, engine=engine, redis_client=redis_client)

    @property
    def engine(self) -> AsyncEngine | None:
        return self._engine

    async def create_schema(self) -> None:
        """Create the rolegate tables if they do not exist."""
        if self._engine is None:
            raise RuntimeError("RoleGate was built without an engine")
        await create_schema(self._engine)
        logger.info("schema_created")

    async def seed(self, definition: SeedDefinition = DEFAULT_SEED) -> SeedReport:
        return await self.seeder.apply(definition)

    async def aclose(self) -> None:
        """Release the cache backend, Redis pool and database engine."""
        await self.resolver.cache.aclose()
        if self._redis_client is not None:
            await close_redis_client(self._redis_client)
        if self._engine is not None:
            await self._engine.dispose()

    async def __aenter__(self) -> "RoleGate":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()
