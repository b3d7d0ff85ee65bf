"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from rolegate.config import Settings, get_settings
from rolegate.core.database import (
    create_engine,
    create_schema,
    create_session_factory,
    drop_schema,
)
from rolegate.resolver.cache import MemoryPermissionCache
from rolegate.runtime import RoleGate
from rolegate.store.repository import EntityStore


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """SQLite database file private to one test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'rolegate.db'}"


@pytest.fixture
def settings(database_url: str) -> Settings:
    return Settings(database_url=database_url, cache_backend="memory")


@pytest.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create a test engine with the rolegate schema."""
    engine = create_engine(settings)
    await create_schema(engine)

    yield engine

    await drop_schema(engine)
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> EntityStore:
    return EntityStore(session_factory)


@pytest.fixture
def cache() -> MemoryPermissionCache:
    return MemoryPermissionCache()


@pytest.fixture
def rolegate(store: EntityStore, cache: MemoryPermissionCache) -> RoleGate:
    """Assembled core sharing the test store and an inspectable cache."""
    return RoleGate(store, cache=cache)


@pytest.fixture
async def blog(rolegate: RoleGate) -> RoleGate:
    """Store holding the admin/user blog catalog and identity "u1" as admin.

    - admin -> create-post
    - user -> create-user
    """
    store = rolegate.store
    await store.create_role("admin")
    await store.create_role("user")
    await store.create_permission("create-post")
    await store.create_permission("create-user")
    await store.grant_permission_to_role("admin", "create-post")
    await store.grant_permission_to_role("user", "create-user")
    await store.register_identity("u1")
    await store.grant_role_to_identity("u1", "admin")
    return rolegate


@pytest.fixture
def cli_env(
    monkeypatch: pytest.MonkeyPatch, database_url: str
) -> Generator[str, None, None]:
    """Point the CLI at the per-test database.

    Yields:
        The database URL used by the CLI
    """
    monkeypatch.setenv("ROLEGATE_DATABASE_URL", database_url)
    monkeypatch.setenv("ROLEGATE_CACHE_BACKEND", "memory")
    monkeypatch.delenv("ROLEGATE_SEED_FILE", raising=False)
    get_settings.cache_clear()

    yield database_url

    get_settings.cache_clear()
