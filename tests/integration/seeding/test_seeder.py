"""Integration tests for the seeder."""

import pytest

from rolegate.core.errors import NotFoundError
from rolegate.runtime import RoleGate
from rolegate.seeding import (
    IdentitySeed,
    PermissionSeed,
    RoleSeed,
    SeedDefinition,
)


pytestmark = pytest.mark.integration


class TestSeeder:
    """Tests for Seeder.apply."""

    async def test_default_seed(self, rolegate: RoleGate) -> None:
        """Verify the built-in admin/user catalog is created."""
        report = await rolegate.seed()

        assert sorted(report.created_roles) == ["admin", "user"]
        assert sorted(report.created_permissions) == ["create-post", "create-user"]
        assert report.grants == 2
        assert await rolegate.store.list_role_permissions("admin") == ["create-post"]
        assert await rolegate.store.list_role_permissions("user") == ["create-user"]

    async def test_seeding_twice_is_noop(self, rolegate: RoleGate) -> None:
        await rolegate.seed()

        report = await rolegate.seed()

        assert not report.changed

    async def test_identities_and_direct_permissions(self, rolegate: RoleGate) -> None:
        definition = SeedDefinition(
            permissions=[PermissionSeed(name="publish")],
            roles=[RoleSeed(name="editor", permissions=["publish"])],
            identities=[
                IdentitySeed(ref="42", roles=["editor"], permissions=["publish"])
            ],
        )

        report = await rolegate.seed(definition)

        assert report.registered_identities == ["42"]
        assert report.grants == 3
        assert await rolegate.gate.check("42", "role:editor,publish")

    async def test_references_existing_entities(self, blog: RoleGate) -> None:
        """Verify seeds may reference entities already in the store."""
        definition = SeedDefinition(
            identities=[
                IdentitySeed(ref="u2", roles=["user"], permissions=["create-post"])
            ]
        )

        await blog.seed(definition)

        assert await blog.resolver.resolve("u2") == {"create-post", "create-user"}

    async def test_missing_reference_writes_nothing(self, rolegate: RoleGate) -> None:
        """Verify an unknown reference fails before any write."""
        definition = SeedDefinition(
            roles=[RoleSeed(name="editor", permissions=["publish"])],
            identities=[IdentitySeed(ref="42", roles=["ghost"])],
        )

        with pytest.raises(NotFoundError) as exc_info:
            await rolegate.seed(definition)

        assert exc_info.value.details["missing_permissions"] == ["publish"]
        assert exc_info.value.details["missing_roles"] == ["ghost"]
        assert await rolegate.store.all_roles() == []

    async def test_seed_invalidates_cached_snapshots(self, blog: RoleGate) -> None:
        await blog.resolver.resolve("u1")

        await blog.seed(
            SeedDefinition(roles=[RoleSeed(name="admin", permissions=["create-user"])])
        )

        assert await blog.resolver.resolve("u1") == {"create-post", "create-user"}
