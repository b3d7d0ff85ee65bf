"""Integration tests for the FastAPI enforcement adapter.

These tests verify route guards built with require(), require_role()
and require_permission(), and the problem details they produce.
"""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from fastapi import Depends, FastAPI, Request
from httpx import ASGITransport, AsyncClient

from rolegate.core.errors import InvalidRequirementError
from rolegate.enforcement import install, require, require_permission, require_role
from rolegate.runtime import RoleGate


pytestmark = pytest.mark.integration


async def current_identity(request: Request) -> str | None:
    """Identity provider used by the test app."""
    return request.headers.get("X-User-Id")


def build_app(rolegate: RoleGate) -> FastAPI:
    app = FastAPI()
    install(app, rolegate, type_base_url="https://errors.example.com")

    @app.post(
        "/posts",
        dependencies=[Depends(require("role:admin,create-post", current_identity))],
    )
    async def create_post() -> dict[str, str]:
        return {"status": "created"}

    @app.get("/admin")
    async def admin_area(
        identity: str = Depends(require_role("admin", current_identity)),
    ) -> dict[str, str]:
        return {"identity": identity}

    @app.post(
        "/drafts",
        dependencies=[Depends(require(["admin", "create-post"], current_identity))],
    )
    async def create_draft() -> dict[str, str]:
        return {"status": "created"}

    @app.post(
        "/users",
        dependencies=[Depends(require_permission("create-user", current_identity))],
    )
    async def create_user() -> dict[str, str]:
        return {"status": "created"}

    return app


@pytest.fixture
async def client(blog: RoleGate) -> AsyncGenerator[AsyncClient, None]:
    """Create an HTTP client for the guarded test app."""
    transport = ASGITransport(app=build_app(blog))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestRequire:
    """Tests for route guards."""

    async def test_allowed(self, client: AsyncClient) -> None:
        response = await client.post("/posts", headers={"X-User-Id": "u1"})

        assert response.status_code == 200
        assert response.json() == {"status": "created"}

    async def test_guard_returns_identity(self, client: AsyncClient) -> None:
        response = await client.get("/admin", headers={"X-User-Id": "u1"})

        assert response.json() == {"identity": "u1"}

    async def test_denied_is_problem_details(self, client: AsyncClient) -> None:
        """Verify a denial is a 403 RFC 7807 response."""
        response = await client.post("/users", headers={"X-User-Id": "u1"})

        assert response.status_code == 403
        body = response.json()
        assert body["type"] == "https://errors.example.com/permission_denied"
        assert body["status"] == 403
        assert body["requirement"] == "permission:create-user"
        assert body["instance"] == "/users"

    async def test_anonymous_is_unauthorized(self, client: AsyncClient) -> None:
        response = await client.post("/posts")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_unknown_identity_is_forbidden(self, client: AsyncClient) -> None:
        response = await client.get("/admin", headers={"X-User-Id": "ghost"})

        assert response.status_code == 403

    async def test_grant_takes_effect_on_next_request(
        self, client: AsyncClient, blog: RoleGate
    ) -> None:
        """Verify guards see mutations made between requests."""
        headers = {"X-User-Id": "u1"}
        assert (await client.post("/users", headers=headers)).status_code == 403

        await blog.store.grant_role_to_identity("u1", "user")

        assert (await client.post("/users", headers=headers)).status_code == 200


class TestDeclaration:
    """Tests for guard construction."""

    def test_malformed_requirement_fails_when_declared(self) -> None:
        with pytest.raises(InvalidRequirementError):
            require("role:admin,", current_identity)

    async def test_missing_install_is_an_error(self, blog: RoleGate) -> None:
        app = FastAPI()

        @app.get("/", dependencies=[Depends(require("create-post", current_identity))])
        async def index() -> dict[str, str]:
            return {}

        transport = ASGITransport(app=app, raise_app_exceptions=True)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            with pytest.raises(RuntimeError, match="not installed"):
                await ac.get("/", headers={"X-User-Id": "u1"})


class TestNameListGuard:
    """Tests for guards declared with a list of names."""

    async def test_role_and_permissions_must_hold(
        self, client: AsyncClient, blog: RoleGate
    ) -> None:
        response = await client.post("/drafts", headers={"X-User-Id": "u1"})
        assert response.status_code == 200

        await blog.store.revoke_permission_from_role("admin", "create-post")

        response = await client.post("/drafts", headers={"X-User-Id": "u1"})
        assert response.status_code == 403
        assert response.json()["requirement"] == "role:admin,permission:create-post"


class TestTraceId:
    """Tests for trace IDs in problem details."""

    async def test_trace_id_from_host_middleware(self, blog: RoleGate) -> None:
        app = build_app(blog)

        @app.middleware("http")
        async def set_trace_id(request: Request, call_next: Any) -> Any:
            request.state.trace_id = "trace-abc"
            return await call_next(request)

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.post("/users", headers={"X-User-Id": "u1"})

        assert response.status_code == 403
        assert response.json()["trace_id"] == "trace-abc"

    async def test_trace_id_omitted_without_middleware(
        self, client: AsyncClient
    ) -> None:
        response = await client.post("/users", headers={"X-User-Id": "u1"})

        assert "trace_id" not in response.json()
