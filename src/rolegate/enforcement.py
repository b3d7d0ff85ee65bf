"""FastAPI enforcement point.

Route guards are plain FastAPI dependencies. The host supplies its own
identity dependency (the core never authenticates); the guard asks the
policy gate and short-circuits with 401/403 problem details.

Usage:
    app = FastAPI()
    install(app, rolegate)

    async def current_identity(request: Request) -> str | None:
        return request.headers.get("X-User-Id")

    @app.post(
        "/posts",
        dependencies=[Depends(require("role:admin,create-post", current_identity))],
    )
    async def create_post():
        ...
"""

from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request

from rolegate.core.errors import ForbiddenError, UnauthorizedError
from rolegate.core.errors.handlers import register_exception_handlers
from rolegate.gate.policy import PolicyGate
from rolegate.gate.requirement import Requirement, RequirementLike
from rolegate.runtime import RoleGate


IdentityProvider = Callable[..., Awaitable[str | None] | str | None]


def install(app: FastAPI, rolegate: RoleGate, type_base_url: str | None = None) -> None:
    """Attach a RoleGate to an app and register the error handlers."""
    app.state.rolegate = rolegate
    register_exception_handlers(app, type_base_url=type_base_url)


def get_gate(request: Request) -> PolicyGate:
    """Dependency returning the policy gate installed on the app."""
    rolegate: RoleGate | None = getattr(request.app.state, "rolegate", None)
    if rolegate is None:
        raise RuntimeError("rolegate is not installed; call install(app, rolegate)")
    return rolegate.gate


def require(
    requirement: RequirementLike,
    identity_provider: IdentityProvider,
) -> Callable[..., Awaitable[str]]:
    """Build a dependency enforcing ``requirement``.

    The requirement is parsed immediately, so malformed guards fail when
    routes are declared.

    Args:
        requirement: Requirement, expression string or list of names
        identity_provider: Host dependency returning the current identity
            reference, or None when the request is anonymous

    Returns:
        A dependency returning the authorized identity

    Raises:
        InvalidRequirementError: If the requirement is malformed
    """
    parsed = Requirement.coerce(requirement)

    async def guard(
        identity: Annotated[str | None, Depends(identity_provider)],
        gate: Annotated[PolicyGate, Depends(get_gate)],
    ) -> str:
        if not identity:
            raise UnauthorizedError()
        if not await gate.check(identity, parsed):
            raise ForbiddenError(
                "Insufficient permissions",
                error_code="permission_denied",
                details={"requirement": str(parsed)},
            )
        return identity

    return guard


def require_role(role: str, identity_provider: IdentityProvider) -> Callable[..., Any]:
    return require(Requirement.role(role), identity_provider)


def require_permission(
    permission: str, identity_provider: IdentityProvider
) -> Callable[..., Any]:
    return require(Requirement.permission(permission), identity_provider)
