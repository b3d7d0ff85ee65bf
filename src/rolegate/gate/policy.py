"""Policy gate evaluating authorization requests."""

from collections.abc import Iterable

import structlog

from rolegate.core.errors import ForbiddenError
from rolegate.gate.requirement import Requirement, RequirementLike
from rolegate.resolver.service import Resolver


logger = structlog.get_logger()


class PolicyGate:
    """Decides whether an identity satisfies a requirement.

    Each call evaluates one snapshot of the identity, so a decision is
    never computed from a partially applied mutation. Checks have no
    side effects besides populating the resolver cache.
    """

    def __init__(self, resolver: Resolver) -> None:
        self.resolver = resolver

    async def check(self, identity: str, requirement: RequirementLike) -> bool:
        """Check if an identity satisfies a requirement.

        Args:
            identity: The identity reference supplied by the host
            requirement: A Requirement, an expression string such as
                ``"role:admin,create-post"``, or a list of names such as
                ``["admin", "create-post"]`` (first a role, then permissions)

        Returns:
            True if allowed, False otherwise (unknown names deny)

        Raises:
            InvalidRequirementError: If an expression string is malformed
        """
        parsed = Requirement.coerce(requirement)
        snapshot = await self.resolver.snapshot(identity)
        allowed = parsed.is_satisfied_by(snapshot)

        if allowed:
            logger.debug(
                "authorization_granted", identity=identity, requirement=str(parsed)
            )
        else:
            logger.info(
                "authorization_denied", identity=identity, requirement=str(parsed)
            )
        return allowed

    async def has_role(self, identity: str, role: str) -> bool:
        """Check a single role; suitable for conditional rendering."""
        return await self.check(identity, Requirement.role(role))

    async def has_any_role(self, identity: str, roles: Iterable[str]) -> bool:
        return await self.check(
            identity, Requirement.any_of(*(Requirement.role(role) for role in roles))
        )

    async def has_permission(self, identity: str, permission: str) -> bool:
        return await self.check(identity, Requirement.permission(permission))

    async def authorize(self, identity: str, requirement: RequirementLike) -> None:
        """Like ``check`` but raises instead of returning False.

        Raises:
            ForbiddenError: If the identity does not satisfy the requirement
        """
        parsed = Requirement.coerce(requirement)
        if not await self.check(identity, parsed):
            raise ForbiddenError(
                "Insufficient permissions",
                error_code="permission_denied",
                details={
                    "requirement": str(parsed),
                    "required_roles": sorted(parsed.role_names()),
                    "required_permissions": sorted(parsed.permission_names()),
                },
            )
