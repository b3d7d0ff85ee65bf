"""Authorization requirements.

A requirement is a small tagged value: a single role, a single
permission, or an AND (``ALL``) / OR (``ANY``) combination of other
requirements. Requirements are validated when they are built, so a
malformed route guard fails at configuration time rather than on the
first request.

Expression syntax accepted by ``Requirement.parse``:

    role:admin                      the identity has the role "admin"
    create-post                     the identity has the permission
    permission:create-post          same, explicit
    role:admin,create-post          AND: both must hold
    role:admin|role:editor          OR: either must hold
    role:admin,create-post|role:owner
                                    "," binds tighter than "|"
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from rolegate.core.constants import (
    ALTERNATIVE_SEPARATOR,
    MAX_PERMISSION_NAME_LENGTH,
    MAX_ROLE_NAME_LENGTH,
    PERMISSION_PREFIXES,
    ROLE_PREFIX,
    TERM_SEPARATOR,
)
from rolegate.core.errors import InvalidNameError, InvalidRequirementError
from rolegate.core.validation import validate_name
from rolegate.store.repository import ResolvedIdentity


class RequirementKind(str, Enum):
    """Kinds of requirement nodes."""

    ROLE = "role"
    PERMISSION = "permission"
    ALL = "all"
    ANY = "any"


@dataclass(frozen=True)
class Requirement:
    """An immutable, validated authorization requirement.

    Build instances with the classmethod constructors rather than
    calling the class directly.
    """

    kind: RequirementKind
    name: str | None = None
    children: tuple["Requirement", ...] = ()

    def __post_init__(self) -> None:
        if self.kind in (RequirementKind.ROLE, RequirementKind.PERMISSION):
            if self.children:
                raise InvalidRequirementError(
                    f"A {self.kind.value} requirement cannot have children"
                )
            limit = (
                MAX_ROLE_NAME_LENGTH
                if self.kind is RequirementKind.ROLE
                else MAX_PERMISSION_NAME_LENGTH
            )
            try:
                validate_name(self.name or "", self.kind.value, limit)
            except InvalidNameError as exc:
                raise InvalidRequirementError(exc.message, details=exc.details) from exc
        elif not self.children:
            raise InvalidRequirementError(
                f"An {self.kind.value.upper()} requirement needs at least one condition"
            )

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def role(cls, name: str) -> "Requirement":
        return cls(RequirementKind.ROLE, name=name)

    @classmethod
    def permission(cls, name: str) -> "Requirement":
        return cls(RequirementKind.PERMISSION, name=name)

    @classmethod
    def all_of(cls, *items: "Requirement | str") -> "Requirement":
        """Combine requirements with AND semantics.

        String items are parsed as single terms (``role:x`` or a
        permission name). A single item is returned unwrapped.
        """
        return cls._combine(RequirementKind.ALL, items)

    @classmethod
    def any_of(cls, *items: "Requirement | str") -> "Requirement":
        """Combine requirements with OR semantics."""
        return cls._combine(RequirementKind.ANY, items)

    @classmethod
    def all_roles(cls, names: Iterable[str]) -> "Requirement":
        """Require every role in ``names``."""
        return cls.all_of(*(cls.role(name) for name in names))

    @classmethod
    def _combine(
        cls, kind: RequirementKind, items: Sequence["Requirement | str"]
    ) -> "Requirement":
        children = tuple(
            item if isinstance(item, Requirement) else _parse_term(item)
            for item in items
        )
        if len(children) == 1:
            return children[0]
        return cls(kind, children=children)

    @classmethod
    def parse(cls, expression: str) -> "Requirement":
        """Parse an expression (see module docstring); results are memoized.

        Raises:
            InvalidRequirementError: If the expression or one of its
                terms is empty or names are invalid
        """
        if not isinstance(expression, str):
            raise InvalidRequirementError(
                "Requirement expression must be a string, "
                f"got {type(expression).__name__}"
            )
        return _parse_expression(expression)

    @classmethod
    def from_middleware(cls, arguments: str | Sequence[str]) -> "Requirement":
        """Build a requirement from route-middleware style arguments.

        The first token names a role and every following token a
        permission; all of them must hold. ``"admin,create-post"``
        requires role "admin" AND permission "create-post".

        Raises:
            InvalidRequirementError: If there are no tokens or a token is empty
        """
        if isinstance(arguments, str):
            tokens = arguments.split(TERM_SEPARATOR)
        else:
            tokens = list(arguments)
        tokens = [token.strip() for token in tokens]
        if not tokens or any(not token for token in tokens):
            raise InvalidRequirementError(
                "Middleware arguments need a role and non-empty permission tokens",
                details={"arguments": str(arguments)},
            )
        role, *permissions = tokens
        return cls.all_of(cls.role(role), *(cls.permission(p) for p in permissions))

    @classmethod
    def coerce(cls, value: "RequirementLike") -> "Requirement":
        """Return ``value`` as a Requirement.

        Strings are parsed as expressions. Any other sequence of names is
        read as middleware arguments, so ``["admin", "create-post"]``
        requires role "admin" AND permission "create-post".

        Raises:
            InvalidRequirementError: If the value cannot be read
        """
        if isinstance(value, Requirement):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, Sequence):
            return cls.from_middleware(value)
        raise InvalidRequirementError(
            "Requirement must be a Requirement, an expression or a list of names",
            details={"type": type(value).__name__},
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def is_satisfied_by(self, snapshot: ResolvedIdentity) -> bool:
        """Evaluate against an identity snapshot.

        Unknown role or permission names are simply absent from the
        snapshot, so they deny.
        """
        if self.kind is RequirementKind.ROLE:
            return self.name in snapshot.roles
        if self.kind is RequirementKind.PERMISSION:
            return self.name in snapshot.permissions
        if self.kind is RequirementKind.ALL:
            return all(child.is_satisfied_by(snapshot) for child in self.children)
        return any(child.is_satisfied_by(snapshot) for child in self.children)

    def role_names(self) -> frozenset[str]:
        """All role names referenced anywhere in the requirement."""
        if self.kind is RequirementKind.ROLE:
            return frozenset({self.name or ""})
        return frozenset().union(*(child.role_names() for child in self.children))

    def permission_names(self) -> frozenset[str]:
        """All permission names referenced anywhere in the requirement."""
        if self.kind is RequirementKind.PERMISSION:
            return frozenset({self.name or ""})
        return frozenset().union(
            *(child.permission_names() for child in self.children)
        )

    def __str__(self) -> str:
        if self.kind is RequirementKind.ROLE:
            return f"{ROLE_PREFIX}{self.name}"
        if self.kind is RequirementKind.PERMISSION:
            return f"{PERMISSION_PREFIXES[0]}{self.name}"
        if self.kind is RequirementKind.ANY:
            return ALTERNATIVE_SEPARATOR.join(str(child) for child in self.children)
        return TERM_SEPARATOR.join(
            f"({child})" if child.kind is RequirementKind.ANY else str(child)
            for child in self.children
        )


def _parse_term(token: str) -> Requirement:
    term = token.strip()
    if term.startswith(ROLE_PREFIX):
        return Requirement.role(term[len(ROLE_PREFIX) :].strip())
    for prefix in PERMISSION_PREFIXES:
        if term.startswith(prefix):
            return Requirement.permission(term[len(prefix) :].strip())
    return Requirement.permission(term)


@lru_cache(maxsize=512)
def _parse_expression(expression: str) -> Requirement:
    if not expression.strip():
        raise InvalidRequirementError("Requirement expression must not be empty")

    alternatives: list[Requirement] = []
    for alternative in expression.split(ALTERNATIVE_SEPARATOR):
        terms = [term.strip() for term in alternative.split(TERM_SEPARATOR)]
        if any(not term for term in terms):
            raise InvalidRequirementError(
                "Requirement expression contains an empty term",
                details={"expression": expression},
            )
        alternatives.append(Requirement.all_of(*(_parse_term(t) for t in terms)))
    return Requirement.any_of(*alternatives)


RequirementLike = Requirement | str | Sequence[str]
