"""Role-based authorization core: entity store, resolver and policy gate."""

from rolegate.core.errors import (
    DuplicateNameError,
    ForbiddenError,
    InvalidRequirementError,
    NotFoundError,
    RoleGateError,
    StoreUnavailableError,
)
from rolegate.gate import PolicyGate, Requirement
from rolegate.resolver import Resolver
from rolegate.runtime import RoleGate
from rolegate.store import EntityStore


__version__ = "0.1.0"

__all__ = [
    "DuplicateNameError",
    "EntityStore",
    "ForbiddenError",
    "InvalidRequirementError",
    "NotFoundError",
    "PolicyGate",
    "Requirement",
    "Resolver",
    "RoleGate",
    "RoleGateError",
    "StoreUnavailableError",
    "__version__",
]
