"""Error types and RFC 7807 Problem Details handlers."""

from rolegate.core.errors.exceptions import (
    CacheInvalidationError,
    ConflictError,
    DuplicateNameError,
    ForbiddenError,
    InvalidNameError,
    InvalidRequirementError,
    NotFoundError,
    RoleGateError,
    ServiceUnavailableError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)


__all__ = [
    "CacheInvalidationError",
    "ConflictError",
    "DuplicateNameError",
    "ForbiddenError",
    "InvalidNameError",
    "InvalidRequirementError",
    "NotFoundError",
    "RoleGateError",
    "ServiceUnavailableError",
    "StoreUnavailableError",
    "UnauthorizedError",
    "ValidationError",
]
