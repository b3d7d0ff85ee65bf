"""Exceptions raised by the authorization core.

Every failure is reported as a typed exception carrying a machine-readable
error code and an HTTP-style status code, so hosts can translate them into
responses (see ``rolegate.core.errors.handlers``) or exit codes.
"""

from typing import Any


class RoleGateError(Exception):
    """Base exception for all rolegate errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        status_code: HTTP status code a host should answer with
        details: Additional error details
    """

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(RoleGateError):
    """Raised when a referenced identity, role or permission does not exist.

    Example:
        raise NotFoundError("Role not found", resource="role", resource_id="admin")
    """

    message = "Resource not found"
    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        message: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message=message, details=details, **kwargs)


class ConflictError(RoleGateError):
    """Raised when a write conflicts with existing data."""

    message = "Resource conflict"
    error_code = "conflict"
    status_code = 409


class DuplicateNameError(ConflictError):
    """Raised when creating a role or permission whose name already exists.

    Example:
        raise DuplicateNameError(
            "Role 'admin' already exists", details={"name": "admin"}
        )
    """

    message = "Name already exists"
    error_code = "duplicate_name"


class ValidationError(RoleGateError):
    """Raised when input fails validation.

    Example:
        raise ValidationError(
            "Invalid seed file",
            errors=[{"field": "roles.0.name", "message": "Field required"}],
        )
    """

    message = "Validation error"
    error_code = "validation_error"
    status_code = 422

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(message=message, details=details, **kwargs)


class InvalidRequirementError(ValidationError):
    """Raised for malformed requirement expressions, e.g. an empty token list."""

    message = "Invalid requirement"
    error_code = "invalid_requirement"


class InvalidNameError(ValidationError):
    """Raised when a role, permission or identity name breaks the naming rules."""

    message = "Invalid name"
    error_code = "invalid_name"


class UnauthorizedError(RoleGateError):
    """Raised by enforcement points when no identity is available."""

    message = "Authentication required"
    error_code = "unauthorized"
    status_code = 401


class ForbiddenError(RoleGateError):
    """Raised when an identity does not satisfy a requirement.

    Example:
        raise ForbiddenError(
            "Insufficient permissions",
            details={"requirement": "role:admin,create-post"},
        )
    """

    message = "Access forbidden"
    error_code = "forbidden"
    status_code = 403


class ServiceUnavailableError(RoleGateError):
    """Raised when a backing service is unavailable."""

    message = "Service temporarily unavailable"
    error_code = "service_unavailable"
    status_code = 503


class StoreUnavailableError(ServiceUnavailableError):
    """Raised when the entity store or the permission cache cannot be reached.

    Example:
        raise StoreUnavailableError("Database connection failed")
    """

    message = "Authorization store unavailable"
    error_code = "store_unavailable"


class CacheInvalidationError(StoreUnavailableError):
    """Raised when a mutation committed but cached permissions were not dropped.

    The store already holds the change; retrying the mutation is a no-op.
    Cached snapshots may stay stale until they expire or the cache is
    invalidated again.
    """

    message = "Change committed but cached permissions could not be invalidated"
    error_code = "cache_invalidation_failed"
