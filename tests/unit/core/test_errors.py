"""Unit tests for the error hierarchy."""

import pytest

from rolegate.core.errors import (
    CacheInvalidationError,
    ConflictError,
    DuplicateNameError,
    InvalidRequirementError,
    NotFoundError,
    RoleGateError,
    ServiceUnavailableError,
    StoreUnavailableError,
    ValidationError,
)


pytestmark = pytest.mark.unit


class TestErrorHierarchy:
    """Tests for error codes, status codes and details."""

    @pytest.mark.parametrize(
        ("error", "parent", "status_code", "error_code"),
        [
            (DuplicateNameError, ConflictError, 409, "duplicate_name"),
            (InvalidRequirementError, ValidationError, 422, "invalid_requirement"),
            (StoreUnavailableError, ServiceUnavailableError, 503, "store_unavailable"),
            (
                CacheInvalidationError,
                StoreUnavailableError,
                503,
                "cache_invalidation_failed",
            ),
            (NotFoundError, RoleGateError, 404, "not_found"),
        ],
    )
    def test_classification(
        self,
        error: type[RoleGateError],
        parent: type[RoleGateError],
        status_code: int,
        error_code: str,
    ) -> None:
        exc = error()

        assert isinstance(exc, parent)
        assert exc.status_code == status_code
        assert exc.error_code == error_code
        assert str(exc) == exc.message

    def test_not_found_records_resource(self) -> None:
        """Verify resource and id land in details."""
        exc = NotFoundError("Role 'x' not found", resource="role", resource_id="x")

        assert exc.details == {"resource": "role", "resource_id": "x"}

    def test_validation_error_records_field_errors(self) -> None:
        errors = [{"field": "roles.0.name", "message": "Field required"}]

        exc = ValidationError("Invalid seed", errors=errors)

        assert exc.details["errors"] == errors

    def test_error_code_override(self) -> None:
        exc = RoleGateError("nope", error_code="custom")

        assert exc.error_code == "custom"
        assert exc.details == {}
