"""Unit tests for name validation."""

import pytest

from rolegate.core.errors import InvalidNameError
from rolegate.core.validation import validate_name


pytestmark = pytest.mark.unit


class TestValidateName:
    """Tests for validate_name."""

    def test_valid_name_returned_unchanged(self) -> None:
        assert validate_name("create-post", "permission", 100) == "create-post"

    @pytest.mark.parametrize("value", ["", "   ", " admin", "admin "])
    def test_empty_or_padded_rejected(self, value: str) -> None:
        with pytest.raises(InvalidNameError):
            validate_name(value, "role", 100)

    def test_too_long_rejected(self) -> None:
        with pytest.raises(InvalidNameError) as exc_info:
            validate_name("x" * 11, "role", 10)

        assert "10" in exc_info.value.message

    @pytest.mark.parametrize("value", ["a,b", "a|b"])
    def test_separators_rejected_in_role_names(self, value: str) -> None:
        with pytest.raises(InvalidNameError):
            validate_name(value, "role", 100)

    def test_identity_refs_may_contain_separators(self) -> None:
        """Verify identity refs are opaque host values."""
        assert validate_name("tenant|42", "identity", 255) == "tenant|42"
