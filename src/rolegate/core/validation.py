"""Name validation shared by the store and the requirement parser."""

from rolegate.core.constants import RESERVED_NAME_CHARACTERS
from rolegate.core.errors import InvalidNameError


def validate_name(value: str, kind: str, max_length: int) -> str:
    """Validate a role, permission or identity name.

    Names are case-sensitive and stored verbatim, so surrounding
    whitespace is rejected rather than stripped.

    Args:
        value: The candidate name
        kind: What is being named ("role", "permission", "identity")
        max_length: Maximum number of characters

    Returns:
        The unchanged name

    Raises:
        InvalidNameError: If the name is empty, padded, too long, or uses
            a requirement separator
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidNameError(f"{kind.capitalize()} name must not be empty")
    if value != value.strip():
        raise InvalidNameError(
            f"{kind.capitalize()} name must not start or end with whitespace",
            details={"name": value},
        )
    if len(value) > max_length:
        raise InvalidNameError(
            f"{kind.capitalize()} name exceeds {max_length} characters",
            details={"name": value},
        )
    reserved = sorted(RESERVED_NAME_CHARACTERS.intersection(value))
    if reserved and kind != "identity":
        raise InvalidNameError(
            f"{kind.capitalize()} name must not contain {' '.join(reserved)!r}",
            details={"name": value},
        )
    return value
