"""
Input validation functions for the API.
"""

from ssh_broker.config.settings import (
    USERNAME_PATTERN,
    MAX_USERNAME_LENGTH,
    CONTAINER_ID_PATTERN,
    MAX_CONTAINER_ID_LENGTH,
)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


class ValidationError(Exception):
    """Raised when input validation fails."""
    pass


def validate_username(username: str) -> str:
    """
    Validate a username.

    Raises:
        ValidationError: If username is invalid
    """
    if not username:
        raise ValidationError("Username is required")

    if len(username) > MAX_USERNAME_LENGTH:
        raise ValidationError(f"Username exceeds maximum length of {MAX_USERNAME_LENGTH}")

    if not USERNAME_PATTERN.match(username):
        raise ValidationError("Username contains invalid characters")

    return username


def validate_container_id(container_id: object) -> str:
    """
    Validate a Docker container ID or name.

    Raises:
        ValidationError: If the ID is missing or malformed
    """
    if not container_id or not isinstance(container_id, str):
        raise ValidationError("container_id is required")

    if len(container_id) > MAX_CONTAINER_ID_LENGTH:
        raise ValidationError(f"container_id exceeds maximum length of {MAX_CONTAINER_ID_LENGTH}")

    if not CONTAINER_ID_PATTERN.match(container_id):
        raise ValidationError("container_id contains invalid characters")

    return container_id


def parse_bool(value: str | None, name: str = "value") -> bool:
    """Parse a query-string flag such as ``force=true``."""
    normalized = (value or "").strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValidationError(f"{name} must be a boolean")
