"""API module for Flask routes and helpers."""

from ssh_broker.api.validators import (
    ValidationError,
    validate_username,
    validate_container_id,
    parse_bool,
)
from ssh_broker.api.responses import api_success, api_error, api_reclaim_result
from ssh_broker.api.auth import require_api_key

__all__ = [
    "ValidationError",
    "validate_username",
    "validate_container_id",
    "parse_bool",
    "api_success",
    "api_error",
    "api_reclaim_result",
    "require_api_key",
]
