"""
Constants and settings for the SSH Session Broker.
"""

import os
import re

# =============================================================================
# Constants
# =============================================================================

# Username validation pattern (alphanumeric, dash, underscore, dot)
USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9._-]+$')
MAX_USERNAME_LENGTH = 255

# Docker container IDs are hex, names are [a-zA-Z0-9][a-zA-Z0-9_.-]+
CONTAINER_ID_PATTERN = re.compile(r'^[a-zA-Z0-9][a-zA-Z0-9_.-]*$')
MAX_CONTAINER_ID_LENGTH = 128

# Label holding the username that owns a broker-managed container
DEFAULT_USERNAME_LABEL = "ssh-broker.username"


def get_env(key: str, default: str = None, required: bool = False) -> str:
    """
    Retrieve a configuration value from the environment.

    The key is upper-cased and dashes become underscores, so
    ``server-key-password`` reads ``SERVER_KEY_PASSWORD``.

    Args:
        key: Configuration key
        default: Default value
        required: Whether the value is required

    Returns:
        Configuration value

    Raises:
        ValueError: If required value is missing
    """
    env_key = key.upper().replace("-", "_")
    value = os.environ.get(env_key, default)
    if required and not value:
        raise ValueError(f"Required configuration missing: {key}")
    return value
