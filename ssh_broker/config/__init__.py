"""Configuration module for the SSH Session Broker."""

from ssh_broker.config.settings import (
    USERNAME_PATTERN,
    MAX_USERNAME_LENGTH,
    CONTAINER_ID_PATTERN,
    MAX_CONTAINER_ID_LENGTH,
    get_env,
)
from ssh_broker.config.loader import (
    BrokerConfig,
    CONFIG_PATH,
    BROKER_CONFIG_FILE,
    load_authorized_keys,
)

__all__ = [
    "USERNAME_PATTERN",
    "MAX_USERNAME_LENGTH",
    "CONTAINER_ID_PATTERN",
    "MAX_CONTAINER_ID_LENGTH",
    "get_env",
    "BrokerConfig",
    "CONFIG_PATH",
    "BROKER_CONFIG_FILE",
    "load_authorized_keys",
]
