"""
Configuration loaders for broker.yml and the authorized_keys directory.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

import yaml
from pydantic import ValidationError

from ssh_broker.config.models import BrokerSettings
from ssh_broker.config.settings import get_env
from ssh_broker.domain.auth import PublicKey
from ssh_broker.exceptions import ConfigurationFailure

logger = logging.getLogger("ssh-broker")

# Configuration paths
CONFIG_PATH = Path(get_env("config_path", "/data/config") or "/data/config")
BROKER_CONFIG_FILE = CONFIG_PATH / "broker.yml"

# Environment variables that override broker.yml, mapped to (section, key).
# DOCKER_HOST is left to the docker SDK, which reads it with the TLS settings.
ENV_OVERRIDES = {
    "SSH_BROKER_LISTEN_ADDRESS": ("server", "listen_address"),
    "SSH_BROKER_LISTEN_PORT": ("server", "listen_port"),
    "SSH_BROKER_CLIENT_KEYS_DIR": ("server", "authorized_keys_dir"),
    "SSH_BROKER_SERVER_KEY": ("server", "host_key_path"),
    "SSH_BROKER_GRACE_MINUTES": ("lifecycle", "grace_period_minutes"),
}


class BrokerConfig:
    """Manages broker configuration from YAML file and environment."""

    _lock = threading.Lock()
    _config: dict = {}
    _typed_config: BrokerSettings | None = None

    @classmethod
    def load(cls) -> dict:
        """Load broker configuration once; later calls return the cached dict."""
        if cls._config:
            return cls._config

        with cls._lock:
            # Double-check after acquiring the lock
            if cls._config:
                return cls._config
            return cls._load_locked()

    @classmethod
    def _load_locked(cls) -> dict:
        """Load config while holding ``_lock``. Called from :meth:`load`."""
        defaults = BrokerSettings().model_dump()
        config = defaults

        if not BROKER_CONFIG_FILE.exists():
            logger.info(f"Broker config not found, using defaults: {BROKER_CONFIG_FILE}")
        else:
            try:
                with open(BROKER_CONFIG_FILE, "r") as f:
                    file_config = yaml.safe_load(f) or {}
                if not isinstance(file_config, dict):
                    raise ValueError("top-level YAML value must be a mapping")
                config = cls._deep_merge(defaults, file_config)
                logger.info(f"Loaded broker config from {BROKER_CONFIG_FILE}")
            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.error(f"Error loading broker config: {e}")

        config = cls._apply_env_overrides(config)

        try:
            typed = BrokerSettings.model_validate(config)
        except ValidationError as e:
            logger.error(f"Invalid broker config, using defaults: {e}")
            config = defaults
            typed = BrokerSettings.model_validate(config)

        cls._config = config
        cls._typed_config = typed
        return cls._config

    @classmethod
    def _deep_merge(cls, base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = cls._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @classmethod
    def _apply_env_overrides(cls, config: dict) -> dict:
        overrides: dict = {}
        for env_key, (section, key) in ENV_OVERRIDES.items():
            value = os.environ.get(env_key)
            if value:
                overrides.setdefault(section, {})[key] = value
        if not overrides:
            return config
        return cls._deep_merge(config, overrides)

    @classmethod
    def get(cls, *keys: str, default: object = None) -> object:
        """Get a nested config value using multiple keys."""
        config = cls.load()
        for key in keys:
            if isinstance(config, dict) and key in config:
                config = config[key]
            else:
                return default
        return config

    @classmethod
    def settings(cls) -> BrokerSettings:
        """Get typed configuration as a BrokerSettings instance."""
        if cls._typed_config is None:
            cls.load()
        assert cls._typed_config is not None
        return cls._typed_config

    @classmethod
    def reload(cls) -> BrokerSettings:
        """Drop the cached configuration and load it again."""
        with cls._lock:
            cls._config = {}
            cls._typed_config = None
        cls.load()
        return cls.settings()


def load_authorized_keys(directory: str | Path) -> dict[str, frozenset[PublicKey]]:
    """
    Build the username -> authorized keys table.

    Each regular file in ``directory`` is named after a user and holds
    authorized_keys lines. Blank lines and ``#`` comments are ignored.
    Malformed lines are logged and skipped.

    Args:
        directory: Directory holding one authorized_keys file per user

    Returns:
        Mapping of username to its set of public keys

    Raises:
        ConfigurationFailure: If the directory cannot be listed
    """
    path = Path(directory)
    if not path.is_dir():
        raise ConfigurationFailure(f"Authorized keys directory not found: {path}")

    table: dict[str, frozenset[PublicKey]] = {}
    for entry in sorted(path.iterdir()):
        if not entry.is_file() or entry.name.startswith("."):
            continue
        username = entry.name
        try:
            lines = entry.read_text().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Could not read keys for {username}: {e}")
            continue

        keys: set[PublicKey] = set()
        for lineno, line in enumerate(lines, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                keys.add(PublicKey.from_authorized_line(line))
            except ConfigurationFailure as e:
                logger.warning(f"Skipping key {entry.name}:{lineno}: {e}")

        table[username] = frozenset(keys)
        logger.info(f"Loaded {len(keys)} key(s) for {username}")

    return table
