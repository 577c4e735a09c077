"""
Factory for the container engine singleton.
"""

from __future__ import annotations

import logging
import threading

from ssh_broker.config.loader import BrokerConfig
from ssh_broker.domain.orchestrator.base import ContainerEngine

logger = logging.getLogger("ssh-broker")

# Singleton instance
_lock = threading.Lock()
_engine: ContainerEngine | None = None


def get_engine() -> ContainerEngine:
    """
    Get the configured container engine.

    Uses double-checked locking to ensure only one engine instance
    exists even when accessed concurrently from multiple threads.

    Returns:
        ContainerEngine instance

    Raises:
        ConfigurationFailure: If the Docker engine cannot be reached
    """
    global _engine

    if _engine is not None:
        return _engine

    with _lock:
        if _engine is not None:
            return _engine

        from ssh_broker.domain.orchestrator.docker_engine import DockerEngine

        settings = BrokerConfig.settings().docker
        logger.info(f"Initializing docker engine ({settings.base_url or 'from environment'})")
        _engine = DockerEngine(
            base_url=settings.base_url or None,
            timeout=settings.timeout,
            stop_timeout=settings.stop_timeout,
            username_label=settings.username_label,
        )

    return _engine


def reset_engine() -> None:
    """
    Reset the engine singleton.

    Useful for testing or configuration changes.
    """
    global _engine
    with _lock:
        _engine = None
