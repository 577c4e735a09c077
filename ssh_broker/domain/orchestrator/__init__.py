"""
Container engine module.

The broker only needs container removal and discovery; the Docker backend
lives in docker_engine.py and is built through factory.get_engine().
"""

from ssh_broker.domain.orchestrator.base import ContainerEngine, ManagedContainer

__all__ = ["ContainerEngine", "ManagedContainer"]
