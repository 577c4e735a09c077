"""
Docker implementation of the container engine.
"""

from __future__ import annotations

import logging

import docker
import docker.errors
import docker.utils
import requests

from ssh_broker.config.settings import DEFAULT_USERNAME_LABEL
from ssh_broker.domain.orchestrator.base import ManagedContainer
from ssh_broker.domain.types import RemovalResult
from ssh_broker.exceptions import ConfigurationFailure, ContainerRemovalFailure
from ssh_broker.resilience import CircuitBreaker, CircuitOpenError

logger = logging.getLogger("ssh-broker")


class DockerEngine:
    """Docker-based container engine."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int = 10,
        stop_timeout: int = 10,
        username_label: str = DEFAULT_USERNAME_LABEL,
        client: docker.DockerClient | None = None,
    ) -> None:
        """
        Initialize Docker client.

        Args:
            base_url: Docker daemon URL overriding DOCKER_HOST, None to use the
                environment as is. TLS settings always come from the environment
            timeout: API call timeout in seconds
            stop_timeout: Seconds to wait for a container to stop before killing it
            username_label: Label holding the owning username
            client: Pre-built client (tests)

        Raises:
            ConfigurationFailure: If the client cannot be created
        """
        if client is None:
            try:
                if base_url:
                    kwargs = docker.utils.kwargs_from_env()
                    kwargs.update(base_url=base_url, timeout=timeout)
                    client = docker.DockerClient(**kwargs)
                else:
                    client = docker.from_env(timeout=timeout)
            except docker.errors.DockerException as e:
                raise ConfigurationFailure(f"Couldn't reach Docker: {e}") from e
        self._client = client
        self.stop_timeout = stop_timeout
        self.username_label = username_label
        self.breaker = CircuitBreaker(name="docker", failure_threshold=5, recovery_timeout=30.0)

    @property
    def client(self) -> docker.DockerClient:
        """Get the Docker client."""
        return self._client

    def _remove(self, container_id: str) -> RemovalResult:
        try:
            container = self._client.containers.get(container_id)
            container.stop(timeout=self.stop_timeout)
            container.remove()
        except docker.errors.NotFound:
            return RemovalResult.NOT_FOUND
        return RemovalResult.REMOVED

    def remove(self, container_id: str) -> RemovalResult:
        """
        Stop and remove a container.

        Args:
            container_id: Docker container ID

        Returns:
            REMOVED, or NOT_FOUND if Docker no longer knows the container

        Raises:
            ContainerRemovalFailure: On Docker API or transport errors
        """
        try:
            result = self.breaker.call(self._remove, container_id)
        except CircuitOpenError as e:
            raise ContainerRemovalFailure(container_id, e) from e
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise ContainerRemovalFailure(container_id, e) from e

        if result is RemovalResult.REMOVED:
            logger.info(f"Container {container_id[:12]} destroyed")
        return result

    def list_managed(self) -> list[ManagedContainer]:
        """
        List containers labelled with an owning username.

        Returns:
            Managed containers, or an empty list if Docker cannot be queried
        """
        result = []
        try:
            containers = self._client.containers.list(
                all=True, filters={"label": self.username_label}
            )
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            logger.error(f"Error listing containers: {e}")
            return result

        for container in containers:
            username = (container.labels or {}).get(self.username_label)
            if not username:
                continue
            result.append(
                ManagedContainer(
                    container_id=container.id,
                    username=username,
                    status=container.status,
                )
            )
        return result

    def ping(self) -> bool:
        """
        Check that the Docker daemon answers.

        Returns:
            True if reachable, False otherwise
        """
        try:
            return bool(self._client.ping())
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            logger.warning(f"Docker ping failed: {e}")
            return False
