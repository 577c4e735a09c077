"""
Base classes and protocols for the container engine.
"""

from dataclasses import dataclass
from typing import Protocol

from ssh_broker.domain.types import RemovalResult


@dataclass
class ManagedContainer:
    """A broker-managed container as reported by the engine."""

    container_id: str
    username: str
    status: str


class ContainerEngine(Protocol):
    """Protocol defining what the broker needs from a container backend."""

    def remove(self, container_id: str) -> RemovalResult:
        """
        Stop and remove a container.

        Args:
            container_id: Container ID

        Returns:
            REMOVED, or NOT_FOUND if the container is already gone

        Raises:
            ContainerRemovalFailure: On any other backend or I/O error
        """
        ...

    def list_managed(self) -> list[ManagedContainer]:
        """
        List containers carrying the broker's username label.

        Returns:
            Managed containers, running or not
        """
        ...

    def ping(self) -> bool:
        """
        Check that the engine answers.

        Returns:
            True if reachable, False otherwise
        """
        ...
