"""
Session broker: the public surface of the session/container lifecycle core.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Mapping

from ssh_broker.domain.auth import AuthGate, PublicKey
from ssh_broker.domain.connection import ConnectionHandler
from ssh_broker.domain.directory import ContainerDirectory
from ssh_broker.domain.expiration import ExpirationController
from ssh_broker.domain.orchestrator.base import ContainerEngine
from ssh_broker.domain.registry import ClosureClock, SessionRegistry
from ssh_broker.domain.types import ReclaimOutcome
from ssh_broker.observability import ACTIVE_SESSIONS, RECLAIMS_TOTAL, TRACKED_CONTAINERS

logger = logging.getLogger("ssh-broker")

# Engine states in which a listed container is already going away
SKIPPED_STATUSES = frozenset({"removing"})


class SessionBroker:
    """
    Wires authentication, session counting, closure tracking and reclaim.

    One instance serves the whole process; all state is in memory.
    """

    def __init__(
        self,
        engine: ContainerEngine,
        authorized_keys: Mapping[str, Iterable[PublicKey]],
        grace_period: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.engine = engine
        self.clock = clock
        self.gate = AuthGate(authorized_keys)
        self.closures = ClosureClock()
        self.sessions = SessionRegistry(on_idle=self.closures.record_closure, clock=clock)
        self.containers = ContainerDirectory()
        self.expiration = ExpirationController(
            self.sessions,
            self.closures,
            self.containers,
            engine,
            grace_period,
            clock=clock,
        )
        # Gauges read live state at scrape time
        ACTIVE_SESSIONS.set_function(self.sessions.total_count)
        TRACKED_CONTAINERS.set_function(lambda: len(self.containers))

    @property
    def grace_period(self) -> float:
        return self.expiration.grace_period

    def open_connection(self, peer: object = None) -> ConnectionHandler:
        """Create the handler for a new inbound connection."""
        logger.info(f"Connection from {peer}")
        return ConnectionHandler(self.gate, self.sessions, peer=peer)

    def connection_count(self, username: str | None = None) -> int:
        """Open sessions for ``username``, or across all users if omitted."""
        if username is None:
            return self.sessions.total_count()
        return self.sessions.count(username)

    def closure_time(self, username: str) -> float | None:
        return self.closures.closure_time(username)

    def expiration_time(self, username: str) -> float | None:
        return self.expiration.expiration_time(username)

    def expire_user(self, username: str, force: bool = False) -> ReclaimOutcome:
        """
        Reclaim ``username``'s container if forced or past its grace period.

        Blocks on the container engine when a removal is issued.
        """
        outcome = self.expiration.reclaim(username, force=force)
        RECLAIMS_TOTAL.labels(outcome=outcome.value).inc()
        return outcome

    def register_container(self, username: str, container_id: str) -> str | None:
        """Record the container provisioned for ``username``."""
        previous = self.containers.register(username, container_id)
        logger.info(f"Container {container_id[:12]} registered for {username}")
        return previous

    def sweep(self) -> dict[str, ReclaimOutcome]:
        """Run a non-forced reclaim for every user with a container record."""
        outcomes = {}
        for username in self.containers.users():
            outcomes[username] = self.expire_user(username, force=False)
        return outcomes

    def adopt_containers(self) -> int:
        """
        Register managed containers that already exist in the engine.

        Adopted users have no recorded closure, so they are not auto-expired
        until one of their sessions opens and closes again. Containers Docker
        is already removing are skipped.

        Returns:
            Number of containers adopted
        """
        adopted = 0
        for container in self.engine.list_managed():
            if container.status in SKIPPED_STATUSES:
                logger.info(
                    f"Not adopting container {container.container_id[:12]} for {container.username}: {container.status}"
                )
                continue
            if self.containers.get(container.username) is not None:
                logger.warning(
                    f"Ignoring extra container {container.container_id[:12]} for {container.username}"
                )
                continue
            self.register_container(container.username, container.container_id)
            logger.info(
                f"Adopted container {container.container_id[:12]} for {container.username} ({container.status})"
            )
            adopted += 1
        if adopted:
            logger.info(f"Adopted {adopted} existing container(s)")
        return adopted

    def user_status(self, username: str) -> dict:
        return {
            "username": username,
            "connections": self.connection_count(username),
            "closed_at": self.closure_time(username),
            "expires_at": self.expiration_time(username),
            "container_id": self.containers.get(username),
        }
