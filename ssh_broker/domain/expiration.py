"""
Expiration decision and container reclaim.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from ssh_broker.domain.directory import ContainerDirectory
from ssh_broker.domain.orchestrator.base import ContainerEngine
from ssh_broker.domain.registry import ClosureClock, SessionRegistry
from ssh_broker.domain.sharded import ShardedMap
from ssh_broker.domain.types import ReclaimOutcome, RemovalResult
from ssh_broker.exceptions import ContainerRemovalFailure

logger = logging.getLogger("ssh-broker")


class ExpirationController:
    """
    Decides when a user's container may be reclaimed and removes it.

    A user becomes due ``grace_period`` seconds after their last session
    closed. Users with open sessions, and users whose closure was never
    recorded, are never due.
    """

    def __init__(
        self,
        sessions: SessionRegistry,
        closures: ClosureClock,
        containers: ContainerDirectory,
        engine: ContainerEngine,
        grace_period: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if grace_period < 0:
            raise ValueError("grace_period must be >= 0")
        self.sessions = sessions
        self.closures = closures
        self.containers = containers
        self.engine = engine
        self.grace_period = grace_period
        self._clock = clock
        self._reclaim_locks: ShardedMap[str, threading.Lock] = ShardedMap()

    def expiration_time(self, username: str) -> float | None:
        """Time at which ``username`` becomes due, or None while active or never closed."""
        if self.sessions.count(username) > 0:
            return None
        closed_at = self.closures.closure_time(username)
        if closed_at is None:
            return None
        return closed_at + self.grace_period

    def expiration_due(self, username: str, now: float) -> bool:
        expires_at = self.expiration_time(username)
        if expires_at is None:
            return False
        return now >= expires_at

    def reclaim(self, username: str, force: bool = False, now: float | None = None) -> ReclaimOutcome:
        """
        Remove the user's container if forced or due.

        Overlapping calls for the same user are serialized. The engine call
        happens with no registry lock held. On failure the record is kept so
        a later call tries again.

        Args:
            username: User whose container should be reclaimed
            force: Skip the expiration check
            now: Evaluation time, defaults to the controller clock

        Returns:
            The reclaim outcome
        """
        # Locks are only created for users that have a container record
        if self.containers.get(username) is None:
            return ReclaimOutcome.NOTHING_TO_RECLAIM
        lock = self._reclaim_locks.setdefault(username, threading.Lock)
        with lock:
            container_id = self.containers.get(username)
            if container_id is None:
                return ReclaimOutcome.NOTHING_TO_RECLAIM

            if now is None:
                now = self._clock()
            if not force and not self.expiration_due(username, now):
                return ReclaimOutcome.NOT_DUE

            try:
                result = self.engine.remove(container_id)
            except ContainerRemovalFailure as e:
                logger.error(f"Reclaiming {username}'s container failed: {e}")
                return ReclaimOutcome.FAILED

            self.containers.discard(username, container_id)
            if result is RemovalResult.NOT_FOUND:
                logger.info(f"Container {container_id[:12]} for {username} was already gone")
            else:
                reason = "forced" if force else "grace period elapsed"
                logger.info(f"Reclaimed container {container_id[:12]} for {username} ({reason})")
            return ReclaimOutcome.RECLAIMED
