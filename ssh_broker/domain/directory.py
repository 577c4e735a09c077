"""
Per-user container records.
"""

from __future__ import annotations

import logging

from ssh_broker.domain.sharded import DEFAULT_SHARDS, ShardedMap

logger = logging.getLogger("ssh-broker")


class ContainerDirectory:
    """Maps each user to at most one backing container ID."""

    def __init__(self, shards: int = DEFAULT_SHARDS) -> None:
        self._records: ShardedMap[str, str] = ShardedMap(shards)

    def register(self, username: str, container_id: str) -> str | None:
        """
        Record ``container_id`` as the container of ``username``.

        Returns:
            The previously recorded container ID, or None
        """
        previous = self._records.set(username, container_id)
        if previous is not None and previous != container_id:
            logger.warning(
                f"Container record for {username} replaced: {previous[:12]} -> {container_id[:12]}"
            )
        return previous

    def get(self, username: str) -> str | None:
        return self._records.get(username)

    def discard(self, username: str, container_id: str) -> bool:
        """Remove the record only if it still points at ``container_id``."""
        return self._records.pop_if(username, lambda current: current == container_id)

    def users(self) -> list[str]:
        return sorted(self._records.keys())

    def snapshot(self) -> dict[str, str]:
        return dict(self._records.items())

    def __len__(self) -> int:
        return len(self._records)
