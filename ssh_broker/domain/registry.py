"""
Per-user live session counting and closure timestamps.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from ssh_broker.domain.sharded import DEFAULT_SHARDS, ShardedMap

logger = logging.getLogger("ssh-broker")

IdleHook = Callable[[str, float], None]


class SessionToken:
    """
    One live session's share of a user's count.

    ``release`` decrements the count exactly once; later calls are no-ops.
    Usable as a context manager so release happens on every exit path.
    """

    def __init__(self, registry: SessionRegistry, username: str) -> None:
        self.username = username
        self._registry = registry
        self._lock = threading.Lock()
        self._released = False

    def release(self) -> bool:
        """
        Give the session's reference back.

        Returns:
            True if this call released the token, False if it was already released
        """
        with self._lock:
            if self._released:
                return False
            self._released = True
        self._registry._release(self.username)
        return True

    def __enter__(self) -> SessionToken:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"SessionToken({self.username!r}, {state})"


class SessionRegistry:
    """
    Live session count per user.

    Counts change only through :meth:`acquire` and :meth:`SessionToken.release`.
    ``on_idle(username, now)`` runs under the same shard lock as the decrement
    that takes a user to zero, so it fires once per zero-crossing and never
    for a release that leaves sessions open.
    """

    def __init__(
        self,
        on_idle: IdleHook | None = None,
        clock: Callable[[], float] = time.time,
        shards: int = DEFAULT_SHARDS,
    ) -> None:
        self._counts: ShardedMap[str, int] = ShardedMap(shards)
        self._on_idle = on_idle
        self._clock = clock

    def acquire(self, username: str) -> SessionToken:
        """Open a session for ``username`` and return its token."""
        count = self._counts.compute(username, lambda current: (current or 0) + 1)
        logger.debug(f"Session acquired for {username} (open: {count})")
        return SessionToken(self, username)

    def _release(self, username: str) -> int:
        def decrement(current: int | None) -> int:
            if not current:
                raise RuntimeError(f"Session count for {username!r} would go negative")
            remaining = current - 1
            if remaining == 0 and self._on_idle is not None:
                self._on_idle(username, self._clock())
            return remaining

        remaining = self._counts.compute(username, decrement)
        logger.debug(f"Session released for {username} (open: {remaining})")
        return remaining

    def count(self, username: str) -> int:
        return self._counts.get(username) or 0

    def total_count(self) -> int:
        return sum(count for _, count in self._counts.items())

    def snapshot(self) -> dict[str, int]:
        """Users with at least one open session and their counts."""
        return {user: count for user, count in self._counts.items() if count > 0}


class ClosureClock:
    """Time at which each user's session count last reached zero."""

    def __init__(self, shards: int = DEFAULT_SHARDS) -> None:
        self._closures: ShardedMap[str, float] = ShardedMap(shards)

    def record_closure(self, username: str, now: float) -> None:
        self._closures.set(username, now)
        logger.info(f"Last session closed for {username}")

    def closure_time(self, username: str) -> float | None:
        return self._closures.get(username)
