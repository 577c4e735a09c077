"""
Periodic expiration sweep over users with recorded containers.
"""

from __future__ import annotations

import logging
import threading
import time

from ssh_broker.domain.broker import SessionBroker
from ssh_broker.domain.types import ReclaimOutcome

logger = logging.getLogger("ssh-broker")


class ExpirationSweeper:
    """Background service that reclaims containers whose grace period elapsed."""

    def __init__(self, broker: SessionBroker, interval: int = 30):
        """
        Initialize expiration sweeper.

        Args:
            broker: Broker whose users are swept
            interval: Sweep interval in seconds
        """
        self.broker = broker
        self.interval = interval
        self.running = False
        self.last_sweep: float | None = None
        self.stats = {"sweeps": 0, "reclaimed": 0, "failed": 0, "errors": 0}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

    def start(self) -> None:
        """Start the sweeper thread."""
        self.running = True
        self._stop_event.clear()
        threading.Thread(target=self._sweep_loop, name="expiration-sweeper", daemon=True).start()
        logger.info(f"Expiration sweeper started (interval: {self.interval}s)")

    def stop(self) -> None:
        self.running = False
        self._stop_event.set()

    def _sweep_loop(self) -> None:
        """Main sweep loop."""
        while self.running:
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Sweep error: {e}")
                with self._lock:
                    self.stats["errors"] += 1
            self._stop_event.wait(self.interval)

    def run_once(self) -> dict[str, ReclaimOutcome]:
        """Sweep every tracked user once and update metrics."""
        outcomes = self.broker.sweep()
        reclaimed = [u for u, o in outcomes.items() if o is ReclaimOutcome.RECLAIMED]
        failed = [u for u, o in outcomes.items() if o is ReclaimOutcome.FAILED]

        with self._lock:
            self.stats["sweeps"] += 1
            self.stats["reclaimed"] += len(reclaimed)
            self.stats["failed"] += len(failed)
            self.last_sweep = time.time()

        if reclaimed:
            logger.info(f"Sweep: reclaimed containers for {reclaimed}")
        if failed:
            logger.warning(f"Sweep: reclaim failed for {failed}, will retry next sweep")

        return outcomes

    def get_stats(self) -> dict:
        with self._lock:
            return {**self.stats, "last_sweep": self.last_sweep, "interval": self.interval}
