"""
Circuit breaker guarding calls to the container engine.
"""

from __future__ import annotations

import enum
import threading
import time
from typing import Any, Callable

from prometheus_client import Counter, Gauge


# =============================================================================
# Prometheus Metrics
# =============================================================================

CIRCUIT_STATE = Gauge(
    "broker_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["name"],
)

CIRCUIT_TRIPS = Counter(
    "broker_circuit_breaker_trips_total",
    "Number of times the circuit breaker tripped to OPEN",
    ["name"],
)


# =============================================================================
# Circuit Breaker
# =============================================================================

class CircuitState(enum.Enum):
    CLOSED = 0
    OPEN = 1
    HALF_OPEN = 2


class CircuitOpenError(Exception):
    """Raised when the circuit breaker is OPEN and calls are rejected."""

    def __init__(self, name: str, retry_after: float) -> None:
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit '{name}' is OPEN (retry after {retry_after:.0f}s)")


class CircuitBreaker:
    """Thread-safe circuit breaker.

    ``failure_threshold`` consecutive failures open the circuit. While open,
    calls fail fast with ``CircuitOpenError``. After ``recovery_timeout``
    seconds the circuit is HALF_OPEN and every call goes through again: the
    first success closes the circuit, a failure opens it again.
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0

        CIRCUIT_STATE.labels(name=self.name).set(CircuitState.CLOSED.value)

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    def call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Execute *func* through the circuit breaker.

        No lock is held while *func* runs.
        """
        with self._lock:
            self._maybe_half_open()
            if self._state is CircuitState.OPEN:
                retry_after = self.recovery_timeout - (self._clock() - self._opened_at)
                raise CircuitOpenError(self.name, max(0.0, retry_after))

        try:
            result = func(*args, **kwargs)
        except Exception:
            self._record_failure()
            raise

        self._record_success()
        return result

    def reset(self) -> None:
        """Force-reset the circuit to CLOSED (admin / tests)."""
        with self._lock:
            self._failure_count = 0
            self._set_state(CircuitState.CLOSED)

    # ------------------------------------------------------------------
    # Internal helpers. _set_state, _maybe_half_open and _trip expect
    # _lock held; _record_success and _record_failure take it themselves.
    # ------------------------------------------------------------------

    def _set_state(self, state: CircuitState) -> None:
        self._state = state
        CIRCUIT_STATE.labels(name=self.name).set(state.value)

    def _maybe_half_open(self) -> None:
        if (
            self._state is CircuitState.OPEN
            and self._clock() - self._opened_at >= self.recovery_timeout
        ):
            self._set_state(CircuitState.HALF_OPEN)

    def _trip(self) -> None:
        self._opened_at = self._clock()
        self._set_state(CircuitState.OPEN)
        CIRCUIT_TRIPS.labels(name=self.name).inc()

    def _record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            if self._state is CircuitState.HALF_OPEN:
                self._set_state(CircuitState.CLOSED)

    def _record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            if self._state is CircuitState.HALF_OPEN:
                self._trip()
            elif (
                self._state is CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                self._trip()
