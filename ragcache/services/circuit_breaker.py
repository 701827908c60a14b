"""Circuit breakers guarding the cache store, vector search and generation calls."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Callable

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Tracks consecutive failures of one external dependency.

    After `failure_threshold` failures the circuit opens and callers skip the
    dependency. Once `recovery_timeout` seconds have elapsed a limited number
    of trial calls are let through; a trial success closes the circuit, a
    trial failure re-opens it.
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 1
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def __post_init__(self):
        self._lock = Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._half_open_calls = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    def _maybe_half_open(self) -> None:
        if self._state != CircuitState.OPEN:
            return
        if self._opened_at is None or self.clock() - self._opened_at >= self.recovery_timeout:
            self._state = CircuitState.HALF_OPEN
            self._half_open_calls = 0
            logger.info(f"Circuit '{self.name}' entering HALF_OPEN state")

    def is_available(self) -> bool:
        """Check if a call to the dependency should be attempted."""
        with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls < self.half_open_max_calls:
                    self._half_open_calls += 1
                    return True
            return False

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info(f"Circuit '{self.name}' recovered, now CLOSED")
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._open()
                logger.warning(f"Circuit '{self.name}' trial call failed, back to OPEN")
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._open()
                logger.warning(
                    f"Circuit '{self.name}' OPENED after {self._failure_count} failures"
                )

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self.clock()

    def reset(self) -> None:
        """Force the circuit closed and clear its failure count."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None
            self._half_open_calls = 0

    def get_status(self) -> dict:
        """Get circuit breaker status for monitoring."""
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "failure_threshold": self.failure_threshold,
                "recovery_timeout_seconds": self.recovery_timeout,
            }


def store_circuit() -> CircuitBreaker:
    return CircuitBreaker(name="cache_store", failure_threshold=3, recovery_timeout=10.0)


def vector_search_circuit() -> CircuitBreaker:
    return CircuitBreaker(name="vector_search", failure_threshold=3, recovery_timeout=15.0)


def llm_circuit() -> CircuitBreaker:
    return CircuitBreaker(name="llm", failure_threshold=3, recovery_timeout=30.0)
