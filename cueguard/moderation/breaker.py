"""Failure-count circuit breaker for the classification service.

After ``failure_threshold`` consecutive failures inside ``window_seconds`` the
circuit opens and callers skip the network for ``cooldown_seconds``.  Once the
cooldown has elapsed a single trial call is let through (half-open); its
outcome closes or re-opens the circuit.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class BreakerSnapshot:
    """Point-in-time view of a breaker, for health reporting."""

    state: CircuitState
    consecutive_failures: int
    opened_at: Optional[float]
    retry_at: Optional[float]

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "consecutiveFailures": self.consecutive_failures,
            "openedAt": self.opened_at,
            "retryAt": self.retry_at,
        }


class CircuitBreaker:
    """Thread-safe breaker driven by an injectable monotonic clock."""

    def __init__(
        self,
        failure_threshold: int = 5,
        window_seconds: float = 60.0,
        cooldown_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "classifier",
    ) -> None:
        self.failure_threshold = max(1, failure_threshold)
        self.window_seconds = window_seconds
        self.cooldown_seconds = cooldown_seconds
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._first_failure_at: Optional[float] = None
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

    # -- queries -------------------------------------------------------------

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._current_state(self._clock())

    def snapshot(self) -> BreakerSnapshot:
        with self._lock:
            now = self._clock()
            state = self._current_state(now)
            retry_at = (
                self._opened_at + self.cooldown_seconds
                if self._opened_at is not None
                else None
            )
            return BreakerSnapshot(
                state=state,
                consecutive_failures=self._failures,
                opened_at=self._opened_at,
                retry_at=retry_at,
            )

    # -- call gating ---------------------------------------------------------

    def allow_request(self) -> bool:
        """Return True if the caller may attempt the protected call.

        In the half-open state only one caller at a time gets True.
        """
        with self._lock:
            state = self._current_state(self._clock())
            if state == CircuitState.CLOSED:
                return True
            if state == CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("Circuit %s closed after successful trial call", self.name)
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._first_failure_at = None
            self._opened_at = None
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            now = self._clock()
            state = self._current_state(now)
            self._trial_in_flight = False

            if state == CircuitState.HALF_OPEN:
                self._open(now)
                return
            if state == CircuitState.OPEN:
                return

            if (
                self._first_failure_at is None
                or now - self._first_failure_at > self.window_seconds
            ):
                self._first_failure_at = now
                self._failures = 0
            self._failures += 1

            if self._failures >= self.failure_threshold:
                self._open(now)

    def release(self) -> None:
        """Give back a half-open trial slot without recording an outcome."""
        with self._lock:
            self._trial_in_flight = False

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._first_failure_at = None
            self._opened_at = None
            self._trial_in_flight = False

    # -- internals (lock held) -----------------------------------------------

    def _current_state(self, now: float) -> CircuitState:
        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and now - self._opened_at >= self.cooldown_seconds
        ):
            self._state = CircuitState.HALF_OPEN
            self._trial_in_flight = False
            logger.info("Circuit %s half-open, admitting a trial call", self.name)
        return self._state

    def _open(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        logger.warning(
            "Circuit %s opened after %d consecutive failures; cooling down %.0fs",
            self.name,
            self._failures,
            self.cooldown_seconds,
        )
