"""Failure blacklist: keeps a provider out of rotation after it fails.

State machine:
    CLOSED    → (N consecutive failures) → OPEN
    OPEN      → (cooldown expires)       → HALF_OPEN
    HALF_OPEN → (probe succeeds)         → CLOSED
    HALF_OPEN → (probe fails)            → OPEN

With the default threshold of one, a single failed call blacklists the
provider for ``cooldown_seconds``.
"""

from __future__ import annotations

import enum
import threading
import time

import structlog

logger = structlog.get_logger(__name__)


class CircuitState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Per-provider failed-for-N-seconds blacklist with half-open probing."""

    def __init__(
        self,
        provider_id: str,
        *,
        failure_threshold: int = 1,
        cooldown_seconds: float = 30.0,
        clock=time.monotonic,
    ) -> None:
        self._provider_id = provider_id
        self._failure_threshold = max(failure_threshold, 1)
        self._cooldown = cooldown_seconds
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: float = 0.0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_transition_to_half_open()
            return self._state

    @property
    def seconds_until_retry(self) -> float:
        with self._lock:
            self._maybe_transition_to_half_open()
            if self._state != CircuitState.OPEN:
                return 0.0
            return round(self._cooldown - (self._clock() - self._last_failure_time), 1)

    def can_execute(self) -> bool:
        """False while the provider is blacklisted."""
        with self._lock:
            self._maybe_transition_to_half_open()
            return self._state != CircuitState.OPEN

    def record_success(self) -> None:
        with self._lock:
            prev = self._state
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            if prev != CircuitState.CLOSED:
                logger.info(
                    "provider_blacklist_cleared",
                    provider=self._provider_id,
                    previous_state=prev.value,
                )

    def record_failure(self) -> None:
        with self._lock:
            self._consecutive_failures += 1
            self._last_failure_time = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.warning(
                    "provider_blacklist_reopened",
                    provider=self._provider_id,
                    failures=self._consecutive_failures,
                    cooldown_s=self._cooldown,
                )
            elif (
                self._state == CircuitState.CLOSED
                and self._consecutive_failures >= self._failure_threshold
            ):
                self._state = CircuitState.OPEN
                logger.warning(
                    "provider_blacklisted",
                    provider=self._provider_id,
                    failures=self._consecutive_failures,
                    cooldown_s=self._cooldown,
                )

    def reset(self) -> None:
        """Force-reset to CLOSED (admin override)."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            logger.info("provider_blacklist_force_reset", provider=self._provider_id)

    def _maybe_transition_to_half_open(self) -> None:
        """Caller must hold lock."""
        if self._state == CircuitState.OPEN:
            elapsed = self._clock() - self._last_failure_time
            if elapsed >= self._cooldown:
                self._state = CircuitState.HALF_OPEN
                logger.info(
                    "provider_blacklist_expired",
                    provider=self._provider_id,
                    elapsed_s=round(elapsed, 1),
                )
