"""
Circuit Breaker
Per-destination failure tracking that stops deliveries to an unhealthy target
"""

import time
from enum import Enum
from typing import Callable, Dict

import structlog

logger = structlog.get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker keyed by destination URL

    State is derived, not stored:
    - closed: failures < threshold
    - open: failures >= threshold and the last failure is within the cooldown
    - half_open: failures >= threshold and the cooldown has elapsed; is_open
      admits a single trial request and keeps rejecting others until that
      trial records a success (closed) or a failure (open again). A trial
      that never reports back is abandoned after another cooldown.

    Shared by all workers on the event loop; updates are single dict writes.
    """

    def __init__(
        self,
        threshold: int = 5,
        cooldown_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker

        Args:
            threshold: Consecutive failures that open the circuit
            cooldown_seconds: How long an open circuit rejects attempts
            clock: Monotonic time source in seconds
        """
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._failures: Dict[str, int] = {}
        self._last_failure: Dict[str, float] = {}
        self._trial_started: Dict[str, float] = {}

    def state(self, key: str) -> CircuitState:
        failures = self._failures.get(key, 0)
        if failures < self.threshold:
            return CircuitState.CLOSED

        elapsed = self._clock() - self._last_failure.get(key, 0.0)
        if elapsed < self.cooldown_seconds:
            return CircuitState.OPEN
        return CircuitState.HALF_OPEN

    def is_open(self, key: str) -> bool:
        """True while the circuit rejects attempts; half-open admits one trial at a time"""
        state = self.state(key)
        if state is CircuitState.CLOSED:
            return False
        if state is CircuitState.OPEN:
            return True

        now = self._clock()
        started = self._trial_started.get(key)
        if started is not None and now - started < self.cooldown_seconds:
            return True

        self._trial_started[key] = now
        logger.info("Circuit half-open, admitting trial request", target_url=key)
        return False

    def record_success(self, key: str) -> None:
        if self._failures.pop(key, None) is not None:
            logger.info("Circuit closed", target_url=key)
        self._last_failure.pop(key, None)
        self._trial_started.pop(key, None)

    def record_failure(self, key: str) -> None:
        failures = self._failures.get(key, 0) + 1
        self._failures[key] = failures
        self._last_failure[key] = self._clock()
        self._trial_started.pop(key, None)

        if failures == self.threshold:
            logger.warning(
                "Circuit opened",
                target_url=key,
                failures=failures,
                cooldown_seconds=self.cooldown_seconds,
            )

    def failure_count(self, key: str) -> int:
        return self._failures.get(key, 0)
