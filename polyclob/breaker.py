"""Circuit breaker guarding a client's requests to the exchange."""

import logging
import time

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """CLOSED → OPEN (after consecutive failures) → HALF_OPEN (after cooldown) → CLOSED.

    While HALF_OPEN a single trial request is admitted. Other callers on the
    event loop are turned away until that request settles, so a recovering
    server sees one request rather than the whole backlog.

    Args:
        failure_threshold: Consecutive failures before opening.
        recovery_timeout: Seconds to stay OPEN before admitting a trial request.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.state = self.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._trial_in_flight = False

    def __repr__(self) -> str:
        return f"CircuitBreaker(state={self.state}, failures={self._failure_count})"

    def allow_request(self) -> bool:
        if self.state == self.CLOSED:
            return True
        if self.state == self.OPEN:
            if time.monotonic() - self._last_failure_time < self.recovery_timeout:
                return False
            self.state = self.HALF_OPEN
            logger.info("Circuit breaker → HALF_OPEN (admitting one trial request)")
        if self._trial_in_flight:
            return False
        self._trial_in_flight = True
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker → CLOSED (trial request succeeded)")
        self._failure_count = 0
        self.state = self.CLOSED
        self._trial_in_flight = False

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        self._trial_in_flight = False
        if self.state == self.HALF_OPEN:
            self.state = self.OPEN
            logger.warning("Circuit breaker → OPEN (trial request failed, cooldown %.0fs)", self.recovery_timeout)
        elif self._failure_count >= self.failure_threshold:
            self.state = self.OPEN
            logger.warning(
                "Circuit breaker → OPEN after %d consecutive failures (cooldown %.0fs)",
                self._failure_count, self.recovery_timeout,
            )

    def release(self) -> None:
        """Free the trial slot after a request that neither succeeded nor failed.

        Client errors and cancellation land here; the circuit stays HALF_OPEN
        and the next caller gets the slot.
        """
        self._trial_in_flight = False
