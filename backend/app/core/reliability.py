"""
Reliability Utilities.

Circuit breaker for best-effort collaborators (the rate quote cache): after
`failure_threshold` consecutive failures the circuit opens and calls are
rejected without touching the collaborator for `reset_timeout` seconds.
The first call after that is a trial; its outcome closes or re-opens the
circuit.
"""

import logging
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)

CLOSED = "CLOSED"
OPEN = "OPEN"
HALF_OPEN = "HALF_OPEN"


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60,
        name: str = "circuit",
        time_fn: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.name = name
        self.time_fn = time_fn
        self.failures = 0
        self.opened_at = 0.0
        self.state = CLOSED

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Raises:
            CircuitOpenError: The circuit is open
            Exception: Whatever `func` raised (counted as a failure)
        """
        if self.state == OPEN:
            if self.time_fn() - self.opened_at < self.reset_timeout:
                raise CircuitOpenError(f"{self.name} circuit is open")
            self.state = HALF_OPEN

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        if self.state == HALF_OPEN or self.failures:
            self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        if self.state == HALF_OPEN or self.failures >= self.failure_threshold:
            if self.state != OPEN:
                logger.warning(
                    "Circuit opened",
                    extra={"circuit": self.name, "failures": self.failures}
                )
            self.state = OPEN
            self.opened_at = self.time_fn()

    def reset_state(self):
        self.failures = 0
        self.state = CLOSED
