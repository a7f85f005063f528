"""Circuit breaker guarding calls to the summarizer.

CLOSED passes calls through and counts consecutive failures. After
``failure_threshold`` of them the circuit is OPEN and calls fail fast with
``CircuitOpenError`` until ``recovery_timeout`` has elapsed; the next call
is then a HALF_OPEN trial call that closes the circuit on success and reopens
it on failure.

Usage:
    breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=60.0)
    try:
        summary = await breaker.call(summarizer.summarize, item)
    except CircuitOpenError:
        summary = heuristic_summary(item)
"""

import enum
import logging
import time
from typing import Any, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit."""


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout: float = 60.0,
        name: str = "summarizer",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._name = name
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures = 0

    def _before_call(self) -> None:
        if self._state != CircuitState.OPEN:
            return
        if self._clock() - self._opened_at < self._recovery_timeout:
            raise CircuitOpenError(f"Circuit {self._name} is open")
        self._state = CircuitState.HALF_OPEN
        logger.info("Circuit %s half-open, probing", self._name)

    async def call(
        self,
        fn: Callable[..., Coroutine[Any, Any, T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run ``fn`` through the breaker.

        Raises:
            CircuitOpenError: The circuit is open and not yet due a trial call.
        """
        self._before_call()

        try:
            result = await fn(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise

        if self._state == CircuitState.HALF_OPEN:
            logger.info("Circuit %s closed after a successful trial call", self._name)
        self.reset()
        return result

    def _on_failure(self) -> None:
        self._failures += 1
        if self._state == CircuitState.HALF_OPEN or self._failures >= self._failure_threshold:
            if self._state != CircuitState.OPEN:
                logger.warning(
                    "Circuit %s opened after %d consecutive failures",
                    self._name,
                    self._failures,
                )
            self._state = CircuitState.OPEN
            self._opened_at = self._clock()
