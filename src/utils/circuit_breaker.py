"""
Circuit breaker for async provider calls (LLM text generation, embeddings).

Each call is bounded by a timeout. Outcomes are kept in a rolling window;
once the window holds at least ``volume_threshold`` calls and the error
percentage reaches ``error_threshold_percentage`` the breaker opens and
rejects calls until ``reset_timeout`` has elapsed. The next call is then a
half-open trial: success closes the breaker, failure re-opens it. While the
trial is in flight every other caller is rejected as if the breaker were open.
"""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from src.config.logging_config import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitOpenError(RuntimeError):
    """Raised when a call is rejected because the breaker is open."""


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        timeout: float = 2.5,
        error_threshold_percentage: float = 25.0,
        reset_timeout: float = 30.0,
        volume_threshold: int = 10,
        rolling_window: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.timeout = timeout
        self.error_threshold_percentage = error_threshold_percentage
        self.reset_timeout = reset_timeout
        self.volume_threshold = volume_threshold
        self.rolling_window = rolling_window
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._outcomes: deque[tuple[float, bool]] = deque()
        self._trial_in_flight = False
        self.stats = {"fires": 0, "successes": 0, "failures": 0, "timeouts": 0, "rejects": 0}

    @property
    def state(self) -> CircuitState:
        if self._state is CircuitState.OPEN and self._clock() - self._opened_at >= self.reset_timeout:
            self._state = CircuitState.HALF_OPEN
            logger.info("Circuit %s half-open, allowing one trial call", self.name)
        return self._state

    def _trim_window(self, now: float) -> None:
        while self._outcomes and now - self._outcomes[0][0] > self.rolling_window:
            self._outcomes.popleft()

    def _error_percentage(self) -> float:
        if not self._outcomes:
            return 0.0
        failures = sum(1 for _, ok in self._outcomes if not ok)
        return failures * 100.0 / len(self._outcomes)

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        logger.warning("Circuit %s opened", self.name)

    def _record(self, ok: bool, trial: bool = False) -> None:
        now = self._clock()
        self._outcomes.append((now, ok))
        self._trim_window(now)

        if self._state is CircuitState.HALF_OPEN:
            # Calls started before the breaker opened do not decide the trial.
            if not trial:
                return
            if ok:
                self._state = CircuitState.CLOSED
                self._outcomes.clear()
                logger.info("Circuit %s closed", self.name)
            else:
                self._open()
            return

        if len(self._outcomes) >= self.volume_threshold and self._error_percentage() >= self.error_threshold_percentage:
            self._open()

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn()`` through the breaker. Raises CircuitOpenError, TimeoutError or fn's own error."""
        self.stats["fires"] += 1
        state = self.state
        if state is CircuitState.OPEN or (state is CircuitState.HALF_OPEN and self._trial_in_flight):
            self.stats["rejects"] += 1
            raise CircuitOpenError(f"Circuit {self.name} is open")

        trial = state is CircuitState.HALF_OPEN
        if trial:
            self._trial_in_flight = True
        try:
            result = await asyncio.wait_for(fn(), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.stats["timeouts"] += 1
            self.stats["failures"] += 1
            self._record(False, trial)
            raise
        except Exception:
            self.stats["failures"] += 1
            self._record(False, trial)
            raise
        finally:
            if trial:
                self._trial_in_flight = False

        self.stats["successes"] += 1
        self._record(True, trial)
        return result
