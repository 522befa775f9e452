"""
Circuit breaker for live delivery providers.

CLOSED passes calls through and counts consecutive failures. After
``failure_threshold`` failures the breaker OPENs and rejects calls for
``timeout_seconds``. The next call after the timeout runs in HALF_OPEN;
``success_threshold`` consecutive successes close the breaker again, any
failure re-opens it.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from src.services.quoteProviders import ProviderUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(ProviderUnavailableError):
    """Raised instead of calling the provider while the circuit is open."""


@dataclass(frozen=True)
class CircuitStats:
    state: CircuitState
    failure_count: int
    success_count: int
    total_calls: int
    total_failures: int
    total_successes: int
    last_failure_time: Optional[float]
    last_state_change: float


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        success_threshold: int = 2,
        timeout_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout_seconds = timeout_seconds
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._total_calls = 0
        self._total_failures = 0
        self._total_successes = 0
        self._last_failure_time: Optional[float] = None
        self._last_state_change = clock()
        self._next_attempt = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open and the timeout has
                not elapsed.
        """
        if self._state is CircuitState.OPEN:
            if self._clock() < self._next_attempt:
                raise CircuitOpenError(
                    f"Circuit breaker '{self.name}' is open; provider unavailable"
                )
            self._transition(CircuitState.HALF_OPEN)

        self._total_calls += 1
        try:
            result = await fn()
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def stats(self) -> CircuitStats:
        return CircuitStats(
            state=self._state,
            failure_count=self._failure_count,
            success_count=self._success_count,
            total_calls=self._total_calls,
            total_failures=self._total_failures,
            total_successes=self._total_successes,
            last_failure_time=self._last_failure_time,
            last_state_change=self._last_state_change,
        )

    def reset(self) -> None:
        self._transition(CircuitState.CLOSED)
        self._last_failure_time = None
        self._next_attempt = 0.0

    # -- internals --

    def _on_success(self) -> None:
        self._total_successes += 1
        self._failure_count = 0

        if self._state is CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                logger.info("Circuit breaker '%s' closed after recovery", self.name)
                self._transition(CircuitState.CLOSED)

    def _on_failure(self) -> None:
        self._total_failures += 1
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._state is CircuitState.HALF_OPEN:
            self._open()
        elif self._failure_count >= self.failure_threshold:
            self._open()

    def _open(self) -> None:
        logger.error(
            "Circuit breaker '%s' opened after %d failures; retry in %.0fs",
            self.name,
            self._failure_count,
            self.timeout_seconds,
        )
        self._transition(CircuitState.OPEN)
        self._next_attempt = self._clock() + self.timeout_seconds

    def _transition(self, new_state: CircuitState) -> None:
        self._state = new_state
        self._last_state_change = self._clock()
        self._failure_count = 0 if new_state is not CircuitState.OPEN else self._failure_count
        self._success_count = 0


def breaker_from_settings(name: str, settings: Any) -> CircuitBreaker:
    return CircuitBreaker(
        name,
        failure_threshold=settings.breaker_failure_threshold,
        success_threshold=settings.breaker_success_threshold,
        timeout_seconds=settings.breaker_timeout_seconds,
    )
