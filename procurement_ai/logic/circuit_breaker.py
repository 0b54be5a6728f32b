"""
Procurement AI - Circuit Breaker Pattern

Keeps the external LLM column-analysis service from dragging down uploads:
- Tracks consecutive failures
- Opens the circuit after a failure threshold
- Routes calls to the local heuristic analyzer while open
- Probes recovery through a half-open state

Author: Procurement AI Team
"""

from __future__ import annotations

import time
from enum import Enum
from dataclasses import dataclass
from typing import Callable, TypeVar, Optional, Any, Dict
from threading import Lock

from .logging_utils import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class CircuitState(Enum):
    """Circuit breaker states"""
    CLOSED = "closed"      # Normal operation, calls go through
    OPEN = "open"          # Failure threshold reached, calls blocked
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitStats:
    """Statistics for circuit breaker monitoring"""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    fallback_calls: int = 0
    circuit_opens: int = 0

    @property
    def fallback_rate(self) -> float:
        """Fallback usage rate as a percentage"""
        if self.total_calls == 0:
            return 0.0
        return (self.fallback_calls / self.total_calls) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "fallback_calls": self.fallback_calls,
            "circuit_opens": self.circuit_opens,
            "fallback_rate": f"{self.fallback_rate:.1f}%",
        }


class CircuitBreaker:
    """
    Circuit Breaker for external service resilience.

    States:
    - CLOSED: Normal operation, all calls go through
    - OPEN: Too many failures, calls are blocked and fallback is used
    - HALF_OPEN: Testing recovery, allowing limited calls through

    Usage:
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        result = breaker.call(
            primary_func=lambda: remote.analyze(rows),
            fallback_func=lambda: local.analyze(rows),
        )
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 3,
        recovery_timeout: float = 60.0,
        half_open_max_calls: int = 1,
        success_threshold: int = 1,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            name: Identifier for this circuit breaker
            failure_threshold: Consecutive failures before opening circuit
            recovery_timeout: Seconds to wait before trying again (half-open)
            half_open_max_calls: Max calls allowed in half-open state
            success_threshold: Successes needed in half-open to close circuit
            clock: Time source (injectable for tests)
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_max_calls = half_open_max_calls
        self.success_threshold = success_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._half_open_calls = 0
        self._lock = Lock()

        self.stats = CircuitStats()

    @property
    def state(self) -> CircuitState:
        """Get current circuit state, checking for recovery timeout"""
        with self._lock:
            if self._state == CircuitState.OPEN and self._should_attempt_recovery():
                self._state = CircuitState.HALF_OPEN
                self._half_open_calls = 0
                self._success_count = 0
                logger.info(f"Circuit '{self.name}' entering HALF_OPEN state")
            return self._state

    def _should_attempt_recovery(self) -> bool:
        if self._last_failure_time is None:
            return True
        return (self._clock() - self._last_failure_time) >= self.recovery_timeout

    def record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            self.stats.successful_calls += 1

            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    self._state = CircuitState.CLOSED
                    logger.info(f"Circuit '{self.name}' CLOSED - service recovered")

    def record_failure(self, error: Optional[Exception] = None) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()
            self.stats.failed_calls += 1

            if error:
                logger.warning(f"Circuit '{self.name}' failure #{self._failure_count}: {error}")

            if self._state == CircuitState.HALF_OPEN:
                # Any failure in half-open immediately opens circuit
                self._state = CircuitState.OPEN
                self.stats.circuit_opens += 1
                logger.warning(f"Circuit '{self.name}' OPEN - recovery failed")

            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                self.stats.circuit_opens += 1
                logger.warning(
                    f"Circuit '{self.name}' OPEN after {self._failure_count} failures. "
                    f"Fallback will be used for {self.recovery_timeout}s"
                )

    def allow_request(self) -> bool:
        state = self.state

        if state == CircuitState.CLOSED:
            return True

        if state == CircuitState.OPEN:
            return False

        with self._lock:
            if self._half_open_calls < self.half_open_max_calls:
                self._half_open_calls += 1
                return True
            return False

    def call(
        self,
        primary_func: Callable[[], T],
        fallback_func: Callable[[], T],
    ) -> T:
        """
        Execute call with circuit breaker protection.

        Args:
            primary_func: Primary function to call (e.g. the LLM service)
            fallback_func: Fallback function (e.g. the local heuristics)

        Returns:
            Result from primary_func or fallback_func
        """
        self.stats.total_calls += 1

        if not self.allow_request():
            self.stats.fallback_calls += 1
            logger.debug(f"Circuit '{self.name}' open, using fallback")
            return fallback_func()

        try:
            result = primary_func()
        except Exception as e:
            self.record_failure(e)
            self.stats.fallback_calls += 1
            logger.info(f"Circuit '{self.name}' primary failed, using fallback: {e}")
            return fallback_func()

        self.record_success()
        return result

    def reset(self) -> None:
        """Reset circuit breaker to initial state"""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._last_failure_time = None
            self._half_open_calls = 0
            logger.info(f"Circuit '{self.name}' reset to CLOSED")

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
            "stats": self.stats.to_dict(),
        }


# Circuit breaker for the LLM column-analysis service
llm_breaker = CircuitBreaker(
    name="llm_column_analysis",
    failure_threshold=3,
    recovery_timeout=120.0,
    half_open_max_calls=1,
    success_threshold=1,
)
