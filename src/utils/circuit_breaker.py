"""
Circuit Breaker for External Collaborators

Protects the pipeline from hammering a text-completion or lookup service
that is already failing. Once consecutive failures pass the threshold the
circuit opens and calls are rejected immediately with CircuitOpenError,
which every call site already treats as a degradable failure.
"""

import asyncio
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Optional, Callable, TypeVar, Awaitable
from src.config import get_settings
from src.utils.observability import logger

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation, requests flow through
    OPEN = "open"          # Failing, reject requests immediately
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitStats:
    """Circuit breaker statistics."""
    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    total_rejections: int = 0
    last_failure_time: Optional[datetime] = None
    last_success_time: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    state_changes: int = 0


class CircuitOpenError(Exception):
    """Raised when the circuit rejects a call without executing it."""

    def __init__(self, name: str):
        super().__init__(f"Circuit '{name}' is open")
        self.name = name


class CircuitBreaker:
    """
    Circuit breaker for protecting against cascading failures.

    States:
    - CLOSED: Normal operation. Failures are counted.
    - OPEN: Service is down. Calls fail fast with CircuitOpenError.
    - HALF_OPEN: Testing recovery. Limited probe calls allowed.

    Usage:
        breaker = get_circuit("openai")
        try:
            reply = await breaker.call(lambda: agent.run(prompt))
        except CircuitOpenError:
            ...  # degrade
    """

    def __init__(
        self,
        name: str,
        failure_threshold: Optional[int] = None,
        recovery_timeout: Optional[float] = None,
        half_open_max_calls: Optional[int] = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Identifier for this circuit (for logging)
            failure_threshold: Consecutive failures before opening
            recovery_timeout: Seconds before trying recovery
            half_open_max_calls: Max calls allowed in half-open state
            clock: Time source, overridable in tests
        """
        settings = get_settings()
        self.name = name
        self._failure_threshold = failure_threshold or settings.circuit_breaker_failure_threshold
        self._recovery_timeout = recovery_timeout or settings.circuit_breaker_recovery_timeout
        self._half_open_max_calls = half_open_max_calls or settings.circuit_breaker_half_open_max_calls
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._state = CircuitState.CLOSED
        self._stats = CircuitStats()
        self._half_open_calls = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state

    @property
    def stats(self) -> CircuitStats:
        """Circuit statistics."""
        return self._stats

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Execute function through the circuit.

        Raises:
            CircuitOpenError: The circuit is open, or half-open with its probe budget spent
            Exception: Whatever func raised (recorded as a failure first)
        """
        async with self._lock:
            self._check_state_transition()

            if self._state == CircuitState.OPEN:
                self._stats.total_rejections += 1
                logger.warning(f"⚡ Circuit '{self.name}' is OPEN, rejecting call")
                raise CircuitOpenError(self.name)

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self._half_open_max_calls:
                    self._stats.total_rejections += 1
                    logger.warning(f"⚡ Circuit '{self.name}' HALF_OPEN limit reached, rejecting call")
                    raise CircuitOpenError(self.name)
                self._half_open_calls += 1

        # Execute outside lock to allow concurrency
        try:
            result = await func()
        except asyncio.CancelledError:
            # Cancellation says nothing about the collaborator's health
            raise
        except Exception as e:
            await self._record_failure(e)
            raise

        await self._record_success()
        return result

    def _check_state_transition(self) -> None:
        """Move OPEN to HALF_OPEN once the recovery timeout has elapsed."""
        if self._state != CircuitState.OPEN or not self._stats.opened_at:
            return

        elapsed = (self._clock() - self._stats.opened_at).total_seconds()
        if elapsed >= self._recovery_timeout:
            self._transition_to(CircuitState.HALF_OPEN)
            self._half_open_calls = 0

    async def _record_success(self) -> None:
        async with self._lock:
            self._stats.consecutive_failures = 0
            self._stats.total_successes += 1
            self._stats.last_success_time = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                logger.info(f"Circuit '{self.name}' recovered, closing")
                self._transition_to(CircuitState.CLOSED)

    async def _record_failure(self, error: Exception) -> None:
        async with self._lock:
            self._stats.consecutive_failures += 1
            self._stats.total_failures += 1
            self._stats.last_failure_time = self._clock()

            logger.warning(
                f"Circuit '{self.name}' failure {self._stats.consecutive_failures}/{self._failure_threshold}: {error}"
            )

            if self._state == CircuitState.HALF_OPEN:
                logger.warning(f"Circuit '{self.name}' probe failed, reopening")
                self._transition_to(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._stats.consecutive_failures >= self._failure_threshold
            ):
                logger.error(f"🚨 Circuit '{self.name}' threshold reached, opening")
                self._transition_to(CircuitState.OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1

        if new_state == CircuitState.OPEN:
            self._stats.opened_at = self._clock()

        logger.info(f"Circuit '{self.name}' state: {old_state.value} -> {new_state.value}")

    async def reset(self) -> None:
        """Manually reset circuit to closed state."""
        async with self._lock:
            self._transition_to(CircuitState.CLOSED)
            self._stats.consecutive_failures = 0
            self._half_open_calls = 0

    def get_status(self) -> dict:
        """Get circuit status for health reporting."""
        return {
            "name": self.name,
            "state": self._state.value,
            "consecutive_failures": self._stats.consecutive_failures,
            "total_failures": self._stats.total_failures,
            "total_successes": self._stats.total_successes,
            "total_rejections": self._stats.total_rejections,
            "failure_threshold": self._failure_threshold,
            "recovery_timeout_seconds": self._recovery_timeout,
            "opened_at": self._stats.opened_at.isoformat() if self._stats.opened_at else None,
        }


# One breaker per named collaborator ("openai", "identity", ...)
_circuits: Dict[str, CircuitBreaker] = {}


def get_circuit(name: str) -> CircuitBreaker:
    """Get or create the named circuit breaker."""
    if name not in _circuits:
        _circuits[name] = CircuitBreaker(name=name)
    return _circuits[name]


def all_circuit_statuses() -> list[dict]:
    """Status of every circuit created so far."""
    return [circuit.get_status() for circuit in _circuits.values()]


def reset_circuits() -> None:
    """Drop every registered circuit (used between tests)."""
    _circuits.clear()
