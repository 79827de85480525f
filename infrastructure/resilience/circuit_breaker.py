"""
Circuit breaker for backend calls.

Fails fast while the backend is unreachable instead of letting every click
wait for a connect timeout. Nothing here retries a request.
"""

from typing import Callable, Any, Optional
from datetime import datetime
from enum import Enum
import threading

import requests

from utils.logging_config import get_logger

logger = get_logger(__name__)

# Transport-level failures that count against the circuit
TRANSPORT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


class CircuitBreakerState(Enum):
    """Circuit breaker states"""
    CLOSED = "closed"      # Normal operation, requests pass through
    OPEN = "open"          # Circuit is open, requests are blocked
    HALF_OPEN = "half_open"  # Testing if service has recovered


class CircuitBreakerError(Exception):
    """Raised instead of calling the backend while the circuit is open"""

    def __init__(self, message: str, remaining_seconds: float = 0.0):
        super().__init__(message)
        self.remaining_seconds = remaining_seconds


class CircuitBreaker:
    """
    Circuit breaker around a callable

    States:
    - CLOSED: Normal operation, all requests pass through
    - OPEN: Requests fail fast without reaching the backend
    - HALF_OPEN: One trial request is let through after the recovery timeout
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 30,
        expected_exception: tuple = TRANSPORT_ERRORS,
        name: str = "CircuitBreaker"
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.name = name

        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = CircuitBreakerState.CLOSED

        self._lock = threading.Lock()

        logger.debug(f"CircuitBreaker '{name}' initialized with threshold={failure_threshold}, timeout={recovery_timeout}s")

    def _should_attempt_reset(self) -> bool:
        if self.last_failure_time is None:
            return False
        elapsed = (datetime.now() - self.last_failure_time).total_seconds()
        return elapsed >= self.recovery_timeout

    def _remaining_timeout(self) -> float:
        if self.last_failure_time is None:
            return float(self.recovery_timeout)
        elapsed = (datetime.now() - self.last_failure_time).total_seconds()
        return max(0.0, self.recovery_timeout - elapsed)

    def _record_success(self):
        with self._lock:
            self.failure_count = 0
            self.success_count += 1

            if self.state == CircuitBreakerState.HALF_OPEN:
                self.state = CircuitBreakerState.CLOSED
                logger.info(f"CircuitBreaker '{self.name}' recovered - state: CLOSED")

    def _record_failure(self):
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = datetime.now()

            if self.state == CircuitBreakerState.HALF_OPEN:
                self.state = CircuitBreakerState.OPEN
                logger.warning(f"CircuitBreaker '{self.name}' recovery failed - state: OPEN")

            elif self.state == CircuitBreakerState.CLOSED and self.failure_count >= self.failure_threshold:
                self.state = CircuitBreakerState.OPEN
                logger.warning(f"CircuitBreaker '{self.name}' opened - failures: {self.failure_count}")

    def can_execute(self) -> bool:
        """Check if a request can be executed"""
        with self._lock:
            if self.state == CircuitBreakerState.CLOSED:
                return True

            if self.state == CircuitBreakerState.OPEN:
                if self._should_attempt_reset():
                    self.state = CircuitBreakerState.HALF_OPEN
                    logger.info(f"CircuitBreaker '{self.name}' attempting recovery - state: HALF_OPEN")
                    return True
                return False

            # HALF_OPEN: the trial request is already in flight
            return False

    def execute(self, func: Callable[[], Any]) -> Any:
        """
        Execute a function with circuit breaker protection

        Raises:
            CircuitBreakerError: If circuit is open
            Original exception: If function fails
        """
        if not self.can_execute():
            remaining = self._remaining_timeout()
            raise CircuitBreakerError(
                f"Service is temporarily unavailable. Please try again in {remaining:.0f}s.",
                remaining_seconds=remaining
            )

        try:
            result = func()
        except self.expected_exception:
            self._record_failure()
            raise
        except Exception:
            # Not a transport failure; release a half-open trial without judging it
            with self._lock:
                if self.state == CircuitBreakerState.HALF_OPEN:
                    self.state = CircuitBreakerState.OPEN
            raise

        self._record_success()
        return result

    def get_state(self) -> dict:
        """Get current circuit breaker state for monitoring"""
        with self._lock:
            remaining_timeout = 0.0
            if self.state == CircuitBreakerState.OPEN:
                remaining_timeout = self._remaining_timeout()

            return {
                "name": self.name,
                "state": self.state.value,
                "failure_count": self.failure_count,
                "success_count": self.success_count,
                "failure_threshold": self.failure_threshold,
                "remaining_timeout": remaining_timeout,
                "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None
            }

    def reset(self):
        """Manually reset the circuit breaker to CLOSED state"""
        with self._lock:
            self.state = CircuitBreakerState.CLOSED
            self.failure_count = 0
            self.last_failure_time = None
            logger.info(f"CircuitBreaker '{self.name}' manually reset - state: CLOSED")
