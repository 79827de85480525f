"""
Tests for circuit breaker state transitions
"""

from datetime import datetime, timedelta

import pytest
import requests

from infrastructure.resilience import CircuitBreaker, CircuitBreakerError, CircuitBreakerState


def connection_refused():
    raise requests.exceptions.ConnectionError("Connection refused")


class TestCircuitBreaker:
    """Test CLOSED -> OPEN -> HALF_OPEN -> CLOSED"""

    def test_opens_after_threshold(self):
        """Test the circuit opens after consecutive transport failures"""
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=30, name="Test")

        for _ in range(3):
            with pytest.raises(requests.exceptions.ConnectionError):
                cb.execute(connection_refused)

        assert cb.state == CircuitBreakerState.OPEN
        with pytest.raises(CircuitBreakerError) as exc_info:
            cb.execute(lambda: "never called")
        assert exc_info.value.remaining_seconds > 0

    def test_success_resets_failure_count(self):
        """Test a success between failures keeps the circuit closed"""
        cb = CircuitBreaker(failure_threshold=2)

        with pytest.raises(requests.exceptions.ConnectionError):
            cb.execute(connection_refused)
        assert cb.execute(lambda: "ok") == "ok"
        with pytest.raises(requests.exceptions.ConnectionError):
            cb.execute(connection_refused)

        assert cb.state == CircuitBreakerState.CLOSED

    def test_other_errors_not_counted(self):
        """Test non-transport exceptions pass through without opening the circuit"""
        cb = CircuitBreaker(failure_threshold=1)

        with pytest.raises(ValueError):
            cb.execute(lambda: int("x"))

        assert cb.state == CircuitBreakerState.CLOSED

    def test_half_open_recovers(self):
        """Test a successful trial request closes the circuit"""
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=30)
        with pytest.raises(requests.exceptions.ConnectionError):
            cb.execute(connection_refused)
        cb.last_failure_time = datetime.now() - timedelta(seconds=31)

        assert cb.execute(lambda: "ok") == "ok"
        assert cb.state == CircuitBreakerState.CLOSED

    def test_half_open_failure_reopens(self):
        """Test a failed trial request opens the circuit again"""
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=30)
        with pytest.raises(requests.exceptions.ConnectionError):
            cb.execute(connection_refused)
        cb.last_failure_time = datetime.now() - timedelta(seconds=31)

        with pytest.raises(requests.exceptions.ConnectionError):
            cb.execute(connection_refused)

        assert cb.get_state()["state"] == "open"

    def test_reset(self):
        """Test manual reset closes the circuit"""
        cb = CircuitBreaker(failure_threshold=1)
        with pytest.raises(requests.exceptions.ConnectionError):
            cb.execute(connection_refused)

        cb.reset()

        assert cb.can_execute()
        assert cb.get_state()["failure_count"] == 0
