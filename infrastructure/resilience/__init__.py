"""
Resilience infrastructure - fail-fast protection for backend calls.
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerState,
    CircuitBreakerError,
    TRANSPORT_ERRORS,
)

__all__ = [
    'CircuitBreaker',
    'CircuitBreakerState',
    'CircuitBreakerError',
    'TRANSPORT_ERRORS',
]
