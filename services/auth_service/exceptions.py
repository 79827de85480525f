"""
Exceptions raised by the onboarding flows.
"""

from typing import Any, Dict, Optional


class OnboardingError(Exception):
    """Base class for onboarding errors; `message` is safe to show to the user"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OnboardingError):
    """Client-side input problem; raised before any network call"""
    pass


class AuthDeniedError(OnboardingError):
    """A session for a role this client does not serve"""

    def __init__(self, message: str, role: str = ""):
        super().__init__(message)
        self.role = role


class PreconditionError(OnboardingError):
    """Navigation context required by a flow is missing"""
    pass


class ConcurrentActionError(OnboardingError):
    """A request for the same flow is still outstanding"""
    pass


class BackendError(OnboardingError):
    """Transport failure or error response from the backend"""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}
