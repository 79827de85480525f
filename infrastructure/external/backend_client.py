"""
HTTP adapter for the consulting-marketplace backend.
Wraps the auth and category endpoints and unwraps the `{success, message, data}` envelope.
"""

from typing import Any, Callable, Dict, List, Optional

import requests

from config.app_config import get_config
from infrastructure.resilience import CircuitBreaker, CircuitBreakerError
from services.auth_service.exceptions import BackendError
from utils.logging_config import get_logger

logger = get_logger(__name__)


class BackendClient:
    """
    Client for the backend REST API.

    Error responses and transport failures are raised as BackendError whose
    message is the backend's `message` field, or the per-call fallback when the
    backend did not answer with one.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[tuple] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        session: Optional[requests.Session] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        config = get_config()
        self.base_url = (base_url or config.api.base_url).rstrip("/")
        self.timeout = timeout or config.api.timeout
        self.token_provider = token_provider
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=config.resilience.failure_threshold,
            recovery_timeout=config.resilience.recovery_timeout,
            name="Backend_API",
        )

    def _headers(self) -> Dict[str, str]:
        token = self.token_provider() if self.token_provider else None
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    @staticmethod
    def _parse_body(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}

    @staticmethod
    def _data(body: Dict[str, Any]) -> Dict[str, Any]:
        """The envelope's `data` object; any other shape is treated as empty"""
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        fallback_message: str = "Request failed",
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"

        def send():
            return self.session.request(
                method, url, json=payload, headers=self._headers(), timeout=self.timeout
            )

        try:
            response = self.circuit_breaker.execute(send)
        except CircuitBreakerError as e:
            raise BackendError(str(e)) from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"{method} {path} failed at transport level: {e.__class__.__name__}")
            raise BackendError(fallback_message) from e

        body = self._parse_body(response)

        if response.status_code == 401:
            logger.warning(f"{method} {path} returned 401 Unauthorized")

        if not response.ok or body.get("success") is False:
            message = body.get("message") or fallback_message
            logger.debug(f"{method} {path} -> {response.status_code}: {message}")
            raise BackendError(message, status_code=response.status_code, payload=body)

        return body

    # Auth endpoints

    def send_otp(self, mobile: str) -> Dict[str, Any]:
        body = self._request("POST", "/auth/send-otp", {"mobile": mobile},
                             fallback_message="Failed to send OTP")
        return self._data(body)

    def verify_otp(self, mobile: str, otp: str, role: Optional[str] = None) -> Dict[str, Any]:
        payload = {"mobile": mobile, "otp": otp}
        if role:
            payload["role"] = role
        body = self._request("POST", "/auth/verify-otp", payload,
                             fallback_message="Login failed")
        return self._data(body)

    def login(self, identifier: str, password: str, role: Optional[str] = None) -> Dict[str, Any]:
        payload = {"email": identifier, "password": password}
        if role:
            payload["role"] = role
        body = self._request("POST", "/auth/login", payload, fallback_message="Login failed")
        return self._data(body)

    def signup(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = self._request("POST", "/auth/signup", payload, fallback_message="Signup failed")
        return self._data(body)

    def register(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = self._request("POST", "/auth/register", payload,
                             fallback_message="Registration failed")
        return self._data(body)

    def forgot_password(self, email: str) -> str:
        body = self._request("POST", "/auth/forgot-password", {"email": email},
                             fallback_message="Failed to send reset link")
        return body.get("message") or "Password reset link sent to your email"

    def reset_password(self, reset_token: str, password: str) -> str:
        body = self._request("PUT", f"/auth/reset-password/{reset_token}", {"password": password},
                             fallback_message="Failed to reset password")
        return body.get("message") or "Password reset successfully"

    # Reference data

    def get_categories(self) -> List[Dict[str, Any]]:
        body = self._request("GET", "/categories", fallback_message="Failed to load categories")
        data = body.get("data")
        return data if isinstance(data, list) else []


# Global client instance
_backend_client: Optional[BackendClient] = None


def get_backend_client() -> BackendClient:
    """Get the global backend client instance (no auth token)"""
    global _backend_client
    if _backend_client is None:
        _backend_client = BackendClient()
    return _backend_client
