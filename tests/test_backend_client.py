"""
Tests for the backend HTTP adapter
"""

from unittest.mock import Mock

import pytest
import requests

from infrastructure.external.backend_client import BackendClient
from infrastructure.resilience import CircuitBreaker
from services.auth_service.exceptions import BackendError
from services.auth_service.models import Failed
from services.auth_service.session_negotiator import UNEXPECTED_RESPONSE_MESSAGE, SessionNegotiator

BASE_URL = "http://backend.test/api/v1"


def make_response(status_code=200, body=None):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    if body is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def http():
    return Mock(spec=requests.Session, headers={})


@pytest.fixture
def client(http):
    return BackendClient(base_url=BASE_URL, timeout=(1, 2), session=http,
                         circuit_breaker=CircuitBreaker(failure_threshold=2, name="Test"))


class TestRequests:
    """Test request construction"""

    def test_send_otp(self, client, http):
        """Test send-otp posts the mobile and unwraps data"""
        http.request.return_value = make_response(200, {"success": True, "data": {"otp": "123456"}})

        assert client.send_otp("9876543210") == {"otp": "123456"}
        http.request.assert_called_once_with(
            "POST", f"{BASE_URL}/auth/send-otp", json={"mobile": "9876543210"},
            headers={}, timeout=(1, 2))

    def test_login_sends_role(self, client, http):
        """Test login sends the identifier as email plus the selected role"""
        http.request.return_value = make_response(200, {"success": True, "data": {"token": "t"}})

        client.login("a@b.co", "secret", "Consultant")

        assert http.request.call_args[1]["json"] == {
            "email": "a@b.co", "password": "secret", "role": "Consultant"}

    def test_bearer_token(self, http):
        """Test the token provider sets the Authorization header"""
        http.request.return_value = make_response(200, {"success": True, "data": []})
        client = BackendClient(base_url=BASE_URL, session=http, token_provider=lambda: "jwt")

        client.get_categories()

        assert http.request.call_args[1]["headers"] == {"Authorization": "Bearer jwt"}

    def test_reset_password_path(self, client, http):
        """Test the reset token is part of the path"""
        http.request.return_value = make_response(200, {"success": True, "message": "Password reset successfully"})

        assert client.reset_password("tok", "Abcdefg1") == "Password reset successfully"
        assert http.request.call_args[0] == ("PUT", f"{BASE_URL}/auth/reset-password/tok")

    def test_categories_list(self, client, http):
        """Test categories are returned as a list"""
        http.request.return_value = make_response(200, {"success": True, "data": [{"_id": "c1"}]})

        assert client.get_categories() == [{"_id": "c1"}]


class TestErrors:
    """Test error mapping"""

    def test_error_message_passed_through(self, client, http):
        """Test the backend message is kept verbatim for classification"""
        http.request.return_value = make_response(
            403, {"success": False, "message": "Your account is pending approval."})

        with pytest.raises(BackendError) as exc_info:
            client.login("a@b.co", "secret")

        assert exc_info.value.message == "Your account is pending approval."
        assert exc_info.value.status_code == 403

    def test_success_false_with_200(self, client, http):
        """Test success: false is an error even with a 2xx status"""
        http.request.return_value = make_response(200, {"success": False, "message": "User not found"})

        with pytest.raises(BackendError, match="User not found"):
            client.verify_otp("9876543210", "123456")

    def test_non_json_error_uses_fallback(self, client, http):
        """Test an error without a message falls back to the per-call text"""
        http.request.return_value = make_response(502)

        with pytest.raises(BackendError, match="Failed to send OTP"):
            client.send_otp("9876543210")

    def test_transport_error_uses_fallback(self, client, http):
        """Test connection failures surface the per-call text"""
        http.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(BackendError, match="Login failed"):
            client.login("a@b.co", "secret")

    def test_open_circuit_fails_fast(self, client, http):
        """Test repeated transport failures stop reaching the network"""
        http.request.side_effect = requests.exceptions.Timeout("slow")
        for _ in range(2):
            with pytest.raises(BackendError):
                client.send_otp("9876543210")

        with pytest.raises(BackendError, match="temporarily unavailable"):
            client.send_otp("9876543210")
        assert http.request.call_count == 2


class TestUnexpectedData:
    """Test success envelopes whose data is not an object"""

    @pytest.mark.parametrize("data", [["unexpected"], "token", 42, None])
    def test_non_object_data_is_empty(self, client, http, data):
        """Test a list, string or number in data unwraps to an empty dict"""
        http.request.return_value = make_response(200, {"success": True, "data": data})

        assert client.login("a@b.co", "secret") == {}
        assert client.send_otp("9876543210") == {}

    def test_bare_list_body(self, client, http):
        """Test a top-level list body unwraps to an empty dict"""
        http.request.return_value = make_response(200, ["unexpected"])

        assert client.verify_otp("9876543210", "123456") == {}

    def test_negotiator_reports_unexpected_response(self, client, http):
        """Test password login on a list payload fails cleanly instead of raising"""
        http.request.return_value = make_response(200, {"success": True, "data": ["unexpected"]})

        outcome = SessionNegotiator(api=client).login_with_password("a@b.co", "secret")

        assert outcome == Failed(message=UNEXPECTED_RESPONSE_MESSAGE)
