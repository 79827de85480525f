"""
Tests for the OTP challenge manager and resend countdown
"""

import threading

import pytest

from services.auth_service.exceptions import BackendError, ValidationError
from services.auth_service.models import CodeSent, Failed, LoginStep, NeedsSignup
from services.auth_service.otp_manager import OtpChallengeManager, ResendCountdown


class TestResendCountdown:
    """Test countdown arithmetic and thread lifecycle"""

    def test_tick_never_negative(self):
        """Test the count stops at zero"""
        countdown = ResendCountdown(seconds=2)
        assert countdown.tick() == 1
        assert countdown.tick() == 0
        assert countdown.tick() == 0

    def test_reset(self):
        """Test reset returns to the configured value"""
        countdown = ResendCountdown(seconds=30)
        countdown.tick()
        countdown.reset()
        assert countdown.remaining == 30

    def test_background_ticks_reach_zero(self):
        """Test the thread counts down and exits on its own"""
        reached_zero = threading.Event()

        def on_tick(remaining):
            if remaining == 0:
                reached_zero.set()

        countdown = ResendCountdown(seconds=3, interval=0.01, on_tick=on_tick)
        countdown.start()

        assert reached_zero.wait(timeout=2.0)
        countdown.cancel()
        assert countdown.remaining == 0
        assert not countdown.running

    def test_cancel_stops_ticking(self):
        """Test no tick lands after cancel returns"""
        with ResendCountdown(seconds=1000, interval=0.01) as countdown:
            pass
        frozen = countdown.remaining
        assert not countdown.running
        assert countdown.remaining == frozen


class TestRequestCode:
    """Test sending a code"""

    def test_send_enters_collect_otp(self, otp_manager, api):
        """Test a successful send starts the challenge with a full timer"""
        outcome = otp_manager.request_code("9876543210")

        assert isinstance(outcome, CodeSent)
        assert otp_manager.step == LoginStep.COLLECT_OTP
        assert otp_manager.resend_timer == 30
        assert otp_manager.challenge_mobile == "9876543210"
        assert otp_manager.last_dev_code == "123456"
        api.send_otp.assert_called_once_with("9876543210")

    def test_formatted_number_is_normalized(self, otp_manager, api):
        """Test formatting characters never reach the backend"""
        otp_manager.request_code("98765 43210")
        api.send_otp.assert_called_once_with("9876543210")

    def test_short_number_rejected_before_request(self, otp_manager, api):
        """Test a short number never reaches the backend"""
        with pytest.raises(ValidationError, match="valid mobile number"):
            otp_manager.request_code("12345")
        api.send_otp.assert_not_called()
        assert otp_manager.step == LoginStep.COLLECT_IDENTIFIER

    def test_failed_send_stays_on_number(self, otp_manager, api):
        """Test a failed send leaves the step unchanged"""
        api.send_otp.side_effect = BackendError("SMS gateway down")

        assert otp_manager.request_code("9876543210") == Failed(message="SMS gateway down")
        assert otp_manager.step == LoginStep.COLLECT_IDENTIFIER


class TestResend:
    """Test countdown-gated resend"""

    def test_resend_blocked_while_counting(self, otp_manager, api):
        """Test resend is refused while the timer is above zero"""
        otp_manager.request_code("9876543210")
        for _ in range(29):
            otp_manager.tick()

        assert otp_manager.resend_timer == 1
        with pytest.raises(ValidationError):
            otp_manager.resend()
        assert api.send_otp.call_count == 1

    def test_resend_after_countdown(self, otp_manager, api):
        """Test resend at zero reuses the captured number and restarts the timer"""
        otp_manager.request_code("9876543210")
        otp_manager.mobile = "1111111111"
        for _ in range(30):
            otp_manager.tick()

        assert otp_manager.can_resend
        otp_manager.resend()

        assert api.send_otp.call_count == 2
        api.send_otp.assert_called_with("9876543210")
        assert otp_manager.resend_timer == 30

    def test_resend_before_request(self, otp_manager):
        """Test resend without a challenge is refused"""
        with pytest.raises(ValidationError):
            otp_manager.resend()

    def test_tick_ignored_outside_collect_otp(self, otp_manager):
        """Test the timer does not move on the number step"""
        assert otp_manager.tick() == 30


class TestVerify:
    """Test verifying a code"""

    def test_verify_uses_captured_number(self, otp_manager, api):
        """Test an edited number field does not change the verified number"""
        otp_manager.request_code("9876543210")
        otp_manager.mobile = "1234567890"

        otp_manager.verify_code("123456", "Client")

        api.verify_otp.assert_called_once_with("9876543210", "123456", "Client")

    def test_verify_new_user_scenario(self, otp_manager, api):
        """Test unknown numbers come back as NeedsSignup with token and mobile"""
        api.verify_otp.return_value = {"isNewUser": True, "registrationToken": "abc"}
        otp_manager.request_code("9876543210")

        outcome = otp_manager.verify_code("123456")

        assert outcome == NeedsSignup(identifier="9876543210", registration_token="abc")

    @pytest.mark.parametrize("code", ["12345", "abcdef", ""])
    def test_malformed_code(self, otp_manager, api, code):
        """Test malformed codes are refused before any request"""
        otp_manager.request_code("9876543210")

        with pytest.raises(ValidationError, match="valid 6-digit OTP"):
            otp_manager.verify_code(code)
        api.verify_otp.assert_not_called()

    def test_verify_without_challenge(self, otp_manager):
        """Test verify on the number step is refused"""
        with pytest.raises(ValidationError):
            otp_manager.verify_code("123456")


class TestChangeNumberAndClose:
    """Test leaving the code step"""

    def test_change_number_keeps_typed_number(self, otp_manager):
        """Test change-number returns to the number step and keeps the input"""
        otp_manager.request_code("9876543210")
        otp_manager.code = "12"

        otp_manager.change_number()

        assert otp_manager.step == LoginStep.COLLECT_IDENTIFIER
        assert otp_manager.mobile == "9876543210"
        assert otp_manager.code == ""
        assert otp_manager.resend_timer == 30

    def test_close_stops_running_countdown(self, negotiator, config):
        """Test close cancels the background countdown"""
        countdown = ResendCountdown(seconds=30, interval=0.01)
        manager = OtpChallengeManager(negotiator, config.auth, countdown=countdown)
        manager.request_code("9876543210")
        assert countdown.running

        manager.close()

        assert not countdown.running
        assert manager.challenge_mobile == ""

    def test_late_send_response_dropped(self, otp_manager, api):
        """Test a send that completes after change-number does not re-enter the code step"""
        def send_then_leave(mobile):
            otp_manager.change_number()
            return {"otp": "999999"}

        api.send_otp.side_effect = send_then_leave

        outcome = otp_manager.request_code("9876543210")

        assert isinstance(outcome, CodeSent)
        assert otp_manager.step == LoginStep.COLLECT_IDENTIFIER
        assert otp_manager.last_dev_code is None
