"""
One-time-code challenge: request/verify cycle and the resend countdown.
"""

import threading
from typing import Callable, Optional

from config.app_config import AuthConfig
from services.auth_service.exceptions import ValidationError
from services.auth_service.models import CodeSent, LoginStep, Outcome
from services.auth_service.session_negotiator import SessionNegotiator
from services.auth_service.validators import is_valid_mobile, is_valid_otp, normalize_mobile
from utils.logging_config import get_logger, log_auth_event, mask_identifier


class ResendCountdown:
    """
    Cancellable one-second countdown.

    `start()` runs a daemon thread that calls `tick()` every `interval`
    seconds until the count reaches zero or `cancel()` is called. Usable as a
    context manager; leaving the block always cancels.
    """

    def __init__(self, seconds: int = 30, interval: float = 1.0,
                 on_tick: Optional[Callable[[int], None]] = None):
        self.seconds = seconds
        self.interval = interval
        self.on_tick = on_tick
        self._remaining = seconds
        self._lock = threading.Lock()
        self._stop: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._remaining

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def reset(self, seconds: Optional[int] = None) -> None:
        with self._lock:
            self._remaining = self.seconds if seconds is None else seconds

    def tick(self) -> int:
        """Decrement by one, never below zero; returns the new value"""
        with self._lock:
            if self._remaining > 0:
                self._remaining -= 1
            remaining = self._remaining
        if self.on_tick:
            self.on_tick(remaining)
        return remaining

    def start(self) -> None:
        """(Re)start ticking from the current value"""
        self.cancel()
        stop = threading.Event()
        self._stop = stop
        self._thread = threading.Thread(target=self._run, args=(stop,),
                                        name="otp-resend-countdown", daemon=True)
        self._thread.start()

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval):
            if stop.is_set() or self.tick() == 0:
                break

    def cancel(self) -> None:
        if self._stop is not None:
            self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1.0)
        self._stop = None
        self._thread = None

    def __enter__(self) -> 'ResendCountdown':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class OtpChallengeManager:
    """
    Owns the OTP step of the login view.

    The mobile number captured when a code is sent is the one every later
    verify uses, even if the input field is edited afterwards. The countdown
    runs only while the step is `collect-otp`.
    """

    def __init__(
        self,
        negotiator: SessionNegotiator,
        auth_config: Optional[AuthConfig] = None,
        countdown: Optional[ResendCountdown] = None,
        auto_tick: bool = True,
    ):
        self.negotiator = negotiator
        self.auth_config = auth_config or AuthConfig()
        self.countdown = countdown or ResendCountdown(seconds=self.auth_config.otp_resend_seconds)
        self.auto_tick = auto_tick
        self.logger = get_logger(__name__)

        self.step = LoginStep.COLLECT_IDENTIFIER
        self.mobile = ""
        self.code = ""
        self.last_dev_code: Optional[str] = None
        self._challenge_mobile = ""
        # Bumped whenever the step is left; responses from an older epoch are dropped
        self._epoch = 0

    @property
    def resend_timer(self) -> int:
        return self.countdown.remaining

    @property
    def can_resend(self) -> bool:
        return self.step == LoginStep.COLLECT_OTP and self.countdown.remaining == 0

    @property
    def challenge_mobile(self) -> str:
        return self._challenge_mobile

    def _enter_collect_otp(self) -> None:
        self.step = LoginStep.COLLECT_OTP
        self.code = ""
        self.countdown.reset(self.auth_config.otp_resend_seconds)
        if self.auto_tick:
            self.countdown.start()

    def _leave_collect_otp(self) -> None:
        self._epoch += 1
        self.countdown.cancel()

    def request_code(self, mobile: str) -> Outcome:
        """
        Send a code to `mobile`

        Raises:
            ValidationError: If the number has fewer than the required digits
        """
        if not is_valid_mobile(mobile, self.auth_config.min_mobile_digits):
            raise ValidationError("Please enter a valid mobile number")

        normalized = normalize_mobile(mobile)
        self.mobile = mobile
        epoch = self._epoch

        outcome = self.negotiator.send_otp(normalized)

        if epoch != self._epoch:
            self.logger.info("Dropping send-otp response for an abandoned challenge")
            return outcome

        if isinstance(outcome, CodeSent):
            self._challenge_mobile = normalized
            self.last_dev_code = outcome.dev_code
            self._enter_collect_otp()
            log_auth_event(self.logger, "otp_sent", mobile=mask_identifier(normalized))
        return outcome

    def resend(self) -> Outcome:
        """
        Request a fresh code for the captured number

        Raises:
            ValidationError: While the countdown is still running
        """
        if self.step != LoginStep.COLLECT_OTP:
            raise ValidationError("Request a code first")
        if not self.can_resend:
            raise ValidationError(f"You can resend the code in {self.resend_timer}s")
        return self.request_code(self._challenge_mobile)

    def tick(self) -> int:
        if self.step != LoginStep.COLLECT_OTP:
            return self.countdown.remaining
        return self.countdown.tick()

    def verify_code(self, code: str, role: Optional[str] = None) -> Outcome:
        """
        Verify `code` against the captured number

        Raises:
            ValidationError: If no code was requested or `code` is malformed
        """
        if self.step != LoginStep.COLLECT_OTP or not self._challenge_mobile:
            raise ValidationError("Request a code first")
        self.code = code or ""
        if not is_valid_otp(self.code, self.auth_config.otp_length):
            raise ValidationError(f"Please enter a valid {self.auth_config.otp_length}-digit OTP")
        return self.negotiator.verify_otp(self._challenge_mobile, self.code, role)

    def change_number(self) -> None:
        """Back to the number input; the typed number is kept for editing"""
        self._leave_collect_otp()
        self.step = LoginStep.COLLECT_IDENTIFIER
        self.code = ""
        self.countdown.reset(self.auth_config.otp_resend_seconds)

    def close(self) -> None:
        """Tear down: stop the countdown and forget the challenge"""
        self._leave_collect_otp()
        self.step = LoginStep.COLLECT_IDENTIFIER
        self.code = ""
        self._challenge_mobile = ""
        self.last_dev_code = None
        self.countdown.reset(self.auth_config.otp_resend_seconds)
