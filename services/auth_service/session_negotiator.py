"""
Session negotiation - one call per authentication flow.

Every call returns a classified Outcome instead of raising for backend
failures. Nothing here writes to the session store; applying an
`Authenticated` outcome is the caller's job.
"""

from typing import Any, Dict, Iterable, Optional

from infrastructure.external.backend_client import BackendClient, get_backend_client
from services.auth_service.error_messages import (
    ADMIN_FORBIDDEN, ADMIN_FORBIDDEN_MESSAGE, ROLE_FORBIDDEN, ROLE_FORBIDDEN_MESSAGE,
    classify_login_error,
)
from services.auth_service.exceptions import BackendError
from services.auth_service.models import (
    Acknowledged, AccountStatus, Authenticated, CodeSent, Failed, NeedsSignup, Outcome,
    ProfileDetails, RegistrationDraft, Rejected, Role, Session, StatusRedirect, UserRecord,
)
from services.auth_service.validators import normalize_mobile
from utils.logging_config import get_logger, log_auth_event, log_execution_time, mask_identifier

UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from server. Please try again."


class SessionNegotiator:
    """
    Performs login, OTP, registration and password-recovery requests.
    """

    def __init__(
        self,
        api: Optional[BackendClient] = None,
        allowed_roles: Iterable[str] = (Role.CLIENT.value, Role.CONSULTANT.value),
    ):
        self.api = api or get_backend_client()
        self.allowed_roles = tuple(allowed_roles)
        self.logger = get_logger(__name__)

    def _session_outcome(self, data: Dict[str, Any]) -> Outcome:
        """Authenticated, or Rejected for roles this client does not serve"""
        token = data.get("token")
        user_payload = data.get("user")
        if not token or not isinstance(user_payload, dict):
            self.logger.warning("Success response without token/user")
            return Failed(message=UNEXPECTED_RESPONSE_MESSAGE)

        user = UserRecord.from_payload(user_payload)

        if user.role == Role.ADMIN.value:
            log_auth_event(self.logger, "admin_denied", user_id=user.id)
            return Rejected(reason=ADMIN_FORBIDDEN, message=ADMIN_FORBIDDEN_MESSAGE)
        if user.role not in self.allowed_roles:
            log_auth_event(self.logger, "role_denied", role=user.role, user_id=user.id)
            return Rejected(reason=ROLE_FORBIDDEN, message=ROLE_FORBIDDEN_MESSAGE)

        return Authenticated(session=Session(token=token, user=user))

    def login_with_password(self, identifier: str, password: str,
                            role: Optional[str] = None) -> Outcome:
        """
        Password login

        Args:
            identifier: Email address (or whatever the user typed in its place)
            password: Password
            role: Role selected on the login screen, forwarded to the backend

        Returns:
            Authenticated, Rejected, StatusRedirect, NeedsSignup or Failed
        """
        try:
            with log_execution_time(self.logger, "password login",
                                    identifier=mask_identifier(identifier)):
                data = self.api.login(identifier, password, role)
        except BackendError as e:
            outcome = classify_login_error(e.message, identifier)
            log_auth_event(self.logger, "login_failed", outcome=type(outcome).__name__)
            return outcome

        return self._session_outcome(data)

    def send_otp(self, mobile: str) -> Outcome:
        try:
            with log_execution_time(self.logger, "send otp", mobile=mask_identifier(mobile)):
                data = self.api.send_otp(mobile)
        except BackendError as e:
            return Failed(message=e.message)

        code = data.get("otp")
        return CodeSent(dev_code=str(code) if code is not None else None)

    def verify_otp(self, mobile: str, code: str, role: Optional[str] = None) -> Outcome:
        """
        Verify a one-time code

        An unknown number comes back as `isNewUser` with a registration token;
        that is NeedsSignup carrying the token, never a session.
        """
        try:
            with log_execution_time(self.logger, "verify otp", mobile=mask_identifier(mobile)):
                data = self.api.verify_otp(mobile, code, role)
        except BackendError as e:
            outcome = classify_login_error(e.message, mobile)
            log_auth_event(self.logger, "otp_verify_failed", outcome=type(outcome).__name__)
            return outcome

        if data.get("isNewUser"):
            log_auth_event(self.logger, "otp_new_user", mobile=mask_identifier(mobile))
            return NeedsSignup(identifier=mobile,
                               registration_token=data.get("registrationToken"))

        return self._session_outcome(data)

    def signup(self, draft: RegistrationDraft) -> Outcome:
        """
        Create an account from the signup form

        New consultant accounts start pending approval, so a consultant signup
        yields StatusRedirect(pending) and the returned token is not kept.
        """
        payload = draft.to_payload(normalize_mobile(draft.mobile))
        try:
            with log_execution_time(self.logger, "signup", role=draft.role):
                data = self.api.signup(payload)
        except BackendError as e:
            return Failed(message=e.message)

        outcome = self._session_outcome(data)
        if isinstance(outcome, Authenticated) and outcome.session.user.role == Role.CONSULTANT.value:
            log_auth_event(self.logger, "consultant_signup_pending", user_id=outcome.session.user.id)
            return StatusRedirect(status=AccountStatus.PENDING.value)
        return outcome

    def complete_profile(self, registration_token: str, profile: ProfileDetails) -> Outcome:
        try:
            with log_execution_time(self.logger, "complete profile", role=profile.role):
                data = self.api.register(profile.to_payload(registration_token))
        except BackendError as e:
            return Failed(message=e.message)

        return self._session_outcome(data)

    def forgot_password(self, email: str) -> Outcome:
        try:
            with log_execution_time(self.logger, "forgot password", email=mask_identifier(email)):
                message = self.api.forgot_password(email)
        except BackendError as e:
            return Failed(message=e.message)
        return Acknowledged(message=message)

    def reset_password(self, reset_token: str, password: str) -> Outcome:
        try:
            with log_execution_time(self.logger, "reset password"):
                message = self.api.reset_password(reset_token, password)
        except BackendError as e:
            return Failed(message=e.message)
        return Acknowledged(message=message)
