"""
Onboarding state machine - the controller behind the login, signup,
complete-profile, account-status and password-recovery views.

Views call one action per user event. Actions validate input (raising
ValidationError before any request), call the negotiator, and apply the
returned Outcome: store a session, move to a status page, pre-fill signup, or
stay put with an error notice. Navigation is recorded, not performed; the UI
layer renders whatever `navigation` points at.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from config.app_config import AppConfig, get_config
from services.auth_service.exceptions import (
    AuthDeniedError, BackendError, ConcurrentActionError, PreconditionError, ValidationError,
)
from services.auth_service.models import (
    AccountStatus, Acknowledged, Authenticated, CategorySelection, CodeSent,
    DeferredRegistration, Failed, LoginAttempt, LoginMode, NeedsSignup,
    Outcome, ProfileDetails, RegistrationDraft, Rejected, Role, StatusRedirect,
    complete_selections,
)
from services.auth_service.otp_manager import OtpChallengeManager
from services.auth_service.session_negotiator import SessionNegotiator
from services.auth_service.session_store import SessionStore
from services.auth_service.validators import (
    is_strong_password, is_valid_email, is_valid_mobile, normalize_mobile,
)
from services.category_service.reference_data import (
    CategoryCache, check_selections, select_category, select_subcategory,
)
from utils.logging_config import get_logger, log_auth_event, mask_identifier


class OnboardingState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_OTP = "awaiting-otp"
    AWAITING_PROFILE_COMPLETION = "awaiting-profile-completion"
    ACCOUNT_PENDING = "account-pending"
    ACCOUNT_REJECTED = "account-rejected"
    ACCOUNT_BLOCKED = "account-blocked"
    AUTHENTICATED = "authenticated"


class Route(str, Enum):
    LOGIN = "login"
    SIGNUP = "signup"
    COMPLETE_PROFILE = "complete-profile"
    ACCOUNT_STATUS = "account-status"
    FORGOT_PASSWORD = "forgot-password"
    RESET_PASSWORD = "reset-password"
    DASHBOARD = "dashboard"


STATUS_STATES: Dict[str, OnboardingState] = {
    AccountStatus.PENDING.value: OnboardingState.ACCOUNT_PENDING,
    AccountStatus.REJECTED.value: OnboardingState.ACCOUNT_REJECTED,
    AccountStatus.BLOCKED.value: OnboardingState.ACCOUNT_BLOCKED,
}


@dataclass
class Navigation:
    route: Route
    params: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Notice:
    """Message for the UI to show once (level: success, info, error)"""
    level: str
    text: str


class OnboardingStateMachine:
    """
    Top-level onboarding controller.

    One request per flow may be outstanding at a time; a second action while
    one is in flight raises ConcurrentActionError. A response that arrives
    after the user navigated elsewhere is returned to the caller but not applied.
    """

    def __init__(
        self,
        negotiator: SessionNegotiator,
        session_store: SessionStore,
        category_cache: CategoryCache,
        config: Optional[AppConfig] = None,
        otp_manager: Optional[OtpChallengeManager] = None,
    ):
        self.negotiator = negotiator
        self.session_store = session_store
        self.category_cache = category_cache
        self.config = config or get_config()
        self.otp = otp_manager or OtpChallengeManager(negotiator, self.config.auth)
        self.logger = get_logger(__name__)

        self.state = OnboardingState.UNAUTHENTICATED
        self.navigation = Navigation(Route.LOGIN)
        self.notices: List[Notice] = []

        self._login = self._new_login_attempt()
        self.signup_draft = RegistrationDraft()
        self.profile_draft = ProfileDetails()
        self.deferred: Optional[DeferredRegistration] = None
        self.forgot_email = ""
        self.reset_email_sent = False

        self._generation = 0
        self._in_flight = threading.Lock()

    # State and navigation

    @property
    def route(self) -> Route:
        return self.navigation.route

    @property
    def login_attempt(self) -> LoginAttempt:
        self._login.step = self.otp.step
        self._login.resend_timer = self.otp.resend_timer
        return self._login

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def _new_login_attempt(self) -> LoginAttempt:
        ui = self.config.ui
        mode = LoginMode.PASSWORD if ui.default_login_mode == LoginMode.PASSWORD.value else LoginMode.OTP
        return LoginAttempt(mode=mode, role=ui.default_role,
                            resend_timer=self.config.auth.otp_resend_seconds)

    def navigate(self, route: Route, **params: str) -> Navigation:
        """
        Move to `route`. Any request still in flight for the previous view
        will have its response discarded, and the OTP countdown is stopped.
        """
        self._generation += 1
        self.otp.close()
        if self.navigation.route == Route.LOGIN and route != Route.LOGIN:
            self._login = self._new_login_attempt()
        self.navigation = Navigation(route, {k: v for k, v in params.items() if v})
        self.logger.debug(f"Navigate to {route.value}")
        return self.navigation

    def notify(self, level: str, text: str) -> None:
        self.notices.append(Notice(level, text))

    def pop_notices(self) -> List[Notice]:
        notices, self.notices = self.notices, []
        return notices

    def start(self) -> Optional[Navigation]:
        """Restore a persisted session at app start"""
        session = self.session_store.initialize()
        if session is not None:
            self.state = OnboardingState.AUTHENTICATED
            return self.navigate(Route.DASHBOARD)
        return None

    def guard_public_route(self) -> Optional[Navigation]:
        """
        Called when login/signup is shown. Signed-in users go to the
        dashboard, unless their role is unsupported, which ends the session.
        """
        session = self.session_store.current
        if session is None:
            return None
        if not self.session_store.is_role_allowed(session.user.role):
            self.session_store.clear(reason="disallowed_role")
            self.state = OnboardingState.UNAUTHENTICATED
            return self.navigate(Route.LOGIN)
        self.state = OnboardingState.AUTHENTICATED
        return self.navigate(Route.DASHBOARD)

    def guard_protected_route(self) -> Optional[Navigation]:
        """Called when a protected view is shown; None means access is granted"""
        if self.session_store.enforce_allowed_role() is None:
            self.state = OnboardingState.UNAUTHENTICATED
            return self.navigate(Route.LOGIN)
        return None

    def guard_complete_profile(self) -> Optional[Navigation]:
        """Complete-profile needs a registration token and mobile from a prior OTP verify"""
        if self.deferred is None or not self.deferred.is_valid():
            self.deferred = None
            self.notify("error", "Invalid session. Please login again.")
            return self.navigate(Route.LOGIN)
        return None

    def logout(self) -> Navigation:
        self.session_store.clear(reason="logout")
        self.state = OnboardingState.UNAUTHENTICATED
        self.notify("success", "Logged out successfully")
        return self.navigate(Route.LOGIN)

    # Outcome handling

    def _dispatch(self, call: Callable[[], Outcome], success_message: str = "") -> Outcome:
        if not self._in_flight.acquire(blocking=False):
            raise ConcurrentActionError("Please wait for the current request to finish")
        generation = self._generation
        try:
            outcome = call()
        finally:
            self._in_flight.release()

        if generation != self._generation:
            self.logger.info(f"Discarding {type(outcome).__name__} that arrived after navigation")
            return outcome

        self._apply(outcome, success_message)
        return outcome

    def _apply(self, outcome: Outcome, success_message: str) -> None:
        if isinstance(outcome, Authenticated):
            try:
                self.session_store.store(outcome.session, persist=self.config.auth.persist_session)
            except AuthDeniedError as e:
                self.notify("error", e.message)
                return
            self.state = OnboardingState.AUTHENTICATED
            self.deferred = None
            self.notify("success", success_message or "Login successful!")
            self.navigate(Route.DASHBOARD)

        elif isinstance(outcome, StatusRedirect):
            self.state = STATUS_STATES.get(outcome.status, OnboardingState.UNAUTHENTICATED)
            log_auth_event(self.logger, "status_redirect", status=outcome.status)
            self.navigate(Route.ACCOUNT_STATUS, status=outcome.status)

        elif isinstance(outcome, NeedsSignup):
            self.state = OnboardingState.UNAUTHENTICATED
            log_auth_event(self.logger, "needs_signup", identifier=mask_identifier(outcome.identifier),
                           deferred=bool(outcome.registration_token))
            self.notify("info", "Account not found. Redirecting to sign up...")
            if outcome.registration_token:
                self.deferred = DeferredRegistration(registration_token=outcome.registration_token,
                                                     mobile=outcome.identifier)
                self.navigate(Route.SIGNUP, mobile=outcome.identifier)
            else:
                self.navigate(Route.SIGNUP, identifier=outcome.identifier)

        elif isinstance(outcome, CodeSent):
            self.state = OnboardingState.AWAITING_OTP
            text = outcome.message
            if self.config.auth.show_dev_otp and outcome.dev_code:
                text = f"{text}. Code: {outcome.dev_code}"
            self.notify("success", text)

        elif isinstance(outcome, Acknowledged):
            self.notify("success", success_message or outcome.message)

        elif isinstance(outcome, (Rejected, Failed)):
            self.notify("error", outcome.message)

    # Login

    def set_login_mode(self, mode: LoginMode) -> None:
        if mode != self._login.mode:
            self.otp.close()
            if self.state == OnboardingState.AWAITING_OTP:
                self.state = OnboardingState.UNAUTHENTICATED
        self._login.mode = mode

    def set_login_role(self, role: str) -> None:
        if role not in self.config.auth.allowed_roles:
            raise ValidationError("Please choose Client or Consultant")
        self._login.role = role

    def login_with_password(self, identifier: str, password: str) -> Outcome:
        """
        Raises:
            ValidationError: If either field is empty
        """
        self._login.mode = LoginMode.PASSWORD
        self._login.identifier = identifier or ""
        if not identifier or not identifier.strip() or not password:
            raise ValidationError("Please enter email and password")
        role = self._login.role
        return self._dispatch(
            lambda: self.negotiator.login_with_password(identifier.strip(), password, role)
        )

    def send_otp(self, mobile: str) -> Outcome:
        self._login.mode = LoginMode.OTP
        self._login.identifier = mobile or ""
        return self._dispatch(lambda: self.otp.request_code(mobile))

    def resend_otp(self) -> Outcome:
        return self._dispatch(self.otp.resend)

    def verify_otp(self, code: str) -> Outcome:
        self._login.secret = code or ""
        role = self._login.role
        return self._dispatch(lambda: self.otp.verify_code(code, role))

    def change_number(self) -> None:
        self.otp.change_number()
        self._login.secret = ""
        self.state = OnboardingState.UNAUTHENTICATED

    # Category selection rows (signup and complete-profile share them)

    def load_categories(self) -> bool:
        """Fetch categories; on failure keep the old list and post an error notice"""
        try:
            self.category_cache.load()
        except BackendError as e:
            self.logger.warning(f"Category load failed: {e.message}")
            self.notify("error", "Failed to load categories")
            return False
        return True

    def _apply_role(self, role: str, selections: List[CategorySelection]) -> List[CategorySelection]:
        if role not in self.config.auth.allowed_roles:
            raise ValidationError("Please choose Client or Consultant")
        if role == Role.CONSULTANT.value:
            self.load_categories()
            return selections or [CategorySelection()]
        self.category_cache.clear()
        return [CategorySelection()]

    def set_signup_role(self, draft: RegistrationDraft, role: str) -> RegistrationDraft:
        draft.category_selections = self._apply_role(role, draft.category_selections)
        draft.role = role
        self.signup_draft = draft
        return draft

    def set_profile_role(self, profile: ProfileDetails, role: str) -> ProfileDetails:
        profile.category_selections = self._apply_role(role, profile.category_selections)
        profile.role = role
        self.profile_draft = profile
        return profile

    def choose_category(self, selections: List[CategorySelection], index: int,
                        category_id: str) -> List[CategorySelection]:
        selections[index] = select_category(selections[index], category_id, self.category_cache)
        return selections

    def choose_subcategory(self, selections: List[CategorySelection], index: int,
                           subcategory_id: str) -> List[CategorySelection]:
        selections[index] = select_subcategory(selections[index], subcategory_id, self.category_cache)
        return selections

    @staticmethod
    def add_selection_row(selections: List[CategorySelection]) -> List[CategorySelection]:
        selections.append(CategorySelection())
        return selections

    @staticmethod
    def remove_selection_row(selections: List[CategorySelection], index: int) -> List[CategorySelection]:
        if len(selections) > 1:
            del selections[index]
        else:
            selections[0] = CategorySelection()
        return selections

    def _check_consultant_selections(self, role: str, selections: List[CategorySelection],
                                     message: str) -> None:
        if role != Role.CONSULTANT.value:
            return
        if not complete_selections(selections):
            raise ValidationError(message)
        check_selections(selections, self.category_cache)

    # Signup

    def signup_prefill(self) -> RegistrationDraft:
        """Signup draft pre-filled from the navigation that led to the signup view"""
        params = self.navigation.params if self.route == Route.SIGNUP else {}
        draft = RegistrationDraft(role=self.config.ui.default_role)
        if params.get("mobile"):
            draft.mobile = normalize_mobile(params["mobile"])
        identifier = params.get("identifier", "")
        if identifier:
            if is_valid_email(identifier):
                draft.email = identifier
            elif is_valid_mobile(identifier, self.config.auth.min_mobile_digits):
                draft.mobile = normalize_mobile(identifier)
            else:
                draft.email = identifier
        return draft

    def validate_signup(self, draft: RegistrationDraft) -> None:
        """
        Raises:
            ValidationError: For the first failing rule, in form order
        """
        auth = self.config.auth
        if not all([draft.full_name, draft.email, draft.mobile, draft.password, draft.confirm_password]):
            raise ValidationError("Please fill in all fields")
        if not draft.terms_accepted:
            raise ValidationError("Please accept the Terms of Service to continue")
        if not is_valid_mobile(draft.mobile, auth.min_mobile_digits):
            raise ValidationError("Please enter a valid mobile number")
        if len(draft.password) < auth.signup_min_password_length:
            raise ValidationError(
                f"Password must be at least {auth.signup_min_password_length} characters long")
        if draft.password != draft.confirm_password:
            raise ValidationError("Passwords do not match")
        if not is_valid_email(draft.email.strip()):
            raise ValidationError("Please enter a valid email address")
        if draft.role not in auth.allowed_roles:
            raise ValidationError("Please choose Client or Consultant")
        self._check_consultant_selections(
            draft.role, draft.category_selections,
            "Please select at least one category and subcategory")

    def submit_signup(self, draft: RegistrationDraft) -> Outcome:
        self.signup_draft = draft
        self.validate_signup(draft)
        return self._dispatch(lambda: self.negotiator.signup(draft),
                              success_message="Account created successfully!")

    # Complete profile

    def open_complete_profile(self) -> Navigation:
        redirect = self.guard_complete_profile()
        if redirect is not None:
            return redirect
        self.state = OnboardingState.AWAITING_PROFILE_COMPLETION
        return self.navigate(Route.COMPLETE_PROFILE, mobile=self.deferred.mobile)

    def validate_profile(self, profile: ProfileDetails) -> None:
        if not all([profile.full_name, profile.email, profile.role]):
            raise ValidationError("Please fill in all fields")
        if not is_valid_email(profile.email.strip()):
            raise ValidationError("Please enter a valid email address")
        if profile.role not in self.config.auth.allowed_roles:
            raise ValidationError("Please choose Client or Consultant")
        self._check_consultant_selections(
            profile.role, profile.category_selections,
            "Please select category and subcategory")

    def submit_profile(self, profile: ProfileDetails) -> Outcome:
        """
        Raises:
            PreconditionError: Without a deferred registration (after redirecting to login)
            ValidationError: For invalid input
        """
        if self.guard_complete_profile() is not None:
            raise PreconditionError("Invalid session. Please login again.")
        self.profile_draft = profile
        self.validate_profile(profile)
        token = self.deferred.registration_token
        return self._dispatch(lambda: self.negotiator.complete_profile(token, profile),
                              success_message="Registration successful!")

    # Password recovery

    def forgot_password(self, email: str) -> Outcome:
        self.forgot_email = email or ""
        if not email:
            raise ValidationError("Please enter your email address")
        if not is_valid_email(email.strip()):
            raise ValidationError("Please enter a valid email address")
        outcome = self._dispatch(lambda: self.negotiator.forgot_password(email.strip()),
                                 success_message="Password reset link sent to your email")
        if isinstance(outcome, Acknowledged) and self.route == Route.FORGOT_PASSWORD:
            self.reset_email_sent = True
        return outcome

    def resend_reset_link(self) -> None:
        """Back to the email input; the email is kept"""
        self.reset_email_sent = False

    def validate_reset(self, password: str, confirm_password: str) -> None:
        min_length = self.config.auth.reset_min_password_length
        if not password or not confirm_password:
            raise ValidationError("Please fill in all fields")
        if password != confirm_password:
            raise ValidationError("Passwords do not match")
        if len(password) < min_length:
            raise ValidationError(f"Password must be at least {min_length} characters long")
        if not is_strong_password(password, min_length):
            raise ValidationError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number")

    def reset_password(self, reset_token: str, password: str, confirm_password: str) -> Outcome:
        if not reset_token:
            raise ValidationError("Invalid or missing reset link")
        self.validate_reset(password, confirm_password)
        outcome = self._dispatch(
            lambda: self.negotiator.reset_password(reset_token, password),
            success_message="Password reset successfully! Please login with your new password.")
        if isinstance(outcome, Acknowledged) and self.route == Route.RESET_PASSWORD:
            self.navigate(Route.LOGIN)
        return outcome
