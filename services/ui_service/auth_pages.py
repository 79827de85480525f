"""
Streamlit views for the onboarding flows.
Each page reads from and acts on one OnboardingStateMachine kept in st.session_state.
"""

from typing import Any, Callable, List, Optional

import streamlit as st

from config.app_config import AppConfig, get_config
from services.auth_service.exceptions import (
    ConcurrentActionError, OnboardingError, PreconditionError,
)
from services.auth_service.models import (
    CategorySelection, LoginMode, LoginStep, ProfileDetails, RegistrationDraft, Role,
)
from services.onboarding_service import (
    OnboardingStateMachine, Route, build_state_machine,
)
from services.ui_service.account_status import get_status_content
from utils.logging_config import get_logger, log_user_interaction

MACHINE_KEY = "onboarding_machine"
SIGNUP_DRAFT_KEY = "signup_draft"
PROFILE_DRAFT_KEY = "profile_draft"

NOTICE_RENDERERS = {
    "success": st.success,
    "info": st.info,
    "error": st.error,
}


def get_state_machine(config: Optional[AppConfig] = None) -> OnboardingStateMachine:
    """One state machine per browser session"""
    if MACHINE_KEY not in st.session_state:
        machine = build_state_machine(st.session_state, config)
        machine.start()
        st.session_state[MACHINE_KEY] = machine
    return st.session_state[MACHINE_KEY]


class AuthPages:
    """
    Renders the login, signup, complete-profile, account-status,
    password-recovery and dashboard pages.
    """

    def __init__(self, machine: OnboardingStateMachine, config: Optional[AppConfig] = None):
        self.machine = machine
        self.config = config or get_config()
        self.logger = get_logger(__name__)

    def _run(self, action: Callable[..., Any], *args, spinner: str = "Please wait...") -> Any:
        """
        Run a state-machine action, show input errors inline and rerun once
        the machine has something new to display.
        """
        try:
            with st.spinner(spinner):
                result = action(*args)
        except ConcurrentActionError as e:
            st.warning(e.message)
            return None
        except PreconditionError:
            st.rerun()
        except OnboardingError as e:
            st.error(e.message)
            return None
        st.rerun()
        return result

    def _go(self, route: Route, **params: str) -> None:
        self.machine.navigate(route, **params)
        st.rerun()

    def render_notices(self) -> None:
        for notice in self.machine.pop_notices():
            NOTICE_RENDERERS.get(notice.level, st.info)(notice.text)

    def _render_header(self, subtitle: str) -> None:
        st.title(f"🔐 {self.config.ui.app_title}")
        st.caption(self.config.ui.tagline)
        st.subheader(subtitle)

    # Login

    def render_login(self) -> None:
        redirect = self.machine.guard_public_route()
        if redirect is not None:
            st.rerun()

        self._render_header("Welcome back")
        self.render_notices()

        attempt = self.machine.login_attempt
        roles = list(self.config.auth.allowed_roles)
        role = st.radio("I am a", roles, index=roles.index(attempt.role) if attempt.role in roles else 0,
                        horizontal=True, key="login_role")
        if role != attempt.role:
            self.machine.set_login_role(role)

        otp_tab, password_tab = st.tabs(["📱 Mobile OTP", "🔑 Email & Password"])
        with otp_tab:
            self._render_otp_login()
        with password_tab:
            self._render_password_login()

        st.divider()
        col1, col2 = st.columns(2)
        with col1:
            if st.button("❓ Forgot Password", use_container_width=True):
                self._go(Route.FORGOT_PASSWORD)
        with col2:
            if st.button("📝 Create an account", use_container_width=True):
                self._go(Route.SIGNUP)

    def _render_password_login(self) -> None:
        with st.form("password_login_form"):
            identifier = st.text_input("📧 Email", placeholder="your@email.com")
            password = st.text_input("🔒 Password", type="password", placeholder="Enter your password")
            submitted = st.form_submit_button("🔑 Sign In", type="primary", use_container_width=True)

        if submitted:
            log_user_interaction(self.logger, "login_submit", mode=LoginMode.PASSWORD.value)
            self._run(self.machine.login_with_password, identifier, password, spinner="Authenticating...")

    def _render_otp_login(self) -> None:
        machine = self.machine
        if machine.login_attempt.step == LoginStep.COLLECT_IDENTIFIER:
            with st.form("otp_request_form"):
                mobile = st.text_input("📱 Mobile number", value=machine.otp.mobile,
                                       placeholder="10-digit mobile number")
                submitted = st.form_submit_button("Send OTP", type="primary", use_container_width=True)
            if submitted:
                log_user_interaction(self.logger, "otp_request", mode=LoginMode.OTP.value)
                self._run(machine.send_otp, mobile, spinner="Sending OTP...")
            return

        st.write(f"Code sent to **{machine.otp.challenge_mobile}**")
        with st.form("otp_verify_form"):
            code = st.text_input("🔢 One-time code", max_chars=self.config.auth.otp_length,
                                 placeholder=f"{self.config.auth.otp_length}-digit code")
            submitted = st.form_submit_button("✅ Verify", type="primary", use_container_width=True)
        if submitted:
            self._run(machine.verify_otp, code, spinner="Verifying...")

        self._render_resend_controls()

        if st.button("✏️ Change number"):
            machine.change_number()
            st.rerun()

    def _render_resend_controls(self) -> None:
        machine = self.machine

        @st.fragment(run_every=1)
        def resend_countdown():
            if machine.otp.can_resend:
                if st.button("🔄 Resend OTP"):
                    self._run(machine.resend_otp, spinner="Sending OTP...")
            else:
                st.caption(f"Resend available in {machine.otp.resend_timer}s")

        resend_countdown()

    # Signup and complete-profile

    def _render_category_rows(self, selections: List[CategorySelection], key_prefix: str) -> None:
        machine = self.machine
        if not machine.category_cache.loaded and not machine.load_categories():
            self.render_notices()
        categories = machine.category_cache.categories()
        if not categories:
            st.info("No categories available")
            return

        category_ids = [""] + [category.id for category in categories]
        titles = {category.id: category.title for category in categories}

        for index, selection in enumerate(selections):
            col1, col2, col3 = st.columns([3, 3, 1])
            with col1:
                category_id = st.selectbox(
                    "Category", category_ids,
                    index=category_ids.index(selection.category_id) if selection.category_id in category_ids else 0,
                    format_func=lambda value: titles.get(value, "Select category"),
                    key=f"{key_prefix}_category_{index}",
                )
                if category_id != selection.category_id:
                    machine.choose_category(selections, index, category_id)
                    st.rerun()
            subcategories = machine.category_cache.subcategories_for(selections[index].category_id)
            subcategory_ids = [""] + [sub.id for sub in subcategories]
            names = {sub.id: sub.name for sub in subcategories}
            with col2:
                subcategory_id = st.selectbox(
                    "Subcategory", subcategory_ids,
                    index=(subcategory_ids.index(selection.subcategory_id)
                           if selection.subcategory_id in subcategory_ids else 0),
                    format_func=lambda value: names.get(value, "Select subcategory"),
                    disabled=not selections[index].category_id,
                    key=f"{key_prefix}_subcategory_{index}_{selections[index].category_id}",
                )
                if subcategory_id != selections[index].subcategory_id:
                    machine.choose_subcategory(selections, index, subcategory_id)
            with col3:
                if st.button("🗑️", key=f"{key_prefix}_remove_{index}", help="Remove row"):
                    machine.remove_selection_row(selections, index)
                    st.rerun()

        if st.button("➕ Add category", key=f"{key_prefix}_add"):
            machine.add_selection_row(selections)
            st.rerun()

    def _role_selector(self, current: str, key: str) -> str:
        roles = list(self.config.auth.allowed_roles)
        return st.radio("I want to join as", roles,
                        index=roles.index(current) if current in roles else 0,
                        horizontal=True, key=key)

    def render_signup(self) -> None:
        machine = self.machine
        redirect = machine.guard_public_route()
        if redirect is not None:
            st.rerun()

        self._render_header("Create your account")
        self.render_notices()

        if SIGNUP_DRAFT_KEY not in st.session_state:
            st.session_state[SIGNUP_DRAFT_KEY] = machine.signup_prefill()
        draft: RegistrationDraft = st.session_state[SIGNUP_DRAFT_KEY]

        if machine.deferred is not None:
            st.info("Your number is verified. You can finish registration without a password.")
            if st.button("➡️ Complete profile instead"):
                machine.open_complete_profile()
                st.rerun()

        role = self._role_selector(draft.role, "signup_role")
        if role != draft.role:
            machine.set_signup_role(draft, role)
            st.rerun()

        col1, col2 = st.columns(2)
        with col1:
            draft.full_name = st.text_input("👤 Full Name", value=draft.full_name)
            draft.mobile = st.text_input("📱 Mobile", value=draft.mobile)
        with col2:
            draft.email = st.text_input("📧 Email", value=draft.email)
        draft.password = st.text_input("🔒 Password", type="password", value=draft.password)
        draft.confirm_password = st.text_input("🔒 Confirm Password", type="password",
                                               value=draft.confirm_password)

        if draft.role == Role.CONSULTANT.value:
            st.markdown("**Expertise**")
            self._render_category_rows(draft.category_selections, "signup")

        draft.terms_accepted = st.checkbox("I agree to the Terms of Service and Privacy Policy",
                                           value=draft.terms_accepted)

        if st.button("📝 Create Account", type="primary", use_container_width=True):
            log_user_interaction(self.logger, "signup_submit", role=draft.role)
            self._run(machine.submit_signup, draft, spinner="Creating account...")

        if st.button("Already have an account? Sign in"):
            st.session_state.pop(SIGNUP_DRAFT_KEY, None)
            self._go(Route.LOGIN)

    def render_complete_profile(self) -> None:
        machine = self.machine
        if machine.guard_complete_profile() is not None:
            st.rerun()

        self._render_header("Complete your profile")
        self.render_notices()
        st.write(f"Mobile: **{machine.deferred.mobile}**")

        if PROFILE_DRAFT_KEY not in st.session_state:
            st.session_state[PROFILE_DRAFT_KEY] = ProfileDetails(role=self.config.ui.default_role)
        profile: ProfileDetails = st.session_state[PROFILE_DRAFT_KEY]

        role = self._role_selector(profile.role, "profile_role")
        if role != profile.role:
            machine.set_profile_role(profile, role)
            st.rerun()

        profile.full_name = st.text_input("👤 Full Name", value=profile.full_name)
        profile.email = st.text_input("📧 Email", value=profile.email)

        if profile.role == Role.CONSULTANT.value:
            st.markdown("**Expertise**")
            self._render_category_rows(profile.category_selections, "profile")

        if st.button("✅ Complete Registration", type="primary", use_container_width=True):
            log_user_interaction(self.logger, "profile_submit", role=profile.role)
            self._run(machine.submit_profile, profile, spinner="Registering...")

    # Password recovery

    def render_forgot_password(self) -> None:
        machine = self.machine
        self._render_header("Forgot password")
        self.render_notices()

        if machine.reset_email_sent:
            st.success(f"Check your inbox: we sent a reset link to **{machine.forgot_email}**.")
            if st.button("Didn't receive it? Send again"):
                machine.resend_reset_link()
                st.rerun()
        else:
            with st.form("forgot_password_form"):
                email = st.text_input("📧 Email", value=machine.forgot_email, placeholder="your@email.com")
                submitted = st.form_submit_button("Send reset link", type="primary", use_container_width=True)
            if submitted:
                self._run(machine.forgot_password, email, spinner="Sending...")

        if st.button("⬅️ Back to Login"):
            self._go(Route.LOGIN)

    def render_reset_password(self) -> None:
        machine = self.machine
        self._render_header("Reset password")
        self.render_notices()

        reset_token = machine.navigation.params.get("token", "")
        with st.form("reset_password_form"):
            password = st.text_input("🔒 New Password", type="password")
            confirm = st.text_input("🔒 Confirm Password", type="password")
            submitted = st.form_submit_button("Reset Password", type="primary", use_container_width=True)
        if submitted:
            self._run(machine.reset_password, reset_token, password, confirm, spinner="Resetting...")

        if st.button("⬅️ Back to Login"):
            self._go(Route.LOGIN)

    # Status and dashboard

    def render_account_status(self) -> None:
        content = get_status_content(self.machine.navigation.params.get("status"))
        st.title(f"{content.icon} {content.title}")
        self.render_notices()
        {"info": st.info, "error": st.error}.get(content.tone, st.warning)(content.message)
        st.caption(f"Support: {self.config.ui.support_email}")
        if st.button("⬅️ Back to Login", type="primary"):
            self._go(Route.LOGIN)

    def render_dashboard(self) -> None:
        machine = self.machine
        if machine.guard_protected_route() is not None:
            st.rerun()

        session = machine.session_store.current
        st.title(f"👋 Welcome, {session.user.name or session.user.email or session.user.mobile}")
        self.render_notices()
        st.write(f"Role: **{session.user.role}**")

        with st.sidebar:
            st.subheader("👤 User Account")
            st.write(session.user.email or session.user.mobile)
            if st.button("🚪 Logout", use_container_width=True):
                log_user_interaction(self.logger, "logout", role=session.user.role)
                machine.logout()
                st.rerun()


def get_auth_pages(config: Optional[AppConfig] = None) -> AuthPages:
    return AuthPages(get_state_machine(config), config)
