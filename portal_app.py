import streamlit as st

from config.environments import get_environment_config
from services.onboarding_service import Route
from services.ui_service import get_auth_pages
from services.ui_service.auth_pages import PROFILE_DRAFT_KEY, SIGNUP_DRAFT_KEY
from utils.logging_config import initialize_logging, get_logger

# Initialize logging and error tracking
error_tracker = initialize_logging()
logger = get_logger(__name__)

config = get_environment_config()

st.set_page_config(page_title=config.ui.app_title, page_icon="🔐", layout="centered")

LAST_ROUTE_KEY = "last_route"


def apply_query_params(pages) -> None:
    """
    Deep links: ?page=reset-password&token=... from the reset e-mail,
    ?page=account-status&status=... from outside links.
    Only honoured once per browser session.
    """
    if st.session_state.get("deep_link_applied"):
        return
    st.session_state["deep_link_applied"] = True

    page = st.query_params.get("page")
    if not page:
        return
    try:
        route = Route(page)
    except ValueError:
        logger.warning(f"Ignoring unknown page in link: {page}")
        return

    if route == Route.RESET_PASSWORD:
        pages.machine.navigate(route, token=st.query_params.get("token", ""))
    elif route == Route.ACCOUNT_STATUS:
        pages.machine.navigate(route, status=st.query_params.get("status", ""))
    elif route in (Route.LOGIN, Route.SIGNUP, Route.FORGOT_PASSWORD):
        pages.machine.navigate(route, mobile=st.query_params.get("mobile", ""))
    st.query_params.clear()


def forget_drafts_on_route_change(route: Route) -> None:
    """Form drafts belong to one visit of their page"""
    if st.session_state.get(LAST_ROUTE_KEY) != route:
        st.session_state.pop(SIGNUP_DRAFT_KEY, None)
        st.session_state.pop(PROFILE_DRAFT_KEY, None)
        st.session_state[LAST_ROUTE_KEY] = route


def main():
    pages = get_auth_pages(config)
    apply_query_params(pages)

    route = pages.machine.route
    forget_drafts_on_route_change(route)

    renderers = {
        Route.LOGIN: pages.render_login,
        Route.SIGNUP: pages.render_signup,
        Route.COMPLETE_PROFILE: pages.render_complete_profile,
        Route.ACCOUNT_STATUS: pages.render_account_status,
        Route.FORGOT_PASSWORD: pages.render_forgot_password,
        Route.RESET_PASSWORD: pages.render_reset_password,
        Route.DASHBOARD: pages.render_dashboard,
    }

    try:
        renderers[route]()
    except Exception as e:
        error_tracker.track_error(e, "page_render", route=route.value)
        st.error("Something went wrong. Please refresh the page.")


main()
