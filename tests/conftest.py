"""
Shared fixtures: a fake backend client and the onboarding components wired to it
"""

from unittest.mock import Mock

import pytest

from config.app_config import AppConfig
from infrastructure.external.backend_client import BackendClient
from services.auth_service.otp_manager import OtpChallengeManager
from services.auth_service.session_negotiator import SessionNegotiator
from services.auth_service.session_store import MemoryTokenStorage, SessionStore
from services.category_service.reference_data import CategoryCache
from services.onboarding_service.state_machine import OnboardingStateMachine

CATEGORIES = [
    {
        "_id": "cat-legal",
        "title": "Legal",
        "subcategories": [
            {"_id": "sub-contracts", "name": "Contracts"},
            {"_id": "sub-tax", "name": "Tax Law"},
        ],
    },
    {
        "_id": "cat-tech",
        "title": "Technology",
        "subcategories": [
            {"_id": "sub-cloud", "title": "Cloud"},
        ],
    },
]


def session_payload(role="Client", token="jwt-token", user_id="u-1"):
    """`data` of a successful login/verify/register response"""
    return {
        "token": token,
        "user": {
            "id": user_id,
            "name": "Asha Rao",
            "email": "asha@example.com",
            "mobile": "9876543210",
            "role": role,
        },
    }


@pytest.fixture
def config():
    """Default configuration with file logging and session mirroring off"""
    config = AppConfig()
    config.logging.enable_file_logging = False
    config.auth.persist_session = False
    return config


@pytest.fixture
def api():
    """Mock BackendClient; every endpoint succeeds unless a test says otherwise"""
    api = Mock(spec=BackendClient)
    api.send_otp.return_value = {"otp": "123456"}
    api.verify_otp.return_value = session_payload()
    api.login.return_value = session_payload()
    api.signup.return_value = session_payload()
    api.register.return_value = session_payload()
    api.forgot_password.return_value = "Password reset link sent to your email"
    api.reset_password.return_value = "Password reset successfully"
    api.get_categories.return_value = CATEGORIES
    return api


@pytest.fixture
def session_state():
    return {}


@pytest.fixture
def session_store(session_state):
    return SessionStore(state=session_state, token_storage=MemoryTokenStorage())


@pytest.fixture
def negotiator(api):
    return SessionNegotiator(api=api)


@pytest.fixture
def category_cache(api):
    return CategoryCache(api=api)


@pytest.fixture
def otp_manager(negotiator, config):
    manager = OtpChallengeManager(negotiator, config.auth, auto_tick=False)
    yield manager
    manager.close()


@pytest.fixture
def machine(negotiator, session_store, category_cache, config, otp_manager):
    return OnboardingStateMachine(
        negotiator=negotiator,
        session_store=session_store,
        category_cache=category_cache,
        config=config,
        otp_manager=otp_manager,
    )
