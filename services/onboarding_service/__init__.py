"""
Onboarding service - wires the session store, backend client, negotiator,
category cache and OTP manager into one state machine.
"""

from typing import MutableMapping, Optional

from config.app_config import AppConfig, get_config
from infrastructure.external.backend_client import BackendClient
from services.auth_service.otp_manager import OtpChallengeManager
from services.auth_service.session_negotiator import SessionNegotiator
from services.auth_service.session_store import MemoryTokenStorage, SessionStore, TokenStorage
from services.category_service.reference_data import CategoryCache

from .state_machine import (
    Navigation,
    Notice,
    OnboardingState,
    OnboardingStateMachine,
    Route,
)


def build_state_machine(
    state: MutableMapping,
    config: Optional[AppConfig] = None,
    token_storage: Optional[TokenStorage] = None,
) -> OnboardingStateMachine:
    """
    Build a state machine whose session lives in `state`

    Args:
        state: Per-user mapping (st.session_state in the app)
        config: Configuration, defaults to the global one
        token_storage: Storage owned by the same browser session; a fresh
            in-memory one when omitted. Never share one between users.
    """
    config = config or get_config()
    allowed_roles = tuple(config.auth.allowed_roles)

    store = SessionStore(state=state, token_storage=token_storage or MemoryTokenStorage(),
                         allowed_roles=allowed_roles)

    client = BackendClient(base_url=config.api.base_url, timeout=config.api.timeout,
                           token_provider=lambda: store.token)
    negotiator = SessionNegotiator(api=client, allowed_roles=allowed_roles)

    return OnboardingStateMachine(
        negotiator=negotiator,
        session_store=store,
        category_cache=CategoryCache(api=client),
        config=config,
        otp_manager=OtpChallengeManager(negotiator, config.auth),
    )


__all__ = [
    'Navigation',
    'Notice',
    'OnboardingState',
    'OnboardingStateMachine',
    'Route',
    'build_state_machine',
]
