"""
Session store - the single owner of the authenticated session.

The store keeps the session in a mapping supplied by the caller (Streamlit's
`st.session_state` in the app, a plain dict in tests) and mirrors it to a
TokenStorage owned by the same browser session. Storage is never shared
between users.
"""

from typing import Any, Dict, Iterable, MutableMapping, Optional

from services.auth_service.exceptions import AuthDeniedError
from services.auth_service.models import Role, Session
from services.auth_service.error_messages import ADMIN_FORBIDDEN_MESSAGE, ROLE_FORBIDDEN_MESSAGE
from utils.logging_config import get_logger, log_auth_event, mask_identifier


class TokenStorage:
    """Per-browser persistence for the serialized session"""

    def load(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def save(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryTokenStorage(TokenStorage):
    """Storage scoped to one browser session; nothing survives a restart"""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data = data

    def load(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data else None

    def save(self, data: Dict[str, Any]) -> None:
        self._data = dict(data)

    def clear(self) -> None:
        self._data = None


class SessionStore:
    """
    Holds the authenticated session for every protected view.

    Lifecycle: `initialize()` at app start restores a persisted session,
    `store()` after a successful negotiation, `clear()` on logout or when a
    session with an unsupported role is detected.
    """

    SESSION_KEY = "auth_session"

    def __init__(
        self,
        state: Optional[MutableMapping] = None,
        token_storage: Optional[TokenStorage] = None,
        allowed_roles: Iterable[str] = (Role.CLIENT.value, Role.CONSULTANT.value),
    ):
        self.state = state if state is not None else {}
        self.token_storage = token_storage or MemoryTokenStorage()
        self.allowed_roles = tuple(allowed_roles)
        self.logger = get_logger(__name__)

    def is_role_allowed(self, role: str) -> bool:
        return role in self.allowed_roles

    def initialize(self) -> Optional[Session]:
        """
        Restore the persisted session, if any

        Returns:
            The active session, or None
        """
        if self.SESSION_KEY in self.state:
            return self.enforce_allowed_role()

        data = self.token_storage.load()
        if not data:
            return None

        try:
            session = Session.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Discarding malformed persisted session: {e}")
            self.token_storage.clear()
            return None

        if not self.is_role_allowed(session.user.role):
            self.logger.warning(f"Persisted session has unsupported role '{session.user.role}', tearing down")
            self.clear(reason="disallowed_role")
            return None

        self.state[self.SESSION_KEY] = session.to_dict()
        log_auth_event(self.logger, "session_restored", role=session.user.role)
        return session

    def store(self, session: Session, persist: bool = True) -> None:
        """
        Make `session` the current session, replacing any previous one

        Raises:
            AuthDeniedError: If the session's role is not served by this client
        """
        role = session.user.role
        if not self.is_role_allowed(role):
            message = ADMIN_FORBIDDEN_MESSAGE if role == Role.ADMIN.value else ROLE_FORBIDDEN_MESSAGE
            raise AuthDeniedError(message, role=role)

        self.state[self.SESSION_KEY] = session.to_dict()
        if persist:
            self.token_storage.save(session.to_dict())

        log_auth_event(self.logger, "session_stored", role=role,
                       user=mask_identifier(session.user.email or session.user.mobile))

    @property
    def current(self) -> Optional[Session]:
        data = self.state.get(self.SESSION_KEY)
        if not data:
            return None
        return Session.from_dict(data)

    @property
    def token(self) -> Optional[str]:
        session = self.current
        return session.token if session else None

    @property
    def is_authenticated(self) -> bool:
        return self.current is not None

    def enforce_allowed_role(self) -> Optional[Session]:
        """Tear down a current session whose role is not allowed"""
        session = self.current
        if session is None:
            return None
        if not self.is_role_allowed(session.user.role):
            self.logger.warning(f"Session has unsupported role '{session.user.role}', tearing down")
            self.clear(reason="disallowed_role")
            return None
        return session

    def clear(self, reason: str = "logout") -> None:
        """Remove the session from state and persistent storage"""
        if self.SESSION_KEY in self.state:
            del self.state[self.SESSION_KEY]
        self.token_storage.clear()
        log_auth_event(self.logger, "session_cleared", reason=reason)
