"""
Classification of backend error messages.

The backend reports account state and unknown identities only through the
free-text `message` of an error response. This module is the single place
that knows the wording; the substrings below are dispatch keys and must match
the backend exactly.
"""

from typing import Optional, Tuple

from services.auth_service.models import (
    AccountStatus, Failed, NeedsSignup, Outcome, StatusRedirect,
)

# Case-sensitive substring -> account status. Checked in order.
ACCOUNT_STATUS_KEYS: Tuple[Tuple[str, AccountStatus], ...] = (
    ("pending approval", AccountStatus.PENDING),
    ("application has been rejected", AccountStatus.REJECTED),
    ("has been blocked", AccountStatus.BLOCKED),
)

# Case-insensitive substrings meaning "no account for this identifier"
IDENTITY_NOT_FOUND_KEYS: Tuple[str, ...] = (
    "invalid login",
    "not found",
    "user not found",
)

ADMIN_FORBIDDEN = "admin-forbidden"
ROLE_FORBIDDEN = "role-forbidden"

ADMIN_FORBIDDEN_MESSAGE = "Access denied. Admins cannot log in to this portal."
ROLE_FORBIDDEN_MESSAGE = "Access denied. This portal is only for clients and consultants."


def match_account_status(message: Optional[str]) -> Optional[AccountStatus]:
    """Account status named by an error message, if any"""
    if not message:
        return None
    for key, status in ACCOUNT_STATUS_KEYS:
        if key in message:
            return status
    return None


def is_identity_not_found(message: Optional[str]) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(key in lowered for key in IDENTITY_NOT_FOUND_KEYS)


def classify_login_error(message: str, identifier: str) -> Outcome:
    """
    Map a failed login/verify message to an outcome.

    Account status wins over identity-not-found, which wins over a plain failure.
    """
    status = match_account_status(message)
    if status is not None:
        return StatusRedirect(status=status.value)
    if is_identity_not_found(message):
        return NeedsSignup(identifier=identifier)
    return Failed(message=message)
