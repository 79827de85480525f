"""
Credential checks used before any request leaves the client.

All predicates are total: they return False for None or non-string input
instead of raising.
"""

import re
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NON_DIGITS = re.compile(r"\D")
_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"[0-9]")


def is_valid_email(value: Optional[str]) -> bool:
    """local@domain.tld with no whitespace and at least one dot in the domain"""
    if not isinstance(value, str):
        return False
    return EMAIL_PATTERN.match(value) is not None


def normalize_mobile(value: Optional[str]) -> str:
    """Strip every non-digit character. Length is not checked here."""
    if not isinstance(value, str):
        return ""
    return _NON_DIGITS.sub("", value)


def is_valid_mobile(value: Optional[str], min_digits: int = 10) -> bool:
    return len(normalize_mobile(value)) >= min_digits


def is_strong_password(value: Optional[str], min_length: int = 8) -> bool:
    """Reset-password policy: length plus lowercase, uppercase and a digit"""
    if not isinstance(value, str) or len(value) < min_length:
        return False
    return bool(_LOWER.search(value) and _UPPER.search(value) and _DIGIT.search(value))


def is_valid_signup_password(value: Optional[str], confirmation: Optional[str],
                             min_length: int = 6) -> bool:
    """
    Signup policy: length and matching confirmation only.

    Weaker than is_strong_password; the two policies are kept separate until
    the backend contract settles on one.
    """
    if not isinstance(value, str) or len(value) < min_length:
        return False
    return value == confirmation


def is_valid_otp(code: Optional[str], length: int = 6) -> bool:
    """Exactly `length` ASCII digits"""
    if not isinstance(code, str):
        return False
    return re.fullmatch(rf"[0-9]{{{length}}}", code) is not None
