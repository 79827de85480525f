"""
User, session, draft and outcome data models for the authentication service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Role(str, Enum):
    """Account roles known to the backend"""
    CLIENT = "Client"
    CONSULTANT = "Consultant"
    ADMIN = "Admin"


class AccountStatus(str, Enum):
    """Server-side approval state of an account"""
    ACTIVE = "active"
    PENDING = "pending"
    REJECTED = "rejected"
    BLOCKED = "blocked"


class LoginMode(str, Enum):
    PASSWORD = "password"
    OTP = "otp"


class LoginStep(str, Enum):
    COLLECT_IDENTIFIER = "collect-identifier"
    COLLECT_OTP = "collect-otp"


@dataclass(frozen=True)
class UserRecord:
    """User data model as returned by the backend on success"""
    id: str
    role: str
    name: str = ""
    email: str = ""
    mobile: str = ""
    account_status: AccountStatus = AccountStatus.ACTIVE

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'UserRecord':
        """Build from a backend `user` object (`id` or `_id`, `name` or `fullName`)"""
        return cls(
            id=str(payload.get("id") or payload.get("_id") or ""),
            role=str(payload.get("role") or ""),
            name=payload.get("name") or payload.get("fullName") or "",
            email=payload.get("email") or "",
            mobile=str(payload.get("mobile") or payload.get("phone") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "name": self.name,
            "email": self.email,
            "mobile": self.mobile,
            "account_status": self.account_status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserRecord':
        return cls(
            id=data["id"],
            role=data["role"],
            name=data.get("name", ""),
            email=data.get("email", ""),
            mobile=data.get("mobile", ""),
            account_status=AccountStatus(data.get("account_status", AccountStatus.ACTIVE.value)),
        )


@dataclass(frozen=True)
class Session:
    """Authenticated session: opaque token plus the user it belongs to"""
    token: str
    user: UserRecord
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "user": self.user.to_dict(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        created_at = data.get("created_at")
        return cls(
            token=data["token"],
            user=UserRecord.from_dict(data["user"]),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(),
        )


@dataclass
class LoginAttempt:
    """Transient state of the login view"""
    mode: LoginMode = LoginMode.OTP
    step: LoginStep = LoginStep.COLLECT_IDENTIFIER
    identifier: str = ""
    secret: str = ""
    resend_timer: int = 30
    role: str = Role.CLIENT.value


@dataclass
class CategorySelection:
    """One category/subcategory row of a consultant registration"""
    category_id: str = ""
    category_name: str = ""
    subcategory_id: str = ""
    subcategory_name: str = ""

    @property
    def is_empty(self) -> bool:
        return not any([self.category_id, self.category_name,
                        self.subcategory_id, self.subcategory_name])

    @property
    def is_complete(self) -> bool:
        return all([self.category_id, self.category_name,
                    self.subcategory_id, self.subcategory_name])

    def to_payload(self) -> Dict[str, str]:
        return {
            "category": self.category_id,
            "categoryName": self.category_name,
            "subcategory": self.subcategory_id,
            "subcategoryName": self.subcategory_name,
        }


def complete_selections(selections: List[CategorySelection]) -> List[CategorySelection]:
    """Fully specified rows, in their original order"""
    return [selection for selection in selections if selection.is_complete]


def category_payload(role: str, selections: List[CategorySelection]) -> Dict[str, Any]:
    """
    Category fields of a registration payload.

    Only complete rows are sent. The first one is also sent as the singular
    `category`/`subcategory` pair that older backend contracts read.
    """
    if role != Role.CONSULTANT.value:
        return {}
    rows = complete_selections(selections)
    if not rows:
        return {}
    primary = rows[0]
    return {
        "categories": [row.to_payload() for row in rows],
        "category": primary.category_id,
        "subcategory": primary.subcategory_id,
    }


@dataclass
class RegistrationDraft:
    """Signup form contents"""
    full_name: str = ""
    email: str = ""
    mobile: str = ""
    password: str = ""
    confirm_password: str = ""
    role: str = Role.CLIENT.value
    terms_accepted: bool = False
    category_selections: List[CategorySelection] = field(default_factory=lambda: [CategorySelection()])

    def to_payload(self, normalized_mobile: str) -> Dict[str, Any]:
        payload = {
            "fullName": self.full_name.strip(),
            "email": self.email.strip(),
            "mobile": normalized_mobile,
            "password": self.password,
            "role": self.role,
        }
        payload.update(category_payload(self.role, self.category_selections))
        return payload


@dataclass
class ProfileDetails:
    """Complete-profile form contents for a deferred registration"""
    full_name: str = ""
    email: str = ""
    role: str = Role.CLIENT.value
    category_selections: List[CategorySelection] = field(default_factory=lambda: [CategorySelection()])

    def to_payload(self, registration_token: str) -> Dict[str, Any]:
        payload = {
            "registrationToken": registration_token,
            "fullName": self.full_name.strip(),
            "email": self.email.strip(),
            "role": self.role,
        }
        payload.update(category_payload(self.role, self.category_selections))
        return payload


@dataclass(frozen=True)
class DeferredRegistration:
    """Registration token and mobile issued by an OTP verify for an unknown number"""
    registration_token: str
    mobile: str

    def is_valid(self) -> bool:
        return bool(self.registration_token and self.mobile)


# Outcomes returned by the session negotiator

@dataclass(frozen=True)
class Outcome:
    """Base class for classified backend results"""

    @property
    def succeeded(self) -> bool:
        return False


@dataclass(frozen=True)
class Authenticated(Outcome):
    session: Session

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected(Outcome):
    """Denied by this client regardless of the backend's answer (e.g. Admin accounts)"""
    reason: str
    message: str


@dataclass(frozen=True)
class StatusRedirect(Outcome):
    """Account exists but is gated by its approval status"""
    status: str


@dataclass(frozen=True)
class NeedsSignup(Outcome):
    """No account matches the identifier; carries what the signup flow needs"""
    identifier: str
    registration_token: Optional[str] = None


@dataclass(frozen=True)
class CodeSent(Outcome):
    message: str = "OTP sent successfully"
    dev_code: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class Acknowledged(Outcome):
    """Success without session side effects (password recovery)"""
    message: str

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed(Outcome):
    """Transient or unclassified failure, shown verbatim"""
    message: str
