"""
Copy for the account-status page.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class StatusContent:
    title: str
    message: str
    icon: str
    tone: str  # info, error or warning


STATUS_CONTENT: Dict[str, StatusContent] = {
    "pending": StatusContent(
        title="Application Under Review",
        message=("Your consultant account is currently pending approval. Our administrative team "
                 "is reviewing your application details. You will be notified once your account "
                 "is activated."),
        icon="⏳",
        tone="info",
    ),
    "rejected": StatusContent(
        title="Application Rejected",
        message=("After careful review, we regret to inform you that your application has been "
                 "rejected at this time. If you believe this is an error or would like to appeal, "
                 "please contact support."),
        icon="❌",
        tone="error",
    ),
    "blocked": StatusContent(
        title="Account Blocked",
        message=("Your account has been blocked by the administrator due to policy violations or "
                 "security concerns. You cannot log in at this time. Please contact support for "
                 "assistance."),
        icon="🚫",
        tone="error",
    ),
}

GENERIC_STATUS = StatusContent(
    title="Account Status",
    message="Please contact support for more information about your account status.",
    icon="ℹ️",
    tone="warning",
)


def get_status_content(status: Optional[str]) -> StatusContent:
    """Content for `status`; unknown or missing values get the generic page"""
    return STATUS_CONTENT.get(status or "", GENERIC_STATUS)
