"""Abstract base class and types for notification dispatch.

Dispatch is fire-and-forget from the engine's perspective: a failed send
degrades to "link not sent" and never aborts the state transition that
produced the link.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class Workflow(str, Enum):
    """Notification workflow identifiers (Novu workflow slugs)."""

    SELF_REG_VERIFICATION = "self-reg-verification"
    ADMIN_ONBOARDING_INVITE = "admin-onboarding-invite"
    FORGOT_PASSWORD_OTP = "forgot-password-otp"
    RENEW_INVITATION_LINK = "renew-invitation-link"
    APP_USER_VERIFICATION = "app-user-verification"


class NotificationDispatcher(ABC):
    """Abstract interface for notification delivery.

    WHY RETURN BOOL INSTEAD OF RAISING:
    - Callers must not branch on delivery errors
    - The link stays valid and can be re-sent via request_new_verification_link()
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Adapter identifier for logging."""

    @abstractmethod
    async def trigger(
        self,
        workflow: Workflow,
        recipient_id: str,
        recipient_email: str | None,
        payload: dict[str, Any],
    ) -> bool:
        """Trigger a workflow for one recipient.

        Args:
            workflow: Workflow to run.
            recipient_id: Subscriber id (directory id, or email when the
                recipient has no identity yet).
            recipient_email: Delivery address, if known.
            payload: Template variables.

        Returns:
            True if the dispatcher accepted the event, False otherwise.
        """
