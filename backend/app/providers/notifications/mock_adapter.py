"""Mock notification dispatcher for testing."""

from typing import Any

from app.providers.notifications.base import NotificationDispatcher, Workflow


class MockNotificationDispatcher(NotificationDispatcher):
    """Records triggered workflows instead of sending them.

    Attributes:
        sent: Every trigger call, in order.
        succeed: Return value for trigger(); set False to simulate outages.
    """

    @property
    def provider_name(self) -> str:
        """Return 'mock' for testing."""
        return "mock"

    def __init__(self, *, succeed: bool = True) -> None:
        self.sent: list[dict[str, Any]] = []
        self.succeed = succeed

    async def trigger(
        self,
        workflow: Workflow,
        recipient_id: str,
        recipient_email: str | None,
        payload: dict[str, Any],
    ) -> bool:
        """Record the call and return ``succeed``."""
        self.sent.append(
            {
                "workflow": workflow,
                "recipient_id": recipient_id,
                "recipient_email": recipient_email,
                "payload": dict(payload),
            }
        )
        return self.succeed

    def last(self, workflow: Workflow | None = None) -> dict[str, Any] | None:
        """Most recent recorded call, optionally for one workflow."""
        matches = [s for s in self.sent if workflow is None or s["workflow"] == workflow]
        return matches[-1] if matches else None
