"""Novu adapter for notification dispatch."""

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from app.providers.notifications.base import NotificationDispatcher, Workflow

if TYPE_CHECKING:
    from app.providers.config import ProviderConfig

logger = structlog.get_logger()


class NovuNotificationDispatcher(NotificationDispatcher):
    """Triggers Novu workflows over the events API."""

    @property
    def provider_name(self) -> str:
        """Return 'novu'."""
        return "novu"

    def __init__(
        self,
        config: "ProviderConfig",
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: Provider configuration with Novu settings.
            client: Optional preconfigured httpx client (for tests).
        """
        self.config = config
        self._client = client or httpx.AsyncClient(timeout=config.novu_timeout_seconds)
        self._trigger_url = f"{config.novu_base_url}/v1/events/trigger"

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def trigger(
        self,
        workflow: Workflow,
        recipient_id: str,
        recipient_email: str | None,
        payload: dict[str, Any],
    ) -> bool:
        """POST an event trigger; any failure is logged and returns False."""
        to: dict[str, str] = {"subscriberId": recipient_id}
        if recipient_email:
            to["email"] = recipient_email

        try:
            resp = await self._client.post(
                self._trigger_url,
                headers={"Authorization": f"ApiKey {self.config.novu_api_key or ''}"},
                json={"name": workflow.value, "to": to, "payload": payload},
                timeout=self.config.novu_timeout_seconds,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "notification_trigger_failed",
                provider="novu",
                workflow=workflow.value,
                recipient_id=recipient_id,
                error_type=type(e).__name__,
                exc_info=True,
            )
            return False

        logger.info(
            "notification_triggered",
            provider="novu",
            workflow=workflow.value,
            recipient_id=recipient_id,
        )
        return True
