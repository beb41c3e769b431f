"""
Inkbook — Notification Service
Delivers human-readable booking status updates to customers and artists.
Delivery is fire-and-forget from the engine's point of view.
"""

import logging
from typing import Any

import httpx

from inkbook.core.config import Settings
from inkbook.models.enums import NotificationKind
from inkbook.services.base import BaseExternalService
from inkbook.services.collaborators import Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    """Used when no delivery endpoint is configured."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
    ) -> None:
        self.sent.append(
            {"recipient_id": recipient_id, "title": title, "message": message, "kind": kind}
        )
        logger.info("🔔 [%s] %s → %s: %s", kind, title, recipient_id, message)


class WebhookNotifier(BaseExternalService, Notifier):
    """Posts notifications as JSON to the configured webhook (chat / push relay)."""

    service_name = "NotificationWebhook"

    def __init__(self, settings: Settings | None = None):
        super().__init__(settings)
        self.webhook_url = self.settings.NOTIFICATION_WEBHOOK_URL

    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
    ) -> None:
        async with httpx.AsyncClient(timeout=self.settings.COLLABORATOR_TIMEOUT_SECONDS) as client:
            try:
                response = await client.post(
                    self.webhook_url,
                    json={
                        "recipient_id": recipient_id,
                        "title": title,
                        "message": message,
                        "type": str(kind),
                    },
                )
                response.raise_for_status()
            except httpx.TransportError as exc:
                # Let the engine's retry policy treat transport failures as retryable
                raise ConnectionError(f"Notification webhook unreachable: {exc}") from exc

        logger.info("🔔 Notification '%s' delivered to %s", title, recipient_id)


def build_notifier(settings: Settings) -> Notifier:
    if settings.NOTIFICATION_WEBHOOK_URL:
        return WebhookNotifier(settings)
    return LoggingNotifier()
