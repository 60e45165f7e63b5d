"""Desktop implementation of the NotificationBackend protocol (plyer)."""

from __future__ import annotations

import logging

from plyer import notification as plyer_notification

from pulse_reminder.config import settings
from pulse_reminder.errors import DeliveryError
from pulse_reminder.notifications.channels import ChannelConfig, Notification

logger = logging.getLogger(__name__)


class PlyerBackend:
    """Shows notifications through the platform's native notifier.

    Desktop notifiers have no channel concept, so channels live in a
    process-local registry.
    """

    def __init__(self, app_name: str | None = None, timeout: int | None = None) -> None:
        self._app_name = app_name or settings.app_name
        self._timeout = timeout or settings.notification_timeout_seconds
        self._channels: dict[str, ChannelConfig] = {}

    @property
    def name(self) -> str:
        return "desktop"

    def get_channel(self, channel_id: str) -> ChannelConfig | None:
        return self._channels.get(channel_id)

    def create_channel(self, config: ChannelConfig) -> None:
        self._channels[config.channel_id] = config

    def notify(self, notification: Notification) -> None:
        """Show *notification* via plyer."""
        kwargs = {
            "title": notification.title,
            "message": notification.message,
            "app_name": self._app_name,
            "timeout": self._timeout,
            "ticker": notification.title,
        }
        if notification.icon:
            kwargs["app_icon"] = notification.icon
        try:
            plyer_notification.notify(**kwargs)
        except NotImplementedError as exc:
            msg = "No desktop notification service is available on this platform"
            raise DeliveryError(msg) from exc
        if notification.tap_target:
            # plyer can't attach click actions
            logger.debug(
                "Notification %d: tap target %s not supported by desktop notifier",
                notification.handle,
                notification.tap_target,
            )
