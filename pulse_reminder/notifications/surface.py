"""NotificationSurface: channel setup and single-notification emission."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

from pulse_reminder.config import settings
from pulse_reminder.errors import DeliveryError
from pulse_reminder.notifications.channels import (
    ChannelConfig,
    DeliveryHandle,
    Notification,
    default_channel_config,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from pulse_reminder.notifications.channels import NotificationBackend

logger = logging.getLogger(__name__)


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class NotificationSurface:
    """Emits reminder notifications through a backend.

    Singleton accessed via ``NotificationSurface.get()``.

    Args:
        backend: Where notifications are actually displayed.
        channel: Channel every emission is posted to.
        accent_color: Accent color attached to each emission.
        icon_path: Application-supplied notification icon.
        app_icon_path: Host application's default icon, the fallback.
        launch_target: What tapping a notification opens; empty = nothing.
        clock_ms: Millisecond clock seeding delivery handles, for tests.
    """

    _instance: NotificationSurface | None = None

    def __init__(
        self,
        backend: NotificationBackend,
        channel: ChannelConfig | None = None,
        accent_color: str | None = None,
        icon_path: str | None = None,
        app_icon_path: str | None = None,
        launch_target: str | None = None,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._backend = backend
        self._channel = channel or default_channel_config()
        self._accent_color = settings.accent_color if accent_color is None else accent_color
        self._icon_path = settings.notification_icon_path if icon_path is None else icon_path
        self._app_icon_path = settings.app_icon_path if app_icon_path is None else app_icon_path
        self._launch_target = settings.launch_target if launch_target is None else launch_target
        self._clock_ms = clock_ms or _epoch_millis
        self._last_handle: DeliveryHandle = 0
        self._lock = asyncio.Lock()

    @classmethod
    def get(cls) -> NotificationSurface:
        """Return the shared surface, backed by desktop notifications."""
        if cls._instance is None:
            from pulse_reminder.notifications.desktop import PlyerBackend

            cls._instance = cls(PlyerBackend())
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset singleton, for tests only."""
        cls._instance = None

    @property
    def channel(self) -> ChannelConfig:
        return self._channel

    # -- Channel ---------------------------------------------------------------

    async def ensure_channel(self, config: ChannelConfig | None = None) -> bool:
        """Create the channel unless it exists. Returns True if created.

        An existing channel is never modified, even if *config* differs.
        """
        config = config or self._channel
        try:
            existing = await asyncio.to_thread(self._backend.get_channel, config.channel_id)
            if existing is not None:
                if existing != config:
                    logger.warning(
                        "Channel %s exists with a different configuration; keeping it",
                        config.channel_id,
                    )
                return False
            await asyncio.to_thread(self._backend.create_channel, config)
        except DeliveryError:
            raise
        except Exception as exc:
            msg = f"Could not set up notification channel {config.channel_id}"
            raise DeliveryError(msg) from exc
        logger.info("Created notification channel %s", config.channel_id)
        return True

    # -- Emission --------------------------------------------------------------

    async def emit(
        self, title: str, message: str, tap_action: bool = True
    ) -> DeliveryHandle:
        """Display one notification and return its delivery handle.

        Raises:
            DeliveryError: If the channel or the notification could not be
                created by the backend.
        """
        await self.ensure_channel()
        async with self._lock:
            handle = self._next_handle()
        notification = Notification(
            handle=handle,
            channel_id=self._channel.channel_id,
            title=title,
            message=message,
            accent_color=self._accent_color,
            icon=self.resolve_icon(),
            tap_target=self.resolve_tap_target() if tap_action else None,
        )
        try:
            await asyncio.to_thread(self._backend.notify, notification)
        except DeliveryError:
            raise
        except Exception as exc:
            msg = f"{self._backend.name} backend failed to show notification {handle}"
            raise DeliveryError(msg) from exc
        logger.info("Notification %d shown on channel %s", handle, notification.channel_id)
        return handle

    def resolve_icon(self) -> str | None:
        """Custom icon if present, else the app icon, else none."""
        if self._icon_path and Path(self._icon_path).is_file():
            return self._icon_path
        if self._app_icon_path and Path(self._app_icon_path).is_file():
            return self._app_icon_path
        return None

    def resolve_tap_target(self) -> str | None:
        if not self._launch_target:
            logger.debug("No launch target configured; notification has no tap action")
            return None
        return self._launch_target

    def _next_handle(self) -> DeliveryHandle:
        # Millisecond seed keeps handles distinct across process restarts
        handle = max(self._last_handle + 1, self._clock_ms())
        self._last_handle = handle
        return handle
