"""Notification surface and delivery backends."""

from pulse_reminder.notifications.channels import (
    ChannelConfig,
    DeliveryHandle,
    Notification,
    NotificationBackend,
    default_channel_config,
)
from pulse_reminder.notifications.surface import NotificationSurface

__all__ = [
    "ChannelConfig",
    "DeliveryHandle",
    "Notification",
    "NotificationBackend",
    "NotificationSurface",
    "default_channel_config",
]
