"""Notification channel configuration and the backend protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from pulse_reminder.config import settings

DeliveryHandle = int


@dataclass(frozen=True)
class ChannelConfig:
    """Alert profile of a delivery channel. Created once, never mutated.

    Attributes:
        channel_id: Stable identifier, constant across deliveries.
        display_name: Name shown in the host's notification settings.
        description: Longer explanation shown alongside the name.
        urgency: ``"low"``, ``"default"`` or ``"high"``.
        light_color: LED color as ``#RRGGBB`` where the host has one.
        vibration_pattern: Alternating off/on durations in milliseconds.
    """

    channel_id: str
    display_name: str
    description: str = ""
    urgency: str = "high"
    light_color: str = "#FF0000"
    vibration_pattern: tuple[int, ...] = field(default=(0, 300, 200, 300))


@dataclass(frozen=True)
class Notification:
    """One emission. ``handle`` is unique per emission; ``channel_id`` is not."""

    handle: DeliveryHandle
    channel_id: str
    title: str
    message: str
    accent_color: str = ""
    icon: str | None = None
    tap_target: str | None = None


@runtime_checkable
class NotificationBackend(Protocol):
    """Protocol that every notification backend must satisfy.

    Methods are synchronous; the surface runs them off the event loop.
    """

    @property
    def name(self) -> str:
        """Backend identifier (e.g. 'desktop')."""
        ...

    def get_channel(self, channel_id: str) -> ChannelConfig | None:
        """Return the existing channel, or None."""
        ...

    def create_channel(self, config: ChannelConfig) -> None:
        ...

    def notify(self, notification: Notification) -> None:
        """Display *notification*. Raises on failure."""
        ...


def default_channel_config() -> ChannelConfig:
    """Build the reminder channel from settings."""
    return ChannelConfig(
        channel_id=settings.channel_id,
        display_name=settings.channel_name,
        description=settings.channel_description,
        urgency=settings.channel_urgency,
        light_color=settings.channel_light_color,
        vibration_pattern=tuple(settings.get_vibration_pattern()),
    )
