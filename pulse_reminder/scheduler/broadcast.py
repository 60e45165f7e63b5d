"""BroadcastHandler: delivers a wake-up and re-arms the next one."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pulse_reminder.errors import PayloadError
from pulse_reminder.scheduler.clock import next_occurrence
from pulse_reminder.scheduler.models import ReminderPayload

if TYPE_CHECKING:
    from pulse_reminder.notifications.surface import NotificationSurface
    from pulse_reminder.scheduler.models import FiringContext, Registration
    from pulse_reminder.scheduler.wake import WakeScheduler

logger = logging.getLogger(__name__)


class BroadcastHandler:
    """Handles a fired wake-up: emit, compute the next instant, re-arm.

    Re-arming runs even when emission fails. If re-arming itself fails the
    chain ends and the periodic path carries the reminder.

    Args:
        surface: NotificationSurface used for delivery.
        wake: WakeScheduler used to re-arm the slot.
    """

    def __init__(
        self,
        surface: NotificationSurface,
        wake: WakeScheduler,
    ) -> None:
        self._surface = surface
        self._wake = wake

    async def handle(self, registration: Registration, context: FiringContext) -> None:
        try:
            reminder = ReminderPayload.from_dict(registration.payload)
        except PayloadError:
            logger.exception("Wake %s fired without a usable payload; chain ends", context.tag)
            return

        await self._deliver(reminder)

        if self._wake.cancelled_while_firing(context.tag):
            logger.info("Wake %s was cancelled during delivery; not re-arming", context.tag)
            return

        next_at = next_occurrence(context.scheduled_for, context.fired_at)
        try:
            await self._wake.register_once(context.tag, next_at, reminder)
        except Exception:
            logger.exception(
                "Could not re-arm wake %s; relying on the periodic path", context.tag
            )
            return
        logger.info("Next wake for %s at %s", context.tag, next_at.isoformat())

    async def _deliver(self, reminder: ReminderPayload) -> None:
        try:
            handle = await self._surface.emit(reminder.title, reminder.message)
        except Exception:
            logger.exception("Wake delivery failed: '%s'", reminder.title)
            return
        logger.info("Wake reminder delivered: '%s' (handle %d)", reminder.title, handle)
