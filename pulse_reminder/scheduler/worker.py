"""DeliveryWorker: runs one periodic delivery cycle."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pulse_reminder.errors import DeliveryError, PayloadError
from pulse_reminder.scheduler.models import ReminderPayload, WorkResult

if TYPE_CHECKING:
    from typing import Any

    from pulse_reminder.notifications.surface import NotificationSurface
    from pulse_reminder.scheduler.models import FiringContext, Registration

logger = logging.getLogger(__name__)


class DeliveryWorker:
    """Delivers the stored payload and classifies the outcome.

    Retrying is the engine's business; the worker only reports whether a
    retry makes sense.
    """

    def __init__(self, surface: NotificationSurface) -> None:
        self._surface = surface

    async def run(self, payload: dict[str, Any] | None) -> WorkResult:
        try:
            reminder = ReminderPayload.from_dict(payload)
        except PayloadError:
            logger.exception("Periodic cycle has no usable payload")
            return WorkResult.FAILURE

        try:
            handle = await self._surface.emit(reminder.title, reminder.message)
        except DeliveryError:
            logger.exception("Periodic delivery failed: '%s'", reminder.title)
            return WorkResult.RETRY
        except Exception:
            logger.exception("Unexpected error in periodic delivery: '%s'", reminder.title)
            return WorkResult.FAILURE

        logger.info("Periodic reminder delivered: '%s' (handle %d)", reminder.title, handle)
        return WorkResult.SUCCESS

    async def handle(
        self, registration: Registration, context: FiringContext
    ) -> WorkResult:
        """Engine entry point for periodic firings."""
        return await self.run(registration.payload)
