"""One-shot wake scheduling path.

Per reminder slot::

    IDLE -> ARMED -> FIRED -> ARMED (next day) -> ...

``cancel()`` returns the slot to IDLE. The broadcast handler re-arms the slot
after each firing; no caller is involved after the first registration.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from pulse_reminder.scheduler.models import WAKE, Registration

if TYPE_CHECKING:
    from datetime import datetime

    from pulse_reminder.scheduler.engine import SchedulerEngine
    from pulse_reminder.scheduler.models import ReminderPayload

logger = logging.getLogger(__name__)


class WakeState(StrEnum):
    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"


class WakeScheduler:
    """Registers exact single wake-ups with the engine."""

    def __init__(self, engine: SchedulerEngine) -> None:
        self._engine = engine

    async def register_once(
        self, tag: str, trigger_instant: datetime, payload: ReminderPayload
    ) -> str:
        """Arm *tag* to fire once at *trigger_instant*. Returns the handle.

        A wake missed while the host was down fires as soon as it is back.

        Raises:
            SchedulingError: If the registration could not be installed.
        """
        registration = Registration(
            tag=tag,
            kind=WAKE,
            payload=payload.to_dict(),
            run_at=trigger_instant.isoformat(),
        )
        await self._engine.install(registration)
        logger.info("Wake %s armed for %s", tag, trigger_instant.isoformat())
        return registration.revision

    async def cancel(self, tag: str) -> bool:
        """Disarm *tag*. Idempotent; a firing already in progress completes."""
        return await self._engine.remove(tag, WAKE) > 0

    async def get(self, tag: str) -> Registration | None:
        return await self._engine.store.get(tag, WAKE)

    async def state(self, tag: str) -> WakeState:
        if self._engine.is_firing(tag, WAKE):
            return WakeState.FIRED
        if await self.get(tag) is not None:
            return WakeState.ARMED
        return WakeState.IDLE

    def cancelled_while_firing(self, tag: str) -> bool:
        return self._engine.was_cancelled_while_firing(tag, WAKE)
