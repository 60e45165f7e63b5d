"""Periodic scheduling path: a recurring delivery cycle per reminder slot."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from pulse_reminder.config import settings
from pulse_reminder.scheduler.models import PERIODIC, Registration
from pulse_reminder.scheduler.preconditions import Preconditions

if TYPE_CHECKING:
    from pulse_reminder.scheduler.engine import SchedulerEngine
    from pulse_reminder.scheduler.models import ReminderPayload

logger = logging.getLogger(__name__)


def default_interval() -> timedelta:
    return timedelta(hours=settings.periodic_interval_hours)


def default_tolerance() -> timedelta:
    return timedelta(minutes=settings.periodic_tolerance_minutes)


def default_preconditions() -> Preconditions:
    return Preconditions(battery_not_low=settings.require_battery_not_low)


class PeriodicScheduler:
    """Registers recurring delivery cycles with the engine.

    Cycles recur natively; a firing never re-registers anything.
    """

    def __init__(self, engine: SchedulerEngine) -> None:
        self._engine = engine

    async def register_periodic(
        self,
        tag: str,
        initial_delay: timedelta,
        payload: ReminderPayload,
        interval: timedelta | None = None,
        tolerance: timedelta | None = None,
        preconditions: Preconditions | None = None,
    ) -> Registration:
        """Register (or replace) the periodic task for *tag*.

        The first cycle runs *initial_delay* from now, then every *interval*.
        A cycle may be delayed by up to *tolerance*.

        Raises:
            SchedulingError: If the registration could not be installed.
        """
        interval = interval or default_interval()
        tolerance = default_tolerance() if tolerance is None else tolerance
        preconditions = preconditions or default_preconditions()
        start_at = self._engine.now() + initial_delay

        registration = Registration(
            tag=tag,
            kind=PERIODIC,
            payload=payload.to_dict(),
            run_at=start_at.isoformat(),
            interval_seconds=int(interval.total_seconds()),
            tolerance_seconds=int(tolerance.total_seconds()),
            preconditions=preconditions.to_dict(),
        )
        await self._engine.install(registration)
        logger.info(
            "Periodic reminder %s starts at %s, every %s",
            tag,
            start_at.isoformat(),
            interval,
        )
        return registration

    async def cancel(self, tag: str) -> bool:
        """Cancel the periodic task for *tag*. Idempotent."""
        return await self._engine.remove(tag, PERIODIC) > 0

    async def get(self, tag: str) -> Registration | None:
        return await self._engine.store.get(tag, PERIODIC)
