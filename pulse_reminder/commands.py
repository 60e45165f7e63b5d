"""Command facade: schedule, cancel, show-now and status for the reminder slot."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from pulse_reminder.config import settings
from pulse_reminder.errors import (
    CancellationError,
    DeliveryError,
    ReminderError,
    SchedulingError,
)
from pulse_reminder.scheduler.clock import next_trigger
from pulse_reminder.scheduler.models import Reminder

if TYPE_CHECKING:
    from pulse_reminder.notifications.surface import NotificationSurface
    from pulse_reminder.scheduler.engine import SchedulerEngine
    from pulse_reminder.scheduler.periodic import PeriodicScheduler
    from pulse_reminder.scheduler.wake import WakeScheduler

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Result of a facade command.

    ``code`` is one of the error codes in :mod:`pulse_reminder.errors` when
    the command failed.
    """

    data: dict[str, Any] | None = None
    error: str | None = None
    code: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, exc: ReminderError) -> CommandResult:
        return cls(error=str(exc), code=exc.code)

    def to_json(self) -> str:
        if self.error:
            return json.dumps({"error": self.error, "code": self.code})
        return json.dumps(self.data or {})


class ReminderCommands:
    """The only entry point external callers use.

    Both scheduling paths are registered for every reminder so either one
    alone keeps the reminder daily.

    Args:
        engine: SchedulerEngine backing both paths.
        periodic: Periodic path.
        wake: Wake path.
        surface: NotificationSurface for immediate delivery.
        tag: Reminder slot tag (default from settings).
    """

    def __init__(
        self,
        engine: SchedulerEngine,
        periodic: PeriodicScheduler,
        wake: WakeScheduler,
        surface: NotificationSurface,
        tag: str | None = None,
    ) -> None:
        self._engine = engine
        self._periodic = periodic
        self._wake = wake
        self._surface = surface
        self._tag = tag or settings.reminder_tag
        self._lock = asyncio.Lock()

    @property
    def tag(self) -> str:
        return self._tag

    # -- schedule --------------------------------------------------------------

    async def schedule(
        self, title: str, message: str, hour: int, minute: int
    ) -> CommandResult:
        """Replace the slot's reminder with a daily one at ``hour:minute``."""
        try:
            reminder = Reminder(title=title, message=message, hour=hour, minute=minute)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            return CommandResult.failure(
                SchedulingError(f"Invalid reminder {field}: {first['msg']}")
            )

        async with self._lock:
            try:
                await self._cancel_both()
            except CancellationError as exc:
                return CommandResult.failure(
                    SchedulingError(f"Could not clear the previous reminder: {exc}")
                )

            now = self._engine.now()
            trigger_at = next_trigger(reminder.hour, reminder.minute, now)
            payload = reminder.payload()

            try:
                await self._periodic.register_periodic(
                    self._tag, initial_delay=trigger_at - now, payload=payload
                )
            except SchedulingError as exc:
                logger.exception("Periodic registration failed for %s", self._tag)
                return CommandResult.failure(exc)

            try:
                await self._wake.register_once(self._tag, trigger_at, payload)
            except SchedulingError as exc:
                logger.exception("Wake registration failed for %s", self._tag)
                await self._rollback_periodic()
                return CommandResult.failure(exc)

        logger.info(
            "Scheduled daily reminder '%s' at %02d:%02d, first at %s",
            reminder.title,
            reminder.hour,
            reminder.minute,
            trigger_at.isoformat(),
        )
        return CommandResult(
            data={
                "scheduled": True,
                "tag": self._tag,
                "title": reminder.title,
                "hour": reminder.hour,
                "minute": reminder.minute,
                "trigger_at": trigger_at.isoformat(),
            }
        )

    # -- cancel ----------------------------------------------------------------

    async def cancel(self) -> CommandResult:
        """Cancel both paths for the slot. Idempotent."""
        async with self._lock:
            try:
                cancelled = await self._cancel_both()
            except CancellationError as exc:
                logger.exception("Cancellation failed for %s", self._tag)
                return CommandResult.failure(exc)
        return CommandResult(data={"cancelled": cancelled, "tag": self._tag})

    # -- show_now --------------------------------------------------------------

    async def show_now(self, title: str, message: str) -> CommandResult:
        """Deliver a notification immediately, bypassing scheduling."""
        try:
            handle = await self._surface.emit(title, message)
        except DeliveryError as exc:
            logger.exception("Immediate notification failed")
            return CommandResult.failure(exc)
        return CommandResult(data={"handle": handle})

    # -- status ----------------------------------------------------------------

    async def status(self) -> CommandResult:
        """Describe what is registered on each path for the slot."""
        periodic = await self._periodic.get(self._tag)
        wake = await self._wake.get(self._tag)
        wake_state = await self._wake.state(self._tag)

        paths: dict[str, Any] = {}
        for name, registration in (("periodic", periodic), ("wake", wake)):
            if registration is None:
                paths[name] = None
                continue
            next_run = self._engine.next_run_time(self._tag, registration.kind)
            paths[name] = {
                "title": registration.payload.get("title"),
                "message": registration.payload.get("message"),
                "run_at": registration.run_at,
                "next_run_at": next_run.isoformat() if next_run else None,
                "revision": registration.revision,
            }
        return CommandResult(
            data={
                "tag": self._tag,
                "active": periodic is not None or wake is not None,
                "wake_state": str(wake_state),
                "paths": paths,
            }
        )

    # -- Internal --------------------------------------------------------------

    async def _cancel_both(self) -> bool:
        periodic = await self._periodic.cancel(self._tag)
        wake = await self._wake.cancel(self._tag)
        return periodic or wake

    async def _rollback_periodic(self) -> None:
        try:
            await self._periodic.cancel(self._tag)
        except CancellationError:
            logger.exception("Rollback of periodic registration failed for %s", self._tag)
