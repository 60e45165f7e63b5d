"""Runtime wiring: store -> engine -> paths -> handlers -> commands."""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pulse_reminder.commands import ReminderCommands
from pulse_reminder.notifications.surface import NotificationSurface
from pulse_reminder.scheduler.broadcast import BroadcastHandler
from pulse_reminder.scheduler.engine import SchedulerEngine
from pulse_reminder.scheduler.models import PERIODIC, WAKE
from pulse_reminder.scheduler.periodic import PeriodicScheduler
from pulse_reminder.scheduler.store import SqliteScheduleStore
from pulse_reminder.scheduler.wake import WakeScheduler
from pulse_reminder.scheduler.worker import DeliveryWorker

if TYPE_CHECKING:
    from pulse_reminder.scheduler.store import ScheduleStore

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Everything a host process needs, wired together."""

    engine: SchedulerEngine
    surface: NotificationSurface
    periodic: PeriodicScheduler
    wake: WakeScheduler
    commands: ReminderCommands


def build_runtime(
    store: ScheduleStore | None = None,
    surface: NotificationSurface | None = None,
    engine: SchedulerEngine | None = None,
) -> Runtime:
    """Create the engine, both paths and the facade, and register handlers."""
    store = store or SqliteScheduleStore.get()
    surface = surface or NotificationSurface.get()
    engine = engine or SchedulerEngine(store=store)

    periodic = PeriodicScheduler(engine)
    wake = WakeScheduler(engine)
    engine.set_handler(PERIODIC, DeliveryWorker(surface).handle)
    engine.set_handler(WAKE, BroadcastHandler(surface, wake).handle)

    commands = ReminderCommands(engine, periodic, wake, surface)
    return Runtime(
        engine=engine,
        surface=surface,
        periodic=periodic,
        wake=wake,
        commands=commands,
    )


async def serve(runtime: Runtime, stop_event: asyncio.Event | None = None) -> None:
    """Run the scheduler until SIGINT/SIGTERM (or *stop_event*) arrives."""
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            logger.debug("Signal handlers unavailable on this platform")

    await runtime.surface.ensure_channel()
    await runtime.engine.start()
    try:
        await stop_event.wait()
    finally:
        await runtime.engine.stop()
