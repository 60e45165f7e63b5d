"""Reminder scheduling: registry, engine, and the two delivery paths."""

from pulse_reminder.scheduler.broadcast import BroadcastHandler
from pulse_reminder.scheduler.engine import SchedulerEngine
from pulse_reminder.scheduler.models import Registration, Reminder, ReminderPayload, WorkResult
from pulse_reminder.scheduler.periodic import PeriodicScheduler
from pulse_reminder.scheduler.store import ScheduleStore, SqliteScheduleStore
from pulse_reminder.scheduler.wake import WakeScheduler, WakeState
from pulse_reminder.scheduler.worker import DeliveryWorker

__all__ = [
    "BroadcastHandler",
    "DeliveryWorker",
    "PeriodicScheduler",
    "Registration",
    "Reminder",
    "ReminderPayload",
    "ScheduleStore",
    "SchedulerEngine",
    "SqliteScheduleStore",
    "WakeScheduler",
    "WakeState",
    "WorkResult",
]
