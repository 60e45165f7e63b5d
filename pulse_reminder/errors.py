"""Error taxonomy shared by the scheduling paths and the command facade."""


class ReminderError(Exception):
    """Base class. ``code`` is the stable identifier reported to callers."""

    code = "REMINDER_ERROR"


class SchedulingError(ReminderError):
    """Registering a task with the scheduler failed."""

    code = "SCHEDULING_ERROR"


class CancellationError(ReminderError):
    """The scheduler could not remove the registrations for a tag."""

    code = "CANCELLATION_ERROR"


class DeliveryError(ReminderError):
    """Emitting a notification failed (e.g. no notification service)."""

    code = "NOTIFICATION_ERROR"


class PayloadError(ReminderError):
    """Required payload fields are absent at firing time. Never retried."""

    code = "PAYLOAD_ERROR"
