"""Clock and time resolution for time-of-day anchored reminders.

All arithmetic is wall-clock arithmetic on aware datetimes: adding
``timedelta(days=1)`` to a ``ZoneInfo``-aware value keeps the local hour and
minute, so a day that is 23 or 25 hours long across a DST shift still lands
on the same time of day.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, tzinfo

_ONE_DAY = timedelta(days=1)


def _normalize(instant: datetime) -> datetime:
    """Resolve wall-clock times inside a DST gap to a real instant."""
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(UTC).astimezone(instant.tzinfo)


def local_now(tz: tzinfo) -> datetime:
    """Return the current time as an aware datetime in *tz*."""
    return datetime.now(tz)


def next_trigger(hour: int, minute: int, now: datetime) -> datetime:
    """Return the next instant strictly after *now* at ``hour:minute``.

    Today's ``hour:minute:00`` is used if it is still in the future,
    otherwise the same wall-clock time one calendar day later.

    Raises:
        ValueError: If *hour* or *minute* is out of range.
    """
    if not 0 <= hour <= 23:
        msg = f"hour must be in 0..23, got {hour}"
        raise ValueError(msg)
    if not 0 <= minute <= 59:
        msg = f"minute must be in 0..59, got {minute}"
        raise ValueError(msg)

    candidate = _normalize(now.replace(hour=hour, minute=minute, second=0, microsecond=0))
    if candidate <= now:
        candidate = _normalize(
            now.replace(hour=hour, minute=minute, second=0, microsecond=0) + _ONE_DAY
        )
    return candidate


def next_occurrence(fired_at: datetime, now: datetime) -> datetime:
    """Return the next wake-up in a daily chain that last fired at *fired_at*.

    One calendar day after the firing instant. If the host was down long
    enough that this is already past, whole days are added until the result
    is strictly after *now*.
    """
    days = 1
    candidate = _normalize(fired_at + _ONE_DAY)
    while candidate <= now:
        days += 1
        candidate = _normalize(fired_at + days * _ONE_DAY)
    return candidate
