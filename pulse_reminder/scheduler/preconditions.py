"""Environmental preconditions for periodic delivery cycles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import psutil

from pulse_reminder.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Preconditions:
    """Constraints a periodic cycle waits on. Unmet = cycle skipped."""

    battery_not_low: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"battery_not_low": self.battery_not_low}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Preconditions:
        data = data or {}
        return cls(battery_not_low=bool(data.get("battery_not_low", False)))


def battery_is_low(threshold: int | None = None) -> bool:
    """Return True when running on battery at or below *threshold* percent.

    Hosts without a battery, or platforms psutil can't query, never count as
    low. A charging battery is never low.
    """
    threshold = settings.low_battery_percent if threshold is None else threshold
    sensors_battery = getattr(psutil, "sensors_battery", None)
    if sensors_battery is None:
        return False
    battery = sensors_battery()
    if battery is None:
        return False
    if battery.power_plugged:
        return False
    return battery.percent <= threshold


def preconditions_met(preconditions: Preconditions) -> bool:
    """Check every constraint in *preconditions* against the host."""
    if preconditions.battery_not_low and battery_is_low():
        logger.info("Precondition unmet: battery is low")
        return False
    return True
