"""Reminder and registration data models."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from pulse_reminder.errors import PayloadError

PERIODIC = "periodic"
WAKE = "wake"
KINDS = (PERIODIC, WAKE)


class Reminder(BaseModel):
    """The single logical reminder managed by a slot."""

    title: str = Field(min_length=1, description="Notification title")
    message: str = Field(description="Notification body")
    hour: int = Field(ge=0, le=23, description="Local hour of day")
    minute: int = Field(ge=0, le=59, description="Minute of the hour")

    def payload(self) -> ReminderPayload:
        return ReminderPayload(title=self.title, message=self.message)


@dataclass(frozen=True)
class ReminderPayload:
    """What a firing needs to deliver: a title and a body."""

    title: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ReminderPayload:
        """Build a payload from stored data.

        Raises:
            PayloadError: If ``title`` or ``message`` is missing or not a string.
        """
        data = data or {}
        title = data.get("title")
        message = data.get("message")
        if not isinstance(title, str) or not isinstance(message, str):
            msg = f"Payload is missing title or message: {sorted(data)}"
            raise PayloadError(msg)
        return cls(title=title, message=message)


@dataclass
class Registration:
    """One scheduled task in the registry, unique per ``(tag, kind)``.

    Attributes:
        tag: Stable identifier of the reminder slot.
        kind: ``"periodic"`` or ``"wake"``.
        payload: ``{"title": ..., "message": ...}`` delivered at firing time.
        run_at: ISO 8601 instant: first cycle for periodic, the wake-up
            instant for wake.
        interval_seconds: Period between cycles (periodic only).
        tolerance_seconds: Window a cycle may be delayed by (periodic only).
        preconditions: Environmental constraints checked at each cycle.
        revision: New UUID hex on every registration; firings carry it so a
            superseded or cancelled registration never fires.
        created_at: ISO 8601 timestamp.
    """

    tag: str
    kind: str
    payload: dict[str, Any]
    run_at: str
    interval_seconds: int | None = None
    tolerance_seconds: int | None = None
    preconditions: dict[str, Any] = field(default_factory=dict)
    revision: str = ""
    created_at: str = ""

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            msg = f"Unknown registration kind: {self.kind}"
            raise ValueError(msg)
        if not self.revision:
            self.revision = make_revision()
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()

    @property
    def job_id(self) -> str:
        return job_id_for(self.tag, self.kind)

    @property
    def is_periodic(self) -> bool:
        return self.kind == PERIODIC

    @property
    def run_at_datetime(self) -> datetime:
        return datetime.fromisoformat(self.run_at)

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``registrations`` column order."""
        return (
            self.tag,
            self.kind,
            json.dumps(self.payload),
            self.run_at,
            self.interval_seconds,
            self.tolerance_seconds,
            json.dumps(self.preconditions),
            self.revision,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Registration:
        """Deserialize from a SQLite row tuple."""
        return cls(
            tag=row[0],
            kind=row[1],
            payload=json.loads(row[2]),
            run_at=row[3],
            interval_seconds=row[4],
            tolerance_seconds=row[5],
            preconditions=json.loads(row[6]) if row[6] else {},
            revision=row[7],
            created_at=row[8],
        )


@dataclass(frozen=True)
class FiringContext:
    """Trigger context handed to a handler when a registration fires."""

    tag: str
    kind: str
    revision: str
    scheduled_for: datetime
    fired_at: datetime
    attempt: int = 0


def job_id_for(tag: str, kind: str) -> str:
    return f"{tag}:{kind}"


def make_revision() -> str:
    """Generate a new registration revision."""
    return uuid.uuid4().hex


class WorkResult(StrEnum):
    """Outcome classification reported by a periodic delivery cycle."""

    SUCCESS = "success"
    RETRY = "retry"
    FAILURE = "failure"
