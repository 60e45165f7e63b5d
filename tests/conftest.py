"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from pulse_reminder.notifications.channels import ChannelConfig, Notification
from pulse_reminder.notifications.surface import NotificationSurface
from pulse_reminder.scheduler.engine import SchedulerEngine
from pulse_reminder.scheduler.models import Registration
from pulse_reminder.scheduler.store import SqliteScheduleStore

TZ = ZoneInfo("America/Chicago")
TAG = "daily_reminder"

CHANNEL = ChannelConfig(
    channel_id="test_channel",
    display_name="Test",
    description="Test reminders",
)


class FakeClock:
    """Settable clock; call it to read the time."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeBackend:
    """In-memory notification backend that records everything."""

    def __init__(self) -> None:
        self.channels: dict[str, ChannelConfig] = {}
        self.created: list[ChannelConfig] = []
        self.shown: list[Notification] = []
        self.fail_with: Exception | None = None

    @property
    def name(self) -> str:
        return "fake"

    def get_channel(self, channel_id: str) -> ChannelConfig | None:
        return self.channels.get(channel_id)

    def create_channel(self, config: ChannelConfig) -> None:
        self.channels[config.channel_id] = config
        self.created.append(config)

    def notify(self, notification: Notification) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.shown.append(notification)


class InMemoryScheduleStore:
    """Registry fake with the same replace/cancel/consume contract."""

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], Registration] = {}

    async def register(self, registration: Registration) -> Registration:
        self.rows[(registration.tag, registration.kind)] = registration
        return registration

    async def get(self, tag: str, kind: str) -> Registration | None:
        return self.rows.get((tag, kind))

    async def list_all(self) -> list[Registration]:
        return sorted(self.rows.values(), key=lambda r: r.created_at)

    async def cancel(self, tag: str, kind: str | None = None) -> int:
        keys = [k for k in self.rows if k[0] == tag and (kind is None or k[1] == kind)]
        for key in keys:
            del self.rows[key]
        return len(keys)

    async def consume(self, tag: str, kind: str, revision: str) -> bool:
        current = self.rows.get((tag, kind))
        if current is None or current.revision != revision:
            return False
        del self.rows[(tag, kind)]
        return True


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Reset singletons before and after each test."""
    SqliteScheduleStore._reset()
    NotificationSurface._reset()
    yield
    SqliteScheduleStore._reset()
    NotificationSurface._reset()


@pytest.fixture(autouse=True)
def _no_battery(monkeypatch: pytest.MonkeyPatch) -> None:
    """Behave like a host without a battery unless a test says otherwise."""
    monkeypatch.setattr(
        "pulse_reminder.scheduler.preconditions.psutil.sensors_battery",
        lambda: None,
        raising=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 6, 2, 8, 55, tzinfo=TZ))


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def surface(backend: FakeBackend) -> NotificationSurface:
    return NotificationSurface(
        backend,
        channel=CHANNEL,
        accent_color="#FF6B6B",
        icon_path="",
        app_icon_path="",
        launch_target="",
    )


@pytest.fixture
def memory_store() -> InMemoryScheduleStore:
    return InMemoryScheduleStore()


@pytest.fixture
def sqlite_store(tmp_path: Path) -> SqliteScheduleStore:
    return SqliteScheduleStore(db_path=tmp_path / "test.db")


@pytest.fixture
def engine(memory_store: InMemoryScheduleStore, clock: FakeClock) -> SchedulerEngine:
    return SchedulerEngine(
        store=memory_store,
        timezone=TZ,
        now_fn=clock,
        max_attempts=3,
        backoff_seconds=30,
        sync_seconds=30,
    )
