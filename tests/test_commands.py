"""Tests for the ReminderCommands facade."""

import json
from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from pulse_reminder.app import Runtime, build_runtime
from pulse_reminder.commands import CommandResult
from pulse_reminder.errors import CancellationError, DeliveryError, SchedulingError
from pulse_reminder.scheduler.models import PERIODIC, WAKE

TZ = ZoneInfo("America/Chicago")
TAG = "daily_reminder"


@pytest.fixture
def runtime(memory_store, surface, engine) -> Runtime:
    return build_runtime(store=memory_store, surface=surface, engine=engine)


def _jobs(runtime: Runtime, kind: str) -> list:
    job_id = f"{TAG}:{kind}"
    return [j for j in runtime.engine._scheduler.get_jobs() if j.id == job_id]


class TestCommandResult:
    def test_success(self) -> None:
        result = CommandResult(data={"a": 1})
        assert result.success is True
        assert json.loads(result.to_json()) == {"a": 1}

    def test_failure(self) -> None:
        result = CommandResult.failure(SchedulingError("bad"))
        assert result.success is False
        assert json.loads(result.to_json()) == {"error": "bad", "code": "SCHEDULING_ERROR"}


class TestSchedule:
    async def test_later_today(self, runtime, clock) -> None:
        clock.now = datetime(2025, 6, 2, 8, 55, tzinfo=TZ)

        result = await runtime.commands.schedule("Pulse", "Check", 9, 0)

        assert result.success
        assert result.data["trigger_at"] == datetime(2025, 6, 2, 9, 0, tzinfo=TZ).isoformat()
        wake = await runtime.wake.get(TAG)
        assert wake.run_at_datetime == datetime(2025, 6, 2, 9, 0, tzinfo=TZ)
        periodic = await runtime.periodic.get(TAG)
        assert periodic.run_at_datetime == datetime(2025, 6, 2, 9, 0, tzinfo=TZ)

    async def test_already_past_rolls_to_tomorrow(self, runtime, clock) -> None:
        clock.now = datetime(2025, 6, 2, 9, 5, tzinfo=TZ)

        result = await runtime.commands.schedule("Pulse", "Check", 9, 0)

        assert result.success
        wake = await runtime.wake.get(TAG)
        assert wake.run_at_datetime == datetime(2025, 6, 3, 9, 0, tzinfo=TZ)
        periodic = await runtime.periodic.get(TAG)
        assert periodic.run_at_datetime == datetime(2025, 6, 3, 9, 0, tzinfo=TZ)
        assert periodic.interval_seconds == 24 * 3600

    async def test_registers_both_paths_with_payload(self, runtime) -> None:
        await runtime.commands.schedule("Pulse", "Check", 9, 0)

        for kind in (PERIODIC, WAKE):
            reg = await runtime.engine.store.get(TAG, kind)
            assert reg.payload == {"title": "Pulse", "message": "Check"}
            assert len(_jobs(runtime, kind)) == 1

    async def test_reschedule_supersedes(self, runtime, backend) -> None:
        await runtime.commands.schedule("Old", "M", 9, 0)
        old_wake = await runtime.wake.get(TAG)
        old_periodic = await runtime.periodic.get(TAG)

        await runtime.commands.schedule("New", "M", 10, 30)

        assert len(_jobs(runtime, PERIODIC)) == 1
        assert len(_jobs(runtime, WAKE)) == 1
        assert len(await runtime.engine.store.list_all()) == 2
        assert (await runtime.wake.get(TAG)).payload["title"] == "New"

        # Firings of the superseded registrations are dropped
        await runtime.engine._fire(TAG, WAKE, old_wake.revision)
        await runtime.engine._fire(TAG, PERIODIC, old_periodic.revision)
        assert backend.shown == []

    async def test_cancel_then_schedule_matches_fresh(self, runtime, clock) -> None:
        await runtime.commands.schedule("Pulse", "Check", 9, 0)
        await runtime.commands.cancel()

        result = await runtime.commands.schedule("Pulse", "Check", 9, 0)

        assert result.success
        assert len(await runtime.engine.store.list_all()) == 2
        assert len(_jobs(runtime, WAKE)) == 1
        assert len(_jobs(runtime, PERIODIC)) == 1

    @pytest.mark.parametrize(
        ("hour", "minute"), [(24, 0), (-1, 0), (9, 60), (9, -1)]
    )
    async def test_invalid_time(self, runtime, hour, minute) -> None:
        result = await runtime.commands.schedule("Pulse", "Check", hour, minute)

        assert result.success is False
        assert result.code == "SCHEDULING_ERROR"
        assert await runtime.engine.store.list_all() == []

    async def test_empty_title_rejected(self, runtime) -> None:
        result = await runtime.commands.schedule("", "Check", 9, 0)
        assert result.code == "SCHEDULING_ERROR"

    async def test_invalid_time_keeps_previous_reminder(self, runtime) -> None:
        await runtime.commands.schedule("Pulse", "Check", 9, 0)

        await runtime.commands.schedule("Pulse", "Check", 25, 0)

        assert len(await runtime.engine.store.list_all()) == 2

    async def test_wake_failure_rolls_back_periodic(self, runtime) -> None:
        runtime.wake.register_once = AsyncMock(side_effect=SchedulingError("no wake"))

        result = await runtime.commands.schedule("Pulse", "Check", 9, 0)

        assert result.code == "SCHEDULING_ERROR"
        assert await runtime.periodic.get(TAG) is None
        assert _jobs(runtime, PERIODIC) == []

    async def test_periodic_failure_registers_nothing(self, runtime) -> None:
        runtime.periodic.register_periodic = AsyncMock(side_effect=SchedulingError("nope"))

        result = await runtime.commands.schedule("Pulse", "Check", 9, 0)

        assert result.code == "SCHEDULING_ERROR"
        assert await runtime.wake.get(TAG) is None

    async def test_clear_failure_reported(self, runtime) -> None:
        runtime.engine.remove = AsyncMock(side_effect=CancellationError("locked"))

        result = await runtime.commands.schedule("Pulse", "Check", 9, 0)
        assert result.code == "SCHEDULING_ERROR"

    async def test_works_with_sqlite_registry(self, sqlite_store, surface, clock) -> None:
        from pulse_reminder.scheduler.engine import SchedulerEngine

        engine = SchedulerEngine(store=sqlite_store, timezone=TZ, now_fn=clock)
        rt = build_runtime(store=sqlite_store, surface=surface, engine=engine)

        await rt.commands.schedule("Pulse", "Check", 9, 0)
        await rt.commands.schedule("Pulse", "Check", 9, 30)

        rows = await sqlite_store.list_all()
        assert sorted(r.kind for r in rows) == [PERIODIC, WAKE]
        assert all(r.run_at_datetime.minute == 30 for r in rows)


class TestCancel:
    async def test_cancels_both_paths(self, runtime) -> None:
        await runtime.commands.schedule("Pulse", "Check", 9, 0)

        result = await runtime.commands.cancel()

        assert result.data == {"cancelled": True, "tag": TAG}
        assert await runtime.engine.store.list_all() == []
        assert _jobs(runtime, PERIODIC) == []
        assert _jobs(runtime, WAKE) == []

    async def test_idempotent(self, runtime) -> None:
        first = await runtime.commands.cancel()
        second = await runtime.commands.cancel()

        assert first.success and second.success
        assert second.data["cancelled"] is False

    async def test_failure_reported(self, runtime) -> None:
        runtime.engine.remove = AsyncMock(side_effect=CancellationError("locked"))

        result = await runtime.commands.cancel()
        assert result.code == "CANCELLATION_ERROR"

    async def test_pending_wake_never_fires(self, runtime, backend) -> None:
        await runtime.commands.schedule("Pulse", "Check", 9, 0)
        wake = await runtime.wake.get(TAG)

        await runtime.commands.cancel()
        await runtime.engine._fire(TAG, WAKE, wake.revision)

        assert backend.shown == []


class TestShowNow:
    async def test_delivers_immediately(self, runtime, backend) -> None:
        result = await runtime.commands.show_now("T", "M")

        assert result.success
        assert len(backend.shown) == 1
        assert backend.shown[0].title == "T"
        assert result.data["handle"] == backend.shown[0].handle
        # Nothing scheduled
        assert await runtime.engine.store.list_all() == []

    async def test_delivery_failure(self, runtime, backend) -> None:
        backend.fail_with = DeliveryError("down")

        result = await runtime.commands.show_now("T", "M")
        assert result.code == "NOTIFICATION_ERROR"


class TestStatus:
    async def test_idle(self, runtime) -> None:
        result = await runtime.commands.status()

        assert result.data["active"] is False
        assert result.data["wake_state"] == "idle"
        assert result.data["paths"] == {"periodic": None, "wake": None}

    async def test_scheduled(self, runtime) -> None:
        await runtime.commands.schedule("Pulse", "Check", 9, 0)

        result = await runtime.commands.status()

        assert result.data["active"] is True
        assert result.data["wake_state"] == "armed"
        wake = result.data["paths"]["wake"]
        assert wake["title"] == "Pulse"
        assert wake["message"] == "Check"
        assert wake["revision"] == (await runtime.wake.get(TAG)).revision
        assert result.data["paths"]["periodic"]["run_at"] == (
            await runtime.periodic.get(TAG)
        ).run_at


async def test_scheduled_wake_fires_and_rearms(runtime, clock, backend) -> None:
    await runtime.commands.schedule("Pulse", "Check", 9, 0)
    wake = await runtime.wake.get(TAG)

    clock.now = datetime(2025, 6, 2, 9, 0, 2, tzinfo=TZ)
    await runtime.engine._fire(TAG, WAKE, wake.revision)

    assert [n.title for n in backend.shown] == ["Pulse"]
    nxt = await runtime.wake.get(TAG)
    assert nxt.run_at_datetime == datetime(2025, 6, 2, 9, 0, tzinfo=TZ) + timedelta(days=1)


async def test_periodic_cycle_delivers(runtime, clock, backend) -> None:
    await runtime.commands.schedule("Pulse", "Check", 9, 0)
    periodic = await runtime.periodic.get(TAG)

    await runtime.engine._fire(TAG, PERIODIC, periodic.revision)

    assert [n.title for n in backend.shown] == ["Pulse"]
    # Periodic registration survives its firing
    assert await runtime.periodic.get(TAG) is not None
