"""SchedulerEngine: APScheduler lifecycle and registry-backed job management.

The engine plays the part of the host's scheduling subsystem. The registry
(``ScheduleStore``) is the only source of truth; APScheduler jobs are a
derived, rebuildable view of it. Every firing enters through ``_fire``, which
re-reads the registry before invoking a handler.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from pulse_reminder.config import settings
from pulse_reminder.errors import CancellationError, SchedulingError
from pulse_reminder.scheduler.clock import local_now
from pulse_reminder.scheduler.models import (
    KINDS,
    WAKE,
    FiringContext,
    WorkResult,
    job_id_for,
)
from pulse_reminder.scheduler.preconditions import Preconditions, preconditions_met

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime, tzinfo

    from pulse_reminder.scheduler.models import Registration
    from pulse_reminder.scheduler.store import ScheduleStore

    Handler = Callable[[Registration, FiringContext], Awaitable[WorkResult | None]]

logger = logging.getLogger(__name__)

_SYNC_JOB_ID = "__registry_sync__"
_DAY_SECONDS = 24 * 60 * 60


def _retry_job_id(job_id: str) -> str:
    return f"{job_id}:retry"


class SchedulerEngine:
    """Maps registry entries to APScheduler jobs and dispatches firings.

    Args:
        store: The registry every firing is checked against.
        timezone: Zone for triggers (default from settings).
        now_fn: Clock override, for tests.
        max_attempts: Periodic cycle attempts before giving up on a retry.
        backoff_seconds: Base delay of the exponential retry backoff.
        sync_seconds: How often the registry is reconciled while running.
    """

    def __init__(
        self,
        store: ScheduleStore,
        timezone: tzinfo | None = None,
        now_fn: Callable[[], datetime] | None = None,
        max_attempts: int | None = None,
        backoff_seconds: int | None = None,
        sync_seconds: int | None = None,
    ) -> None:
        self._store = store
        self._timezone = timezone or settings.get_timezone()
        self._now = now_fn or (lambda: local_now(self._timezone))
        self._max_attempts = max_attempts or settings.worker_max_attempts
        self._backoff_seconds = backoff_seconds or settings.worker_backoff_seconds
        self._sync_seconds = sync_seconds or settings.registry_poll_seconds
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._handlers: dict[str, Handler] = {}
        self._revisions: dict[str, str] = {}
        self._firing: set[str] = set()
        self._cancelled_while_firing: set[str] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def store(self) -> ScheduleStore:
        return self._store

    def now(self) -> datetime:
        return self._now()

    def set_handler(self, kind: str, handler: Handler) -> None:
        """Route firings of *kind* to *handler*."""
        if kind not in KINDS:
            msg = f"Unknown registration kind: {kind}"
            raise ValueError(msg)
        self._handlers[kind] = handler

    def is_firing(self, tag: str, kind: str) -> bool:
        return job_id_for(tag, kind) in self._firing

    def was_cancelled_while_firing(self, tag: str, kind: str) -> bool:
        """True if remove() hit this slot while its current firing was running."""
        return job_id_for(tag, kind) in self._cancelled_while_firing

    def next_run_time(self, tag: str, kind: str) -> datetime | None:
        """Next planned run of the live job, or None if there is none."""
        job = self._scheduler.get_job(job_id_for(tag, kind))
        if job is None:
            return None
        # Jobs added before start() have no next_run_time yet
        return getattr(job, "next_run_time", None)

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Rebuild jobs from the registry and start the scheduler."""
        registrations = await self._store.list_all()
        now = self._now()
        missed = [
            r for r in registrations if not r.is_periodic and r.run_at_datetime <= now
        ]
        for registration in registrations:
            self._add_job(registration)
        self._scheduler.add_job(
            self.sync,
            trigger=IntervalTrigger(seconds=self._sync_seconds, timezone=self._timezone),
            id=_SYNC_JOB_ID,
            name="registry sync",
            coalesce=True,
            max_instances=1,
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        if missed:
            logger.warning(
                "%d wake-up(s) were due while the host was down; firing on catch-up",
                len(missed),
            )
        logger.info(
            "Scheduler started with %d registration(s) (tz=%s)",
            len(registrations),
            self._timezone,
        )

    async def stop(self) -> None:
        """Shut down the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    # -- Registry commands -----------------------------------------------------

    async def install(self, registration: Registration) -> Registration:
        """Persist *registration* and (re)build its job.

        Supersedes whatever was registered under the same ``(tag, kind)``.

        Raises:
            SchedulingError: If either the registry write or the job failed.
                Nothing from this call is left behind on failure.
        """
        try:
            await self._store.register(registration)
        except Exception as exc:
            msg = f"Could not register {registration.kind} task for tag {registration.tag}"
            raise SchedulingError(msg) from exc

        try:
            self._add_job(registration)
        except Exception as exc:
            try:
                await self._store.consume(
                    registration.tag, registration.kind, registration.revision
                )
            except Exception:
                logger.exception("Rollback of %s failed", registration.job_id)
            msg = f"Could not schedule {registration.kind} job for tag {registration.tag}"
            raise SchedulingError(msg) from exc

        logger.info(
            "Installed %s (revision %s, run_at %s)",
            registration.job_id,
            registration.revision,
            registration.run_at,
        )
        return registration

    async def remove(self, tag: str, kind: str | None = None) -> int:
        """Drop registrations, jobs and pending retries for *tag*. Idempotent.

        Raises:
            CancellationError: If the registry could not be updated.
        """
        try:
            removed = await self._store.cancel(tag, kind)
        except Exception as exc:
            msg = f"Could not cancel registrations for tag {tag}"
            raise CancellationError(msg) from exc

        for k in [kind] if kind else KINDS:
            job_id = job_id_for(tag, k)
            if job_id in self._firing:
                self._cancelled_while_firing.add(job_id)
            self._drop_job(job_id)
        return removed

    async def sync(self) -> None:
        """Reconcile live jobs with the registry.

        Picks up registrations written by other processes and drops jobs
        whose registration is gone or superseded.
        """
        before = dict(self._revisions)
        try:
            registrations = await self._store.list_all()
        except Exception:
            logger.exception("Registry sync failed")
            return

        # Jobs installed or consumed in-process during the read are newer
        # than the snapshot
        skip = self._firing | {
            job_id
            for job_id in before.keys() | self._revisions.keys()
            if before.get(job_id) != self._revisions.get(job_id)
        }
        desired = {r.job_id: r for r in registrations}
        changes = 0
        for job_id in list(self._revisions):
            if job_id in skip:
                continue
            if job_id not in desired:
                self._drop_job(job_id)
                changes += 1
        for job_id, registration in desired.items():
            if job_id in skip:
                continue
            if self._revisions.get(job_id) != registration.revision:
                self._add_job(registration)
                changes += 1
        if changes:
            logger.info("Registry sync applied %d change(s)", changes)

    # -- Internal --------------------------------------------------------------

    def _add_job(self, registration: Registration):
        """Create the APScheduler job for *registration*. Returns the Job."""
        # replace_existing is not enforced for jobs queued before start()
        self._remove_job(registration.job_id)
        job = self._scheduler.add_job(
            self._fire,
            trigger=self._build_trigger(registration),
            id=registration.job_id,
            name=f"{registration.kind} reminder ({registration.tag})",
            args=[registration.tag, registration.kind, registration.revision],
            misfire_grace_time=None,
            coalesce=True,
            max_instances=1,
            replace_existing=True,
        )
        self._revisions[registration.job_id] = registration.revision
        return job

    def _remove_job(self, job_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            logger.debug("Job %s not found in scheduler (may already be removed)", job_id)

    def _drop_job(self, job_id: str) -> None:
        self._remove_job(job_id)
        self._remove_job(_retry_job_id(job_id))
        self._revisions.pop(job_id, None)

    def _build_trigger(self, registration: Registration):
        """Convert a registration into an APScheduler trigger."""
        run_at = registration.run_at_datetime.astimezone(self._timezone)
        if registration.is_periodic:
            interval = registration.interval_seconds or _DAY_SECONDS
            if interval == _DAY_SECONDS:
                # Each fire time is derived from the wall-clock fields, so
                # jitter never accumulates across cycles
                return CronTrigger(
                    hour=run_at.hour,
                    minute=run_at.minute,
                    second=run_at.second,
                    start_date=run_at,
                    timezone=self._timezone,
                    jitter=registration.tolerance_seconds or None,
                )
            # IntervalTrigger steps from the previous fire time; jitter would drift
            return IntervalTrigger(
                seconds=interval, start_date=run_at, timezone=self._timezone
            )
        return DateTrigger(run_date=run_at, timezone=self._timezone)

    async def _fire(
        self, tag: str, kind: str, revision: str, attempt: int = 0
    ) -> WorkResult | None:
        """Callback invoked by APScheduler. Never raises."""
        job_id = job_id_for(tag, kind)
        try:
            registration = await self._store.get(tag, kind)
            if registration is None or registration.revision != revision:
                logger.info("Skipping stale firing of %s (revision %s)", job_id, revision)
                return None

            now = self._now()
            if kind == WAKE:
                if not await self._store.consume(tag, kind, revision):
                    logger.info("Wake %s was superseded before it fired", job_id)
                    return None
                if self._revisions.get(job_id) == revision:
                    self._revisions.pop(job_id)
                # Stored offsets are fixed; wall-clock arithmetic needs the zone
                scheduled_for = registration.run_at_datetime.astimezone(self._timezone)
            else:
                preconditions = Preconditions.from_dict(registration.preconditions)
                if not preconditions_met(preconditions):
                    logger.info("Skipping cycle of %s: preconditions unmet", job_id)
                    return None
                scheduled_for = now

            handler = self._handlers.get(kind)
            if handler is None:
                logger.warning("No handler registered for %s firings", kind)
                return None

            context = FiringContext(
                tag=tag,
                kind=kind,
                revision=revision,
                scheduled_for=scheduled_for,
                fired_at=now,
                attempt=attempt,
            )
            logger.info("Firing %s (attempt %d)", job_id, attempt + 1)
            self._firing.add(job_id)
            try:
                result = await handler(registration, context)
            finally:
                self._firing.discard(job_id)
                self._cancelled_while_firing.discard(job_id)

            if result is WorkResult.RETRY:
                self._schedule_retry(registration, attempt)
            return result
        except Exception:
            logger.exception("Firing of %s failed", job_id)
            return None

    def _schedule_retry(self, registration: Registration, attempt: int) -> None:
        """Re-run a failed cycle after an exponential backoff."""
        next_attempt = attempt + 1
        if next_attempt >= self._max_attempts:
            logger.warning(
                "Giving up on this cycle of %s after %d attempt(s)",
                registration.job_id,
                next_attempt,
            )
            return
        delay = timedelta(seconds=self._backoff_seconds * 2**attempt)
        retry_id = _retry_job_id(registration.job_id)
        self._remove_job(retry_id)
        self._scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=self._now() + delay, timezone=self._timezone),
            id=retry_id,
            name=f"{registration.kind} reminder retry ({registration.tag})",
            args=[registration.tag, registration.kind, registration.revision, next_attempt],
            misfire_grace_time=None,
            replace_existing=True,
        )
        logger.info(
            "Retrying %s in %ds (attempt %d)",
            registration.job_id,
            int(delay.total_seconds()),
            next_attempt + 1,
        )
