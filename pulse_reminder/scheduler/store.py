"""Schedule store: the durable registry of scheduled tasks.

Every cross-invocation fact lives here, keyed by ``(tag, kind)``. Firings
re-read the registry instead of trusting anything held in memory, so a
process restart between registration and firing changes nothing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import aiosqlite

from pulse_reminder.config import settings
from pulse_reminder.scheduler.models import Registration

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS registrations (
    tag TEXT NOT NULL,
    kind TEXT NOT NULL,
    payload TEXT NOT NULL,
    run_at TEXT NOT NULL,
    interval_seconds INTEGER,
    tolerance_seconds INTEGER,
    preconditions TEXT NOT NULL DEFAULT '{}',
    revision TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (tag, kind)
)
"""

_COLUMNS = (
    "tag, kind, payload, run_at, interval_seconds, tolerance_seconds,"
    " preconditions, revision, created_at"
)


@runtime_checkable
class ScheduleStore(Protocol):
    """Registry contract: at most one registration per ``(tag, kind)``."""

    async def register(self, registration: Registration) -> Registration:
        """Install *registration*, atomically superseding any previous one."""
        ...

    async def get(self, tag: str, kind: str) -> Registration | None:
        ...

    async def list_all(self) -> list[Registration]:
        ...

    async def cancel(self, tag: str, kind: str | None = None) -> int:
        """Remove registrations for *tag* (one kind or all). Returns the count."""
        ...

    async def consume(self, tag: str, kind: str, revision: str) -> bool:
        """Delete the row only if it still holds *revision*."""
        ...


class SqliteScheduleStore:
    """Persists registrations in SQLite.

    Singleton accessed via ``SqliteScheduleStore.get()``. Pass an explicit
    *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: SqliteScheduleStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    @classmethod
    def get(cls) -> SqliteScheduleStore:
        """Return the shared store instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        await db.execute("PRAGMA busy_timeout=5000")
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    # -- Registry operations ---------------------------------------------------

    async def register(self, registration: Registration) -> Registration:
        """Insert or replace the registration for its ``(tag, kind)``."""
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT OR REPLACE INTO registrations ({_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                registration.to_row(),
            )
            await db.commit()
            logger.info(
                "Registered %s for tag %s (revision %s, run_at %s)",
                registration.kind,
                registration.tag,
                registration.revision,
                registration.run_at,
            )
            return registration
        finally:
            await db.close()

    async def get(self, tag: str, kind: str) -> Registration | None:
        """Fetch the registration for ``(tag, kind)``, or None."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM registrations WHERE tag = ? AND kind = ?",
                (tag, kind),
            )
            row = await cursor.fetchone()
            return Registration.from_row(row) if row else None
        finally:
            await db.close()

    async def list_all(self) -> list[Registration]:
        """Return every registration, oldest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM registrations ORDER BY created_at"
            )
            rows = await cursor.fetchall()
            return [Registration.from_row(row) for row in rows]
        finally:
            await db.close()

    async def cancel(self, tag: str, kind: str | None = None) -> int:
        """Delete registrations for *tag*. Idempotent; returns rows removed."""
        db = await self._connect()
        try:
            if kind is None:
                cursor = await db.execute(
                    "DELETE FROM registrations WHERE tag = ?", (tag,)
                )
            else:
                cursor = await db.execute(
                    "DELETE FROM registrations WHERE tag = ? AND kind = ?", (tag, kind)
                )
            await db.commit()
            removed = cursor.rowcount
            if removed:
                logger.info("Cancelled %d registration(s) for tag %s", removed, tag)
            return removed
        finally:
            await db.close()

    async def consume(self, tag: str, kind: str, revision: str) -> bool:
        """Delete ``(tag, kind)`` if it is still at *revision*."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "DELETE FROM registrations WHERE tag = ? AND kind = ? AND revision = ?",
                (tag, kind, revision),
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()
