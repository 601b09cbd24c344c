"""ScheduleStore: aiosqlite CRUD for schedule configurations."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

import aiosqlite

from git_reporter.config import settings
from git_reporter.errors import NotFoundError
from git_reporter.scheduler.models import ScheduleConfig

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS schedules (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    repo_name TEXT NOT NULL,
    cron_expression TEXT NOT NULL,
    channel TEXT NOT NULL,
    recipient TEXT NOT NULL,
    template_id TEXT,
    active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    last_run TEXT,
    next_run TEXT
)
"""

_CREATE_INDEX = "CREATE INDEX IF NOT EXISTS schedules_owner_idx ON schedules (owner_id, active)"

# Columns that update_schedule() may touch
_UPDATABLE = frozenset({
    "repo_name",
    "cron_expression",
    "channel",
    "recipient",
    "template_id",
    "active",
    "last_run",
    "next_run",
})


class ScheduleStore:
    """Persists schedule configurations in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.execute(_CREATE_INDEX)
            await db.commit()
            self._initialised = True
        return db

    @staticmethod
    def _encode(column: str, value: Any) -> Any:
        if column == "active":
            return int(bool(value))
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    # -- CRUD ------------------------------------------------------------------

    async def create_schedule(self, config: ScheduleConfig) -> ScheduleConfig:
        """Insert a new schedule. Returns the same config object."""
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO schedules
                    (id, owner_id, repo_name, cron_expression, channel, recipient,
                     template_id, active, created_at, last_run, next_run)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                config.to_row(),
            )
            await db.commit()
            logger.info(
                "Created schedule %s (%s, owner=%s)", config.id, config.repo_name, config.owner_id
            )
            return config
        finally:
            await db.close()

    async def get_schedule(self, schedule_id: str) -> ScheduleConfig | None:
        """Fetch a schedule by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT * FROM schedules WHERE id = ?", (schedule_id,))
            row = await cursor.fetchone()
            return ScheduleConfig.from_row(row) if row else None
        finally:
            await db.close()

    async def list_schedules(
        self,
        *,
        active: bool | None = None,
        owner_id: str | None = None,
    ) -> list[ScheduleConfig]:
        """Return schedules, optionally filtered by active flag and owner."""
        clauses: list[str] = []
        params: list[Any] = []
        if active is not None:
            clauses.append("active = ?")
            params.append(int(active))
        if owner_id is not None:
            clauses.append("owner_id = ?")
            params.append(owner_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT * FROM schedules {where} ORDER BY created_at",  # noqa: S608
                tuple(params),
            )
            rows = await cursor.fetchall()
            return [ScheduleConfig.from_row(row) for row in rows]
        finally:
            await db.close()

    async def update_schedule(self, schedule_id: str, **patch: Any) -> ScheduleConfig:
        """Apply *patch* to a schedule and return the updated row.

        Raises NotFoundError if the schedule does not exist and ValueError
        for columns that cannot be updated.
        """
        unknown = set(patch) - _UPDATABLE
        if unknown:
            msg = f"Cannot update schedule columns: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        db = await self._connect()
        try:
            if patch:
                assignments = ", ".join(f"{col} = ?" for col in patch)
                values = tuple(self._encode(col, val) for col, val in patch.items())
                cursor = await db.execute(
                    f"UPDATE schedules SET {assignments} WHERE id = ?",  # noqa: S608
                    (*values, schedule_id),
                )
                await db.commit()
                if cursor.rowcount == 0:
                    msg = f"Schedule not found: {schedule_id}"
                    raise NotFoundError(msg)

            cursor = await db.execute("SELECT * FROM schedules WHERE id = ?", (schedule_id,))
            row = await cursor.fetchone()
            if row is None:
                msg = f"Schedule not found: {schedule_id}"
                raise NotFoundError(msg)
            return ScheduleConfig.from_row(row)
        finally:
            await db.close()

    async def delete_schedule(self, schedule_id: str) -> bool:
        """Delete a schedule. Returns True if a row was removed."""
        db = await self._connect()
        try:
            cursor = await db.execute("DELETE FROM schedules WHERE id = ?", (schedule_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
            if deleted:
                logger.info("Deleted schedule: %s", schedule_id)
            return deleted
        finally:
            await db.close()

    async def count_active(self, owner_id: str, *, exclude_id: str | None = None) -> int:
        """Count an owner's active schedules, optionally ignoring one id."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM schedules WHERE owner_id = ? AND active = 1 AND id != ?",
                (owner_id, exclude_id or ""),
            )
            row = await cursor.fetchone()
            return int(row[0]) if row else 0
        finally:
            await db.close()
