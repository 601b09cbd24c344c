"""ReportHistory: append-only log of generated reports."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite

from git_reporter.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS reports (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    repositories TEXT NOT NULL,
    content TEXT NOT NULL,
    recipient TEXT NOT NULL,
    channel TEXT NOT NULL,
    created_at TEXT NOT NULL
)
"""


@dataclass
class ExecutionRecord:
    """One report that was generated (and possibly sent)."""

    owner_id: str
    repositories: list[str]
    content: str
    recipient: str
    channel: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()

    def to_row(self) -> tuple:
        return (
            self.id,
            self.owner_id,
            json.dumps(self.repositories),
            self.content,
            self.recipient,
            self.channel,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ExecutionRecord:
        return cls(
            id=row[0],
            owner_id=row[1],
            repositories=json.loads(row[2]),
            content=row[3],
            recipient=row[4],
            channel=row[5],
            created_at=row[6],
        )


class ReportHistory:
    """Stores ExecutionRecords. Records are only ever appended."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    async def append(self, record: ExecutionRecord) -> ExecutionRecord:
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO reports
                    (id, owner_id, repositories, content, recipient, channel, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                record.to_row(),
            )
            await db.commit()
            logger.info(
                "Recorded report %s for %s via %s",
                record.id,
                ",".join(record.repositories),
                record.channel,
            )
            return record
        finally:
            await db.close()

    async def get(self, record_id: str) -> ExecutionRecord | None:
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT * FROM reports WHERE id = ?", (record_id,))
            row = await cursor.fetchone()
            return ExecutionRecord.from_row(row) if row else None
        finally:
            await db.close()

    async def list_for_owner(self, owner_id: str, limit: int = 50) -> list[ExecutionRecord]:
        """Return the owner's most recent records, newest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT * FROM reports WHERE owner_id = ? ORDER BY created_at DESC LIMIT ?",
                (owner_id, limit),
            )
            rows = await cursor.fetchall()
            return [ExecutionRecord.from_row(row) for row in rows]
        finally:
            await db.close()
