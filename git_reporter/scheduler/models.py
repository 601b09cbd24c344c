"""ScheduleConfig data model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

CHANNELS = ("email", "message")


@dataclass
class ScheduleConfig:
    """A recurring report for one repository.

    Attributes:
        id: Unique identifier (UUID hex).
        owner_id: The user who owns the schedule.
        repo_name: Target repository in ``owner/repo`` form.
        cron_expression: Standard 5-field crontab expression.
        channel: Delivery channel, ``"email"`` or ``"message"``.
        recipient: Email address or phone number, depending on *channel*.
        template_id: Linked report template (None → default listing).
        active: Whether the schedule has a live job.
        created_at: Creation time (UTC).
        last_run: End of the last successfully fetched window.
        next_run: Next planned firing.
    """

    id: str
    owner_id: str
    repo_name: str
    cron_expression: str
    channel: str
    recipient: str
    template_id: str | None = None
    active: bool = True
    created_at: datetime | None = None
    last_run: datetime | None = None
    next_run: datetime | None = None

    def __post_init__(self) -> None:
        if self.created_at is None:
            self.created_at = datetime.now(UTC)

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``schedules`` column order."""
        return (
            self.id,
            self.owner_id,
            self.repo_name,
            self.cron_expression,
            self.channel,
            self.recipient,
            self.template_id,
            int(self.active),
            _to_iso(self.created_at),
            _to_iso(self.last_run),
            _to_iso(self.next_run),
        )

    @classmethod
    def from_row(cls, row: tuple) -> ScheduleConfig:
        """Deserialize from a SQLite row tuple."""
        return cls(
            id=row[0],
            owner_id=row[1],
            repo_name=row[2],
            cron_expression=row[3],
            channel=row[4],
            recipient=row[5],
            template_id=row[6],
            active=bool(row[7]),
            created_at=_from_iso(row[8]),
            last_run=_from_iso(row[9]),
            next_run=_from_iso(row[10]),
        )


def make_schedule_id() -> str:
    """Generate a new schedule ID."""
    return uuid.uuid4().hex


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    # Rows written by hand may lack an offset; treat them as UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
