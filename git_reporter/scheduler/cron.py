"""Crontab parsing and next-run computation on top of APScheduler's CronTrigger.

APScheduler numbers weekdays from Monday (0 = mon), while crontab numbers
them from Sunday (0 and 7 = sun).  The weekday field is therefore expanded
into explicit day names before it reaches ``CronTrigger`` so that
``"0 17 * * 1-5"`` means Monday to Friday, as it does in crontab.
"""

from __future__ import annotations

import zoneinfo
from datetime import datetime, timedelta

from apscheduler.triggers.cron import CronTrigger

from git_reporter.errors import ValidationError

_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def _weekday_number(token: str) -> int:
    token = token.strip().lower()
    if token in _WEEKDAYS:
        return _WEEKDAYS.index(token)
    if not token.isdigit() or int(token) > 7:
        msg = f"invalid weekday '{token}'"
        raise ValueError(msg)
    return int(token)


def translate_day_of_week(field: str) -> str:
    """Convert a crontab weekday field into APScheduler weekday names."""
    if field == "*":
        return "*"

    days: set[int] = set()
    for item in field.split(","):
        span, _, step_text = item.partition("/")
        if step_text and (not step_text.isdigit() or int(step_text) == 0):
            msg = f"invalid step '{step_text}'"
            raise ValueError(msg)
        step = int(step_text) if step_text else 1

        if span == "*":
            start, end = 0, 6
        elif "-" in span:
            first, last = span.split("-", 1)
            start, end = _weekday_number(first), _weekday_number(last)
        else:
            start = _weekday_number(span)
            # "a/n" runs from a to the end of the week
            end = 7 if step_text else start

        if start > end:
            msg = f"invalid weekday range '{span}'"
            raise ValueError(msg)
        days.update(day % 7 for day in range(start, end + 1, step))

    return ",".join(_WEEKDAYS[day] for day in sorted(days))


def build_trigger(expression: str, timezone: str) -> CronTrigger:
    """Parse a 5-field crontab expression into a CronTrigger.

    Raises ValidationError if the expression is malformed.
    """
    fields = (expression or "").split()
    if len(fields) != 5:
        msg = f"Invalid cron expression '{expression}': expected 5 fields, got {len(fields)}"
        raise ValidationError(msg)

    minute, hour, day, month, day_of_week = fields
    try:
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=translate_day_of_week(day_of_week),
            timezone=timezone,
        )
    except ValueError as exc:
        msg = f"Invalid cron expression '{expression}': {exc}"
        raise ValidationError(msg) from exc


def validate_cron(expression: str) -> None:
    """Raise ValidationError unless *expression* is a valid crontab expression."""
    build_trigger(expression, "UTC")


def get_next_run(expression: str, now: datetime | None, timezone: str) -> datetime:
    """Return the first fire time strictly after *now*, in *timezone*.

    A naive *now* is interpreted in *timezone*.  Deterministic for a fixed
    *now*.
    """
    trigger = build_trigger(expression, timezone)
    if now is None:
        now = datetime.now(zoneinfo.ZoneInfo(timezone))
    elif now.tzinfo is None:
        now = now.replace(tzinfo=zoneinfo.ZoneInfo(timezone))

    # CronTrigger returns times >= its start; nudge past now to make it strict
    next_fire = trigger.get_next_fire_time(None, now + timedelta(microseconds=1))
    if next_fire is None:
        msg = f"Cron expression '{expression}' never fires"
        raise ValidationError(msg)
    return next_fire
