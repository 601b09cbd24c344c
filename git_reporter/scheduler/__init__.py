"""Scheduled report system: models, persistence, execution, and scheduling."""

from git_reporter.scheduler.engine import SchedulerEngine
from git_reporter.scheduler.executor import ExecutionResult, ReportExecutor
from git_reporter.scheduler.models import ScheduleConfig
from git_reporter.scheduler.service import ScheduleService
from git_reporter.scheduler.store import ScheduleStore

__all__ = [
    "ExecutionResult",
    "ReportExecutor",
    "ScheduleConfig",
    "ScheduleService",
    "ScheduleStore",
    "SchedulerEngine",
]
