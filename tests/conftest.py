"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from git_reporter.reports.history import ReportHistory
from git_reporter.scheduler.store import ScheduleStore
from git_reporter.templates.store import TemplateStore


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def schedule_store(db_path: Path) -> ScheduleStore:
    return ScheduleStore(db_path=db_path)


@pytest.fixture
def template_store(db_path: Path) -> TemplateStore:
    return TemplateStore(db_path=db_path)


@pytest.fixture
def history(db_path: Path) -> ReportHistory:
    return ReportHistory(db_path=db_path)
