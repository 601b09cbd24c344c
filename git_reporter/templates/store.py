"""TemplateStore: aiosqlite CRUD for report templates."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import aiosqlite

from git_reporter.config import settings
from git_reporter.errors import NotFoundError, ValidationError
from git_reporter.templates.builtin import BUILTIN_TEMPLATES
from git_reporter.templates.models import ReportTemplate, TemplateVariable
from git_reporter.templates.renderer import validate_template

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS report_templates (
    id TEXT PRIMARY KEY,
    owner_id TEXT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL,
    variables TEXT NOT NULL DEFAULT '[]',
    builtin INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

_INSERT = """
INSERT INTO report_templates
    (id, owner_id, name, description, content, variables, builtin, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_INSERT_OR_IGNORE = _INSERT.replace("INSERT", "INSERT OR IGNORE", 1)


class TemplateStore:
    """Persists report templates in SQLite.

    Builtin templates are shared by every owner and cannot be modified.
    """

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

    async def seed_builtin(self) -> int:
        """Insert any missing builtin templates. Returns how many were added."""
        db = await self._connect()
        try:
            added = 0
            for template in BUILTIN_TEMPLATES:
                cursor = await db.execute(_INSERT_OR_IGNORE, template.to_row())
                added += cursor.rowcount
            await db.commit()
            if added:
                logger.info("Seeded %d builtin template(s)", added)
            return added
        finally:
            await db.close()

    async def create_template(self, template: ReportTemplate) -> ReportTemplate:
        """Validate and insert a user template."""
        validate_template(template.content, template.variable_names)
        if template.builtin:
            msg = "Builtin templates cannot be created by users"
            raise ValidationError(msg)
        db = await self._connect()
        try:
            await db.execute(_INSERT, template.to_row())
            await db.commit()
            logger.info("Created template: %s (%s)", template.name, template.id)
            return template
        finally:
            await db.close()

    async def get_template(self, template_id: str) -> ReportTemplate | None:
        """Fetch a template by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT * FROM report_templates WHERE id = ?", (template_id,)
            )
            row = await cursor.fetchone()
            return ReportTemplate.from_row(row) if row else None
        finally:
            await db.close()

    async def list_for_owner(self, owner_id: str) -> list[ReportTemplate]:
        """Return builtin templates followed by the owner's templates."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT * FROM report_templates WHERE builtin = 1 OR owner_id = ?"
                " ORDER BY builtin DESC, created_at",
                (owner_id,),
            )
            rows = await cursor.fetchall()
            return [ReportTemplate.from_row(row) for row in rows]
        finally:
            await db.close()

    async def _get_mutable(self, template_id: str) -> ReportTemplate:
        existing = await self.get_template(template_id)
        if existing is None:
            msg = f"Template not found: {template_id}"
            raise NotFoundError(msg)
        if existing.builtin:
            msg = f"Builtin template '{existing.name}' cannot be modified"
            raise ValidationError(msg)
        return existing

    async def update_template(self, template_id: str, **changes: Any) -> ReportTemplate:
        """Update name, description, content, or variables of a user template."""
        existing = await self._get_mutable(template_id)
        allowed = {"name", "description", "content", "variables"}
        unknown = set(changes) - allowed
        if unknown:
            msg = f"Cannot update template fields: {', '.join(sorted(unknown))}"
            raise ValidationError(msg)

        if "variables" in changes:
            changes["variables"] = [
                v if isinstance(v, TemplateVariable) else TemplateVariable(**v)
                for v in changes["variables"]
            ]
        updated = replace(existing, **changes, updated_at=datetime.now(UTC).isoformat())
        validate_template(updated.content, updated.variable_names)

        row = updated.to_row()
        db = await self._connect()
        try:
            await db.execute(
                """
                UPDATE report_templates
                SET name = ?, description = ?, content = ?, variables = ?, updated_at = ?
                WHERE id = ?
                """,
                (row[2], row[3], row[4], row[5], row[8], template_id),
            )
            await db.commit()
            logger.info("Updated template: %s", template_id)
            return updated
        finally:
            await db.close()

    async def delete_template(self, template_id: str) -> None:
        """Delete a user template. Builtins are rejected."""
        await self._get_mutable(template_id)
        db = await self._connect()
        try:
            await db.execute("DELETE FROM report_templates WHERE id = ?", (template_id,))
            await db.commit()
            logger.info("Deleted template: %s", template_id)
        finally:
            await db.close()
