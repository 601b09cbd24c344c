"""ReportTemplate data model."""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime


@dataclass
class TemplateVariable:
    """A variable a template declares it uses."""

    name: str
    description: str = ""
    example: str = ""


@dataclass
class ReportTemplate:
    """A report body with ``{{name}}`` placeholders.

    Attributes:
        id: Unique identifier (UUID hex).
        name: Human-readable name.
        content: Template text.
        variables: Declared variables (informational; not enforced).
        description: Optional longer description.
        owner_id: Owning user, or None for builtin templates.
        builtin: Builtin templates are shared and immutable.
        created_at: ISO 8601 timestamp.
        updated_at: ISO 8601 timestamp.
    """

    id: str
    name: str
    content: str
    variables: list[TemplateVariable] = field(default_factory=list)
    description: str = ""
    owner_id: str | None = None
    builtin: bool = False
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()
        if not self.updated_at:
            self.updated_at = self.created_at
        self.variables = [
            v if isinstance(v, TemplateVariable) else TemplateVariable(**v)
            for v in self.variables
        ]

    @property
    def variable_names(self) -> list[str]:
        return [v.name for v in self.variables]

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``report_templates`` column order."""
        return (
            self.id,
            self.owner_id,
            self.name,
            self.description,
            self.content,
            json.dumps([asdict(v) for v in self.variables]),
            int(self.builtin),
            self.created_at,
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ReportTemplate:
        """Deserialize from a SQLite row tuple."""
        return cls(
            id=row[0],
            owner_id=row[1],
            name=row[2],
            description=row[3] or "",
            content=row[4],
            variables=json.loads(row[5]) if row[5] else [],
            builtin=bool(row[6]),
            created_at=row[7],
            updated_at=row[8],
        )


def make_template_id() -> str:
    """Generate a new template ID."""
    return uuid.uuid4().hex
