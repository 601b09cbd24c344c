"""Template rendering: ``{{ name }}`` substitution with lenient validation.

Rendering is total.  Unknown placeholders are logged and left in the output
verbatim, so a template that references a variable the pipeline does not
provide still produces a report.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from git_reporter.errors import ValidationError

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")

Variables = Mapping[str, Any] | Iterable[tuple[str, Any]]


def _pairs(variables: Variables) -> list[tuple[str, Any]]:
    if isinstance(variables, Mapping):
        return list(variables.items())
    return list(variables)


def _commit_fields(item: Any) -> tuple[str, str] | None:
    """Return (message, sha) if *item* looks like a commit, else None."""
    if isinstance(item, Mapping):
        if item.get("message"):
            return str(item["message"]), str(item.get("sha") or "")
        return None
    message = getattr(item, "message", None)
    if isinstance(message, str) and message:
        return message, str(getattr(item, "sha", "") or "")
    return None


def _format_list_item(index: int, item: Any) -> str:
    commit = _commit_fields(item)
    if commit is not None:
        message, sha = commit
        if sha:
            return f"{index}. {message} ({sha[:7]})"
        return f"{index}. {message}"
    return f"{index}. {format_value(item)}"


def format_value(value: Any) -> str:
    """Convert a context value to its string form for substitution."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return "\n".join(_format_list_item(i, item) for i, item in enumerate(value, start=1))
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    if isinstance(value, Mapping):
        return json.dumps(value, indent=2, default=str, ensure_ascii=False)
    return str(value)


def render(content: str, variables: Variables) -> str:
    """Substitute every ``{{ name }}`` in *content* with its variable's value.

    *variables* is a mapping or an ordered iterable of ``(name, value)`` pairs.
    Never raises; placeholders without a value are kept as-is and logged.
    """
    rendered = content
    pairs = _pairs(variables)
    for name, value in pairs:
        try:
            replacement = format_value(value)
        except Exception:  # noqa: BLE001
            logger.warning("Could not format variable %r; using repr()", name, exc_info=True)
            replacement = repr(value)
        pattern = re.compile(r"\{\{\s*" + re.escape(name) + r"\s*\}\}")
        rendered = pattern.sub(lambda _match, text=replacement: text, rendered)

    unresolved = [match.group(0) for match in _PLACEHOLDER.finditer(rendered)]
    if unresolved:
        logger.warning("Unresolved template variables: %s", ", ".join(unresolved))

    logger.debug("Rendered template with %d variable(s) (%d chars)", len(pairs), len(rendered))
    return rendered


def extract_variables(content: str) -> list[str]:
    """Return placeholder names in *content*, in order of first appearance."""
    names: list[str] = []
    for match in _PLACEHOLDER.finditer(content or ""):
        name = match.group(1).strip()
        if name and name not in names:
            names.append(name)
    return names


def validate_template(content: str, declared: Iterable[str] = ()) -> None:
    """Check template content at create/update time.

    Empty content is rejected with ValidationError.  Any mismatch between
    the declared variables and the placeholders actually used is only
    logged.
    """
    if not content or not content.strip():
        msg = "Template content must not be empty"
        raise ValidationError(msg)

    used = extract_variables(content)
    declared = list(declared)
    undeclared = [name for name in used if name not in declared]
    unused = [name for name in declared if name not in used]
    if undeclared:
        logger.warning("Template uses undeclared variables: %s", ", ".join(undeclared))
    if unused:
        logger.warning("Template declares unused variables: %s", ", ".join(unused))
