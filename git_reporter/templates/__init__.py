"""Report templates: model, rendering, builtins, and persistence."""

from git_reporter.templates.models import ReportTemplate, TemplateVariable
from git_reporter.templates.renderer import extract_variables, render, validate_template
from git_reporter.templates.store import TemplateStore

__all__ = [
    "ReportTemplate",
    "TemplateStore",
    "TemplateVariable",
    "extract_variables",
    "render",
    "validate_template",
]
