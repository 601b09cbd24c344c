"""Error taxonomy shared by the scheduler, pipeline, and stores."""

from __future__ import annotations


class ReporterError(Exception):
    """Base class for all git-reporter errors."""


class ValidationError(ReporterError):
    """Input rejected before any state was mutated.

    Raised for malformed cron expressions, missing required fields, an
    exceeded active-schedule cap, or an attempt to modify a builtin template.
    """


class NotFoundError(ReporterError):
    """An operation targeted an unknown schedule or template id."""


class ExternalServiceError(ReporterError):
    """A call to GitHub or a notification transport failed.

    Attributes:
        service: The remote side, e.g. ``"github"`` or ``"email"``.
        stage: Pipeline stage the call belonged to (``"fetch"``, ``"dispatch"``...).
    """

    def __init__(self, service: str, stage: str, message: str) -> None:
        super().__init__(f"{service} {stage} failed: {message}")
        self.service = service
        self.stage = stage


class PartialEnrichmentFailure(ReporterError):
    """Stats for a single commit could not be fetched.

    Never raised out of the pipeline: it is collected on the activity
    summary and the commit contributes zero additions and deletions.
    """

    def __init__(self, sha: str, cause: BaseException | str) -> None:
        super().__init__(f"enrichment failed for commit {sha[:7]}: {cause}")
        self.sha = sha
        self.cause = cause
