"""Exceptions for gitoverlay.

Every workspace operation either succeeds or raises exactly one
:class:`WorkspaceError` subclass.  Nothing here retries: retrying after a
:class:`NetworkError` or :class:`RateLimitedError` is the caller's decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "Severity", "Notice", "describe",
    "WorkspaceError", "NotFoundError", "RefNotFoundError", "RateLimitedError",
    "AuthRejectedError", "StaleParentError", "ValidationError",
    "CommitInProgressError", "ContentUnavailableError", "NetworkError",
    "RemoteRejectedError",
]


class Severity(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """A single human-readable message plus its severity."""

    message: str
    severity: Severity = Severity.INFO


class WorkspaceError(Exception):
    """Base class for all typed workspace failures."""

    severity = Severity.ERROR

    def notice(self) -> Notice:
        return Notice(str(self), self.severity)


class NotFoundError(WorkspaceError):
    """Repository, branch or path does not exist (or the tree is empty)."""


class RefNotFoundError(NotFoundError):
    """The branch ref could not be resolved."""


class RateLimitedError(WorkspaceError):
    """The remote reported zero remaining requests."""

    severity = Severity.WARNING


class AuthRejectedError(WorkspaceError):
    """The credential was missing, invalid or lacks permission."""


class StaleParentError(WorkspaceError):
    """Raised when the branch moved between reading its head and updating it.

    The staged changes are left untouched; re-run the commit to publish them
    on top of the new head.
    """


class ValidationError(WorkspaceError):
    """Input rejected before any remote call was made."""

    severity = Severity.WARNING


class CommitInProgressError(ValidationError):
    """A commit is already running for this workspace."""


class ContentUnavailableError(WorkspaceError):
    """Source content for a rename could not be resolved."""


class NetworkError(WorkspaceError):
    """Transport failure, timeout or server-side error."""


class RemoteRejectedError(WorkspaceError):
    """The remote refused a request for a reason not covered above."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


def describe(exc: BaseException) -> Notice:
    """Return the user-facing :class:`Notice` for *exc*."""
    if isinstance(exc, WorkspaceError):
        return exc.notice()
    return Notice(f"Unexpected error: {exc}", Severity.ERROR)
