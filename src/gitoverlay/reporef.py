"""Repository reference parsing.

Accepts the forms a user is likely to paste:

- Short: ``owner/repo``
- HTTPS: ``https://github.com/owner/repo`` (optionally ending in ``.git``
  or followed by more path, e.g. ``/tree/main``)
- SSH: ``git@github.com:owner/repo.git``
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

__all__ = ["RepoRef", "parse_repo_ref"]

_NAME = r"[A-Za-z0-9_.-]+"
_SHORT_RE = re.compile(rf"^({_NAME})/({_NAME})$")
_HTTPS_RE = re.compile(rf"^https?://[^/]+/({_NAME})/({_NAME})(?:/.*)?$")
_SSH_RE = re.compile(rf"^[^@\s]+@[^:\s]+:({_NAME})/({_NAME})$")


@dataclass(frozen=True)
class RepoRef:
    """An ``owner/repo`` pair."""

    owner: str
    name: str

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def api_path(self) -> str:
        return f"repos/{self.owner}/{self.name}"


def _strip_git_suffix(name: str) -> str:
    return name[:-4] if name.endswith(".git") else name


def parse_repo_ref(value: str | RepoRef) -> RepoRef:
    """Parse *value* into a :class:`RepoRef`.

    Raises:
        ValidationError: If *value* is empty or not a recognised form.
    """
    if isinstance(value, RepoRef):
        return value
    text = (value or "").strip().rstrip("/")
    if not text:
        raise ValidationError("Repository reference must not be empty")

    for pattern in (_SHORT_RE, _HTTPS_RE, _SSH_RE):
        match = pattern.match(text)
        if match:
            owner, name = match.group(1), _strip_git_suffix(match.group(2))
            if owner in (".", "..") or name in ("", ".", ".."):
                break
            return RepoRef(owner, name)

    logger.debug(f"Rejected repository reference {value!r}")
    raise ValidationError(
        f"Invalid repository reference: {value!r} (use a URL or owner/repo)"
    )
