"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .exceptions import ValidationError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_API_VERSION = "2022-11-28"
DEFAULT_TIMEOUT = 30.0
DEFAULT_BRANCH = "main"


@dataclass(frozen=True)
class Settings:
    """Settings for talking to the GitHub API.

    Attributes:
        token: Personal access token, or ``None`` for anonymous access.
        api_url: Base URL of the REST API (GitHub Enterprise uses another).
        api_version: Value of the ``X-GitHub-Api-Version`` header.
        timeout: Per-request timeout in seconds.
    """

    token: str | None = None
    api_url: str = DEFAULT_API_URL
    api_version: str = DEFAULT_API_VERSION
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ=None) -> Settings:
        """Build settings from ``GITOVERLAY_*`` variables.

        ``GITHUB_TOKEN`` is used when ``GITOVERLAY_TOKEN`` is unset.
        """
        env = os.environ if environ is None else environ
        token = env.get("GITOVERLAY_TOKEN") or env.get("GITHUB_TOKEN") or None
        raw_timeout = env.get("GITOVERLAY_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
        except ValueError:
            raise ValidationError(f"Invalid GITOVERLAY_TIMEOUT: {raw_timeout!r}")
        if timeout <= 0:
            raise ValidationError(f"GITOVERLAY_TIMEOUT must be positive, got {timeout}")
        return cls(
            token=token.strip() if token else None,
            api_url=(env.get("GITOVERLAY_API_URL") or DEFAULT_API_URL).rstrip("/"),
            api_version=env.get("GITOVERLAY_API_VERSION") or DEFAULT_API_VERSION,
            timeout=timeout,
        )
