"""GitHub Git Data API backend.

Supports anonymous access and personal access tokens.  Every failed
response is classified into one :mod:`gitoverlay.exceptions` type; nothing
is retried here.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote

import httpx

from ..config import Settings
from ..exceptions import (
    AuthRejectedError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    RefNotFoundError,
    RemoteRejectedError,
    StaleParentError,
)
from ..reporef import RepoRef
from ..tree import GIT_FILEMODE_BLOB, EntryKind, RepositoryEntry, TreeChange, TreeSnapshot, decode_text
from . import RemoteStore

logger = logging.getLogger(__name__)

__all__ = ["GitHubRemote"]

RATE_LIMIT_HEADER = "x-ratelimit-remaining"


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"{response.status_code} {response.reason_phrase}".strip()


def classify_response(response: httpx.Response, method: str, url: str) -> None:
    """Raise the typed error matching a failed *response*.

    Returns normally for 2xx responses.
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    detail = _error_message(response)
    logger.error(f"GitHub API {method} {url} failed (status {status}): {detail}")

    if response.headers.get(RATE_LIMIT_HEADER) == "0":
        raise RateLimitedError(
            "GitHub API rate limit exceeded. Add a token or wait for the limit to reset."
        )
    if status in (401, 403):
        raise AuthRejectedError(f"GitHub rejected the credential: {detail}")
    if status in (404, 409):
        raise NotFoundError(f"Not found: {detail}")
    if status >= 500:
        raise NetworkError(f"GitHub server error ({status}): {detail}")
    raise RemoteRejectedError(f"GitHub API request failed ({status}): {detail}", status)


class GitHubRemote(RemoteStore):
    """:class:`RemoteStore` over the GitHub REST API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the backend.

        Args:
            settings: API URL, token and timeout (defaults from environment)
            transport: Custom httpx transport, e.g. ``httpx.MockTransport``
        """
        self.settings = settings or Settings.from_env()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        if not self.settings.token:
            logger.warning("GitHub remote created without a token - rate limits are strict and pushes will fail")

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.settings.api_version,
        }
        if self.settings.token:
            headers["Authorization"] = f"Bearer {self.settings.token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_url,
                headers=self._headers(),
                timeout=httpx.Timeout(self.settings.timeout),
                transport=self._transport,
                trust_env=False,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an API request and return the decoded JSON body.

        Raises:
            NetworkError: On transport failures and timeouts
            WorkspaceError: Subclass matching a failed status (see classify_response)
        """
        url = f"/{path}"
        client = self._get_client()
        try:
            response = await client.request(method, url, json=data, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"GitHub API {method} {url} timed out: {e}")
            raise NetworkError(f"Request to GitHub timed out: {method} {url}") from e
        except httpx.RequestError as e:
            logger.error(f"GitHub API {method} {url} request error: {e}")
            raise NetworkError(f"GitHub API request error: {e}") from e

        classify_response(response, method, url)
        logger.debug(f"GitHub API {method} {url} ok (status {response.status_code})")
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RemoteRejectedError(f"GitHub returned invalid JSON for {method} {url}") from e

    # --- Reads ---

    async def fetch_tree(self, repo: RepoRef, branch: str) -> TreeSnapshot:
        try:
            data = await self.request(
                "GET", f"{repo.api_path}/git/trees/{quote(branch, safe='/')}",
                params={"recursive": "1"},
            )
        except NotFoundError as e:
            raise NotFoundError(f"Repository {repo} or branch {branch!r} not found") from e

        items = data.get("tree") if isinstance(data, dict) else None
        if not items:
            raise NotFoundError(f"Repository {repo} is empty on branch {branch!r}")
        if data.get("truncated"):
            logger.warning(f"Tree listing for {repo}@{branch} was truncated by GitHub")

        entries = []
        for item in items:
            kind = item.get("type")
            if kind == "blob":
                mode = int(item["mode"], 8) if item.get("mode") else GIT_FILEMODE_BLOB
                entries.append(RepositoryEntry(item["path"], EntryKind.FILE, item.get("sha", ""), mode))
            elif kind == "tree":
                entries.append(RepositoryEntry(item["path"], EntryKind.DIRECTORY, item.get("sha", "")))
            else:
                logger.debug(f"Skipping {kind} entry {item.get('path')!r}")
        logger.info(f"Fetched {len(entries)} entries for {repo}@{branch}")
        return TreeSnapshot.from_entries(entries, data.get("sha"))

    async def fetch_content(self, repo: RepoRef, path: str, branch: str) -> str:
        try:
            data = await self.request(
                "GET", f"{repo.api_path}/contents/{quote(path, safe='/')}",
                params={"ref": branch},
            )
        except NotFoundError:
            logger.info(f"{path} not found on {repo}@{branch}, treating as empty")
            return ""

        if not isinstance(data, dict):
            # Directory listing
            return ""
        encoding = data.get("encoding")
        if encoding == "none" and data.get("sha"):
            # Files over 1 MB come back without inline content
            blob = await self.request("GET", f"{repo.api_path}/git/blobs/{data['sha']}")
            return self._decode(blob.get("content"), blob.get("encoding"), path)
        return self._decode(data.get("content"), encoding, path)

    @staticmethod
    def _decode(content: Optional[str], encoding: Optional[str], path: str) -> str:
        if not content:
            return ""
        if encoding == "base64":
            return decode_text(base64.b64decode(content), path)
        return content

    async def get_branch_head(self, repo: RepoRef, branch: str) -> str:
        try:
            data = await self.request("GET", f"{repo.api_path}/git/ref/heads/{quote(branch, safe='/')}")
        except NotFoundError as e:
            raise RefNotFoundError(f"Branch {branch!r} not found in {repo}") from e
        return data["object"]["sha"]

    async def get_commit_tree(self, repo: RepoRef, commit_id: str) -> str:
        data = await self.request("GET", f"{repo.api_path}/git/commits/{commit_id}")
        return data["tree"]["sha"]

    # --- Writes ---

    async def create_blob(self, repo: RepoRef, content: str) -> str:
        encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
        data = await self.request(
            "POST", f"{repo.api_path}/git/blobs",
            data={"content": encoded, "encoding": "base64"},
        )
        return data["sha"]

    async def create_tree(self, repo: RepoRef, base_tree: str, changes: Sequence[TreeChange]) -> str:
        tree = [
            {"path": c.path, "mode": f"{c.mode:06o}", "type": "blob", "sha": c.sha}
            for c in changes
        ]
        data = await self.request(
            "POST", f"{repo.api_path}/git/trees",
            data={"base_tree": base_tree, "tree": tree},
        )
        return data["sha"]

    async def create_commit(self, repo: RepoRef, message: str, tree: str, parents: Sequence[str]) -> str:
        data = await self.request(
            "POST", f"{repo.api_path}/git/commits",
            data={"message": message, "tree": tree, "parents": list(parents)},
        )
        return data["sha"]

    async def update_ref(self, repo: RepoRef, branch: str, commit_id: str, expected: str) -> None:
        # GitHub does the fast-forward check itself; *expected* is only logged.
        try:
            await self.request(
                "PATCH", f"{repo.api_path}/git/refs/heads/{quote(branch, safe='/')}",
                data={"sha": commit_id, "force": False},
            )
        except RemoteRejectedError as e:
            if e.status == 422:
                raise StaleParentError(
                    f"Branch {branch!r} moved past {expected[:7]}; "
                    "re-run the commit to publish on top of the new head"
                ) from e
            raise
        logger.info(f"Moved {repo}@{branch} from {expected[:7]} to {commit_id[:7]}")
