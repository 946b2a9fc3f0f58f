"""Commit Pipeline: publish staged changes as one atomic remote revision.

The sequence mirrors how git itself writes a commit::

    FETCH_PARENT -> FETCH_BASE_TREE -> CREATE_BLOBS -> CREATE_TREE
                 -> CREATE_COMMIT -> UPDATE_REF -> COMMITTED | FAILED

Nothing is visible on the branch until ``UPDATE_REF``.  Objects written
before a failure are unreferenced and harmless.  The pipeline never
retries; a :class:`~gitoverlay.exceptions.StaleParentError` at
``UPDATE_REF`` means another writer moved the branch first.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Mapping

from .exceptions import ValidationError
from .overlay import Edited, OverlayEntry
from .tree import TreeChange

if TYPE_CHECKING:
    from .remote import RemoteStore
    from .reporef import RepoRef

logger = logging.getLogger(__name__)

__all__ = ["PipelineState", "CommitResult", "CommitPipeline"]


class PipelineState(Enum):
    IDLE = "idle"
    FETCH_PARENT = "fetch_parent"
    FETCH_BASE_TREE = "fetch_base_tree"
    CREATE_BLOBS = "create_blobs"
    CREATE_TREE = "create_tree"
    CREATE_COMMIT = "create_commit"
    UPDATE_REF = "update_ref"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a successful publish.

    ``refreshed`` is False when the commit landed but re-fetching the tree
    afterwards failed; the workspace then still shows the pre-commit tree.
    """

    commit_id: str
    parent_id: str
    tree_id: str
    paths: frozenset[str]
    refreshed: bool = True


class CommitPipeline:
    """One publish attempt; create a new instance per commit."""

    def __init__(self, remote: RemoteStore, repo: RepoRef, branch: str):
        self.remote = remote
        self.repo = repo
        self.branch = branch
        self.state = PipelineState.IDLE
        self.failed_step: PipelineState | None = None

    def __repr__(self) -> str:
        return f"CommitPipeline({str(self.repo)!r}, branch={self.branch!r}, state={self.state.value})"

    def _enter(self, state: PipelineState) -> None:
        logger.debug(f"Commit to {self.repo}@{self.branch}: {state.value}")
        self.state = state

    async def run(self, message: str, changes: Mapping[str, OverlayEntry]) -> CommitResult:
        """Publish *changes* (path → overlay entry) with *message*.

        Raises:
            ValidationError: Empty message or no changes; nothing was sent.
            RefNotFoundError: The branch is gone.
            StaleParentError: The branch moved while committing.
            WorkspaceError: Any other typed failure from the remote.
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError("CommitPipeline instances are single-use")
        if not message or not message.strip():
            raise ValidationError("Commit message must not be empty")
        if not changes:
            raise ValidationError("Nothing staged to commit")

        try:
            return await self._run(message, changes)
        except Exception:
            self.failed_step = self.state
            self.state = PipelineState.FAILED
            logger.error(f"Commit to {self.repo}@{self.branch} failed at {self.failed_step.value}")
            raise

    async def _run(self, message: str, changes: Mapping[str, OverlayEntry]) -> CommitResult:
        self._enter(PipelineState.FETCH_PARENT)
        parent = await self.remote.get_branch_head(self.repo, self.branch)

        self._enter(PipelineState.FETCH_BASE_TREE)
        base_tree = await self.remote.get_commit_tree(self.repo, parent)

        self._enter(PipelineState.CREATE_BLOBS)
        blob_ids = await self._create_blobs(changes)

        self._enter(PipelineState.CREATE_TREE)
        tree_changes = [
            TreeChange(path, blob_ids[path], entry.mode) if isinstance(entry, Edited) else TreeChange(path, None)
            for path, entry in sorted(changes.items())
        ]
        tree = await self.remote.create_tree(self.repo, base_tree, tree_changes)

        self._enter(PipelineState.CREATE_COMMIT)
        commit = await self.remote.create_commit(self.repo, message, tree, [parent])

        self._enter(PipelineState.UPDATE_REF)
        await self.remote.update_ref(self.repo, self.branch, commit, parent)

        self.state = PipelineState.COMMITTED
        logger.info(f"Committed {len(changes)} path(s) to {self.repo}@{self.branch} as {commit[:7]}")
        return CommitResult(commit, parent, tree, frozenset(changes))

    async def _create_blobs(self, changes: Mapping[str, OverlayEntry]) -> dict[str, str]:
        """Create one blob per edited path, concurrently.

        Waits for every request to settle before reporting the first
        failure, so no creation is still running once the step fails.
        """
        edited = [(path, entry.content) for path, entry in changes.items() if isinstance(entry, Edited)]
        results = await asyncio.gather(
            *(self.remote.create_blob(self.repo, content) for _, content in edited),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return {path: blob for (path, _), blob in zip(edited, results)}
