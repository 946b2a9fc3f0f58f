"""Workspace: the interface the file tree, editor and source-control UI use.

A workspace owns one remote tree index, the overlay of unpublished
changes, the staging set and the open buffers for a single
(owner, repo, branch).  Operations either complete or raise one
:class:`~gitoverlay.exceptions.WorkspaceError` without touching state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from .buffers import EditorService, OpenBuffer, UserPrompt
from .config import DEFAULT_BRANCH
from .exceptions import (
    CommitInProgressError,
    ContentUnavailableError,
    NotFoundError,
    ValidationError,
    WorkspaceError,
)
from .index import RemoteTreeIndex
from .overlay import Deleted, Edited, Overlay
from .pipeline import CommitPipeline, CommitResult
from .projector import DirectoryNode, project
from .reporef import RepoRef, parse_repo_ref
from .staging import StagingSet
from .tree import GITKEEP, EntryKind, is_under, join_path, normalize_path, replace_prefix

if TYPE_CHECKING:
    from .remote import RemoteStore

logger = logging.getLogger(__name__)

__all__ = ["Workspace", "open_workspace"]


async def open_workspace(
    remote: RemoteStore,
    repo: str | RepoRef,
    branch: str = DEFAULT_BRANCH,
    *,
    prompt: Optional[UserPrompt] = None,
    editor: Optional[EditorService] = None,
) -> Workspace:
    """Fetch *branch* of *repo* and return a fresh :class:`Workspace`.

    Raises:
        ValidationError: Malformed repository reference or empty branch.
        NotFoundError: Repository or branch missing, or the tree is empty.
    """
    return await Workspace.open(remote, repo, branch, prompt=prompt, editor=editor)


class Workspace:
    """In-memory editing session against one remote branch."""

    def __init__(
        self,
        index: RemoteTreeIndex,
        *,
        prompt: Optional[UserPrompt] = None,
        editor: Optional[EditorService] = None,
    ):
        self._index = index
        self._overlay = Overlay()
        self._staging = StagingSet()
        self._buffers: dict[str, OpenBuffer] = {}
        self._prompt = prompt
        self._editor = editor
        self._commit_lock = asyncio.Lock()
        self.last_pipeline: CommitPipeline | None = None
        if editor is not None:
            editor.on_change(self.edit_buffer)

    def __repr__(self) -> str:
        return (
            f"Workspace({str(self.repo)!r}, branch={self.branch!r}, "
            f"pending={len(self._overlay)}, staged={len(self._staging)})"
        )

    @classmethod
    async def open(
        cls,
        remote: RemoteStore,
        repo: str | RepoRef,
        branch: str = DEFAULT_BRANCH,
        *,
        prompt: Optional[UserPrompt] = None,
        editor: Optional[EditorService] = None,
    ) -> Workspace:
        repo = parse_repo_ref(repo)
        branch = _check_branch(branch)
        index = await RemoteTreeIndex.load(remote, repo, branch)
        logger.info(f"Opened workspace for {repo}@{branch} ({len(index.entries)} entries)")
        return cls(index, prompt=prompt, editor=editor)

    # --- Properties ---

    @property
    def repo(self) -> RepoRef:
        return self._index.repo

    @property
    def branch(self) -> str:
        return self._index.branch

    @property
    def remote(self) -> RemoteStore:
        return self._index.remote

    @property
    def index(self) -> RemoteTreeIndex:
        return self._index

    @property
    def overlay(self) -> Overlay:
        return self._overlay

    @property
    def buffers(self) -> Mapping[str, OpenBuffer]:
        return MappingProxyType(self._buffers)

    @property
    def is_committing(self) -> bool:
        return self._commit_lock.locked()

    def _apply(self, overlay: Overlay) -> None:
        self._overlay = overlay
        self._staging.prune(overlay)

    def _record(self, overlay: Overlay, paths: Iterable[str]) -> None:
        """Install *overlay* and stage the changed *paths*.

        Entries that match the remote file again are dropped instead.
        """
        snapshot = self._index.snapshot
        paths = [p for p in paths if p in overlay]
        unchanged = [p for p in paths if not overlay.is_pending(p, snapshot)]
        overlay = overlay.discard(unchanged)
        self._apply(overlay)
        self._staging.stage_all([p for p in paths if p in overlay], overlay, snapshot)

    # --- Workspace lifecycle ---

    async def switch_branch(self, branch: str) -> None:
        """Load *branch* and replace all local state with it.

        Pending changes, staging and open buffers are discarded, not merged.
        If loading fails the current state is kept.
        """
        if self.is_committing:
            raise CommitInProgressError("Cannot switch branches while a commit is running")
        branch = _check_branch(branch)
        index = await RemoteTreeIndex.load(self.remote, self.repo, branch)
        self._index = index
        self._overlay = Overlay()
        self._staging.clear()
        self._buffers.clear()
        logger.info(f"Switched workspace to {self.repo}@{branch}")

    async def reopen(self) -> None:
        """Re-fetch the current branch, discarding all local state."""
        await self.switch_branch(self.branch)

    def close(self) -> None:
        """Drop buffers and release the editor.  The remote stays open."""
        self._buffers.clear()
        if self._editor is not None:
            self._editor.dispose()

    # --- Reading and editing ---

    def _require_leaf(self, path: str) -> None:
        if isinstance(self._overlay.get(path), Deleted):
            raise NotFoundError(f"{path} is marked for deletion")
        if path in self._overlay.live_leaves(self._index.snapshot):
            return
        if self._overlay.resolve_leaves(path, self._index.snapshot):
            raise ValidationError(f"{path} is a directory")
        raise NotFoundError(f"{path} does not exist")

    async def _current_content(self, path: str) -> str:
        content = self._overlay.content(path)
        if content is not None:
            return content
        return await self._index.fetch_content(path)

    async def select_file(self, path: str) -> str:
        """Open *path* in a buffer and return its content.

        Pending overlay content wins over the remote; an already open
        buffer is returned as-is.
        """
        path = normalize_path(path)
        buffer = self._buffers.get(path)
        if buffer is not None:
            return buffer.live_content
        self._require_leaf(path)
        content = await self._current_content(path)

        # Another caller may have opened it while we were fetching.
        buffer = self._buffers.get(path)
        if buffer is None:
            buffer = self._buffers[path] = OpenBuffer.opened(path, content)
            if self._editor is not None:
                self._editor.open(buffer)
        return buffer.live_content

    async def read_path(self, path: str) -> str:
        """Current content of *path*: open buffer, then overlay, then remote."""
        path = normalize_path(path)
        buffer = self._buffers.get(path)
        if buffer is not None:
            return buffer.live_content
        self._require_leaf(path)
        return await self._current_content(path)

    def edit_buffer(self, path: str, content: str) -> None:
        """Record typing in an open buffer; the overlay is not touched."""
        path = normalize_path(path)
        buffer = self._buffers.get(path)
        if buffer is None:
            raise ValidationError(f"{path} is not open")
        buffer.live_content = content

    def save_buffer(self, path: str) -> bool:
        """Write an open buffer into the overlay and stage it.

        Saving content identical to the remote file reverts the path
        instead.  Returns False if the buffer had no unsaved changes.
        """
        path = normalize_path(path)
        buffer = self._buffers.get(path)
        if buffer is None:
            raise ValidationError(f"{path} is not open")
        if not buffer.is_dirty:
            return False
        mode = None if isinstance(self._overlay.get(path), Edited) else self._index.snapshot.file_mode(path)
        self._record(self._overlay.record_edit(path, buffer.live_content, mode), [path])
        buffer.mark_saved()
        logger.info(f"{path.rsplit('/', 1)[-1]} saved locally")
        return True

    def close_buffer(self, path: str) -> None:
        """Close *path*'s buffer, dropping unsaved typing."""
        self._buffers.pop(normalize_path(path), None)

    # --- Tree operations ---

    def create_path(self, base_path: str | None, name: str | None = None, kind: EntryKind = EntryKind.FILE) -> str:
        """Create an empty file, or a directory holding an empty ``.gitkeep``.

        The new leaf is staged; a new file is also opened.  Returns the
        leaf path.  When *name* is omitted the injected prompt asks for it.
        """
        if name is None and self._prompt is not None:
            name = self._prompt.ask(f"Enter new {kind.value} name:")
        if not name or not name.strip():
            raise ValidationError("Name must not be empty")
        path = join_path(base_path, name.strip())
        snapshot = self._index.snapshot

        if kind is EntryKind.DIRECTORY:
            if self._overlay.resolve_leaves(path, snapshot):
                raise ValidationError(f"{path} already exists")
            leaf = f"{path}/{GITKEEP}"
        else:
            leaf = path
        self._overlay.check_free(leaf, snapshot)

        self._record(self._overlay.record_edit(leaf, ""), [leaf])
        if kind is EntryKind.FILE:
            buffer = self._buffers[leaf] = OpenBuffer.opened(leaf, "")
            if self._editor is not None:
                self._editor.open(buffer)
        logger.info(f"New {kind.value} {path} created locally")
        return leaf

    async def rename_path(self, old_path: str, new_path: str | None = None) -> list[str]:
        """Rename a file or directory as deletes plus creates, and stage them.

        Content for leaves without pending changes is fetched from the
        remote first; nothing changes unless every leaf resolved.  Returns
        the new leaf paths.
        """
        old = normalize_path(old_path)
        if new_path is None and self._prompt is not None:
            new_path = self._prompt.ask(f"Enter new path for {old}:")
        if not new_path or not new_path.strip():
            raise ValidationError("Rename target must not be empty")
        new = normalize_path(new_path)

        leaves = self._overlay.resolve_leaves(old, self._index.snapshot)
        missing = [leaf for leaf in leaves if self._overlay.content(leaf) is None]
        try:
            contents = await asyncio.gather(*(self._index.fetch_content(leaf) for leaf in missing))
        except WorkspaceError as e:
            raise ContentUnavailableError(f"Could not fetch content to rename {old}: {e}") from e
        fetched = dict(zip(missing, contents))

        overlay = self._overlay.record_rename(old, new, self._index.snapshot, fetched)
        targets = [replace_prefix(leaf, old, new) for leaf in leaves]
        self._record(overlay, leaves + targets)

        for leaf, target in zip(leaves, targets):
            buffer = self._buffers.pop(leaf, None)
            if buffer is not None:
                buffer.path = target
                self._buffers[target] = buffer
        logger.info(f"Renamed {old} to {new} locally ({len(leaves)} file(s))")
        return targets

    def delete_path(self, path: str) -> list[str]:
        """Delete a file, or every file under a directory, and stage it.

        Returns the deleted leaf paths; an empty list when the path is
        already deleted or the injected prompt declined.
        """
        path = normalize_path(path)
        leaves = self._overlay.resolve_leaves(path, self._index.snapshot)
        if not leaves:
            if isinstance(self._overlay.get(path), Deleted):
                return []
            raise NotFoundError(f"{path} does not exist")
        if self._prompt is not None and not self._prompt.confirm(f"Are you sure you want to delete {path}?"):
            return []

        overlay = self._overlay.record_delete(path, self._index.snapshot)
        self._record(overlay, leaves)
        for leaf in leaves:
            self._buffers.pop(leaf, None)
        logger.info(f"{path} deleted locally ({len(leaves)} file(s))")
        return leaves

    # --- Staging ---

    def stage(self, path: str) -> None:
        """Stage a single pending leaf path."""
        self._staging.stage(normalize_path(path), self._overlay, self._index.snapshot)

    def unstage(self, path: str) -> None:
        self._staging.unstage(normalize_path(path))

    def discard_changes(self, path: str) -> list[str]:
        """Revert pending changes at or under *path* to the remote state."""
        path = normalize_path(path)
        paths = [p for p in self._overlay if p == path or is_under(p, path)]
        self._apply(self._overlay.discard(paths))
        for p in paths:
            self._buffers.pop(p, None)
        return paths

    def staged_paths(self) -> frozenset[str]:
        return self._staging.snapshot()

    def pending_paths(self) -> frozenset[str]:
        """Paths whose overlay entry actually differs from the remote."""
        snapshot = self._index.snapshot
        return frozenset(p for p in self._overlay if self._overlay.is_pending(p, snapshot))

    # --- Publishing ---

    async def commit(self, message: str) -> CommitResult:
        """Publish the staged paths as one commit on the branch.

        On success the committed overlay entries and staged paths are
        dropped and the tree index is refreshed; staged paths that no longer
        differ from the remote are skipped.  Unstaged changes and
        changes recorded during the commit stay.  On failure nothing local
        changes and the same commit can be retried.

        Raises:
            ValidationError: Empty message or nothing staged (no remote calls).
            CommitInProgressError: Another commit is still running.
            StaleParentError: The branch moved concurrently.
        """
        if not message or not message.strip():
            raise ValidationError("Commit message must not be empty")
        if self._commit_lock.locked():
            raise CommitInProgressError("A commit is already in progress")

        async with self._commit_lock:
            snapshot = self._index.snapshot
            paths = frozenset(p for p in self._staging if self._overlay.is_pending(p, snapshot))
            if not paths:
                raise ValidationError("Nothing staged to commit")
            changes = {p: self._overlay[p] for p in paths}

            pipeline = self.last_pipeline = CommitPipeline(self.remote, self.repo, self.branch)
            result = await pipeline.run(message, changes)

            overlay = self._overlay.clear_committed(paths, expected=changes)
            self._apply(overlay)
            self._staging.discard(p for p in paths if p not in overlay)

            try:
                await self._index.refresh()
            except WorkspaceError as e:
                logger.warning(f"Committed {result.commit_id[:7]} but could not refresh the tree: {e}")
                result = replace(result, refreshed=False)
            return result

    # --- Views ---

    def projected_tree(self) -> DirectoryNode:
        """Directory view of the remote tree with pending changes applied."""
        return project(self._index.snapshot, self._overlay, self.repo.name)


def _check_branch(branch: str) -> str:
    branch = (branch or "").strip()
    if not branch:
        raise ValidationError("Branch name must not be empty")
    return branch

