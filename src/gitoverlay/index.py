"""Remote Tree Index: the last-fetched authoritative tree of one branch."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .tree import RepositoryEntry, TreeSnapshot

if TYPE_CHECKING:
    from .remote import RemoteStore
    from .reporef import RepoRef

logger = logging.getLogger(__name__)

__all__ = ["RemoteTreeIndex"]


class RemoteTreeIndex:
    """Holds the :class:`TreeSnapshot` of one (owner, repo, branch).

    The snapshot is only ever replaced wholesale; there is no incremental
    merge with a newer fetch.
    """

    def __init__(self, remote: RemoteStore, repo: RepoRef, branch: str, snapshot: TreeSnapshot):
        self.remote = remote
        self.repo = repo
        self.branch = branch
        self._snapshot = snapshot

    def __repr__(self) -> str:
        return f"RemoteTreeIndex({str(self.repo)!r}, branch={self.branch!r}, entries={len(self._snapshot)})"

    @classmethod
    async def load(cls, remote: RemoteStore, repo: RepoRef, branch: str) -> RemoteTreeIndex:
        """Fetch the tree of *branch*.

        Raises:
            NotFoundError: If the repo or branch is absent or the tree is empty.
        """
        snapshot = await remote.fetch_tree(repo, branch)
        return cls(remote, repo, branch, snapshot)

    async def refresh(self) -> TreeSnapshot:
        """Re-fetch and replace the snapshot.  On failure the old one stays."""
        snapshot = await self.remote.fetch_tree(self.repo, self.branch)
        logger.debug(f"Refreshed {self.repo}@{self.branch}: {len(self._snapshot)} -> {len(snapshot)} entries")
        self._snapshot = snapshot
        return snapshot

    @property
    def snapshot(self) -> TreeSnapshot:
        return self._snapshot

    @property
    def entries(self) -> tuple[RepositoryEntry, ...]:
        return self._snapshot.entries

    def get(self, path: str) -> RepositoryEntry | None:
        return self._snapshot.get(path)

    def is_file(self, path: str) -> bool:
        return self._snapshot.is_file(path)

    def file_paths(self) -> frozenset[str]:
        return self._snapshot.file_paths()

    async def fetch_content(self, path: str) -> str:
        """Content of *path* on the branch; ``""`` if the remote has no such file."""
        return await self.remote.fetch_content(self.repo, path, self.branch)
