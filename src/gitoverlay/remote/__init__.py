"""Remote content-addressable store interface.

A :class:`RemoteStore` speaks Git Data API semantics: blobs, trees and
commits are immutable objects addressed by id, and publishing means moving
a branch ref.  Two backends ship with gitoverlay:

- :class:`~gitoverlay.remote.github.GitHubRemote` over HTTPS (httpx)
- :class:`~gitoverlay.remote.local.LocalRemote` on a local bare repo (dulwich)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from ..reporef import RepoRef
    from ..tree import TreeChange, TreeSnapshot

__all__ = ["RemoteStore"]


class RemoteStore(ABC):
    """Asynchronous access to one remote object store."""

    @abstractmethod
    async def fetch_tree(self, repo: RepoRef, branch: str) -> TreeSnapshot:
        """Return the recursive tree of *branch*.

        Raises NotFoundError if the repo or branch is missing or the tree
        is empty.
        """

    @abstractmethod
    async def fetch_content(self, repo: RepoRef, path: str, branch: str) -> str:
        """Return the text of *path* at *branch*, or ``""`` if absent."""

    @abstractmethod
    async def get_branch_head(self, repo: RepoRef, branch: str) -> str:
        """Return the commit id *branch* points at (RefNotFoundError if missing)."""

    @abstractmethod
    async def get_commit_tree(self, repo: RepoRef, commit_id: str) -> str:
        """Return the root tree id of *commit_id*."""

    @abstractmethod
    async def create_blob(self, repo: RepoRef, content: str) -> str:
        """Store *content* and return its blob id."""

    @abstractmethod
    async def create_tree(self, repo: RepoRef, base_tree: str, changes: Sequence[TreeChange]) -> str:
        """Apply sparse *changes* onto *base_tree* and return the new tree id."""

    @abstractmethod
    async def create_commit(self, repo: RepoRef, message: str, tree: str, parents: Sequence[str]) -> str:
        """Create a commit object and return its id."""

    @abstractmethod
    async def update_ref(self, repo: RepoRef, branch: str, commit_id: str, expected: str) -> None:
        """Fast-forward *branch* from *expected* to *commit_id*.

        Raises StaleParentError if the remote refuses because the branch
        no longer points at *expected*.
        """

    async def aclose(self) -> None:
        """Release any held connections."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
