"""Local bare-repository backend.

Implements the :class:`~gitoverlay.remote.RemoteStore` protocol on a bare
git repository on disk, through dulwich.  Useful for offline work, tests,
and for publishing into a repository that is later pushed elsewhere.
"""

from __future__ import annotations

import logging
import os
import time
from collections import defaultdict
from pathlib import Path
from typing import Mapping, Sequence

from dulwich.objects import Blob, Commit, Tree
from dulwich.repo import Repo

from ..exceptions import (
    NotFoundError,
    RefNotFoundError,
    RemoteRejectedError,
    StaleParentError,
)
from ..reporef import RepoRef
from ..tree import (
    GIT_FILEMODE_BLOB,
    GIT_FILEMODE_TREE,
    EntryKind,
    RepositoryEntry,
    TreeChange,
    TreeSnapshot,
    decode_text,
    normalize_path,
)
from . import RemoteStore

logger = logging.getLogger(__name__)

__all__ = ["LocalRemote"]

GIT_FILEMODE_COMMIT = 0o160000


def _branch_ref(branch: str) -> bytes:
    return f"refs/heads/{branch}".encode()


def rebuild_tree(
    store, base_tree_id: bytes | None, writes: Mapping[str, tuple[int, bytes]], removes: set[str],
) -> bytes:
    """Rebuild a tree with *writes* (path → (filemode, blob id)) and *removes* applied.

    Only the ancestor chain from changed leaves to root is rebuilt.
    Sibling subtrees are shared by id.  Directories left empty are pruned.
    """
    sub_writes: dict[str, dict[str, tuple[int, bytes]]] = defaultdict(dict)
    leaf_writes: dict[str, tuple[int, bytes]] = {}
    sub_removes: dict[str, set[str]] = defaultdict(set)
    leaf_removes: set[str] = set()

    for path, blob in writes.items():
        head, _, rest = path.partition("/")
        if rest:
            sub_writes[head][rest] = blob
        else:
            leaf_writes[head] = blob

    for path in removes:
        head, _, rest = path.partition("/")
        if rest:
            sub_removes[head].add(rest)
        else:
            leaf_removes.add(head)

    entries: dict[bytes, tuple[int, bytes]] = {}
    if base_tree_id is not None:
        for entry in store[base_tree_id].iteritems():
            entries[entry.path] = (entry.mode, entry.sha)

    for name, blob in leaf_writes.items():
        entries[name.encode()] = blob

    # Missing names are ignored; callers decide what a stray delete means.
    for name in leaf_removes:
        entries.pop(name.encode(), None)

    for subdir in set(sub_writes) | set(sub_removes):
        key = subdir.encode()
        existing = entries.get(key)
        existing_tree = existing[1] if existing and existing[0] == GIT_FILEMODE_TREE else None
        if existing_tree is None and not sub_writes.get(subdir):
            continue
        new_id = rebuild_tree(
            store, existing_tree, sub_writes.get(subdir, {}), sub_removes.get(subdir, set()),
        )
        if len(store[new_id]) == 0:
            entries.pop(key, None)
        else:
            entries[key] = (GIT_FILEMODE_TREE, new_id)

    tree = Tree()
    for name, (mode, sha) in entries.items():
        tree.add(name, mode, sha)
    store.add_object(tree)
    return tree.id


class LocalRemote(RemoteStore):
    """A bare git repository used as the remote.

    The repository reference passed to each call is only used in messages:
    one ``LocalRemote`` always addresses the repository at *path*.

    The async methods call dulwich synchronously and block the event loop
    for the duration of each disk read or write.  That is acceptable for a
    local bare repository; nothing here is offloaded to a thread.
    """

    def __init__(self, path: str | os.PathLike[str], *, author: str = "gitoverlay", email: str = "gitoverlay@localhost"):
        path = Path(path)
        if not path.exists():
            raise NotFoundError(f"Repository not found: {path}")
        self.path = path
        self._repo = Repo(str(path))
        self._identity = f"{author} <{email}>".encode()

    def __repr__(self) -> str:
        return f"LocalRemote({str(self.path)!r})"

    @classmethod
    def init(
        cls,
        path: str | os.PathLike[str],
        *,
        branch: str = "main",
        files: Mapping[str, str] | None = None,
        message: str | None = None,
        author: str = "gitoverlay",
        email: str = "gitoverlay@localhost",
    ) -> LocalRemote:
        """Create a bare repository whose *branch* holds *files*."""
        path = Path(path)
        if path.exists():
            raise FileExistsError(f"Repository already exists: {path}")
        Repo.init_bare(str(path), mkdir=True).close()
        remote = cls(path, author=author, email=email)
        store = remote._repo.object_store
        writes = {}
        for name, content in (files or {}).items():
            blob = Blob.from_string(content.encode("utf-8"))
            store.add_object(blob)
            writes[normalize_path(name)] = (GIT_FILEMODE_BLOB, blob.id)
        tree_id = rebuild_tree(store, None, writes, set())
        commit_id = remote._write_commit(message or f"Initialize {branch}", tree_id, [])
        remote._repo.refs[_branch_ref(branch)] = commit_id
        remote._repo.refs.set_symbolic_ref(b"HEAD", _branch_ref(branch))
        return remote

    def _write_commit(self, message: str, tree_id: bytes, parents: list[bytes]) -> bytes:
        c = Commit()
        c.tree = tree_id
        c.parents = parents
        c.author = c.committer = self._identity
        now = int(time.time())
        c.author_time = c.commit_time = now
        c.author_timezone = c.commit_timezone = 0
        msg = message.encode("utf-8")
        if not msg.endswith(b"\n"):
            msg += b"\n"
        c.message = msg
        c.encoding = b"UTF-8"
        self._repo.object_store.add_object(c)
        return c.id

    def _head(self, branch: str) -> bytes:
        try:
            return self._repo.refs[_branch_ref(branch)]
        except KeyError:
            raise RefNotFoundError(f"Branch {branch!r} not found in {self.path}")

    def _object(self, sha: str | bytes, kind: type, label: str):
        key = sha.encode() if isinstance(sha, str) else sha
        try:
            obj = self._repo.object_store[key]
        except KeyError:
            raise NotFoundError(f"{label} {key.decode()} not found")
        if not isinstance(obj, kind):
            raise RemoteRejectedError(f"{key.decode()} is not a {label.lower()}", 422)
        return obj

    def _walk(self, tree_id: bytes, prefix: str = ""):
        for entry in self._object(tree_id, Tree, "Tree").iteritems():
            path = f"{prefix}{entry.path.decode()}"
            if entry.mode == GIT_FILEMODE_TREE:
                yield RepositoryEntry(path, EntryKind.DIRECTORY, entry.sha.decode())
                yield from self._walk(entry.sha, path + "/")
            elif entry.mode == GIT_FILEMODE_COMMIT:
                logger.debug(f"Skipping submodule {path!r}")
            else:
                yield RepositoryEntry(path, EntryKind.FILE, entry.sha.decode(), entry.mode)

    # --- Reads ---

    async def fetch_tree(self, repo: RepoRef, branch: str) -> TreeSnapshot:
        try:
            head = self._head(branch)
        except RefNotFoundError as e:
            raise NotFoundError(f"Repository {repo} or branch {branch!r} not found") from e
        tree_id = self._object(head, Commit, "Commit").tree
        entries = list(self._walk(tree_id))
        if not entries:
            raise NotFoundError(f"Repository {repo} is empty on branch {branch!r}")
        logger.info(f"Fetched {len(entries)} entries for {repo}@{branch}")
        return TreeSnapshot.from_entries(entries, tree_id.decode())

    async def fetch_content(self, repo: RepoRef, path: str, branch: str) -> str:
        obj = self._object(self._head(branch), Commit, "Commit")
        sha = obj.tree
        for seg in path.split("/"):
            tree = self._repo.object_store[sha]
            if not isinstance(tree, Tree):
                return ""
            try:
                _, sha = tree[seg.encode()]
            except KeyError:
                logger.info(f"{path} not found on {repo}@{branch}, treating as empty")
                return ""
        blob = self._repo.object_store[sha]
        if not isinstance(blob, Blob):
            return ""
        return decode_text(blob.data, path)

    async def get_branch_head(self, repo: RepoRef, branch: str) -> str:
        return self._head(branch).decode()

    async def get_commit_tree(self, repo: RepoRef, commit_id: str) -> str:
        return self._object(commit_id, Commit, "Commit").tree.decode()

    # --- Writes ---

    async def create_blob(self, repo: RepoRef, content: str) -> str:
        blob = Blob.from_string(content.encode("utf-8"))
        self._repo.object_store.add_object(blob)
        return blob.id.decode()

    async def create_tree(self, repo: RepoRef, base_tree: str, changes: Sequence[TreeChange]) -> str:
        base = self._object(base_tree, Tree, "Tree").id
        writes: dict[str, tuple[int, bytes]] = {}
        removes: set[str] = set()
        for change in changes:
            if change.is_delete:
                removes.add(change.path)
            else:
                writes[change.path] = (change.mode, self._object(change.sha, Blob, "Blob").id)
        return rebuild_tree(self._repo.object_store, base, writes, removes).decode()

    async def create_commit(self, repo: RepoRef, message: str, tree: str, parents: Sequence[str]) -> str:
        tree_id = self._object(tree, Tree, "Tree").id
        parent_ids = [self._object(p, Commit, "Commit").id for p in parents]
        return self._write_commit(message, tree_id, parent_ids).decode()

    async def update_ref(self, repo: RepoRef, branch: str, commit_id: str, expected: str) -> None:
        new = self._object(commit_id, Commit, "Commit").id
        ref = _branch_ref(branch)
        if not self._repo.refs.set_if_equals(ref, expected.encode(), new):
            raise StaleParentError(
                f"Branch {branch!r} moved past {expected[:7]}; "
                "re-run the commit to publish on top of the new head"
            )
        logger.info(f"Moved {repo}@{branch} from {expected[:7]} to {commit_id[:7]}")

    def close(self) -> None:
        self._repo.close()

    async def aclose(self) -> None:
        self.close()
