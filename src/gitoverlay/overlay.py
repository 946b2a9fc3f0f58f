"""Workspace Overlay: pending local changes on top of a remote snapshot.

An :class:`Overlay` is immutable.  Every ``record_*`` operation returns a new
overlay and leaves the receiver untouched, so a failed operation never
leaves a half-applied change behind.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Union

from .exceptions import ContentUnavailableError, NotFoundError, ValidationError
from .tree import GIT_FILEMODE_BLOB, TreeSnapshot, blob_id, is_under, normalize_path, replace_prefix

__all__ = ["Edited", "Deleted", "DELETED", "OverlayEntry", "Overlay"]


@dataclass(frozen=True)
class Edited:
    """New or changed content for a path, with its git filemode."""

    content: str
    mode: int = GIT_FILEMODE_BLOB


@dataclass(frozen=True)
class Deleted:
    """Tombstone for a remote path."""

    def __repr__(self) -> str:
        return "DELETED"


DELETED = Deleted()

OverlayEntry = Union[Edited, Deleted]


def _ancestors(path: str) -> Iterator[str]:
    parts = path.split("/")
    for i in range(1, len(parts)):
        yield "/".join(parts[:i])


class Overlay(Mapping[str, OverlayEntry]):
    """Sparse map from path to pending state.

    Last write wins per path; there is no history and no structural merge.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, OverlayEntry] | None = None):
        self._entries: dict[str, OverlayEntry] = dict(entries or {})

    def __getitem__(self, path: str) -> OverlayEntry:
        return self._entries[path]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Overlay({self._entries!r})"

    def _with(self, changes: Mapping[str, OverlayEntry | None]) -> Overlay:
        entries = dict(self._entries)
        for path, entry in changes.items():
            if entry is None:
                entries.pop(path, None)
            else:
                entries[path] = entry
        return Overlay(entries)

    # --- Queries ---

    def edited_paths(self) -> frozenset[str]:
        return frozenset(p for p, e in self._entries.items() if isinstance(e, Edited))

    def deleted_paths(self) -> frozenset[str]:
        return frozenset(p for p, e in self._entries.items() if isinstance(e, Deleted))

    def content(self, path: str) -> str | None:
        """Pending content of *path*, or ``None`` if not edited here."""
        entry = self._entries.get(path)
        return entry.content if isinstance(entry, Edited) else None

    def live_leaves(self, snapshot: TreeSnapshot) -> frozenset[str]:
        """File paths visible after applying this overlay to *snapshot*."""
        return (snapshot.file_paths() - self.deleted_paths()) | self.edited_paths()

    def resolve_leaves(self, path: str, snapshot: TreeSnapshot) -> list[str]:
        """Expand *path* to the live leaf paths it denotes.

        A live leaf denotes itself; otherwise *path* is treated as a
        directory and every live leaf under it is returned, sorted.
        """
        live = self.live_leaves(snapshot)
        if path in live:
            return [path]
        return sorted(p for p in live if is_under(p, path))

    def is_pending(self, path: str, snapshot: TreeSnapshot) -> bool:
        """True if *path* differs from *snapshot* after this overlay."""
        entry = self._entries.get(path)
        if entry is None:
            return False
        if isinstance(entry, Deleted):
            return True
        remote = snapshot.get(path)
        if remote is None or not snapshot.is_file(path):
            return True
        return blob_id(entry.content) != remote.content_id or entry.mode != remote.mode

    def check_free(self, path: str, snapshot: TreeSnapshot, *, ignore: Iterable[str] = ()) -> None:
        """Raise ValidationError if a new leaf at *path* would collide.

        Leaves in *ignore* are treated as already gone.
        """
        live = self.live_leaves(snapshot) - frozenset(ignore)
        if path in live:
            raise ValidationError(f"{path} already exists")
        if any(is_under(p, path) for p in live):
            raise ValidationError(f"{path} already exists as a directory")
        for parent in _ancestors(path):
            if parent in live:
                raise ValidationError(f"{parent} is a file, cannot create {path}")

    # --- Mutations (each returns a new Overlay) ---

    def record_edit(self, path: str, content: str, mode: int | None = None) -> Overlay:
        """Set *path* to ``Edited(content)``; valid for existing and new paths.

        Without *mode*, a pending edit keeps its filemode and anything else
        gets a regular file mode.
        """
        path = normalize_path(path)
        if not isinstance(content, str):
            raise ValidationError(f"Content for {path} must be text")
        if mode is None:
            entry = self._entries.get(path)
            mode = entry.mode if isinstance(entry, Edited) else GIT_FILEMODE_BLOB
        return self._with({path: Edited(content, mode)})

    def record_delete(self, path: str, snapshot: TreeSnapshot) -> Overlay:
        """Delete *path*, or every leaf under it when it names a directory.

        Remote leaves are tombstoned; leaves that only exist in this overlay
        are dropped.  A path matching nothing is a no-op.
        """
        path = normalize_path(path)
        return self._with(self._delete_changes(self.resolve_leaves(path, snapshot), snapshot))

    @staticmethod
    def _delete_changes(leaves: Iterable[str], snapshot: TreeSnapshot) -> dict[str, OverlayEntry | None]:
        return {leaf: DELETED if snapshot.is_file(leaf) else None for leaf in leaves}

    def record_rename(
        self,
        old: str,
        new: str,
        snapshot: TreeSnapshot,
        fetched: Mapping[str, str] | None = None,
    ) -> Overlay:
        """Rename a leaf, or every leaf under a directory, as delete + edit.

        Content for each source leaf comes from this overlay when pending,
        else from *fetched* (remote content already retrieved by the caller).

        Raises:
            ValidationError: Bad target, or the target collides with a live path.
            NotFoundError: *old* denotes no live leaf.
            ContentUnavailableError: A source leaf's content is not resolvable.
        """
        old = normalize_path(old)
        new = normalize_path(new)
        if old == new:
            raise ValidationError(f"{old} is already named {new}")
        if is_under(new, old):
            raise ValidationError(f"Cannot move {old} into itself")

        fetched = fetched or {}
        leaves = self.resolve_leaves(old, snapshot)
        if not leaves:
            if old in self.deleted_paths():
                raise ContentUnavailableError(f"{old} is marked for deletion")
            raise NotFoundError(f"{old} does not exist")

        moves: dict[str, tuple[str, Edited]] = {}
        for leaf in leaves:
            entry = self._entries.get(leaf)
            if isinstance(entry, Edited):
                content, mode = entry.content, entry.mode
            else:
                content, mode = fetched.get(leaf), snapshot.file_mode(leaf)
            if content is None:
                raise ContentUnavailableError(f"Content of {leaf} is not available")
            moves[leaf] = (replace_prefix(leaf, old, new), Edited(content, mode))

        for target, _ in moves.values():
            self.check_free(target, snapshot, ignore=leaves)

        changes = self._delete_changes(leaves, snapshot)
        for target, entry in moves.values():
            changes[target] = entry
        return self._with(changes)

    def clear_committed(
        self,
        paths: Iterable[str],
        expected: Mapping[str, OverlayEntry] | None = None,
    ) -> Overlay:
        """Drop the entries for exactly *paths*.

        With *expected*, an entry is dropped only if it still equals the
        committed value; a later edit of the same path stays pending.
        """
        changes: dict[str, OverlayEntry | None] = {}
        for path in paths:
            if expected is not None and self._entries.get(path) != expected.get(path):
                continue
            changes[path] = None
        return self._with(changes)

    def discard(self, paths: Iterable[str]) -> Overlay:
        """Forget pending changes for *paths* (revert to the remote state)."""
        return self._with({path: None for path in paths})
