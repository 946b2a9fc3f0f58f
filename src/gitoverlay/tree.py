"""Remote tree data model and path helpers for gitoverlay.

Paths are always repo-relative, ``/``-separated, with no leading or
trailing slash.  A :class:`TreeSnapshot` is the flat list of entries the
remote returned for one branch; it is never edited, only replaced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Mapping

from dulwich.objects import Blob

from .exceptions import ContentUnavailableError, ValidationError

__all__ = [
    "EntryKind", "RepositoryEntry", "TreeSnapshot", "TreeChange",
    "GIT_FILEMODE_BLOB", "GIT_FILEMODE_BLOB_EXECUTABLE", "GIT_FILEMODE_TREE", "GITKEEP",
    "normalize_path", "join_path", "is_under", "replace_prefix", "blob_id", "decode_text",
]


GIT_FILEMODE_TREE = 0o040000
GIT_FILEMODE_BLOB = 0o100644
GIT_FILEMODE_BLOB_EXECUTABLE = 0o100755

# Placeholder file that lets an otherwise empty directory be committed.
GITKEEP = ".gitkeep"


class EntryKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class RepositoryEntry:
    """A single path in a fetched remote tree."""

    path: str
    kind: EntryKind
    content_id: str
    mode: int = GIT_FILEMODE_BLOB


@dataclass(frozen=True)
class TreeChange:
    """One sparse entry of a tree-creation request.

    ``sha`` is ``None`` to delete *path* from the base tree.
    """

    path: str
    sha: str | None
    mode: int = GIT_FILEMODE_BLOB

    @property
    def is_delete(self) -> bool:
        return self.sha is None


@dataclass(frozen=True)
class TreeSnapshot:
    """Immutable flat view of one branch's tree.

    Attributes:
        entries: Every entry the remote reported, files and directories.
        tree_id: Root tree id when the backend reports it.
    """

    entries: tuple[RepositoryEntry, ...]
    tree_id: str | None = None
    _by_path: Mapping[str, RepositoryEntry] = field(
        init=False, repr=False, compare=False,
    )

    def __post_init__(self):
        object.__setattr__(self, "_by_path", {e.path: e for e in self.entries})

    @classmethod
    def from_entries(cls, entries: Iterable[RepositoryEntry], tree_id: str | None = None) -> TreeSnapshot:
        return cls(tuple(sorted(entries, key=lambda e: e.path)), tree_id)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[RepositoryEntry]:
        return iter(self.entries)

    def __contains__(self, path: str) -> bool:
        return path in self._by_path

    def get(self, path: str) -> RepositoryEntry | None:
        return self._by_path.get(path)

    def is_file(self, path: str) -> bool:
        entry = self._by_path.get(path)
        return entry is not None and entry.kind is EntryKind.FILE

    def file_paths(self) -> frozenset[str]:
        return frozenset(e.path for e in self.entries if e.kind is EntryKind.FILE)

    def file_mode(self, path: str) -> int:
        """Git filemode of the remote file at *path* (regular if absent)."""
        entry = self._by_path.get(path)
        if entry is None or entry.kind is not EntryKind.FILE:
            return GIT_FILEMODE_BLOB
        return entry.mode


def normalize_path(path: str) -> str:
    """Normalize a repo path: strip slashes, reject empty or bad segments."""
    if path is None:
        raise ValidationError("Path must not be empty")
    path = path.replace("\\", "/").strip("/")
    if not path:
        raise ValidationError("Path must not be empty")
    segments = path.split("/")
    for seg in segments:
        if not seg:
            raise ValidationError(f"Empty segment in path: {path!r}")
        if seg in (".", ".."):
            raise ValidationError(f"Invalid path segment: {seg!r}")
    return "/".join(segments)


def join_path(base: str | None, name: str) -> str:
    """Join *name* under directory *base* (``""``/``None`` is the root)."""
    base = (base or "").strip("/")
    if not base:
        return normalize_path(name)
    return normalize_path(f"{base}/{name}")


def is_under(path: str, directory: str) -> bool:
    """True if *path* is strictly inside *directory*."""
    return path.startswith(directory + "/")


def replace_prefix(path: str, old: str, new: str) -> str:
    """Move *path* from under *old* to under *new* (or rename it if equal)."""
    if path == old:
        return new
    if not is_under(path, old):
        raise ValueError(f"{path!r} is not under {old!r}")
    return new + path[len(old):]


def blob_id(content: str) -> str:
    """Git blob id of UTF-8 encoded *content*."""
    return Blob.from_string(content.encode("utf-8")).id.decode("ascii")


def decode_text(data: bytes, path: str) -> str:
    """Decode file *data* as UTF-8.

    Raises:
        ContentUnavailableError: If *data* is not valid UTF-8.
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ContentUnavailableError(f"{path} is not UTF-8 text") from e
