"""Staging Set: overlay paths selected for the next commit."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from .exceptions import ValidationError

if TYPE_CHECKING:
    from .overlay import Overlay
    from .tree import TreeSnapshot

__all__ = ["StagingSet"]


class StagingSet:
    """A set of leaf paths, always a subset of the overlay's keys.

    Only paths whose overlay entry differs from the remote snapshot can be
    staged; an edit that restores the remote content is not a change.
    """

    def __init__(self, paths: Iterable[str] = ()):
        self._paths: set[str] = set(paths)

    def __repr__(self) -> str:
        return f"StagingSet({sorted(self._paths)!r})"

    def __contains__(self, path: str) -> bool:
        return path in self._paths

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def __bool__(self) -> bool:
        return bool(self._paths)

    def snapshot(self) -> frozenset[str]:
        return frozenset(self._paths)

    def stage(self, path: str, overlay: Overlay, snapshot: TreeSnapshot) -> None:
        """Stage *path*; rejected unless it is pending against *snapshot*."""
        self.stage_all([path], overlay, snapshot)

    def stage_all(self, paths: Iterable[str], overlay: Overlay, snapshot: TreeSnapshot) -> None:
        """Stage every path in *paths*, or none of them."""
        paths = list(paths)
        unchanged = [p for p in paths if not overlay.is_pending(p, snapshot)]
        if unchanged:
            raise ValidationError(f"No pending changes to stage: {', '.join(sorted(unchanged))}")
        self._paths.update(paths)

    def unstage(self, path: str) -> None:
        self._paths.discard(path)

    def discard(self, paths: Iterable[str]) -> None:
        """Remove exactly *paths*, keeping anything staged since."""
        self._paths.difference_update(paths)

    def prune(self, overlay: Overlay) -> None:
        """Drop staged paths that no longer have an overlay entry."""
        self._paths.intersection_update(overlay.keys())

    def clear(self) -> None:
        self._paths.clear()
