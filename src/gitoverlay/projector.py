"""Directory Projector: hierarchical view of remote tree plus overlay.

:func:`project` is pure.  Its output is rebuilt from scratch for every
change and never mutated afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Union

from .overlay import Overlay
from .tree import TreeSnapshot

logger = logging.getLogger(__name__)

__all__ = ["FileNode", "DirectoryNode", "Node", "project"]


@dataclass(frozen=True)
class FileNode:
    """A leaf in the projected tree.

    Attributes:
        pending_edit: The overlay holds content that differs from the remote.
        is_new: The path does not exist in the remote tree at all.
    """

    name: str
    path: str
    pending_edit: bool = False
    is_new: bool = False

    @property
    def is_dir(self) -> bool:
        return False


@dataclass(frozen=True)
class DirectoryNode:
    """A directory; *children* keeps directories first, then files, each sorted."""

    name: str
    path: str
    children: Mapping[str, "Node"] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_dir(self) -> bool:
        return True

    def find(self, path: str) -> "Node | None":
        """Return the node at *path* relative to this directory."""
        node: Node = self
        path = path.strip("/")
        if not path:
            return node
        for seg in path.split("/"):
            if not isinstance(node, DirectoryNode) or seg not in node.children:
                return None
            node = node.children[seg]
        return node

    def iter_files(self) -> Iterator[FileNode]:
        """Yield every file below this directory in display order."""
        for child in self.children.values():
            if isinstance(child, DirectoryNode):
                yield from child.iter_files()
            else:
                yield child

    def render(self, indent: str = "  ") -> list[str]:
        """Text lines for a terminal listing, with ``*`` / ``+`` markers."""
        lines: list[str] = []

        def visit(node: DirectoryNode, depth: int):
            for child in node.children.values():
                pad = indent * depth
                if isinstance(child, DirectoryNode):
                    lines.append(f"{pad}{child.name}/")
                    visit(child, depth + 1)
                else:
                    marker = " +" if child.is_new else (" *" if child.pending_edit else "")
                    lines.append(f"{pad}{child.name}{marker}")

        visit(self, 0)
        return lines


Node = Union[FileNode, DirectoryNode]


def project(snapshot: TreeSnapshot, overlay: Overlay, root_name: str = "") -> DirectoryNode:
    """Build the directory tree for *snapshot* with *overlay* applied.

    Tombstoned paths are left out.  Where a file and a directory claim the
    same name, the directory is kept.
    """
    nested: dict = {}
    for leaf in sorted(overlay.live_leaves(snapshot)):
        *dirs, name = leaf.split("/")
        level = nested
        for seg in dirs:
            child = level.get(seg)
            if not isinstance(child, dict):
                if child is not None:
                    logger.debug(f"Directory {seg!r} shadows file {child!r}")
                child = level[seg] = {}
            level = child
        if isinstance(level.get(name), dict):
            logger.debug(f"Directory shadows file {leaf!r}")
            continue
        level[name] = leaf
    return _freeze(root_name, "", nested, snapshot, overlay)


def _freeze(name: str, path: str, level: dict, snapshot: TreeSnapshot, overlay: Overlay) -> DirectoryNode:
    dirs = sorted(k for k, v in level.items() if isinstance(v, dict))
    files = sorted(k for k, v in level.items() if not isinstance(v, dict))
    children: dict[str, Node] = {}
    for d in dirs:
        children[d] = _freeze(d, f"{path}/{d}" if path else d, level[d], snapshot, overlay)
    for f in files:
        leaf = level[f]
        children[f] = FileNode(
            name=f,
            path=leaf,
            pending_edit=overlay.is_pending(leaf, snapshot),
            is_new=not snapshot.is_file(leaf),
        )
    return DirectoryNode(name, path, MappingProxyType(children))
