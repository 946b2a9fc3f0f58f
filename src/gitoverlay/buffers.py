"""Open editing buffers and the capabilities a UI injects into a workspace."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

__all__ = ["OpenBuffer", "EditorService", "UserPrompt", "ChangeCallback"]


@dataclass
class OpenBuffer:
    """Editing state for one open file.

    ``live_content`` follows every keystroke; ``baseline_content`` only
    moves on an explicit save.
    """

    path: str
    live_content: str
    baseline_content: str

    @classmethod
    def opened(cls, path: str, content: str) -> OpenBuffer:
        return cls(path, content, content)

    @property
    def is_dirty(self) -> bool:
        return self.live_content != self.baseline_content

    def mark_saved(self) -> None:
        self.baseline_content = self.live_content


ChangeCallback = Callable[[str, str], None]


@runtime_checkable
class EditorService(Protocol):
    """The text editor a workspace drives.

    ``on_change`` registers a callback invoked as ``callback(path, content)``
    whenever the user edits an open buffer.
    """

    def open(self, buffer: OpenBuffer) -> None: ...

    def on_change(self, callback: ChangeCallback) -> None: ...

    def dispose(self) -> None: ...


@runtime_checkable
class UserPrompt(Protocol):
    """Blocking questions for the user, answered by the surrounding UI."""

    def confirm(self, question: str) -> bool: ...

    def ask(self, question: str) -> Optional[str]:
        """Return the answer, or ``None`` if the user cancelled."""
        ...
