from .workspace import Workspace, open_workspace
from .overlay import Overlay, Edited, Deleted, DELETED
from .staging import StagingSet
from .index import RemoteTreeIndex
from .projector import project, FileNode, DirectoryNode
from .pipeline import CommitPipeline, CommitResult, PipelineState
from .buffers import OpenBuffer, EditorService, UserPrompt
from .tree import EntryKind, RepositoryEntry, TreeSnapshot, TreeChange
from .reporef import RepoRef, parse_repo_ref
from .config import Settings
from .remote import RemoteStore
from .exceptions import (
    WorkspaceError, NotFoundError, RefNotFoundError, RateLimitedError,
    AuthRejectedError, StaleParentError, ValidationError, CommitInProgressError,
    ContentUnavailableError, NetworkError, RemoteRejectedError,
    Notice, Severity, describe,
)

__all__ = [
    "Workspace", "open_workspace",
    "Overlay", "Edited", "Deleted", "DELETED", "StagingSet", "RemoteTreeIndex",
    "project", "FileNode", "DirectoryNode",
    "CommitPipeline", "CommitResult", "PipelineState",
    "OpenBuffer", "EditorService", "UserPrompt",
    "EntryKind", "RepositoryEntry", "TreeSnapshot", "TreeChange",
    "RepoRef", "parse_repo_ref", "Settings", "RemoteStore",
    "WorkspaceError", "NotFoundError", "RefNotFoundError", "RateLimitedError",
    "AuthRejectedError", "StaleParentError", "ValidationError", "CommitInProgressError",
    "ContentUnavailableError", "NetworkError", "RemoteRejectedError",
    "Notice", "Severity", "describe",
]
