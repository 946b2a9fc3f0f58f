"""Basic commands: init, ls, tree, cat, commit."""

from __future__ import annotations

import json
import sys
from pathlib import Path as _Path

import click

from ..exceptions import NotFoundError
from ..overlay import Deleted
from ..projector import DirectoryNode
from ..remote.local import LocalRemote
from ..tree import EntryKind
from ._helpers import (
    _local_path,
    _normalize_repo_path,
    _status,
    _strip_colon,
    _with_workspace,
    main,
)


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@main.command()
@click.option("--readme/--no-readme", default=True,
              help="Seed the branch with a README.md (default: on).")
@click.pass_context
def init(ctx, readme):
    """Create a local bare repository to use with --local."""
    path = _local_path(ctx)
    branch = ctx.obj["branch"]
    name = _Path(path).name
    files = {"README.md": f"# {name.removesuffix('.git')}\n"} if readme else {}
    try:
        LocalRemote.init(path, branch=branch, files=files)
    except FileExistsError as exc:
        raise click.ClickException(str(exc))
    _status(ctx, f"Initialized {path}")


# ---------------------------------------------------------------------------
# ls / tree
# ---------------------------------------------------------------------------

def _find_dir(ws, path: str | None) -> DirectoryNode:
    root = ws.projected_tree()
    if not path:
        return root
    node = root.find(_normalize_repo_path(path))
    if node is None:
        raise click.ClickException(f"Path not found: {path}")
    if not node.is_dir:
        raise click.ClickException(f"Not a directory: {path}")
    return node


@main.command()
@click.argument("path", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output JSON.")
@click.pass_context
def ls(ctx, path, as_json):
    """List a directory of the branch (directories first)."""

    async def action(ws):
        return _find_dir(ws, path)

    node = _with_workspace(ctx, action)
    if as_json:
        entries = [
            {"name": child.name, "path": child.path, "type": "directory" if child.is_dir else "file"}
            for child in node.children.values()
        ]
        click.echo(json.dumps(entries, indent=2))
        return
    for child in node.children.values():
        click.echo(f"{child.name}/" if child.is_dir else child.name)


@main.command()
@click.argument("path", required=False)
@click.pass_context
def tree(ctx, path):
    """Print the branch as an indented tree."""

    async def action(ws):
        return _find_dir(ws, path)

    for line in _with_workspace(ctx, action).render():
        click.echo(line)


# ---------------------------------------------------------------------------
# cat
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path")
@click.pass_context
def cat(ctx, path):
    """Print a file's content."""
    repo_path = _normalize_repo_path(path)

    async def action(ws):
        return await ws.read_path(repo_path)

    click.echo(_with_workspace(ctx, action), nl=False)


# ---------------------------------------------------------------------------
# commit
# ---------------------------------------------------------------------------

def _parse_put(raw: str) -> tuple[str, str]:
    repo_path, sep, local = raw.partition("=")
    if not sep or not local:
        raise click.ClickException(f"Expected PATH=FILE, got {raw!r}")
    try:
        content = _Path(local).read_text(encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot read {local}: {exc}")
    return _normalize_repo_path(repo_path), content


def _parse_move(raw: str) -> tuple[str, str]:
    old, sep, new = _strip_colon(raw).partition(":")
    if not sep:
        raise click.ClickException(f"Expected OLD:NEW, got {raw!r}")
    return _normalize_repo_path(old), _normalize_repo_path(new)


async def _put(ws, path: str, content: str) -> None:
    """Write *path* through a buffer, creating the file if needed."""
    try:
        await ws.select_file(path)
    except NotFoundError:
        parent, _, name = path.rpartition("/")
        ws.create_path(parent, name, EntryKind.FILE)
    ws.edit_buffer(path, content)
    ws.save_buffer(path)


@main.command()
@click.option("-m", "--message", default="", help="Commit message.")
@click.option("--put", "puts", multiple=True, metavar="PATH=FILE",
              help="Write a local file to PATH (repeatable).")
@click.option("--write", "write_path", default=None, metavar="PATH",
              help="Write stdin to PATH.")
@click.option("--rm", "removes", multiple=True, metavar="PATH",
              help="Delete a file or directory (repeatable).")
@click.option("--mv", "moves", multiple=True, metavar="OLD:NEW",
              help="Rename a file or directory (repeatable).")
@click.option("--mkdir", "mkdirs", multiple=True, metavar="DIR",
              help="Create a directory holding an empty .gitkeep (repeatable).")
@click.option("-n", "--dry-run", is_flag=True, help="Show staged changes without committing.")
@click.pass_context
def commit(ctx, message, puts, write_path, removes, moves, mkdirs, dry_run):
    """Apply changes in memory and publish them as one commit.

    Changes are applied in this order: --mkdir, --put, --write, --mv, --rm.
    """
    writes = [_parse_put(raw) for raw in puts]
    if write_path is not None:
        writes.append((_normalize_repo_path(write_path), sys.stdin.read()))
    renames = [_parse_move(raw) for raw in moves]
    deletes = [_normalize_repo_path(p) for p in removes]
    dirs = [_normalize_repo_path(d) for d in mkdirs]
    if not (writes or renames or deletes or dirs):
        raise click.ClickException("Nothing to commit (use --put, --write, --rm, --mv or --mkdir)")

    async def action(ws):
        for d in dirs:
            parent, _, name = d.rpartition("/")
            ws.create_path(parent, name, EntryKind.DIRECTORY)
        for path, content in writes:
            await _put(ws, path, content)
        for old, new in renames:
            await ws.rename_path(old, new)
        for path in deletes:
            ws.delete_path(path)

        if dry_run:
            lines = []
            for path in sorted(ws.staged_paths()):
                entry = ws.overlay[path]
                code = "D" if isinstance(entry, Deleted) else ("M" if ws.index.is_file(path) else "A")
                lines.append(f"{code} {path}")
            return lines
        result = await ws.commit(message)
        return result

    outcome = _with_workspace(ctx, action)
    if dry_run:
        for line in outcome:
            click.echo(line)
        return
    if not outcome.refreshed:
        click.echo("Warning: committed, but the tree could not be refreshed", err=True)
    _status(ctx, f"Committed {len(outcome.paths)} path(s)")
    click.echo(outcome.commit_id)
