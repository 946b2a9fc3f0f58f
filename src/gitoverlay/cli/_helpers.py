"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

import click

from ..config import DEFAULT_BRANCH, Settings
from ..exceptions import WorkspaceError, describe
from ..remote import RemoteStore
from ..remote.github import GitHubRemote
from ..remote.local import LocalRemote
from ..reporef import RepoRef, parse_repo_ref
from ..tree import normalize_path
from ..workspace import Workspace, open_workspace


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _strip_colon(raw: str) -> str:
    """Strip an optional leading ':' from a repo-side path."""
    return raw[1:] if raw.startswith(":") else raw


def _normalize_repo_path(path: str) -> str:
    """Normalize and validate a repo-side path."""
    try:
        return normalize_path(_strip_colon(path))
    except WorkspaceError as exc:
        raise click.ClickException(f"Invalid repo path: {exc}")


def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _fail(exc: BaseException) -> click.ClickException:
    return click.ClickException(describe(exc).message)


def _make_remote(ctx) -> RemoteStore:
    """Build the remote backend selected by --local or the GitHub options."""
    local = ctx.obj.get("local")
    if local:
        try:
            return LocalRemote(local)
        except WorkspaceError as exc:
            raise _fail(exc)
    try:
        settings = Settings.from_env()
    except WorkspaceError as exc:
        raise _fail(exc)
    overrides = {}
    if ctx.obj.get("token"):
        overrides["token"] = ctx.obj["token"]
    if ctx.obj.get("api_url"):
        overrides["api_url"] = ctx.obj["api_url"].rstrip("/")
    if overrides:
        settings = replace(settings, **overrides)
    return GitHubRemote(settings)


def _repo_ref(ctx) -> RepoRef:
    """Get the repository reference, raising a clear error if missing."""
    raw = ctx.obj.get("repo")
    if not raw:
        local = ctx.obj.get("local")
        if local:
            name = Path(local).name
            return RepoRef("local", name[:-4] if name.endswith(".git") else name)
        raise click.ClickException(
            "No repository specified. Use --repo or set GITOVERLAY_REPO."
        )
    try:
        return parse_repo_ref(raw)
    except WorkspaceError as exc:
        raise _fail(exc)


def _with_workspace(ctx, action):
    """Open a workspace, await ``action(workspace)`` and close the remote."""
    repo = _repo_ref(ctx)
    branch = ctx.obj["branch"]

    async def run():
        remote = _make_remote(ctx)
        try:
            ws: Workspace = await open_workspace(remote, repo, branch)
            _status(ctx, f"Opened {repo}@{branch}")
            try:
                return await action(ws)
            finally:
                ws.close()
        finally:
            await remote.aclose()

    try:
        return asyncio.run(run())
    except WorkspaceError as exc:
        raise _fail(exc)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--repo", "-r", envvar="GITOVERLAY_REPO",
              help="Repository as owner/repo or URL (or set GITOVERLAY_REPO).")
@click.option("--branch", "-b", envvar="GITOVERLAY_BRANCH", default=DEFAULT_BRANCH,
              show_default=True, help="Branch to work on.")
@click.option("--local", type=click.Path(), envvar="GITOVERLAY_LOCAL",
              help="Use a local bare git repository as the remote.")
@click.option("--token", envvar="GITOVERLAY_TOKEN",
              help="GitHub token (or set GITOVERLAY_TOKEN / GITHUB_TOKEN).")
@click.option("--api-url", envvar="GITOVERLAY_API_URL",
              help="GitHub API base URL (default: https://api.github.com).")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, repo, branch, local, token, api_url, verbose):
    """gitoverlay: edit a remote repository without a working copy.

    Every invocation opens the branch, applies the requested changes in
    memory, and publishes them as a single commit.

    \b
    Quick start:
      gitoverlay -r owner/repo tree
      gitoverlay -r owner/repo cat :README.md
      gitoverlay -r owner/repo commit -m "Fix typo" --put README.md=./README.md

    \b
    Repo paths may be prefixed with ':' (e.g. :path/to/file).
    Use --local PATH to work against a bare git repository on disk.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(
        repo=repo, branch=branch, local=local, token=token,
        api_url=api_url, verbose=verbose,
    )
    _configure_logging(verbose)


def _local_path(ctx) -> str:
    local = ctx.obj.get("local")
    if not local:
        raise click.ClickException("This command needs --local (or GITOVERLAY_LOCAL).")
    return os.fspath(local)
