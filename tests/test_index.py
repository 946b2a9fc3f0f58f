"""Tests for the remote tree index."""

import pytest

from gitoverlay.exceptions import NetworkError, NotFoundError
from gitoverlay.index import RemoteTreeIndex
from gitoverlay.tree import EntryKind

from conftest import REPO


class TestRemoteTreeIndex:
    @pytest.mark.asyncio
    async def test_load(self, local_remote):
        index = await RemoteTreeIndex.load(local_remote, REPO, "main")
        assert index.file_paths() == {"README.md", "src/main.js", "src/lib/util.js", "docs/guide.md"}
        assert index.get("src").kind is EntryKind.DIRECTORY
        assert index.is_file("src/main.js")
        assert index.snapshot.tree_id

    @pytest.mark.asyncio
    async def test_missing_branch(self, local_remote):
        with pytest.raises(NotFoundError):
            await RemoteTreeIndex.load(local_remote, REPO, "nope")

    @pytest.mark.asyncio
    async def test_fetch_content(self, local_remote):
        index = await RemoteTreeIndex.load(local_remote, REPO, "main")
        assert await index.fetch_content("src/main.js") == "v1"
        assert await index.fetch_content("absent.txt") == ""

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_snapshot(self, recording):
        index = await RemoteTreeIndex.load(recording, REPO, "main")
        before = index.snapshot
        recording.fail_on["fetch_tree"] = NetworkError("down")
        with pytest.raises(NetworkError):
            await index.refresh()
        assert index.snapshot is before

    @pytest.mark.asyncio
    async def test_refresh_replaces(self, recording):
        index = await RemoteTreeIndex.load(recording, REPO, "main")
        before = index.snapshot
        after = await index.refresh()
        assert index.snapshot is after
        assert after is not before
        assert after == before
