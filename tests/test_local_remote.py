"""Tests for the dulwich-backed local remote."""

import pytest
from dulwich.repo import Repo

from gitoverlay.exceptions import (
    ContentUnavailableError,
    NotFoundError,
    RefNotFoundError,
    RemoteRejectedError,
    StaleParentError,
)
from gitoverlay.remote.local import LocalRemote, rebuild_tree
from gitoverlay.tree import GIT_FILEMODE_BLOB, GIT_FILEMODE_BLOB_EXECUTABLE, TreeChange

from conftest import REPO, commit_blob


class TestInit:
    def test_creates_bare_repo(self, local_path):
        repo = Repo(str(local_path))
        try:
            assert repo.bare
            assert repo.refs.read_ref(b"HEAD") == b"ref: refs/heads/main"
            assert b"refs/heads/main" in repo.refs
        finally:
            repo.close()

    def test_existing_path(self, local_path):
        with pytest.raises(FileExistsError):
            LocalRemote.init(local_path)

    def test_missing_repo(self, tmp_path):
        with pytest.raises(NotFoundError):
            LocalRemote(tmp_path / "absent.git")

    @pytest.mark.asyncio
    async def test_empty_branch_is_not_found(self, tmp_path):
        async with LocalRemote.init(tmp_path / "empty.git") as remote:
            with pytest.raises(NotFoundError):
                await remote.fetch_tree(REPO, "main")


class TestReads:
    @pytest.mark.asyncio
    async def test_fetch_tree(self, local_remote):
        snap = await local_remote.fetch_tree(REPO, "main")
        assert [e.path for e in snap] == [
            "README.md", "docs", "docs/guide.md", "src", "src/lib", "src/lib/util.js", "src/main.js",
        ]

    @pytest.mark.asyncio
    async def test_fetch_content(self, local_remote):
        assert await local_remote.fetch_content(REPO, "README.md", "main") == "# demo\n"
        assert await local_remote.fetch_content(REPO, "src/nope.js", "main") == ""
        assert await local_remote.fetch_content(REPO, "README.md/x", "main") == ""
        assert await local_remote.fetch_content(REPO, "src", "main") == ""

    @pytest.mark.asyncio
    async def test_fetch_binary_content(self, local_remote):
        await commit_blob(local_remote, "logo.png", b"\x89PNG\r\n\x1a\n\xff\xfe")
        with pytest.raises(ContentUnavailableError, match="logo.png"):
            await local_remote.fetch_content(REPO, "logo.png", "main")

    @pytest.mark.asyncio
    async def test_file_modes(self, local_remote):
        await commit_blob(local_remote, "bin/run.sh", b"echo hi\n", GIT_FILEMODE_BLOB_EXECUTABLE)
        snap = await local_remote.fetch_tree(REPO, "main")
        assert snap.get("bin/run.sh").mode == GIT_FILEMODE_BLOB_EXECUTABLE
        assert snap.get("README.md").mode == GIT_FILEMODE_BLOB
        assert snap.file_mode("bin/run.sh") == GIT_FILEMODE_BLOB_EXECUTABLE

    @pytest.mark.asyncio
    async def test_missing_branch(self, local_remote):
        with pytest.raises(RefNotFoundError):
            await local_remote.get_branch_head(REPO, "gone")
        with pytest.raises(NotFoundError):
            await local_remote.fetch_tree(REPO, "gone")

    @pytest.mark.asyncio
    async def test_wrong_object_type(self, local_remote):
        head = await local_remote.get_branch_head(REPO, "main")
        with pytest.raises(RemoteRejectedError):
            await local_remote.create_tree(REPO, head, [])

    @pytest.mark.asyncio
    async def test_unknown_object(self, local_remote):
        with pytest.raises(NotFoundError):
            await local_remote.get_commit_tree(REPO, "0" * 40)


class TestWrites:
    @pytest.mark.asyncio
    async def test_full_cycle(self, local_remote):
        head = await local_remote.get_branch_head(REPO, "main")
        base = await local_remote.get_commit_tree(REPO, head)
        blob = await local_remote.create_blob(REPO, "v2")
        tree = await local_remote.create_tree(REPO, base, [
            TreeChange("src/main.js", blob),
            TreeChange("README.md", None),
            TreeChange("docs/guide.md", None),
        ])
        commit = await local_remote.create_commit(REPO, "update", tree, [head])
        await local_remote.update_ref(REPO, "main", commit, head)

        assert await local_remote.get_branch_head(REPO, "main") == commit
        snap = await local_remote.fetch_tree(REPO, "main")
        assert snap.file_paths() == {"src/main.js", "src/lib/util.js"}
        # empty directory pruned
        assert "docs" not in snap
        assert await local_remote.fetch_content(REPO, "src/main.js", "main") == "v2"

    @pytest.mark.asyncio
    async def test_siblings_shared(self, local_remote):
        before = await local_remote.fetch_tree(REPO, "main")
        head = await local_remote.get_branch_head(REPO, "main")
        base = await local_remote.get_commit_tree(REPO, head)
        blob = await local_remote.create_blob(REPO, "new")
        tree = await local_remote.create_tree(REPO, base, [TreeChange("src/main.js", blob)])
        commit = await local_remote.create_commit(REPO, "m", tree, [head])
        await local_remote.update_ref(REPO, "main", commit, head)
        after = await local_remote.fetch_tree(REPO, "main")
        assert after.get("src/lib").content_id == before.get("src/lib").content_id
        assert after.get("docs").content_id == before.get("docs").content_id
        assert after.get("src").content_id != before.get("src").content_id

    @pytest.mark.asyncio
    async def test_update_ref_compare_and_swap(self, local_remote):
        head = await local_remote.get_branch_head(REPO, "main")
        base = await local_remote.get_commit_tree(REPO, head)
        first = await local_remote.create_commit(REPO, "one", base, [head])
        second = await local_remote.create_commit(REPO, "two", base, [head])
        await local_remote.update_ref(REPO, "main", first, head)
        with pytest.raises(StaleParentError):
            await local_remote.update_ref(REPO, "main", second, head)
        assert await local_remote.get_branch_head(REPO, "main") == first

    @pytest.mark.asyncio
    async def test_blob_id_is_content_address(self, local_remote):
        assert await local_remote.create_blob(REPO, "x") == await local_remote.create_blob(REPO, "x")


class TestRebuildTree:
    def test_stray_remove_ignored(self, local_remote):
        store = local_remote._repo.object_store
        head = local_remote._repo.refs[b"refs/heads/main"]
        base = store[head].tree
        assert rebuild_tree(store, base, {}, {"nope/absent.txt", "missing"}) == base
