"""Shared fixtures for gitoverlay tests."""

import pytest
from click.testing import CliRunner
from dulwich.objects import Blob

from gitoverlay.remote import RemoteStore
from gitoverlay.remote.local import LocalRemote
from gitoverlay.reporef import RepoRef
from gitoverlay.tree import GIT_FILEMODE_BLOB, TreeChange
from gitoverlay.workspace import open_workspace


REPO = RepoRef("octo", "demo")

SAMPLE_FILES = {
    "README.md": "# demo\n",
    "src/main.js": "v1",
    "src/lib/util.js": "export const x = 1;\n",
    "docs/guide.md": "guide",
}


class RecordingRemote(RemoteStore):
    """Wrap a remote, record every call and optionally fail chosen methods.

    ``fail_on[name] = exc`` makes the next call to *name* raise *exc* once.
    """

    def __init__(self, inner: RemoteStore):
        self.inner = inner
        self.calls: list[tuple] = []
        self.fail_on: dict[str, BaseException] = {}

    def names(self):
        return [c[0] for c in self.calls]

    async def _call(self, name, *args):
        self.calls.append((name, *args))
        exc = self.fail_on.pop(name, None)
        if exc is not None:
            raise exc
        return await getattr(self.inner, name)(*args)

    async def fetch_tree(self, repo, branch):
        return await self._call("fetch_tree", repo, branch)

    async def fetch_content(self, repo, path, branch):
        return await self._call("fetch_content", repo, path, branch)

    async def get_branch_head(self, repo, branch):
        return await self._call("get_branch_head", repo, branch)

    async def get_commit_tree(self, repo, commit_id):
        return await self._call("get_commit_tree", repo, commit_id)

    async def create_blob(self, repo, content):
        return await self._call("create_blob", repo, content)

    async def create_tree(self, repo, base_tree, changes):
        return await self._call("create_tree", repo, base_tree, list(changes))

    async def create_commit(self, repo, message, tree, parents):
        return await self._call("create_commit", repo, message, tree, list(parents))

    async def update_ref(self, repo, branch, commit_id, expected):
        return await self._call("update_ref", repo, branch, commit_id, expected)

    async def aclose(self):
        await self.inner.aclose()


class FakePrompt:
    """UserPrompt answering from fixed values and remembering the questions."""

    def __init__(self, answer=None, confirm=True):
        self.answer = answer
        self.confirm_answer = confirm
        self.questions = []

    def confirm(self, question):
        self.questions.append(question)
        return self.confirm_answer

    def ask(self, question):
        self.questions.append(question)
        return self.answer


class FakeEditor:
    """EditorService that records opened buffers and exposes its callback."""

    def __init__(self):
        self.opened = []
        self.callback = None
        self.disposed = False

    def open(self, buffer):
        self.opened.append(buffer.path)

    def on_change(self, callback):
        self.callback = callback

    def dispose(self):
        self.disposed = True


@pytest.fixture
def local_path(tmp_path):
    """Path of a bare repository holding SAMPLE_FILES on 'main'."""
    p = tmp_path / "demo.git"
    LocalRemote.init(p, branch="main", files=SAMPLE_FILES).close()
    return p


@pytest.fixture
def local_remote(local_path):
    remote = LocalRemote(local_path)
    yield remote
    remote.close()


@pytest.fixture
def recording(local_remote):
    return RecordingRemote(local_remote)


async def open_ws(remote, branch="main", **kwargs):
    return await open_workspace(remote, REPO, branch, **kwargs)


async def commit_blob(remote, path, data, mode=GIT_FILEMODE_BLOB):
    """Commit raw *data* at *path* on main of a LocalRemote."""
    blob = Blob.from_string(data)
    remote._repo.object_store.add_object(blob)
    head = await remote.get_branch_head(REPO, "main")
    base = await remote.get_commit_tree(REPO, head)
    tree = await remote.create_tree(REPO, base, [TreeChange(path, blob.id.decode(), mode)])
    commit = await remote.create_commit(REPO, f"add {path}", tree, [head])
    await remote.update_ref(REPO, "main", commit, head)
    return commit


@pytest.fixture
def runner():
    return CliRunner()
