"""Tests for the gitoverlay CLI."""

import json

import pytest

from gitoverlay.cli import main


@pytest.fixture
def cli_repo(tmp_path, runner):
    """Local bare repo with README.md and src/main.js, created through `init`."""
    p = str(tmp_path / "cli.git")
    r = runner.invoke(main, ["--local", p, "init"])
    assert r.exit_code == 0, r.output

    src = tmp_path / "main.js"
    src.write_text("v1")
    r = runner.invoke(main, ["--local", p, "commit", "-m", "add main", "--put", f"src/main.js={src}"])
    assert r.exit_code == 0, r.output
    return p


def _invoke(runner, repo, *args, **kwargs):
    return runner.invoke(main, ["--local", repo, *args], **kwargs)


class TestInit:
    def test_init_twice(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "init")
        assert r.exit_code != 0
        assert "already exists" in r.output

    def test_init_needs_local(self, runner, monkeypatch):
        monkeypatch.delenv("GITOVERLAY_LOCAL", raising=False)
        r = runner.invoke(main, ["init"])
        assert r.exit_code != 0
        assert "--local" in r.output

    def test_init_without_readme_is_empty(self, tmp_path, runner):
        p = str(tmp_path / "bare.git")
        assert _invoke(runner, p, "init", "--no-readme").exit_code == 0
        r = _invoke(runner, p, "ls")
        assert r.exit_code != 0
        assert "empty" in r.output


class TestRead:
    def test_ls_root(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "ls")
        assert r.exit_code == 0, r.output
        assert r.output.splitlines() == ["src/", "README.md"]

    def test_ls_json(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "ls", "src", "--json")
        assert r.exit_code == 0, r.output
        assert json.loads(r.output) == [{"name": "main.js", "path": "src/main.js", "type": "file"}]

    def test_ls_not_dir(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "ls", ":README.md")
        assert r.exit_code != 0
        assert "Not a directory" in r.output

    def test_ls_missing(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "ls", "nope")
        assert r.exit_code != 0
        assert "not found" in r.output

    def test_tree(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "tree")
        assert r.exit_code == 0, r.output
        assert r.output.splitlines() == ["src/", "  main.js", "README.md"]

    def test_cat(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "cat", ":src/main.js")
        assert r.exit_code == 0, r.output
        assert r.output == "v1"

    def test_cat_missing(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "cat", "nope.txt")
        assert r.exit_code != 0
        assert "does not exist" in r.output

    def test_missing_branch(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "-b", "dev", "ls")
        assert r.exit_code != 0
        assert "not found" in r.output


class TestCommit:
    def test_write_stdin(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "commit", "-m", "notes", "--write", "docs/notes.md", input="hello\n")
        assert r.exit_code == 0, r.output
        assert len(r.output.strip()) == 40
        assert _invoke(runner, cli_repo, "cat", "docs/notes.md").output == "hello\n"

    def test_move_and_remove(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "commit", "-m", "shuffle", "--mv", "src:app", "--rm", "README.md")
        assert r.exit_code == 0, r.output
        assert _invoke(runner, cli_repo, "tree").output.splitlines() == ["app/", "  main.js"]

    def test_mkdir(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "commit", "-m", "dir", "--mkdir", "assets")
        assert r.exit_code == 0, r.output
        assert "assets/" in _invoke(runner, cli_repo, "ls").output.splitlines()

    def test_dry_run(self, cli_repo, runner, tmp_path):
        f = tmp_path / "new.js"
        f.write_text("v2")
        r = _invoke(runner, cli_repo, "commit", "-n", "--put", f"src/main.js={f}",
                    "--put", f"lib/extra.js={f}", "--rm", "README.md")
        assert r.exit_code == 0, r.output
        assert r.output.splitlines() == ["D README.md", "A lib/extra.js", "M src/main.js"]
        assert _invoke(runner, cli_repo, "cat", "src/main.js").output == "v1"

    def test_empty_message(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "commit", "--rm", "README.md")
        assert r.exit_code != 0
        assert "message" in r.output
        assert "README.md" in _invoke(runner, cli_repo, "ls").output

    def test_nothing_to_do(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "commit", "-m", "x")
        assert r.exit_code != 0
        assert "Nothing to commit" in r.output

    def test_unchanged_put(self, cli_repo, runner, tmp_path):
        f = tmp_path / "same.js"
        f.write_text("v1")
        r = _invoke(runner, cli_repo, "commit", "-m", "same", "--put", f"src/main.js={f}")
        assert r.exit_code != 0
        assert "Nothing staged" in r.output

    def test_bad_put(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "commit", "-m", "x", "--put", "no-equals")
        assert r.exit_code != 0
        assert "PATH=FILE" in r.output

    def test_bad_move(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "commit", "-m", "x", "--mv", "README.md")
        assert r.exit_code != 0
        assert "OLD:NEW" in r.output

    def test_invalid_path(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "commit", "-m", "x", "--rm", "../etc")
        assert r.exit_code != 0
        assert "Invalid repo path" in r.output


class TestRepoOption:
    def test_invalid_repo(self, cli_repo, runner):
        r = _invoke(runner, cli_repo, "--repo", "nonsense", "ls")
        assert r.exit_code != 0
        assert "Invalid repository reference" in r.output

    def test_no_repo_for_github(self, runner, monkeypatch):
        monkeypatch.delenv("GITOVERLAY_REPO", raising=False)
        monkeypatch.delenv("GITOVERLAY_LOCAL", raising=False)
        r = runner.invoke(main, ["ls"])
        assert r.exit_code != 0
        assert "No repository specified" in r.output

    def test_env_local(self, cli_repo, runner, monkeypatch):
        monkeypatch.setenv("GITOVERLAY_LOCAL", cli_repo)
        r = runner.invoke(main, ["cat", "README.md"])
        assert r.exit_code == 0, r.output
        assert r.output.startswith("# cli")
