"""Tests for git/repository.py."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from releaser.core.result import Err, Ok, Result
from releaser.git import repository as git_mod
from releaser.git.repository import GitError, GitRepo
from releaser.platform.process import ProcessError


class _FakeRun:
    """Records git invocations and answers from a queue."""

    def __init__(self, *responses: Result[str, ProcessError]) -> None:
        self.responses = list(responses)
        self.calls: list[list[str]] = []
        self.inputs: list[str | None] = []
        self.timeouts: list[float | None] = []

    def __call__(
        self,
        cmd: list[str],
        *,
        cwd: Path,
        timeout: float | None = None,
        input: str | None = None,
    ) -> Result[str, ProcessError]:
        del cwd
        self.calls.append(cmd)
        self.inputs.append(input)
        self.timeouts.append(timeout)
        if self.responses:
            return self.responses.pop(0)
        return Ok("")


def _fail(stderr: str = "", returncode: int = 1) -> Err[ProcessError]:
    return Err(ProcessError(command=("git",), returncode=returncode, stdout="", stderr=stderr))


# =============================================================================
# Command construction
# =============================================================================


class TestCommands:
    def test_rev_parse_strips_output(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        fake = _FakeRun(Ok("abc123\n"))
        monkeypatch.setattr(git_mod, "run_process", fake)

        assert GitRepo(tmp_path).rev_parse("v1.0.0") == Ok("abc123")
        assert fake.calls == [["git", "-C", str(tmp_path), "rev-parse", "v1.0.0"]]

    def test_error_message_prefers_stderr(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(git_mod, "run_process", _FakeRun(_fail("fatal: bad revision\n", 128)))

        result = GitRepo(tmp_path).rev_parse("nope")

        assert result == Err(GitError(command="rev-parse", message="fatal: bad revision", returncode=128))

    def test_error_message_falls_back_to_command(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(git_mod, "run_process", _FakeRun(_fail()))

        result = GitRepo(tmp_path).switch("main")

        assert isinstance(result, Err)
        assert result.error.message == "git switch failed"

    def test_only_network_commands_are_time_bounded(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        fake = _FakeRun()
        monkeypatch.setattr(git_mod, "run_process", fake)
        repo = GitRepo(tmp_path)

        repo.fetch("origin", "main", options=["--depth=2"])
        repo.status_lines()

        assert fake.calls[0][3:] == ["fetch", "--depth=2", "origin", "main"]
        assert fake.timeouts[0] is not None
        assert fake.timeouts[1] is None

    def test_push_flags(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        fake = _FakeRun()
        monkeypatch.setattr(git_mod, "run_process", fake)
        repo = GitRepo(tmp_path)

        repo.push("origin", "release/core", force=True)
        repo.push("origin", "release/core", delete=True)

        assert fake.calls[0][3:] == ["push", "-f", "origin", "release/core"]
        assert fake.calls[1][3:] == ["push", "--delete", "origin", "release/core"]

    def test_switch_flags(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        fake = _FakeRun()
        monkeypatch.setattr(git_mod, "run_process", fake)
        repo = GitRepo(tmp_path)

        repo.switch("abc123", detach=True)
        repo.switch("release/core", create=True)

        assert fake.calls[0][3:] == ["switch", "--detach", "abc123"]
        assert fake.calls[1][3:] == ["switch", "-c", "release/core"]

    def test_commit_with_details_and_signoff(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        fake = _FakeRun()
        monkeypatch.setattr(git_mod, "run_process", fake)

        GitRepo(tmp_path).commit("release: Release core 1.1.0", "* core 1.1.0 (was 1.0.0)", signoff=True)

        assert fake.calls[0][3:] == [
            "commit",
            "-a",
            "-m",
            "release: Release core 1.1.0",
            "-m",
            "* core 1.1.0 (was 1.0.0)",
            "--signoff",
        ]

    def test_log_shas_are_oldest_first(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        fake = _FakeRun(Ok("ccc\nbbb\naaa\n"))
        monkeypatch.setattr(git_mod, "run_process", fake)

        assert GitRepo(tmp_path).log_shas("v1.0.0", "HEAD") == Ok(["aaa", "bbb", "ccc"])
        assert fake.calls[0][3:] == ["log", "v1.0.0..HEAD", "--format=%H"]

    def test_log_shas_without_start(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        fake = _FakeRun(Ok("aaa\n"))
        monkeypatch.setattr(git_mod, "run_process", fake)

        GitRepo(tmp_path).log_shas(None, "HEAD")

        assert fake.calls[0][3:] == ["log", "HEAD", "--format=%H"]

    def test_current_branch_detached(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(git_mod, "run_process", _FakeRun(Ok("\n")))
        assert GitRepo(tmp_path).current_branch() is None

    def test_is_shallow(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(git_mod, "run_process", _FakeRun(Ok("true\n"), _fail()))
        repo = GitRepo(tmp_path)
        assert repo.is_shallow() is True
        assert repo.is_shallow() is False

    def test_config_get_missing(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(git_mod, "run_process", _FakeRun(_fail()))
        assert GitRepo(tmp_path).config_get("user.name") is None

    def test_ignored_paths_uses_stdin(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        fake = _FakeRun(Ok("build/out.txt\n"))
        monkeypatch.setattr(git_mod, "run_process", fake)

        result = GitRepo(tmp_path).ignored_paths(["build/out.txt", "src/a.py"])

        assert result == ["build/out.txt"]
        assert fake.calls[0][3:] == ["check-ignore", "--stdin"]
        assert fake.inputs[0] == "build/out.txt\nsrc/a.py\n"

    def test_ignored_paths_nothing_matched(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        fake = _FakeRun(_fail())
        monkeypatch.setattr(git_mod, "run_process", fake)
        repo = GitRepo(tmp_path)

        assert repo.ignored_paths(["a"]) == []
        assert repo.ignored_paths([]) == []
        assert len(fake.calls) == 1


# =============================================================================
# Real git
# =============================================================================


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _init_repo(path: Path) -> GitRepo:
    repo = GitRepo(path)
    assert isinstance(repo.init(), Ok)
    repo.config_set_local("user.name", "Test")
    repo.config_set_local("user.email", "test@example.com")
    repo.config_set_local("commit.gpgsign", "false")
    return repo


def _commit_file(repo: GitRepo, name: str, content: str, title: str) -> str:
    (repo.path / name).write_text(content, encoding="utf-8")
    assert isinstance(repo.add_all(), Ok)
    assert isinstance(repo.commit(title), Ok)
    sha = repo.rev_parse("HEAD")
    assert isinstance(sha, Ok)
    return sha.value


@requires_git
class TestRealGit:
    def test_history_queries(self, tmp_path: Path) -> None:
        repo = _init_repo(tmp_path)
        first = _commit_file(repo, "a.txt", "one\n", "feat: first")
        second = _commit_file(repo, "b.txt", "two\n", "fix: second")

        assert repo.log_shas(None, "HEAD") == Ok([first, second])
        assert repo.log_shas(first, "HEAD") == Ok([second])
        assert repo.commit_message(second) == Ok("fix: second")
        assert repo.changed_files(first) == Ok(["a.txt"])
        assert repo.show_file(first, "a.txt") == Ok("one\n")
        assert repo.status_lines() == Ok([])

    def test_changed_files_of_merge_commit(self, tmp_path: Path) -> None:
        repo = _init_repo(tmp_path)
        _commit_file(repo, "a.txt", "one\n", "initial")
        main = repo.current_branch()
        assert main is not None
        assert isinstance(repo.switch("topic", create=True), Ok)
        _commit_file(repo, "b.txt", "two\n", "feat: topic work")
        assert isinstance(repo.switch(main), Ok)
        _commit_file(repo, "c.txt", "three\n", "fix: mainline work")

        merged = repo.output(["merge", "--no-ff", "--no-edit", "-q", "-m", "Merge topic", "topic"])

        assert isinstance(merged, Ok)
        assert repo.changed_files("HEAD") == Ok(["b.txt"])

    def test_tags_and_refs(self, tmp_path: Path) -> None:
        repo = _init_repo(tmp_path)
        _commit_file(repo, "a.txt", "one\n", "initial")
        assert isinstance(repo.output(["tag", "core-v1.0.0"]), Ok)

        assert repo.tags_merged("HEAD") == Ok(["core-v1.0.0"])
        assert repo.ref_exists("core-v1.0.0") is True
        assert repo.ref_exists("core-v2.0.0") is False

    def test_dirty_tree_and_ignored_paths(self, tmp_path: Path) -> None:
        repo = _init_repo(tmp_path)
        (tmp_path / ".gitignore").write_text("build/\n", encoding="utf-8")
        _commit_file(repo, "a.txt", "one\n", "initial")
        (tmp_path / "a.txt").write_text("changed\n", encoding="utf-8")

        status = repo.status_lines()
        assert isinstance(status, Ok)
        assert len(status.value) == 1
        assert repo.ignored_paths(["build/x.whl", "a.txt"]) == ["build/x.whl"]

    def test_show_missing_file(self, tmp_path: Path) -> None:
        repo = _init_repo(tmp_path)
        _commit_file(repo, "a.txt", "one\n", "initial")

        result = repo.show_file("HEAD", "missing.txt")

        assert isinstance(result, Err)
        assert result.error.command == "show"
