from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from pathlib import Path

import pytest

from releaser.core.result import Ok
from releaser.git.repository import GitRepo
from releaser.output.console import MockConsole
from releaser.output.reporter import Reporter
from releaser.platform.http import MockHttpClient
from releaser.release.repository import Repository
from releaser.release.settings import RepoSettings


class ReleaseWorkspace:
    """A throwaway git repository laid out like a project under release."""

    def __init__(self, root: Path, reporter: Reporter) -> None:
        self.root = root
        self.reporter = reporter
        self.git = GitRepo(root)
        self.http = MockHttpClient()

    def write(self, rel: str, content: str) -> Path:
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def add_component(
        self,
        name: str,
        *,
        directory: str = ".",
        version: str | None = "1.0.0",
        package: bool = False,
    ) -> None:
        changelog = "# Changelog\n"
        if version is not None:
            changelog += f"\n### v{version} / 2024-01-01\n\n* Initial release\n"
        self.write(f"{directory}/CHANGELOG.md", changelog)
        module = name.replace("-", "_")
        self.write(f"{directory}/{module}/version.py", f'__version__ = "{version or "0.0.0"}"\n')
        if package:
            self.write(f"{directory}/pyproject.toml", f'[project]\nname = "{name}"\n')

    def commit(self, message: str) -> str:
        assert isinstance(self.git.add_all(), Ok)
        assert isinstance(self.git.output(["commit", "-q", "--allow-empty", "-m", message]), Ok)
        return self.head()

    def head(self) -> str:
        sha = self.git.rev_parse("HEAD")
        assert isinstance(sha, Ok)
        return sha.value

    def tag(self, name: str, ref: str = "HEAD") -> None:
        assert isinstance(self.git.output(["tag", name, ref]), Ok)

    def settings(self, data: Mapping[str, object]) -> RepoSettings:
        settings = RepoSettings.from_dict({"repo": "example-org/widgets", **data})
        assert settings.errors == ()
        return settings

    def repository(self, data: Mapping[str, object], *, validate: bool = True) -> Repository:
        return Repository(self.settings(data), self.root, self.reporter, http=self.http, validate=validate)


@pytest.fixture
def console() -> MockConsole:
    return MockConsole()


@pytest.fixture
def reporter(console: MockConsole) -> Reporter:
    return Reporter(console)


@pytest.fixture
def workspace(tmp_path: Path, reporter: Reporter, monkeypatch: pytest.MonkeyPatch) -> ReleaseWorkspace:
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    root = tmp_path / "repo"
    root.mkdir()
    ws = ReleaseWorkspace(root, reporter)
    assert isinstance(ws.git.init(), Ok)
    ws.git.output(["checkout", "-q", "-b", "main"])
    ws.git.config_set_local("user.name", "Release Bot")
    ws.git.config_set_local("user.email", "bot@example.com")
    ws.git.config_set_local("commit.gpgsign", "false")
    ws.git.config_set_local("tag.gpgsign", "false")
    return ws
