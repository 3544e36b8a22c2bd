from __future__ import annotations

from pathlib import Path

import pytest
import typer

from releaser.cli.commands.hooks_cmd import build_push_warning
from releaser.cli.context import CONFIG_ENV, REPO_ROOT_ENV, build_context, detect_repo_root
from releaser.core.errors import ErrorCode


def _write_settings(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_detect_repo_root_walks_up_to_git(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(REPO_ROOT_ENV, raising=False)
    (tmp_path / ".git").mkdir()
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert detect_repo_root() == tmp_path.resolve()


def test_build_context_loads_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(REPO_ROOT_ENV, str(tmp_path))
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    _write_settings(
        tmp_path / ".github" / "releases.toml",
        'repo = "example-org/widgets"\n\n[[components]]\nname = "solo"\n',
    )

    ctx = build_context()

    assert ctx.root == tmp_path.resolve()
    assert ctx.settings_path == tmp_path.resolve() / ".github" / "releases.toml"
    assert ctx.settings.repo_path == "example-org/widgets"
    assert list(ctx.settings.components) == ["solo"]


def test_build_context_without_settings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv(REPO_ROOT_ENV, str(tmp_path))
    monkeypatch.delenv(CONFIG_ENV, raising=False)

    with pytest.raises(typer.Exit) as exc:
        build_context()

    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)
    assert "no releases.toml found" in capsys.readouterr().err


def test_build_context_reports_every_settings_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv(REPO_ROOT_ENV, str(tmp_path))
    path = _write_settings(tmp_path / "custom.toml", 'main_branch = "main"\n')
    monkeypatch.setenv(CONFIG_ENV, str(path))

    with pytest.raises(typer.Exit) as exc:
        build_context()

    err = capsys.readouterr().err
    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)
    assert "error: Errors while loading custom.toml" in err
    assert "  Repo key missing from custom.toml" in err
    assert "  No components found" in err


class _PushedRepository:
    repo_path = "example-org/widgets"

    def current_sha(self) -> str:
        return "abc123"

    def last_commit_message(self) -> str:
        return "fix: late change"


def test_build_push_warning() -> None:
    text = build_push_warning(_PushedRepository())  # pyright: ignore[reportArgumentType]

    assert text.splitlines() == [
        "WARNING: An additional commit was added while this release PR was open.",
        "You may need to add to the changelog, or close this PR and prepare a new one.",
        "",
        "Commit link: https://github.com/example-org/widgets/commit/abc123",
        "",
        "Message:",
        "fix: late change",
    ]
