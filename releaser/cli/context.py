from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from releaser.core.errors import ErrorCode
from releaser.core.result import Err
from releaser.output.console import ConsoleProtocol, RichConsole
from releaser.output.reporter import ReleaseFailure, Reporter
from releaser.release.repository import Repository
from releaser.release.settings import RepoSettings, find_settings_file, load_settings

REPO_ROOT_ENV = "RELEASER_REPO_ROOT"
CONFIG_ENV = "RELEASER_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    settings_path: Path
    settings: RepoSettings
    console: ConsoleProtocol
    reporter: Reporter

    def repository(self, *, validate: bool = True) -> Repository:
        """Load components. Validation failures exit with a release error."""
        try:
            return Repository(self.settings, self.root, self.reporter, validate=validate)
        except ReleaseFailure:
            raise typer.Exit(code=int(ErrorCode.RELEASE_ERROR))


def detect_repo_root() -> Path:
    env = os.environ.get(REPO_ROOT_ENV)
    if env:
        return Path(env).expanduser().resolve()
    cwd = Path.cwd().resolve()
    for parent in (cwd, *cwd.parents):
        if (parent / ".git").exists():
            return parent
    return cwd


def build_context() -> CLIContext:
    root = detect_repo_root()
    env_config = os.environ.get(CONFIG_ENV)
    settings_path = Path(env_config).expanduser().resolve() if env_config else find_settings_file(root)
    if settings_path is None:
        typer.echo(f"error: no releases.toml found under {root}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    settings_result = load_settings(settings_path)
    if isinstance(settings_result, Err):
        error = settings_result.error
        typer.echo(f"error: {error.message}", err=True)
        for line in error.details:
            typer.echo(f"  {line}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    console = RichConsole()
    settings = settings_result.value
    for warning in settings.warnings:
        console.warning(warning)
    return CLIContext(
        root=root,
        settings_path=settings_path,
        settings=settings,
        console=console,
        reporter=Reporter(console),
    )
