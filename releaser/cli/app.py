from __future__ import annotations

import os
from pathlib import Path

import typer

from releaser import __version__
from releaser.cli.commands.hooks_cmd import on_closed, on_push
from releaser.cli.commands.labels_cmd import create_labels
from releaser.cli.commands.perform_cmd import perform
from releaser.cli.commands.request_cmd import request
from releaser.cli.commands.retry_cmd import retry
from releaser.cli.context import CONFIG_ENV, REPO_ROOT_ENV
from releaser.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(request)
app.command()(perform)
app.command()(retry)
app.command("on-closed")(on_closed)
app.command("on-push")(on_push)
app.command("create-labels")(create_labels)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    config: Path | None = typer.Option(None, "--config", help="Settings file (default: releases.toml)"),
    repo_root: Path | None = typer.Option(
        None,
        "--repo-root",
        help="Repository root (overrides auto detection)",
    ),
) -> None:
    del version
    if repo_root is not None:
        try:
            root = repo_root.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --repo-root: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not root.is_dir():
            typer.echo(f"error: --repo-root '{root}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

        os.environ[REPO_ROOT_ENV] = str(root)

    if config is not None:
        path = config.expanduser().resolve()
        if not path.is_file():
            typer.echo(f"error: --config '{path}' not found", err=True)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
        os.environ[CONFIG_ENV] = str(path)


def main() -> None:
    app()
