from __future__ import annotations

from pathlib import Path

import typer

from releaser.cli.commands.common import (
    ensure_tools,
    exit_cli,
    parse_unit_specs,
    release_failures,
    resolve_dry_run,
)
from releaser.cli.context import build_context
from releaser.core.errors import ErrorCode
from releaser.release.performer import Performer
from releaser.release.semver import Version


def perform(
    units: list[str] | None = typer.Argument(None, help="Components to release: name[=version]"),
    dry_run: bool | None = typer.Option(
        None, "--dry-run/--no-dry-run", help="Run the pipeline without publishing anything"
    ),
    enable_releases: str | None = typer.Option(
        None, "--enable-releases", help="Set to 'true' to publish (default is a dry run)"
    ),
    git_remote: str = typer.Option("origin", "--git-remote", help="Remote of the canonical repository"),
    release_ref: str | None = typer.Option(None, "--release-ref", help="Commit to release (default: HEAD)"),
    release_pr: int | None = typer.Option(None, "--release-pr", help="Release pull request number"),
    enable_prechecks: bool = typer.Option(
        True, "--enable-prechecks/--no-enable-prechecks", help="Verify clean tree, remote and checks"
    ),
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory for build artifacts"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Release components at the version their changelogs declare."""
    ctx = build_context()
    specs = parse_unit_specs(units or [])
    for _, version in specs:
        if version is not None and Version.parse(version) is None:
            exit_cli(f"invalid version: {version}", code=ErrorCode.USER_ERROR)
    repository = ctx.repository()
    ensure_tools(repository)
    is_dry_run = resolve_dry_run(dry_run, enable_releases)

    with release_failures():
        repository.git_set_user_info()
        performer = Performer(
            repository,
            release_ref=release_ref or None,
            release_pr=release_pr,
            enable_prechecks=enable_prechecks,
            git_remote=git_remote,
            work_dir=work_dir,
            dry_run=is_dry_run,
        )
        for name, version in specs:
            label = f"{name} {version}" if version else name
            if not yes and not typer.confirm(f"Release {label}?", default=False):
                exit_cli("Release aborted", code=ErrorCode.USER_ERROR)
            performer.perform_adhoc_release(name, Version.parse(version) if version else None)

    typer.echo(performer.build_report_text())
    if performer.has_errors:
        raise typer.Exit(code=int(ErrorCode.RELEASE_ERROR))
