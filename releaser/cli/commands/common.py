from __future__ import annotations

import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

import typer

from releaser.core.errors import ErrorCode
from releaser.output.reporter import ReleaseFailure
from releaser.release.repository import Repository

_UNIT_SPEC_RE = re.compile(r"^([\w-]+)(?:[=:]([\w.-]+))?$")


def exit_cli(err: str, *, code: ErrorCode) -> NoReturn:
    typer.echo(f"error: {err}", err=True)
    raise typer.Exit(code=int(code))


@contextmanager
def release_failures() -> Iterator[None]:
    """Turn a reported ``ReleaseFailure`` into a release-error exit."""
    try:
        yield
    except ReleaseFailure:
        raise typer.Exit(code=int(ErrorCode.RELEASE_ERROR))


def parse_unit_specs(specs: list[str]) -> list[tuple[str, str | None]]:
    """Split ``name[=version]`` arguments. ``name:version`` is accepted too."""
    out: list[tuple[str, str | None]] = []
    for spec in specs:
        m = _UNIT_SPEC_RE.match(spec)
        if m is None:
            exit_cli(f"invalid unit (expected name[=version]): {spec}", code=ErrorCode.USER_ERROR)
        out.append((m.group(1), m.group(2)))
    return out


def resolve_dry_run(dry_run: bool | None, enable_releases: str | None) -> bool:
    """Releases are dry runs unless enabled explicitly."""
    if dry_run is not None:
        return dry_run
    return not re.match(r"^t", enable_releases or "", re.IGNORECASE)


def ensure_tools(repository: Repository) -> None:
    try:
        repository.ensure_git_binary()
        repository.ensure_gh_binary()
    except ReleaseFailure:
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
