from __future__ import annotations

from dataclasses import dataclass

import typer

from releaser.cli.commands.common import ensure_tools, exit_cli, release_failures
from releaser.cli.context import build_context
from releaser.core.errors import ErrorCode
from releaser.core.structured import get_str
from releaser.release.settings import RepoSettings


@dataclass(frozen=True, slots=True)
class LabelSpec:
    name: str
    color: str
    description: str


def expected_labels(settings: RepoSettings) -> list[LabelSpec]:
    return [
        LabelSpec(settings.release_pending_label, "ddeeff", "Automated release is pending"),
        LabelSpec(settings.release_error_label, "ffdddd", "Automated release failed with an error"),
        LabelSpec(settings.release_aborted_label, "eeeeee", "Automated release was aborted"),
        LabelSpec(settings.release_complete_label, "ddffdd", "Automated release completed successfully"),
    ]


def create_labels(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmations"),
) -> None:
    """Create or update the release status labels on GitHub."""
    ctx = build_context()
    settings = ctx.settings
    if not settings.enable_release_automation:
        ctx.console.print("Release automation disabled in settings.")
        if not yes and not typer.confirm("Create labels anyway?", default=False):
            exit_cli("Aborted.", code=ErrorCode.USER_ERROR)

    repository = ctx.repository(validate=False)
    ensure_tools(repository)
    with release_failures():
        current = {get_str(label, "name"): label for label in repository.list_labels()}
        for label in expected_labels(settings):
            existing = current.get(label.name)
            if existing is None:
                if yes or typer.confirm(f'Label "{label.name}" doesn\'t exist. Create?', default=True):
                    repository.create_label(label.name, label.color, label.description)
                    ctx.console.success(f"Created label {label.name}")
            elif get_str(existing, "color") != label.color or get_str(existing, "description") != label.description:
                if yes or typer.confirm(f'Update fields of "{label.name}"?', default=True):
                    repository.update_label(label.name, label.color, label.description)
                    ctx.console.success(f"Updated label {label.name}")
            else:
                ctx.console.print(f"Label {label.name} is up to date")
