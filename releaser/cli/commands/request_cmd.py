from __future__ import annotations

import typer

from releaser.cli.commands.common import ensure_tools, exit_cli, parse_unit_specs, release_failures
from releaser.cli.context import build_context
from releaser.core.errors import ErrorCode
from releaser.output.console import Style
from releaser.release.repository import Repository
from releaser.release.request_logic import RequestLogic
from releaser.release.request_spec import RequestSpec


def request(
    units: list[str] | None = typer.Argument(
        None,
        help="Components to release: name[=version|major|minor|patch]. 'all' selects every component.",
    ),
    git_remote: str = typer.Option("origin", "--git-remote", help="Remote of the canonical repository"),
    release_ref: str | None = typer.Option(
        None, "--release-ref", "--target-branch", help="Target branch (default: current branch)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Open a release pull request.

    Collects the commits since each component's last release, infers the
    next version from conventional commit messages (unless given), updates
    changelogs and version files on a release branch and opens a PR.
    """
    ctx = build_context()
    specs = parse_unit_specs(units or [])
    repository = ctx.repository()
    ensure_tools(repository)
    console = ctx.console

    with release_failures():
        target_branch = _prepare_repository(repository, git_remote, release_ref or None)

        request_spec = RequestSpec(ctx.reporter)
        for name, version in specs:
            if name == "all":
                for component in repository.all_components():
                    request_spec.add(component.name, version)
            else:
                request_spec.add(name, version)
        request_spec.resolve_versions(repository, target_branch)
        request_logic = RequestLogic(repository, request_spec).verify_unit_status()

        console.header("Opening a request to release the following components:")
        for unit in request_spec.resolved_units:
            console.print(f"* {unit.unit_name} version {unit.last_version} -> {unit.version}")
        if not yes and not typer.confirm("Create release PR?", default=True):
            exit_cli("Release aborted", code=ErrorCode.USER_ERROR)

        commit_title = request_logic.build_commit_title()
        repository.create_branch(request_logic.determine_release_branch())
        request_logic.change_files()
        repository.git_commit(
            commit_title,
            details=request_logic.build_commit_details() or None,
            signoff=ctx.settings.signoff_commits,
        )
        pr = repository.create_pull_request(
            base_branch=target_branch,
            remote=git_remote,
            title=commit_title,
            body=request_logic.build_pr_body(),
            labels=request_logic.determine_pr_labels(),
        )

    if pr is None:
        exit_cli("pull request was not created", code=ErrorCode.NETWORK_ERROR)
    console.print(f"Created pull request: {pr.url}", Style.BOLD)


def _prepare_repository(repository: Repository, git_remote: str, target_branch: str | None) -> str | None:
    repository.git_set_user_info()
    repository.verify_git_clean()
    repository.verify_repo_identity(git_remote)
    branch = repository.git_prepare_branch(git_remote, target_branch)
    repository.verify_github_checks(branch)
    return branch
