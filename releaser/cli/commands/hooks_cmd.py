"""Workflow hooks run by GitHub Actions on release pull request events."""

from __future__ import annotations

import json
import os
from pathlib import Path

import typer

from releaser.cli.commands.common import ensure_tools, exit_cli, release_failures, resolve_dry_run
from releaser.cli.context import CLIContext, build_context
from releaser.core.errors import ErrorCode
from releaser.core.structured import as_str_dict
from releaser.release.performer import Performer
from releaser.release.pull_request import PullRequest
from releaser.release.repository import Repository

RELEASE_CURRENT_BRANCH = "release/current"


def on_closed(
    event_path: Path | None = typer.Option(
        None, "--event-path", help="GitHub event JSON (default: $GITHUB_EVENT_PATH)"
    ),
    enable_releases: str = typer.Option(
        "true", "--enable-releases", help="Releases are published unless set to something other than 'true'"
    ),
) -> None:
    """Handle a closed release pull request."""
    ctx = build_context()
    path = event_path or _env_path("GITHUB_EVENT_PATH")
    if path is None:
        exit_cli("GitHub event path missing", code=ErrorCode.USER_ERROR)
    pr_data = _read_pull_request(path)
    repository = ctx.repository()
    pr = PullRequest(repository.repo_path, pr_data)

    with release_failures():
        source_ref = pr.head_ref
        if repository.release_related_branch(source_ref) and source_ref is not None:
            ctx.reporter.info(f"Deleting release branch {source_ref} ...")
            repository.delete_remote_branch("origin", source_ref)
            ctx.reporter.info("Deleted.")

        if ctx.settings.release_pending_label not in pr.labels:
            ctx.reporter.info(f"PR {pr.number} does not have the release pending label. Ignoring.")
            return

        if pr.merged:
            _handle_release_merged(ctx, repository, pr, resolve_dry_run(None, enable_releases))
        else:
            ctx.reporter.info(f"Updating release PR {pr.number} to mark it as aborted.")
            repository.update_release_pr(
                pr,
                labels=[ctx.settings.release_aborted_label],
                state="closed",
                message="Release PR closed without merging.",
            )
            ctx.reporter.info("Done.")


def _handle_release_merged(ctx: CLIContext, repository: Repository, pr: PullRequest, dry_run: bool) -> None:
    ensure_tools(repository)
    merge_sha = pr.merge_commit_sha
    if merge_sha is None:
        ctx.reporter.error(f"Release PR {pr.number} has no merge commit.")
        return
    repository.git_fetch("origin", f"+{merge_sha}:refs/heads/{RELEASE_CURRENT_BRANCH}", options=["--depth=2"])
    repository.git_switch(RELEASE_CURRENT_BRANCH)
    performer = Performer(repository, release_pr=pr, capture_errors=True, dry_run=dry_run)
    check_errors = repository.wait_github_checks()
    if check_errors:
        ctx.reporter.error("GitHub checks failed", *check_errors)
    performer.perform_pr_releases()
    performer.report_results()
    if performer.has_errors:
        ctx.reporter.error("Releases reported failure")
    ctx.console.success("All releases completed successfully")


def on_push() -> None:
    """Warn open release PRs about commits pushed after they were opened."""
    ctx = build_context()
    repository = ctx.repository(validate=False)
    reporter = ctx.reporter

    with release_failures():
        merged = repository.find_release_prs(merge_sha=repository.current_sha())
        if merged:
            reporter.info(f"This appears to be a merge of release PR #{merged[0].number}.")
            return
        reporter.info("This was not a merge of a release PR.")

        push_branch = repository.current_branch()
        reporter.info(f"Searching for open release PRs targeting branch {push_branch} ...")
        message: str | None = None
        for pr in repository.find_release_prs():
            if pr.base_ref != push_branch:
                reporter.info(f"Skipping PR #{pr.number} that targets branch {pr.base_ref}")
                continue
            message = message or build_push_warning(repository)
            reporter.info(f"Updating PR {pr.number} ...")
            repository.add_pr_comment(pr.number, message)
        if message is not None:
            reporter.info("Finished updating existing release PRs.")
        else:
            reporter.info(f"No existing release PRs target branch {push_branch}.")


def build_push_warning(repository: Repository) -> str:
    return "\n".join(
        [
            "WARNING: An additional commit was added while this release PR was open.",
            "You may need to add to the changelog, or close this PR and prepare a new one.",
            "",
            f"Commit link: https://github.com/{repository.repo_path}/commit/{repository.current_sha()}",
            "",
            "Message:",
            repository.last_commit_message(),
        ]
    )


def _env_path(name: str) -> Path | None:
    value = os.environ.get(name)
    return Path(value) if value else None


def _read_pull_request(path: Path) -> dict[str, object]:
    try:
        event = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        exit_cli(f"cannot read GitHub event {path}: {e}", code=ErrorCode.IO_ERROR)
    event_data = as_str_dict(event)
    pr_data = as_str_dict(event_data.get("pull_request")) if event_data is not None else None
    if pr_data is None:
        exit_cli(f"GitHub event {path} has no pull_request", code=ErrorCode.USER_ERROR)
    return pr_data
