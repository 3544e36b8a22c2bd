from __future__ import annotations

from pathlib import Path

import typer

from releaser.cli.commands.common import ensure_tools, exit_cli, release_failures, resolve_dry_run
from releaser.cli.context import build_context
from releaser.core.errors import ErrorCode
from releaser.release.performer import Performer


def disabled_steps(*, no_tags: bool, no_packages: bool, no_docs: bool) -> frozenset[str]:
    """Step kinds switched off for a retry."""
    kinds: set[str] = set()
    if no_tags:
        kinds.add("github_release")
    if no_packages:
        kinds.update({"build_package", "release_package"})
    if no_docs:
        kinds.update({"build_docs", "push_pages"})
    return frozenset(kinds)


def retry(
    release_pr: int = typer.Argument(..., help="Number of the merged release pull request"),
    dry_run: bool | None = typer.Option(
        None, "--dry-run/--no-dry-run", help="Run the pipeline without publishing anything"
    ),
    enable_releases: str | None = typer.Option(
        None, "--enable-releases", help="Set to 'true' to publish (default is a dry run)"
    ),
    git_remote: str = typer.Option("origin", "--git-remote", help="Remote of the canonical repository"),
    release_ref: str | None = typer.Option(None, "--release-ref", help="Commit to release (default: merge commit)"),
    no_tags: bool = typer.Option(False, "--no-tags", help="Skip GitHub releases"),
    no_packages: bool = typer.Option(False, "--no-packages", help="Skip package builds and uploads"),
    no_docs: bool = typer.Option(False, "--no-docs", help="Skip docs builds and gh-pages"),
    enable_prechecks: bool = typer.Option(
        True, "--enable-prechecks/--no-enable-prechecks", help="Verify clean tree, remote and checks"
    ),
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory for build artifacts"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Retry the releases of a merged release pull request."""
    ctx = build_context()
    settings = ctx.settings
    repository = ctx.repository()
    ensure_tools(repository)
    is_dry_run = resolve_dry_run(dry_run, enable_releases)

    with release_failures():
        repository.git_set_user_info()
        pr = repository.load_pr(release_pr)
        if pr is None:
            exit_cli(f"Could not load pull request #{release_pr}", code=ErrorCode.USER_ERROR)
        expected_labels = {settings.release_pending_label, settings.release_error_label}
        if not expected_labels.intersection(pr.labels):
            warning = f"PR {release_pr} doesn't have the release pending or release error label."
            if yes:
                ctx.console.warning(warning)
            elif not typer.confirm(f"{warning} Proceed anyway?", default=False):
                exit_cli("Release aborted.", code=ErrorCode.USER_ERROR)

        sha = repository.current_sha(release_ref or pr.merge_commit_sha)
        with repository.at_sha(sha):
            if enable_prechecks:
                check_errors = repository.wait_github_checks(sha)
                if check_errors:
                    ctx.reporter.error("GitHub checks failed", *check_errors)
            performer = Performer(
                repository,
                release_ref=sha,
                release_pr=pr,
                enable_prechecks=enable_prechecks,
                disabled_steps=disabled_steps(no_tags=no_tags, no_packages=no_packages, no_docs=no_docs),
                capture_errors=True,
                git_remote=git_remote,
                work_dir=work_dir,
                dry_run=is_dry_run,
            )
            performer.perform_pr_releases()
            performer.report_results()

    if performer.has_errors:
        exit_cli("Releases reported failure", code=ErrorCode.RELEASE_ERROR)
    ctx.console.success("All releases completed successfully")
