"""Execution of releases: runs component pipelines and reports the outcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from releaser.release.artifact_dir import ArtifactDir
from releaser.release.component import Component
from releaser.release.pull_request import PullRequest
from releaser.release.repository import Repository
from releaser.release.semver import Version
from releaser.release.steps import Abort, Continue, Skip, StepContext, build_pipeline

__all__ = ["Performer", "UnitResult"]

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(slots=True)
class UnitResult:
    """Outcome lines for one release attempt (or for setup, with no unit).

    ``errors`` is None when errors are not being captured; they then
    propagate as ``ReleaseFailure`` instead.
    """

    unit_name: str | None
    version: Version | None
    successes: list[str] = field(default_factory=list)
    errors: list[str] | None = None

    @classmethod
    def create(cls, unit_name: str | None, version: Version | None, *, capture_errors: bool) -> UnitResult:
        return cls(unit_name, version, [], [] if capture_errors else None)

    @property
    def empty(self) -> bool:
        return not self.successes and not self.errors

    @property
    def formatted_successes(self) -> list[str]:
        return [f"* {line}" for line in self.successes]

    @property
    def formatted_errors(self) -> list[str]:
        return [f"* ERROR: {line}" for line in self.errors or []]


class Performer:
    """Runs the release pipelines for a release SHA.

    Construction resolves the release SHA and pull request and runs the
    repository prechecks. With ``capture_errors``, failures there and in each
    component release are recorded in the results instead of raised, so one
    broken component does not stop the others.
    """

    def __init__(
        self,
        repository: Repository,
        *,
        release_ref: str | None = None,
        release_pr: PullRequest | int | None = None,
        enable_prechecks: bool = True,
        disabled_steps: frozenset[str] = frozenset(),
        capture_errors: bool = False,
        git_remote: str = "origin",
        work_dir: Path | None = None,
        dry_run: bool = False,
    ) -> None:
        self._repository = repository
        self._settings = repository.settings
        self._reporter = repository.reporter
        self._enable_prechecks = enable_prechecks
        self._disabled_steps = disabled_steps
        self._capture_errors = capture_errors
        self._git_remote = git_remote
        self._dry_run = dry_run
        self._work_dir = work_dir
        self._release_sha: str | None = None
        self._pr: PullRequest | None = None
        self._pr_units: dict[str, Version | None] | None = None
        self._run_aborted = False
        self._start_time = datetime.now(UTC)
        self.results: list[UnitResult] = []
        self.init_result = UnitResult.create(None, None, capture_errors=capture_errors)
        with self._reporter.capture_errors(self.init_result.errors):
            self._resolve_ref_and_pr(release_ref, release_pr)
            if enable_prechecks:
                self._repo_prechecks()

    @property
    def pr(self) -> PullRequest | None:
        return self._pr

    @property
    def release_sha(self) -> str | None:
        return self._release_sha

    @property
    def pr_url(self) -> str | None:
        return self._pr.url if self._pr is not None else None

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def has_errors(self) -> bool:
        if self.init_result.errors:
            return True
        return any(result.errors for result in self.results)

    # -------------------------------------------------------------------------
    # Releases
    # -------------------------------------------------------------------------

    def perform_adhoc_release(self, unit_name: str, assert_version: Version | None = None) -> Performer:
        """Release one component at the version its changelog declares."""
        if self._run_aborted:
            self._reporter.warning(f"Skipping {unit_name} because the release run was aborted.")
            return self
        if self._release_sha is None:
            with self._reporter.capture_errors(self.init_result.errors):
                self._reporter.error(f"Cannot release {unit_name} because no release SHA was resolved.")
            return self
        with self._repository.at_sha(self._release_sha):
            result = UnitResult.create(unit_name, assert_version, capture_errors=self._capture_errors)
            self.results.append(result)
            with self._reporter.capture_errors(result.errors):
                component = self._repository.component(unit_name)
                if component is None:
                    self._reporter.error(f'Releasable unit "{unit_name}" not found.')
                    return self
                version = component.current_changelog_version()
                if assert_version is not None and assert_version != version:
                    self._reporter.error(
                        f"Asserted version {assert_version} does not match version"
                        f" {version} found in the changelog."
                    )
                elif version is None:
                    self._reporter.error(f"No version found in the changelog for {unit_name}.")
                else:
                    result.version = version
                    self._perform_release(component, version, result)
        return self

    def perform_pr_releases(self) -> Performer:
        """Release every component the merged release PR touched."""
        if self._pr_units is None:
            with self._reporter.capture_errors(self.init_result.errors):
                self._reporter.error("Cannot perform PR releases because no pull request was found.")
            return self
        for unit_name, version in self._pr_units.items():
            self.perform_adhoc_release(unit_name, version)
        return self

    def _perform_release(self, component: Component, version: Version, result: UnitResult) -> None:
        if self._enable_prechecks:
            self._reporter.log(f"Running prechecks for {component.name} ...")
            component.verify_version(version)
            self._reporter.log(f"Completed prechecks for {component.name}")
        # Artifacts never carry over from one component release to the next.
        with ArtifactDir(self._work_dir) as artifact_dir:
            ctx = StepContext(
                repository=self._repository,
                component=component,
                version=version,
                artifact_dir=artifact_dir,
                dry_run=self._dry_run,
                git_remote=self._git_remote,
                successes=result.successes,
            )
            for step in build_pipeline(component, disabled_steps=self._disabled_steps):
                self._reporter.info(f"Running step {step.name} for {component.name} ...")
                match step.run(ctx):
                    case Continue():
                        pass
                    case Skip(reason):
                        self._reporter.log(reason)
                    case Abort(reason, whole_run):
                        if whole_run:
                            self._run_aborted = True
                        self._reporter.error(reason)
                        return

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def report_results(self) -> Performer:
        """Post the report on the release PR and open an issue on failure."""
        report_text = self.build_report_text()
        if self._pr is not None:
            self._reporter.log(f"Updating release pull request {self.pr_url} ...")
            label = self._settings.release_error_label if self.has_errors else self._settings.release_complete_label
            self._repository.update_release_pr(self._pr, labels=[label], message=report_text)
            self._reporter.log(f"Updated release pull request {self.pr_url}")
        if self.has_errors:
            self._reporter.log("Opening a new issue to report the failure ...")
            body = "\n".join(
                [
                    "A release job failed.",
                    "",
                    f"Release PR: {self.pr_url or 'unknown'}",
                    f"Commit: https://github.com/{self._settings.repo_path}/commit/{self._release_sha}",
                    "",
                    "----",
                    "",
                    report_text,
                ]
            )
            if self._pr is not None:
                title = f"Release PR #{self._pr.number} failed with errors"
            else:
                title = "Release job failed with errors"
            issue = self._repository.open_issue(title, body)
            self._reporter.log(f"Issue #{issue.get('number')} opened")
        return self

    def build_report_text(self) -> str:
        finish_time = datetime.now(UTC)
        lines = [
            "## Release job results",
            "",
            f"* Job started {self._start_time.strftime(_TIME_FORMAT)} UTC",
            f"* Job finished {finish_time.strftime(_TIME_FORMAT)} UTC",
        ]
        if self._release_sha:
            lines.append(f"* Release SHA: {self._release_sha}")
        if self._pr is not None:
            lines.append(f"* Release pull request: {self.pr_url}")
        if self._dry_run:
            lines.append("* This was a dry run. No releases were actually published.")
        if self.has_errors:
            lines.append("* **Release job completed with errors.**")
        else:
            lines.append("* **All releases completed successfully.**")
        if not self.init_result.empty:
            lines.extend(["", "### Setup", ""])
            lines.extend(self.init_result.formatted_errors)
            lines.extend(self.init_result.formatted_successes)
        for result in self.results:
            if result.empty:
                continue
            lines.extend(["", f"### {result.unit_name} {result.version}", ""])
            lines.extend(result.formatted_errors)
            lines.extend(result.formatted_successes)
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def _resolve_ref_and_pr(self, ref: str | None, pr: PullRequest | int | None) -> None:
        if isinstance(pr, int):
            self._pr = self._repository.load_pr(pr)
            if self._pr is None:
                self._reporter.error(f"Pull request number {pr} not found.")
        elif isinstance(pr, PullRequest):
            self._pr = pr
        if self._pr is not None and ref is None:
            ref = self._pr.merge_commit_sha
        self._release_sha = self._repository.current_sha(ref)
        self._reporter.log(f"Release SHA set to {self._release_sha}")
        if self._pr is None:
            found = self._repository.find_release_prs(merge_sha=self._release_sha)
            self._pr = found[0] if found else None
        if self._pr is not None:
            self._reporter.log(f"Release pull request is {self.pr_url}")
            self._pr_units = self._repository.released_units_and_versions(self._pr)
        else:
            self._reporter.warning("No release pull request found")
        self._repository.git_fetch(self._git_remote, self._release_sha)

    def _repo_prechecks(self) -> None:
        self._reporter.info("Performing repo-level prechecks ...")
        self._repository.verify_git_clean()
        self._repository.verify_repo_identity(self._git_remote)
        self._repository.verify_github_checks(self._release_sha)
        self._reporter.info("Repo-level prechecks succeeded.")
