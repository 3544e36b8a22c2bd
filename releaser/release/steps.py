"""Release pipeline steps.

A step runs in the component directory and returns a ``StepResult``:

- ``Continue``: the step did its work, go on.
- ``Skip(reason)``: nothing to do (already released, not applicable); the
  next step still runs.
- ``Abort(reason)``: the step failed; the rest of this component's pipeline
  is dropped. With ``whole_run=True`` every remaining component is dropped
  too.

Externally visible mutations (package upload, gh-pages push, GitHub release)
are replaced by a recorded "DRY RUN" success when ``dry_run`` is set.
"""

from __future__ import annotations

import os
import re
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from releaser.core.result import Err, Ok, Result
from releaser.git.repository import GitRepo
from releaser.output.reporter import Reporter
from releaser.platform.files import copy_tree, remove_tree
from releaser.platform.process import ProcessError, run_silent
from releaser.release.artifact_dir import ArtifactDir
from releaser.release.component import Component, PackageComponent
from releaser.release.gh import gh_api_exists, gh_api_write
from releaser.release.semver import Version
from releaser.release.step_config import (
    BuildDocsStepConfig,
    BuildPackageStepConfig,
    BundleStepConfig,
    CommandStepConfig,
    GithubReleaseStepConfig,
    PushPagesStepConfig,
    ReleasePackageStepConfig,
    StepConfig,
    ToolStepConfig,
)

if TYPE_CHECKING:
    from releaser.release.repository import Repository

__all__ = [
    "Abort",
    "Continue",
    "Skip",
    "Step",
    "StepContext",
    "StepResult",
    "build_pipeline",
    "build_step",
]


@dataclass(frozen=True, slots=True)
class Continue:
    pass


@dataclass(frozen=True, slots=True)
class Skip:
    reason: str


@dataclass(frozen=True, slots=True)
class Abort:
    reason: str
    whole_run: bool = False


type StepResult = Continue | Skip | Abort


@dataclass(slots=True)
class StepContext:
    """Everything a step needs for one component release."""

    repository: Repository
    component: Component
    version: Version
    artifact_dir: ArtifactDir
    dry_run: bool = False
    git_remote: str = "origin"
    successes: list[str] = field(default_factory=list)

    @property
    def reporter(self) -> Reporter:
        return self.repository.reporter

    @property
    def description(self) -> str:
        return f"{self.component.name} {self.version}"

    def add_success(self, message: str) -> None:
        self.successes.append(message)


class Step:
    """Base class: shared helpers for pre-build hooks and cleaning."""

    config: StepConfig

    def __init__(self, config: StepConfig) -> None:
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    def run(self, ctx: StepContext) -> StepResult:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    # -------------------------------------------------------------------------
    # Shared helpers
    # -------------------------------------------------------------------------

    def artifact_dir(self, ctx: StepContext, name: str | None = None) -> Path:
        return ctx.artifact_dir.get(name or self.name)

    def pre_tool(self, ctx: StepContext, tool: tuple[str, ...] | None) -> Abort | None:
        if not tool:
            return None
        ctx.reporter.log("Running pre-build tool...")
        cmd = [sys.executable, "-m", *tool]
        if isinstance(_run_streamed(ctx, cmd), Err):
            return Abort(f"Pre-build tool failed: {' '.join(tool)}. Check the logs for details.")
        ctx.reporter.log("Completed pre-build tool.")
        return None

    def pre_command(self, ctx: StepContext, command: tuple[str, ...] | None) -> Abort | None:
        if not command:
            return None
        ctx.reporter.log("Running pre-build command...")
        if isinstance(_run_streamed(ctx, list(command)), Err):
            return Abort(f"Pre-build command failed: {' '.join(command)}. Check the logs for details.")
        ctx.reporter.log("Completed pre-build command.")
        return None

    def pre_clean(self, ctx: StepContext, clean: bool) -> None:
        """Remove everything git ignores under the component directory."""
        if not clean:
            return
        count = _clean_gitignored(ctx, ctx.component.directory)
        ctx.reporter.log(f"Cleaned {count} gitignored items")

    def check_gh_pages_enabled(self, ctx: StepContext, *, required: bool) -> Skip | None:
        if required and not _gh_pages_enabled(ctx.component):
            return Skip(f'Skipping step "{self.name}" because gh_pages is not enabled.')
        return None


class ToolStep(Step):
    config: ToolStepConfig

    def run(self, ctx: StepContext) -> StepResult:
        tool = " ".join(self.config.tool)
        ctx.reporter.log(f"Running tool {tool}...")
        if isinstance(_run_streamed(ctx, [sys.executable, "-m", *self.config.tool]), Err):
            return Abort(
                f"Tool failed: {tool}. Check the logs for details.",
                whole_run=self.config.abort_pipeline_on_error,
            )
        ctx.reporter.log("Completed tool")
        return Continue()


class CommandStep(Step):
    config: CommandStepConfig

    def run(self, ctx: StepContext) -> StepResult:
        command = " ".join(self.config.command)
        ctx.reporter.log(f"Running command {command}...")
        if isinstance(_run_streamed(ctx, list(self.config.command)), Err):
            return Abort(
                f"Command failed: {command}. Check the logs for details.",
                whole_run=self.config.abort_pipeline_on_error,
            )
        ctx.reporter.log("Completed command")
        return Continue()


class BundleStep(Step):
    config: BundleStepConfig

    def run(self, ctx: StepContext) -> StepResult:
        name = ctx.component.name
        ctx.reporter.log(f"Running bundler for {name} ...")
        ctx.component.bundle()
        ctx.reporter.log(f"Completed bundler for {name}")
        return Continue()


class BuildPackageStep(Step):
    config: BuildPackageStepConfig

    def run(self, ctx: StepContext) -> StepResult:
        self.pre_clean(ctx, self.config.clean)
        ctx.reporter.log(f"Building package: {ctx.description}...")
        aborted = self.pre_command(ctx, self.config.pre_command) or self.pre_tool(ctx, self.config.pre_tool)
        if aborted is not None:
            return aborted
        out_dir = self.artifact_dir(ctx)
        cmd = [sys.executable, "-m", "build", "--outdir", str(out_dir)]
        if isinstance(_run_streamed(ctx, cmd), Err):
            return Abort(f"Package build failed for {ctx.description}. Check the logs for details.")
        ctx.reporter.log(f"Package built to {out_dir}.")
        ctx.reporter.log("Completed package build.")
        return Continue()


class BuildDocsStep(Step):
    config: BuildDocsStepConfig

    def run(self, ctx: StepContext) -> StepResult:
        skipped = self.check_gh_pages_enabled(ctx, required=self.config.require_gh_pages_enabled)
        if skipped is not None:
            return skipped
        self.pre_clean(ctx, self.config.clean)
        ctx.reporter.log(f"Building docs: {ctx.description}...")
        aborted = self.pre_command(ctx, self.config.pre_command) or self.pre_tool(ctx, self.config.pre_tool)
        if aborted is not None:
            return aborted
        output_dir = ctx.component.directory / self.config.output_dir
        remove_tree(output_dir)
        command = list(self.config.command or self._default_command(ctx))
        result = _run_streamed(ctx, command)
        if isinstance(result, Err) or not output_dir.is_dir():
            return Abort(f"Docs build failed for {ctx.description}. Check the logs for details.")
        dest_path = self.artifact_dir(ctx) / "doc"
        shutil.move(output_dir, dest_path)
        ctx.reporter.log(f"Docs built to {dest_path}.")
        ctx.reporter.log("Completed docs build.")
        return Continue()

    def _default_command(self, ctx: StepContext) -> list[str]:
        module = ctx.component.name.replace("-", "_")
        return [sys.executable, "-m", "pdoc", "-o", self.config.output_dir, module]


class ReleasePackageStep(Step):
    config: ReleasePackageStepConfig

    def run(self, ctx: StepContext) -> StepResult:
        component = ctx.component
        ctx.reporter.log(f"Checking whether {ctx.description} already exists...")
        if isinstance(component, PackageComponent) and component.version_released(ctx.version):
            ctx.add_success(f"Package already pushed for {ctx.description}")
            return Skip(f"Package already pushed for {ctx.description}. Skipping.")
        ctx.reporter.log("Package has not yet been released.")

        input_dir = ctx.artifact_dir.get(self.config.input)
        dist_files = self._dist_files(ctx, input_dir)
        if ctx.dry_run:
            if not dist_files:
                return Abort(f"DRY RUN: Package not found at {input_dir}")
            ctx.add_success(f"DRY RUN PyPI push for {ctx.description}.")
            ctx.reporter.log("DRY RUN: Package not actually pushed to PyPI.")
            return Continue()

        ctx.reporter.log(f"Pushing package: {ctx.description}...")
        cmd = [sys.executable, "-m", "twine", "upload", *(str(path) for path in dist_files)]
        if not dist_files or isinstance(_run_streamed(ctx, cmd), Err):
            return Abort(f"PyPI push failed for {ctx.description}. Check the logs for details.")
        ctx.add_success(f"PyPI push for {ctx.description}.")
        ctx.reporter.log("Package push successful.")
        return Continue()

    def _dist_files(self, ctx: StepContext, input_dir: Path) -> list[Path]:
        dist_name = re.sub(r"[-_.]+", "_", ctx.component.name).lower()
        return sorted(input_dir.glob(f"{dist_name}-{ctx.version}*"))


class PushPagesStep(Step):
    config: PushPagesStepConfig

    def run(self, ctx: StepContext) -> StepResult:
        skipped = self.check_gh_pages_enabled(ctx, required=True)
        if skipped is not None:
            return skipped
        component = ctx.component
        ctx.reporter.log("Setting up gh-pages access ...")
        gh_pages_dir = ctx.repository.checkout_separate_dir(
            branch="gh-pages",
            remote=ctx.git_remote,
            dir=ctx.artifact_dir.get("gh-pages"),
            gh_token=os.environ.get("GITHUB_TOKEN"),
        )
        if gh_pages_dir is None:
            return Abort("Unable to access the gh-pages branch.")
        ctx.reporter.log("Checked out gh-pages")

        component_dir = gh_pages_dir / getattr(component.settings, "gh_pages_directory", ".")
        dest_dir = component_dir / f"v{ctx.version}"
        if dest_dir.exists():
            ctx.add_success(f"Docs already published for {ctx.description}")
            return Skip(f"Docs already published for {ctx.description}. Skipping.")
        ctx.reporter.log(f"Verified docs not yet published for {ctx.description}")

        from_dir = ctx.artifact_dir.get(self.config.input) / "doc"
        if not from_dir.is_dir():
            return Abort(f"Docs not found at {from_dir}")
        copy_tree(from_dir, dest_dir)
        self._update_404_page(ctx, gh_pages_dir)

        ctx.repository.git_commit(
            f"Generated docs for {ctx.description}",
            signoff=ctx.repository.settings.signoff_commits,
            cwd=gh_pages_dir,
        )
        if ctx.dry_run:
            ctx.add_success(f"DRY RUN documentation published for {ctx.description}.")
            ctx.reporter.log("DRY RUN: Documentation not actually published to gh-pages.")
            return Continue()
        if isinstance(GitRepo(gh_pages_dir).push(ctx.git_remote, "gh-pages"), Err):
            return Abort(f"Docs publication failed for {ctx.description}. Check the logs for details.")
        ctx.add_success(f"Published documentation for {ctx.description}.")
        ctx.reporter.log("Documentation publish successful.")
        return Continue()

    def _update_404_page(self, ctx: StepContext, gh_pages_dir: Path) -> None:
        path = gh_pages_dir / "404.html"
        if not path.is_file():
            return
        var = getattr(ctx.component.settings, "gh_pages_version_var", "version")
        content = path.read_text(encoding="utf-8")
        updated = re.sub(
            rf'{re.escape(var)} = "[\w.]+";',
            lambda _m: f'{var} = "{ctx.version}";',
            content,
            count=1,
        )
        path.write_text(updated, encoding="utf-8")


class GithubReleaseStep(Step):
    config: GithubReleaseStepConfig

    def run(self, ctx: StepContext) -> StepResult:
        repository = ctx.repository
        tag_name = ctx.component.version_tag(ctx.version)
        ctx.reporter.log(f"Checking whether {tag_name} already exists...")
        exists = gh_api_exists(
            repo_root=repository.root,
            endpoint=f"repos/{repository.repo_path}/releases/tags/{tag_name}",
        )
        if isinstance(exists, Ok) and exists.value:
            ctx.add_success(f"GitHub tag {tag_name} already exists.")
            return Skip(f"GitHub tag {tag_name} already exists. Skipping.")
        ctx.reporter.log(f"GitHub tag {tag_name} has not yet been created.")

        ctx.reporter.log(f"Creating GitHub release {tag_name}...")
        body = ctx.component.changelog_file.read_and_verify_latest_entry(ctx.version)
        payload: dict[str, object] = {
            "tag_name": tag_name,
            "target_commitish": repository.current_sha(),
            "name": ctx.description,
            "body": body,
        }
        if ctx.dry_run:
            ctx.add_success(f"DRY RUN GitHub tag {tag_name}.")
            ctx.reporter.log(f"DRY RUN: GitHub tag {tag_name} not actually created.")
            return Continue()
        created = gh_api_write(
            repo_root=repository.root,
            endpoint=f"repos/{repository.repo_path}/releases",
            payload=payload,
        )
        if isinstance(created, Err):
            return Abort(f"Unable to create release {tag_name}. Check the logs for details.")
        ctx.add_success(f"Created release with tag {tag_name} on GitHub.")
        ctx.reporter.log("GitHub release successful.")
        return Continue()


_STEP_CLASSES: dict[str, type[Step]] = {
    "tool": ToolStep,
    "command": CommandStep,
    "bundle": BundleStep,
    "build_package": BuildPackageStep,
    "build_docs": BuildDocsStep,
    "release_package": ReleasePackageStep,
    "push_pages": PushPagesStep,
    "github_release": GithubReleaseStep,
}


def build_step(config: StepConfig) -> Step:
    return _STEP_CLASSES[config.kind](config)


def build_pipeline(component: Component, *, disabled_steps: frozenset[str] = frozenset()) -> list[Step]:
    """Steps configured for the component, minus the disabled kinds."""
    return [build_step(config) for config in component.settings.steps if config.kind not in disabled_steps]


def _gh_pages_enabled(component: Component) -> bool:
    return bool(getattr(component.settings, "gh_pages_enabled", False))


def _run_streamed(ctx: StepContext, cmd: list[str]) -> Result[None, ProcessError]:
    ctx.reporter.command(cmd)
    return run_silent(cmd, cwd=ctx.component.directory)


def _clean_gitignored(ctx: StepContext, directory: Path) -> int:
    git = GitRepo(ctx.component.directory)
    count = 0
    children = [
        os.path.relpath(child, ctx.component.directory) for child in sorted(directory.iterdir())
    ]
    for rel_path in git.ignored_paths(children):
        remove_tree(ctx.component.directory / rel_path)
        ctx.reporter.log(f"Cleaning: {rel_path}")
        count += 1
    for child in sorted(directory.iterdir()):
        if child.is_dir() and not child.is_symlink() and child.name != ".git":
            count += _clean_gitignored(ctx, child)
    return count
