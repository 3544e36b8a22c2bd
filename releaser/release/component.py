"""Releasable components.

A component is one releasable artifact in the repository: a directory with a
changelog and a version file, released under tags named
``<name>/v<version>``. Package components are Python distributions that are
also built and uploaded to the package index.
"""

from __future__ import annotations

import re
import sys
from pathlib import Path, PurePosixPath

from releaser.core.result import Err, Ok, Result
from releaser.git.repository import GitError, GitRepo
from releaser.output.reporter import Reporter
from releaser.platform.http import HttpClient
from releaser.platform.process import run_silent
from releaser.release.change_set import ChangeSet
from releaser.release.changelog_file import ChangelogFile
from releaser.release import changelog_file as changelog_module
from releaser.release.semver import Version
from releaser.release.settings import ComponentSettings, PackageSettings, RepoSettings
from releaser.release.version_file import VersionFile
from releaser.release import version_file as version_module

__all__ = ["Component", "PackageComponent", "build_component"]

PYPI_URL = "https://pypi.org/pypi"

_DEFAULT = object()


class Component:
    """A releasable component of the repository."""

    def __init__(
        self,
        repo_settings: RepoSettings,
        settings: ComponentSettings,
        *,
        repo_root: Path,
        git: GitRepo,
        reporter: Reporter,
        group_id: int = 0,
    ) -> None:
        self.repo_settings = repo_settings
        self.settings = settings
        self.repo_root = repo_root
        self.group_id = group_id
        self._git = git
        self._reporter = reporter
        self.changelog_file = ChangelogFile(self.file_path(settings.changelog_path), reporter)
        self.version_file = VersionFile(
            self.file_path(settings.version_file_path), settings.version_constant
        )

    @property
    def name(self) -> str:
        return self.settings.name

    @property
    def type(self) -> str:
        return self.settings.type

    @property
    def directory(self) -> Path:
        """Absolute component directory."""
        return (self.repo_root / self.settings.directory).resolve()

    def file_path(self, path: str) -> Path:
        """Absolute path of a file given relative to the component directory."""
        return self.directory / path

    def context_path(self, path: str) -> str:
        """Repository-relative POSIX path of a file in the component directory."""
        return str(PurePosixPath(self.settings.directory) / path)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        with self._reporter.accumulate_errors(f'Component "{self.name}" failed validation'):
            self._validate_files()

    def _validate_files(self) -> None:
        if not self.directory.is_dir():
            self._reporter.error(f"Missing directory {self.directory} for {self.name}")
        if not self.changelog_file.exists():
            self._reporter.error(f"Missing changelog {self.changelog_file.path} for {self.name}")
        if not self.version_file.exists():
            self._reporter.error(f"Missing version {self.version_file.path} for {self.name}")
        if self.version_file.eval_version() is None:
            self._reporter.error(
                f"{self.version_file.path} for {self.name} didn't define {self.settings.version_constant}"
            )

    # -------------------------------------------------------------------------
    # Versions and tags
    # -------------------------------------------------------------------------

    def latest_tag_version(self, ref: str | None = None) -> Version | None:
        """Highest ``<name>/v<version>`` tag reachable from ``ref``."""
        tags = self._git_value(self._git.tags_merged(ref or "HEAD")) or []
        pattern = re.compile(rf"^{re.escape(self.name)}/v(\d+\.\d+\.\d+(?:\.\w+)*)$")
        last: Version | None = None
        for tag in tags:
            m = pattern.match(tag)
            if m is None:
                continue
            version = Version.parse(m.group(1))
            if version is not None and (last is None or version > last):
                last = version
        return last

    def latest_tag(self, ref: str | None = None) -> str | None:
        return self.version_tag(self.latest_tag_version(ref))

    def version_tag(self, version: Version | str | None) -> str | None:
        return f"{self.name}/v{version}" if version is not None else None

    def current_changelog_version(self, at: str | None = None) -> Version | None:
        if at is not None:
            content = self._git_value(self._git.show_file(at, self.context_path(self.settings.changelog_path)))
            return changelog_module.current_version_from_content(content)
        return self.changelog_file.current_version()

    def current_constant_version(self, at: str | None = None) -> Version | None:
        if at is not None:
            content = self._git_value(
                self._git.show_file(at, self.context_path(self.settings.version_file_path))
            )
            return version_module.current_version_from_content(content, self.settings.version_constant)
        return self.version_file.current_version()

    def verify_version(self, version: Version) -> None:
        """Check the changelog and version file both report ``version``."""
        with self._reporter.accumulate_errors(
            f"Requested {self.name} version {version} doesn't match existing files."
        ):
            changelog_version = self.changelog_file.current_version()
            if version != changelog_version:
                self._reporter.error(f"{self.changelog_file.path} reports version {changelog_version}.")
            constant_version = self.version_file.current_version()
            if version != constant_version:
                self._reporter.error(f"{self.version_file.path} reports version {constant_version}.")

    # -------------------------------------------------------------------------
    # Change history
    # -------------------------------------------------------------------------

    def make_change_set(self, from_ref: object = _DEFAULT, to_ref: str | None = None) -> ChangeSet:
        """Collect the commits relevant to this component into a finished ChangeSet.

        ``from_ref`` defaults to the latest release tag reachable from
        ``to_ref``; pass None to start from the first commit. A commit counts
        if it touches a file under the component directory or says
        ``touch-component: <name>``. With a component at the repository root,
        every commit counts.
        """
        to_ref = to_ref or "HEAD"
        start = self.latest_tag(to_ref) if from_ref is _DEFAULT else from_ref
        start_ref = start if isinstance(start, str) else None
        prefix = self.settings.directory
        if not prefix.endswith("/"):
            prefix += "/"
        touch_re = re.compile(rf"(^|\n)touch-component: {re.escape(self.name)}", re.IGNORECASE)

        change_set = ChangeSet(self.repo_settings)
        shas = self._git_value(self._git.log_shas(start_ref, to_ref)) or []
        for sha in shas:
            message = self._git_value(self._git.commit_message(sha)) or ""
            if prefix != "./" and not touch_re.search(message):
                files = self._git_value(self._git.changed_files(sha)) or []
                if not any(path.startswith(prefix) for path in files):
                    continue
            change_set.add_message(sha, message)
        return change_set.finish()

    # -------------------------------------------------------------------------
    # Build helpers
    # -------------------------------------------------------------------------

    def bundle(self) -> None:
        """Install the component's dependencies into the current environment."""
        cmd = [sys.executable, "-m", "pip", "install", "-e", "."]
        self._reporter.command(cmd)
        if isinstance(run_silent(cmd, cwd=self.directory), Err):
            self._reporter.error(f"Bundle install failed for {self.name}.")

    def _git_value[T](self, result: Result[T, GitError]) -> T | None:
        match result:
            case Ok(value):
                return value
            case Err(e):
                self._reporter.error(f"git {e.command} failed: {e.message}")
                return None

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Component) and other.name == self.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class PackageComponent(Component):
    """A Python distribution published to the package index."""

    settings: PackageSettings

    def __init__(
        self,
        repo_settings: RepoSettings,
        settings: PackageSettings,
        *,
        repo_root: Path,
        git: GitRepo,
        reporter: Reporter,
        http: HttpClient,
        group_id: int = 0,
    ) -> None:
        super().__init__(
            repo_settings,
            settings,
            repo_root=repo_root,
            git=git,
            reporter=reporter,
            group_id=group_id,
        )
        self._http = http

    @property
    def pyproject_path(self) -> Path:
        return self.file_path("pyproject.toml")

    def _validate_files(self) -> None:
        super()._validate_files()
        if not self.pyproject_path.is_file():
            self._reporter.error(f"Missing pyproject.toml {self.pyproject_path} for {self.name}")

    def version_released(self, version: Version | str) -> bool:
        """True if the package index already has this version.

        Any answer other than a JSON document (404 included) counts as not
        released.
        """
        url = f"{PYPI_URL}/{self.name}/{version}/json"
        return isinstance(self._http.get_json(url), Ok)


def build_component(
    repo_settings: RepoSettings,
    settings: ComponentSettings,
    *,
    repo_root: Path,
    git: GitRepo,
    reporter: Reporter,
    http: HttpClient,
    group_id: int = 0,
) -> Component:
    if isinstance(settings, PackageSettings):
        return PackageComponent(
            repo_settings,
            settings,
            repo_root=repo_root,
            git=git,
            reporter=reporter,
            http=http,
            group_id=group_id,
        )
    return Component(
        repo_settings,
        settings,
        repo_root=repo_root,
        git=git,
        reporter=reporter,
        group_id=group_id,
    )
