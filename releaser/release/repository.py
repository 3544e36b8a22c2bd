"""Release-oriented façade over the local git checkout and the GitHub API.

The Repository owns the loaded components and their coordination groups, and
wraps every git and ``gh`` operation the request and perform flows need.
Failures are reported through the Reporter: they raise ``ReleaseFailure``
unless an accumulation scope is active.
"""

from __future__ import annotations

import base64
import re
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from time import monotonic, sleep
from urllib.parse import quote, urlencode

from releaser.core.result import Err, Ok, Result
from releaser.core.structured import StrDict, as_obj_list, as_str_dict, get_str
from releaser.git.repository import GitError, GitRepo
from releaser.output.reporter import Reporter
from releaser.platform.files import remove_tree
from releaser.platform.http import HttpClient, RealHttpClient
from releaser.platform.process import run as run_process
from releaser.release.component import Component, build_component
from releaser.release.coordination import CoordinationGroups
from releaser.release.errors import ReleaseError
from releaser.release.gh import ACCEPT_CHECKS, gh_api_json, gh_api_write
from releaser.release.pull_request import PullRequest
from releaser.release.semver import Version
from releaser.release.settings import RepoSettings
from releaser.release.timeouts import (
    CHECKS_INITIAL_INTERVAL_SECONDS,
    CHECKS_INTERVAL_STEP_SECONDS,
    CHECKS_MAX_INTERVAL_SECONDS,
    GH_TIMEOUT_SECONDS,
)

__all__ = ["Repository"]

GH_INSTALL_HINT = "See https://cli.github.com/manual/installation for install instructions."
GIT_INSTALL_HINT = "See https://git-scm.com/downloads for install instructions."

_SSH_REMOTE_RE = re.compile(r"^git@github.com:([^/]+/[^/]+)\.git$")
_HTTPS_REMOTE_RE = re.compile(r"^https://github.com/([^/]+/[^/.]+)(?:/|\.git)?$")


class Repository:
    """Git and GitHub operations for one repository.

    Attributes:
        settings: Loaded release settings
        root: Repository root (working tree)
        reporter: Shared logger/error accumulator
    """

    def __init__(
        self,
        settings: RepoSettings,
        root: Path,
        reporter: Reporter,
        *,
        http: HttpClient | None = None,
        validate: bool = True,
    ) -> None:
        self.settings = settings
        self.root = root
        self.reporter = reporter
        self.git = GitRepo(root)
        self.http: HttpClient = http or RealHttpClient()
        self.coordination = CoordinationGroups.build(
            settings.all_component_names, settings.coordination_groups
        )
        self._components: dict[str, Component] = {}
        for name, component_settings in settings.components.items():
            self._components[name] = build_component(
                settings,
                component_settings,
                repo_root=root,
                git=self.git,
                reporter=reporter,
                http=self.http,
                group_id=self.coordination.group_ids[name],
            )
        if validate:
            with reporter.accumulate_errors("Errors while validating components"):
                for component in self._components.values():
                    component.validate()

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @property
    def repo_path(self) -> str:
        return self.settings.repo_path or ""

    def component(self, name: str) -> Component | None:
        return self._components.get(name)

    def all_components(self) -> list[Component]:
        return list(self._components.values())

    def coordination_group(self, name: str) -> list[Component]:
        """Components that must be released together with ``name``."""
        return [self._components[member] for member in self.coordination.members_of(name)]

    def coordination_groups(self) -> list[list[Component]]:
        return [
            [self._components[member] for member in members]
            for members in self.coordination.all_groups()
        ]

    # -------------------------------------------------------------------------
    # Naming conventions
    # -------------------------------------------------------------------------

    def release_branch_name(self, unit_name: str) -> str:
        return f"{self.settings.release_branch_prefix}/{unit_name}"

    def multi_release_branch_name(self) -> str:
        timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
        return f"{self.settings.release_branch_prefix}/multi/{timestamp}"

    def unit_name_from_release_branch(self, branch: str | None) -> str | None:
        if not branch:
            return None
        prefix = re.escape(self.settings.release_branch_prefix)
        m = re.match(rf"^{prefix}/([^/]+)$", branch)
        return m.group(1) if m else None

    def release_related_branch(self, ref: str | None) -> bool:
        if not ref:
            return False
        prefix = re.escape(self.settings.release_branch_prefix)
        return re.match(rf"^{prefix}/([^/]+|multi/\d+)$", ref) is not None

    def release_related_label(self, name: str) -> bool:
        return name in self.settings.release_labels

    # -------------------------------------------------------------------------
    # Local git state
    # -------------------------------------------------------------------------

    def current_sha(self, ref: str | None = None) -> str:
        return self._git_value(self.git.rev_parse(ref or "HEAD")) or ""

    def current_branch(self) -> str | None:
        return self.git.current_branch()

    def git_remote_url(self, remote: str = "origin") -> str:
        return self._git_value(self.git.remote_url(remote)) or ""

    def last_commit_message(self, ref: str | None = None) -> str:
        return self._git_value(self.git.commit_message(ref or "HEAD")) or ""

    def git_clean(self) -> bool:
        lines = self._git_value(self.git.status_lines())
        return lines is not None and not lines

    def verify_git_clean(self) -> None:
        if self.git_clean():
            self.reporter.log("Git working directory verified as clean.")
        else:
            self.reporter.error("There are local git changes that are not committed.")

    def verify_repo_identity(self, remote: str = "origin") -> str | None:
        self.reporter.log("Verifying git repo identity ...")
        url = self.git_remote_url(remote)
        m = _SSH_REMOTE_RE.match(url) or _HTTPS_REMOTE_RE.match(url)
        if m is None:
            self.reporter.error(f'Unrecognized remote url: "{url}"')
            return None
        cur_repo = m.group(1)
        if cur_repo == self.settings.repo_path:
            self.reporter.log("Git repo is correct.")
        else:
            self.reporter.error(f"Remote repo is {cur_repo}, expected {self.settings.repo_path}")
        return cur_repo

    def git_set_user_info(self, git: GitRepo | None = None) -> None:
        """Configure commit identity from settings where git has none."""
        git = git or self.git
        for key, value in (
            ("user.name", self.settings.git_user_name),
            ("user.email", self.settings.git_user_email),
        ):
            if value and git.config_get(key) is None:
                self._git_value(git.config_set_local(key, value))

    def git_unshallow(self, remote: str, branch: str | None = None) -> bool:
        if not self.git.is_shallow():
            return False
        self._git_value(self.git.fetch(remote, branch or "HEAD", options=["--unshallow"]))
        return True

    def git_fetch(self, remote: str, *refspecs: str, options: list[str] | None = None) -> None:
        self._git_value(self.git.fetch(remote, *refspecs, options=options))

    def git_switch(self, ref: str) -> None:
        self._git_value(self.git.switch(ref))

    def delete_remote_branch(self, remote: str, branch: str) -> None:
        self._git_value(self.git.push(remote, branch, delete=True))

    def git_prepare_branch(self, remote: str, branch: str | None = None) -> str | None:
        """Fetch history and tags, then switch to ``branch`` if requested."""
        self.git_unshallow(remote, branch)
        self._git_value(self.git.fetch(remote, options=["--tags"]))
        if branch and branch != self.current_branch():
            self._git_value(self.git.switch(branch))
            return branch
        return self.current_branch()

    @contextmanager
    def at_sha(self, sha: str) -> Iterator[None]:
        """Detach the working tree at ``sha`` for the duration of the block.

        The original branch (or detached SHA) is restored on exit, including
        when the block raises.
        """
        original_branch = self.current_branch()
        original_sha = self.current_sha()
        if sha != original_sha:
            self._git_value(self.git.switch(sha, detach=True))
        try:
            yield
        finally:
            if sha != original_sha:
                if original_branch:
                    restored = self.git.switch(original_branch)
                else:
                    restored = self.git.switch(original_sha, detach=True)
                if isinstance(restored, Err):
                    self.reporter.warning(f"Unable to restore git checkout: {restored.error.message}")

    def create_branch(self, branch: str) -> None:
        """Create and switch to ``branch``, replacing any existing one."""
        if self.current_branch() == branch:
            self._git_value(self.git.switch(self.settings.main_branch))
        if self.git.ref_exists(branch):
            self.reporter.warning(f"Branch {branch} already exists. Deleting it.")
            self._git_value(self.git.delete_branch(branch))
        self._git_value(self.git.switch(branch, create=True))

    def git_commit(
        self,
        title: str,
        *,
        details: str | None = None,
        signoff: bool = False,
        cwd: Path | None = None,
    ) -> None:
        git = GitRepo(cwd) if cwd is not None else self.git
        self._git_value(git.add_all())
        self._git_value(git.commit(title, details, signoff=signoff))

    def checkout_separate_dir(
        self,
        *,
        branch: str = "main",
        remote: str = "origin",
        dir: Path | None = None,
        gh_token: str | None = None,
    ) -> Path | None:
        """Shallow-clone one branch of the remote into a separate directory.

        Returns None (after logging why) if the branch cannot be fetched.
        """
        if dir is not None:
            remove_tree(dir)
            dir.mkdir(parents=True, exist_ok=True)
        else:
            dir = Path(tempfile.mkdtemp())
        remote_url = self.git_remote_url(remote)
        git = GitRepo(dir)
        steps: list[Result[str, GitError]] = [git.init()]
        self.git_set_user_info(git)
        if remote_url.startswith("https://github.com/") and gh_token:
            encoded = base64.b64encode(f"x-access-token:{gh_token}".encode()).decode()
            self.reporter.command(
                ["git", "config", "--local", "http.https://github.com/.extraheader", "****"]
            )
            steps.append(
                git.config_set_local("http.https://github.com/.extraheader", f"Authorization: Basic {encoded}")
            )
        steps.append(git.remote_add(remote, remote_url))
        steps.append(
            git.fetch(remote, branch, options=["--no-tags", "--depth=1", "--no-recurse-submodules"])
        )
        steps.append(git.create_branch_at(branch, f"{remote}/{branch}"))
        steps.append(git.switch(branch))
        for result in steps:
            if isinstance(result, Err):
                self.reporter.log(f"git {result.error.command} failed: {result.error.message}")
                return None
        return dir

    # -------------------------------------------------------------------------
    # Pull requests and issues
    # -------------------------------------------------------------------------

    def find_release_prs(
        self,
        *,
        unit_name: str | None = None,
        merge_sha: str | None = None,
        label: str | None = None,
    ) -> list[PullRequest]:
        """Search release pull requests.

        With ``merge_sha``, returns the merged PR whose merge commit matches (at
        most one). Otherwise returns open PRs carrying ``label`` (default: the
        pending label), optionally restricted to one unit's release branch.
        """
        label = label or self.settings.release_pending_label
        args: dict[str, str | int] = {
            "state": "closed" if merge_sha else "open",
            "sort": "updated",
            "direction": "desc",
            "per_page": 20,
        }
        if unit_name:
            args["head"] = f"{self.settings.repo_owner}:{self.release_branch_name(unit_name)}"
            args["sort"] = "created"
        endpoint = f"repos/{self.repo_path}/pulls?{urlencode(args, safe=':/')}"
        data = self._gh_value(gh_api_json(repo_root=self.root, endpoint=endpoint))
        prs = [PullRequest(self.repo_path, d) for d in _dict_items(data)]
        if merge_sha:
            return [pr for pr in prs if pr.merged and pr.merge_commit_sha == merge_sha][:1]
        return [pr for pr in prs if label in pr.labels]

    def load_pr(self, number: int) -> PullRequest | None:
        result = gh_api_json(repo_root=self.root, endpoint=f"repos/{self.repo_path}/pulls/{number}")
        if isinstance(result, Err):
            return None
        data = as_str_dict(result.value)
        return PullRequest(self.repo_path, data) if data is not None else None

    def update_release_pr(
        self,
        pr: PullRequest | int,
        *,
        labels: list[str] | None = None,
        state: str | None = None,
        message: str | None = None,
    ) -> None:
        if isinstance(pr, int):
            loaded = self.load_pr(pr)
            if loaded is None:
                self.reporter.error(f"Pull request number {pr} not found.")
                return
            pr = loaded
        if labels:
            self._update_pr_labels(pr, labels)
        if state:
            self._update_pr_state(pr, state)
        if message:
            self.add_pr_comment(pr.number, message)

    def add_pr_comment(self, number: int, message: str) -> None:
        self._gh_value(
            gh_api_write(
                repo_root=self.root,
                endpoint=f"repos/{self.repo_path}/issues/{number}/comments",
                payload={"body": message},
            )
        )

    def open_issue(self, title: str, body: str) -> StrDict:
        data = self._gh_value(
            gh_api_write(
                repo_root=self.root,
                endpoint=f"repos/{self.repo_path}/issues",
                payload={"title": title, "body": body},
            )
        )
        return as_str_dict(data) or {}

    def create_pull_request(
        self,
        *,
        base_branch: str | None = None,
        remote: str = "origin",
        title: str | None = None,
        body: str | None = None,
        labels: list[str] | None = None,
    ) -> PullRequest | None:
        """Push the current branch and open a PR from it."""
        base_branch = base_branch or self.settings.main_branch
        if title is None or body is None:
            parts = re.split(r"(?:\r?\n)+", self.last_commit_message(), maxsplit=1)
            title = title if title is not None else parts[0]
            body = body if body is not None else (parts[1] if len(parts) > 1 else "")
        head_branch = self.current_branch() or "HEAD"
        self._git_value(self.git.push(remote, head_branch, force=True))
        data = self._gh_value(
            gh_api_write(
                repo_root=self.root,
                endpoint=f"repos/{self.repo_path}/pulls",
                payload={
                    "title": title,
                    "head": head_branch,
                    "base": base_branch,
                    "body": body,
                    "maintainer_can_modify": True,
                },
            )
        )
        resource = as_str_dict(data)
        if resource is None:
            return None
        pr = PullRequest(self.repo_path, resource)
        if labels:
            self.update_release_pr(pr, labels=labels)
        return pr

    def _update_pr_labels(self, pr: PullRequest, labels: list[str]) -> None:
        current = pr.labels
        release_labels = [name for name in current if self.release_related_label(name)]
        other_labels = [name for name in current if not self.release_related_label(name)]
        if sorted(release_labels) == sorted(labels):
            return
        self._gh_value(
            gh_api_write(
                repo_root=self.root,
                endpoint=f"repos/{self.repo_path}/issues/{pr.number}",
                payload={"labels": other_labels + labels},
                method="PATCH",
            )
        )

    def _update_pr_state(self, pr: PullRequest, state: str) -> None:
        if pr.state == state:
            return
        self._gh_value(
            gh_api_write(
                repo_root=self.root,
                endpoint=f"repos/{self.repo_path}/pulls/{pr.number}",
                payload={"state": state},
                method="PATCH",
            )
        )

    # -------------------------------------------------------------------------
    # Labels
    # -------------------------------------------------------------------------

    def list_labels(self) -> list[StrDict]:
        data = self._gh_value(gh_api_json(repo_root=self.root, endpoint=f"repos/{self.repo_path}/labels"))
        return _dict_items(data)

    def create_label(self, name: str, color: str, description: str) -> None:
        self._gh_value(
            gh_api_write(
                repo_root=self.root,
                endpoint=f"repos/{self.repo_path}/labels",
                payload={"name": name, "color": color, "description": description},
            )
        )

    def update_label(self, name: str, color: str, description: str) -> None:
        self._gh_value(
            gh_api_write(
                repo_root=self.root,
                endpoint=f"repos/{self.repo_path}/labels/{quote(name, safe='')}",
                payload={"color": color, "description": description},
                method="PATCH",
            )
        )

    # -------------------------------------------------------------------------
    # GitHub checks
    # -------------------------------------------------------------------------

    def verify_github_checks(self, ref: str | None = None) -> None:
        if self.settings.required_checks_regexp is None:
            self.reporter.log("GitHub checks disabled")
            return
        sha = self.current_sha(ref)
        self.reporter.log("Verifying GitHub checks ...")
        errors = self.github_check_errors(sha)
        if errors:
            self.reporter.error(*errors)
            return
        self.reporter.log("GitHub checks all passed.")

    def wait_github_checks(self, ref: str | None = None) -> list[str]:
        """Poll until required checks pass or the timeout elapses.

        Returns the outstanding problems (empty on success) instead of
        failing. The interval starts at 10 seconds and grows by 10 up to 60.
        """
        if self.settings.required_checks_regexp is None:
            self.reporter.log("GitHub checks disabled")
            return []
        timeout = self.settings.required_checks_timeout
        deadline = monotonic() + timeout
        sha = self.current_sha(ref)
        interval = CHECKS_INITIAL_INTERVAL_SECONDS
        while True:
            self.reporter.log("Polling GitHub checks ...")
            errors = self.github_check_errors(sha)
            if not errors:
                self.reporter.log("GitHub checks all passed.")
                return []
            for message in errors:
                self.reporter.log(message)
            if monotonic() > deadline:
                return [f"GitHub checks still failing after {timeout} secs.", *errors]
            self.reporter.log(f"Sleeping for {interval} secs ...")
            sleep(interval)
            if interval < CHECKS_MAX_INTERVAL_SECONDS:
                interval += CHECKS_INTERVAL_STEP_SECONDS

    def github_check_errors(self, ref: str) -> list[str]:
        result = gh_api_json(
            repo_root=self.root,
            endpoint=f"repos/{self.repo_path}/commits/{ref}/check-runs",
            accept=ACCEPT_CHECKS,
        )
        if isinstance(result, Err):
            return [f"Failed to obtain GitHub check results for {ref}"]
        data = as_str_dict(result.value) or {}
        checks = _dict_items(data.get("check_runs"))
        errors: list[str] = []
        if not checks:
            errors.append(f"No GitHub checks found for {ref}")
        required = self.settings.required_checks_regexp
        for check in checks:
            name = get_str(check, "name") or ""
            if self.settings.release_jobs_regexp.search(name):
                continue
            if required is not None and not required.search(name):
                continue
            if check.get("status") != "completed":
                errors.append(f'GitHub check "{name}" is not complete')
            elif check.get("conclusion") != "success":
                errors.append(f'GitHub check "{name}" was not successful')
        return errors

    # -------------------------------------------------------------------------
    # Released units
    # -------------------------------------------------------------------------

    def released_units_and_versions(self, pr: PullRequest) -> dict[str, Version | None]:
        """Components released by a merged release PR, with their versions."""
        single = self._single_released_unit_and_version(pr)
        if single is not None:
            return single
        return self._multiple_released_units_and_versions(pr)

    def _single_released_unit_and_version(self, pr: PullRequest) -> dict[str, Version | None] | None:
        if len(self._components) == 1:
            unit_name = self.settings.default_component_name
        else:
            unit_name = self.unit_name_from_release_branch(pr.head_ref)
        if unit_name is None:
            return None
        component = self.component(unit_name)
        if component is None:
            self.reporter.warning(f'Release branch references nonexistent unit "{unit_name}"')
            return None
        version = component.current_changelog_version(at=pr.merge_commit_sha)
        self.reporter.log(f"Found single unit to release: {unit_name} {version}.")
        return {unit_name: version}

    def _multiple_released_units_and_versions(self, pr: PullRequest) -> dict[str, Version | None]:
        merge_sha = pr.merge_commit_sha
        if merge_sha is None:
            return {}
        files = self._git_value(self.git.changed_files(merge_sha)) or []
        released: dict[str, Version | None] = {}
        for component in self._components.values():
            directory = component.settings.directory
            prefix = "" if directory in (".", "./") else directory.rstrip("/") + "/"
            if not any(path.startswith(prefix) for path in files):
                continue
            version = component.current_changelog_version(at=merge_sha)
            released[component.name] = version
            self.reporter.log(f"Releasing component due to file changes: {component.name} {version}.")
        return released

    # -------------------------------------------------------------------------
    # Tool availability
    # -------------------------------------------------------------------------

    def ensure_gh_binary(self) -> None:
        self._ensure_binary("gh", (0, 10), "0.10", GH_INSTALL_HINT)

    def ensure_git_binary(self) -> None:
        self._ensure_binary("git", (2, 22), "2.22", GIT_INSTALL_HINT)

    def _ensure_binary(self, tool: str, minimum: tuple[int, int], minimum_str: str, hint: str) -> None:
        result = run_process([tool, "--version"], cwd=self.root, timeout=GH_TIMEOUT_SECONDS)
        m = None
        if isinstance(result, Ok):
            m = re.search(rf"^{tool} version (\d+)\.(\d+)\.(\d+)", result.value, re.MULTILINE)
        if m is None:
            self.reporter.error(f"{tool} not installed.", hint)
            return
        found = (int(m.group(1)), int(m.group(2)), int(m.group(3)))
        found_str = ".".join(str(n) for n in found)
        if found[:2] < minimum:
            self.reporter.error(f"{tool} version {minimum_str} or later required but {found_str} found.", hint)
            return
        self.reporter.log(f"{tool} version {found_str} found")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _git_value[T](self, result: Result[T, GitError]) -> T | None:
        match result:
            case Ok(value):
                return value
            case Err(e):
                self.reporter.error(f"git {e.command} failed: {e.message}")
                return None

    def _gh_value[T](self, result: Result[T, ReleaseError]) -> T | None:
        match result:
            case Ok(value):
                return value
            case Err(e):
                if e.hint:
                    self.reporter.error(e.message, e.hint)
                else:
                    self.reporter.error(e.message)
                return None


def _dict_items(obj: object) -> list[StrDict]:
    out: list[StrDict] = []
    for item in as_obj_list(obj) or []:
        d = as_str_dict(item)
        if d is not None:
            out.append(d)
    return out
