"""Git plumbing wrapper.

This module provides the GitRepo class, a thin typed layer over the ``git``
binary. Every method returns a Result; interpretation of failures (fatal,
accumulated, ignored) is left to the release engine.

Usage:
    git = GitRepo(Path("/path/to/repo"))

    match git.rev_parse("HEAD"):
        case Ok(sha):
            print(f"HEAD is {sha}")
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from releaser.core.result import Err, Ok, Result
from releaser.platform.process import ProcessError
from releaser.platform.process import run as run_process

_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = {"fetch", "pull", "push", "clone"}

__all__ = [
    "GitError",
    "GitRepo",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


def _to_git_error(command: str, error: ProcessError) -> GitError:
    message = error.stderr.strip() or error.stdout.strip() or f"git {command} failed"
    return GitError(command=command, message=message, returncode=error.returncode)


class GitRepo:
    """Git operations on a single working tree.

    Attributes:
        path: Path to the working tree root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def rev_parse(self, ref: str = "HEAD") -> Result[str, GitError]:
        """Resolve a ref to a full commit SHA."""
        return self.output(["rev-parse", ref])

    def ref_exists(self, ref: str) -> bool:
        result = self._run(["rev-parse", "--verify", "--quiet", ref])
        return isinstance(result, Ok)

    def current_branch(self) -> str | None:
        """Get the current branch name.

        Returns None on a detached HEAD or error.
        """
        match self._run(["branch", "--show-current"]):
            case Ok(stdout):
                branch = stdout.strip()
                return branch or None
            case Err(_):
                return None

    def remote_url(self, remote: str) -> Result[str, GitError]:
        return self.output(["remote", "get-url", remote])

    def status_lines(self) -> Result[list[str], GitError]:
        """Short-format status entries (empty when the tree is clean)."""
        match self.output(["status", "-s"]):
            case Ok(stdout):
                return Ok([ln for ln in stdout.splitlines() if ln.strip()])
            case Err(e):
                return Err(e)

    def is_shallow(self) -> bool:
        match self._run(["rev-parse", "--is-shallow-repository"]):
            case Ok(stdout):
                return stdout.strip() == "true"
            case Err(_):
                return False

    def tags_merged(self, ref: str) -> Result[list[str], GitError]:
        """Tags reachable from ``ref``."""
        match self.output(["tag", "--merged", ref]):
            case Ok(stdout):
                return Ok([ln.strip() for ln in stdout.splitlines() if ln.strip()])
            case Err(e):
                return Err(e)

    def show_file(self, ref: str, path: str) -> Result[str, GitError]:
        """File content at a historical ref."""
        match self._run(["show", f"{ref}:{path}"]):
            case Ok(stdout):
                return Ok(stdout)
            case Err(e):
                return Err(_to_git_error("show", e))

    def log_shas(self, from_ref: str | None, to_ref: str) -> Result[list[str], GitError]:
        """Commit SHAs after ``from_ref`` up to ``to_ref``, oldest first."""
        commits = f"{from_ref}..{to_ref}" if from_ref else to_ref
        match self.output(["log", commits, "--format=%H"]):
            case Ok(stdout):
                shas = [ln.strip() for ln in stdout.splitlines() if ln.strip()]
                shas.reverse()
                return Ok(shas)
            case Err(e):
                return Err(e)

    def commit_message(self, sha: str) -> Result[str, GitError]:
        """Full message of a single commit."""
        match self._run(["log", "-1", sha, "--format=%B"]):
            case Ok(stdout):
                return Ok(stdout.strip())
            case Err(e):
                return Err(_to_git_error("log", e))

    def changed_files(self, sha: str) -> Result[list[str], GitError]:
        """Paths modified by a single commit.

        A root commit lists every file; a merge commit is diffed against its
        first parent.
        """
        match self.output(["rev-list", "--parents", "-n", "1", sha]):
            case Ok(stdout):
                parents = stdout.split()[1:]
            case Err(e):
                return Err(e)
        if parents:
            args = ["diff-tree", "--no-commit-id", "--name-only", "-r", parents[0], sha]
        else:
            args = ["diff-tree", "--no-commit-id", "--name-only", "-r", "--root", sha]
        match self.output(args):
            case Ok(stdout):
                return Ok([ln.strip() for ln in stdout.splitlines() if ln.strip()])
            case Err(e):
                return Err(e)

    def config_get(self, key: str) -> str | None:
        match self._run(["config", "--get", key]):
            case Ok(stdout):
                value = stdout.strip()
                return value or None
            case Err(_):
                return None

    def ignored_paths(self, paths: list[str]) -> list[str]:
        """Subset of ``paths`` that git ignores."""
        if not paths:
            return []
        result = run_process(
            ["git", "-C", str(self.path), "check-ignore", "--stdin"],
            cwd=self.path,
            input="\n".join(paths) + "\n",
        )
        match result:
            case Ok(stdout):
                return [ln.strip() for ln in stdout.splitlines() if ln.strip()]
            case Err(_):
                # Exit code 1 means nothing matched.
                return []

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def init(self) -> Result[str, GitError]:
        return self.output(["init"])

    def config_set_local(self, key: str, value: str) -> Result[str, GitError]:
        return self.output(["config", "--local", key, value])

    def remote_add(self, remote: str, url: str) -> Result[str, GitError]:
        return self.output(["remote", "add", remote, url])

    def fetch(self, remote: str, *refspecs: str, options: list[str] | None = None) -> Result[str, GitError]:
        return self.output(["fetch", *(options or []), remote, *refspecs])

    def switch(self, ref: str, *, detach: bool = False, create: bool = False) -> Result[str, GitError]:
        args = ["switch"]
        if detach:
            args.append("--detach")
        if create:
            args.append("-c")
        return self.output([*args, ref])

    def create_branch_at(self, branch: str, start_point: str) -> Result[str, GitError]:
        return self.output(["branch", branch, start_point])

    def delete_branch(self, branch: str) -> Result[str, GitError]:
        return self.output(["branch", "-D", branch])

    def add_all(self) -> Result[str, GitError]:
        return self.output(["add", "."])

    def commit(self, title: str, details: str | None = None, *, signoff: bool = False) -> Result[str, GitError]:
        args = ["commit", "-a", "-m", title]
        if details:
            args.extend(["-m", details])
        if signoff:
            args.append("--signoff")
        return self.output(args)

    def push(self, remote: str, ref: str, *, force: bool = False, delete: bool = False) -> Result[str, GitError]:
        args = ["push"]
        if force:
            args.append("-f")
        if delete:
            args.append("--delete")
        return self.output([*args, remote, ref])

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def output(self, args: list[str]) -> Result[str, GitError]:
        """Run a git command and return its stripped stdout."""
        match self._run(args):
            case Ok(stdout):
                return Ok(stdout.strip())
            case Err(e):
                return Err(_to_git_error(args[0] if args else "", e))

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        # Local commands run unbounded; only remote transfers can hang.
        timeout = _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else None
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)
