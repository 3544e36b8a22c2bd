"""Git operations module.

Usage:
    from releaser.git import GitRepo

    git = GitRepo(Path("/path/to/repo"))
    sha = git.rev_parse("HEAD")
    if sha.is_ok():
        print(sha.unwrap())
"""

from releaser.git.repository import GitError, GitRepo

__all__ = [
    "GitError",
    "GitRepo",
]
