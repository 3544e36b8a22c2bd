"""Exit codes for CLI commands.

Every command ends with one of these codes so that workflow runners can tell
a rejected request apart from a broken environment or a failed release.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes.

    - 0: Success
    - 1: User error (bad arguments, aborted confirmation)
    - 2: Environment error (settings file, missing git/gh binaries)
    - 3: Release error (validation, resolution or pipeline failures)
    - 4: Network error (GitHub or package index unreachable)
    - 5: I/O error (file not found, permission denied)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    RELEASE_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
