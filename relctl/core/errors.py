"""Exit codes for relctl commands.

Values are process exit codes and must remain stable; CI jobs branch on
them to decide whether a failed release needs a rollback.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success
    - 1: User error (bad version, declined confirmation, wrong branch)
    - 2: Environment error (missing tool, unreadable config)
    - 3: Mutation error (a release step failed after files were touched)
    - 4: Network error (platform or remote unreachable)
    - 5: I/O error (changelog or version file unreadable)
    - 6: Manual intervention required (published release, missing commit)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    MUTATION_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    MANUAL_REQUIRED = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK
