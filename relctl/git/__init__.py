"""Git operations module.

Usage:
    from relctl.git import Repository

    repo = Repository(Path("/path/to/api"))
    tags = repo.release_tags()
    if tags.is_ok():
        print(f"latest: {tags.unwrap()[:1]}")
"""

from relctl.git.repository import (
    GitError,
    LogEntry,
    Repository,
)

__all__ = [
    "GitError",
    "LogEntry",
    "Repository",
]
