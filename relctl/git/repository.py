"""Git repository abstraction.

This module provides the Repository class used by every release step that
reads or changes version-control state. All operations return Result types.

Read operations never change the working tree, the index or refs (no
implicit fetch), so phase detection can call them freely.

Usage:
    repo = Repository(Path("/path/to/api"))

    match repo.ahead_behind("development", "origin/development"):
        case Ok((0, 0)):
            print("up to date")
        case Ok((ahead, behind)):
            print(f"ahead {ahead}, behind {behind}")
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from relctl.core.result import Err, Ok, Result
from relctl.platform.process import ProcessError
from relctl.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "ls-remote"})

# Field separator for --format output; never appears in commit subjects.
_SEP = "\x1f"

__all__ = [
    "GitError",
    "LogEntry",
    "Repository",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed (without the ``git -C`` prefix)
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One commit from ``git log``: full hash and subject line."""

    sha: str
    subject: str


def _to_git_error(args: list[str], error: ProcessError, fallback: str) -> GitError:
    return GitError(
        command=" ".join(args),
        message=error.stderr.strip() or error.stdout.strip() or fallback,
        returncode=error.returncode,
    )


def _parse_log(output: str) -> list[LogEntry]:
    entries: list[LogEntry] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        sha, _, subject = line.partition(_SEP)
        entries.append(LogEntry(sha=sha.strip(), subject=subject.strip()))
    return entries


class Repository:
    """Git repository abstraction.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a git checkout (``.git`` dir or worktree file)."""
        return (self.path / ".git").exists()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def has_uncommitted_changes(self) -> Result[bool, GitError]:
        """True if tracked files differ from HEAD (staged or not)."""
        result = self._git(["status", "--porcelain", "--untracked-files=no"], "git status failed")
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip() != "")

    def changed_paths(self) -> Result[frozenset[str], GitError]:
        """Paths with any pending change, untracked files included."""
        result = self._git(["status", "--porcelain", "--untracked-files=all"], "git status failed")
        if isinstance(result, Err):
            return result

        paths: set[str] = set()
        for line in result.value.splitlines():
            if len(line) < 4:
                continue
            path = line[3:]
            # Renames are reported as "old -> new"
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            paths.add(path.strip().strip('"'))
        return Ok(frozenset(paths))

    def is_path_modified(self, path: str) -> Result[bool, GitError]:
        result = self._git(["status", "--porcelain", "--", path], f"git status {path} failed")
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip() != "")

    def current_branch(self) -> str | None:
        """Get current branch name.

        Returns None if detached HEAD or error.
        """
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def ref_exists(self, ref: str) -> bool:
        """True if ref resolves to a commit (branch, tag, remote-tracking ref)."""
        result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        return isinstance(result, Ok)

    def ahead_behind(self, local: str, upstream: str) -> Result[tuple[int, int], GitError]:
        """Commits only in local, and commits only in upstream."""
        args = ["rev-list", "--left-right", "--count", f"{local}...{upstream}"]
        result = self._git(args, "git rev-list failed")
        if isinstance(result, Err):
            return result

        parts = result.value.split()
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            return Err(
                GitError(command=" ".join(args), message=f"unexpected output: {result.value!r}")
            )
        return Ok((int(parts[0]), int(parts[1])))

    def local_tag_exists(self, tag: str) -> Result[bool, GitError]:
        result = self._git(["tag", "--list", tag], "git tag failed")
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip() != "")

    def remote_tag_exists(self, remote: str, tag: str) -> Result[bool, GitError]:
        result = self._git(
            ["ls-remote", "--tags", remote, f"refs/tags/{tag}"], "git ls-remote failed"
        )
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip() != "")

    def local_branch_exists(self, branch: str) -> Result[bool, GitError]:
        result = self._git(["branch", "--list", branch], "git branch failed")
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip() != "")

    def remote_branch_exists(self, remote: str, branch: str) -> Result[bool, GitError]:
        result = self._git(
            ["ls-remote", "--heads", remote, f"refs/heads/{branch}"], "git ls-remote failed"
        )
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip() != "")

    def release_tags(self, pattern: str = "v*") -> Result[list[str], GitError]:
        """Tags matching pattern, newest version first."""
        result = self._git(["tag", "--list", pattern, "--sort=-version:refname"], "git tag failed")
        if isinstance(result, Err):
            return result
        return Ok([t.strip() for t in result.value.splitlines() if t.strip()])

    def last_tag(self) -> Result[str | None, GitError]:
        """Nearest tag reachable from HEAD, None if the history has no tag."""
        args = ["describe", "--tags", "--abbrev=0"]
        result = self._run(args)
        match result:
            case Ok(stdout):
                return Ok(stdout.strip() or None)
            case Err(e):
                text = f"{e.stderr}\n{e.stdout}".lower()
                if "no names found" in text or "no tags can describe" in text:
                    return Ok(None)
                return Err(_to_git_error(args, e, "git describe failed"))

    def log(
        self, revision_range: str | None = None, *, max_count: int | None = None
    ) -> Result[list[LogEntry], GitError]:
        """Commits in revision_range (default: HEAD history), newest first."""
        args = ["log", f"--format=%H{_SEP}%s"]
        if max_count is not None:
            args.append(f"--max-count={max_count}")
        if revision_range:
            args.append(revision_range)
        result = self._git(args, "git log failed")
        if isinstance(result, Err):
            return result
        return Ok(_parse_log(result.value))

    def grep_log(
        self, ref: str, pattern: str, *, max_count: int | None = None
    ) -> Result[list[LogEntry], GitError]:
        """Commits reachable from ref whose message matches an extended regex."""
        args = ["log", ref, "--extended-regexp", f"--grep={pattern}", f"--format=%H{_SEP}%s"]
        if max_count is not None:
            args.append(f"--max-count={max_count}")
        result = self._git(args, "git log failed")
        if isinstance(result, Err):
            return result
        return Ok(_parse_log(result.value))

    def is_merge_commit(self, sha: str) -> Result[bool, GitError]:
        result = self._git(["rev-list", "--parents", "-n", "1", sha], "git rev-list failed")
        if isinstance(result, Err):
            return result
        # "<sha> <parent1> [<parent2> ...]"
        return Ok(len(result.value.split()) > 2)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def fetch(self, remote: str, branch: str | None = None) -> Result[str, GitError]:
        args = ["fetch", "--quiet", remote]
        if branch:
            args.append(branch)
        return self._git(args, "fetch failed")

    def checkout(self, branch: str) -> Result[str, GitError]:
        return self._git(["checkout", branch], f"checkout {branch} failed")

    def create_branch(self, branch: str) -> Result[str, GitError]:
        return self._git(["checkout", "-b", branch], f"cannot create branch {branch}")

    def delete_local_branch(self, branch: str) -> Result[str, GitError]:
        return self._git(["branch", "-D", branch], f"cannot delete branch {branch}")

    def delete_remote_branch(self, remote: str, branch: str) -> Result[str, GitError]:
        return self._git(
            ["push", remote, "--delete", branch], f"cannot delete {remote}/{branch}"
        )

    def pull(self, remote: str, branch: str) -> Result[str, GitError]:
        return self._git(["pull", "--ff-only", remote, branch], "pull failed")

    def push(
        self, remote: str, branch: str, *, set_upstream: bool = False
    ) -> Result[str, GitError]:
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        args.extend([remote, branch])
        return self._git(args, "push failed")

    def add(self, paths: list[str]) -> Result[str, GitError]:
        return self._git(["add", "--", *paths], "git add failed")

    def commit(self, message: str) -> Result[str, GitError]:
        return self._git(["commit", "-m", message], "commit failed")

    def revert(self, sha: str, *, mainline: int | None = None) -> Result[str, GitError]:
        """Create a revert commit without opening an editor.

        ``mainline`` is required for merge commits (``-m 1`` keeps the
        integration branch side).
        """
        args = ["revert", "--no-edit"]
        if mainline is not None:
            args.extend(["-m", str(mainline)])
        args.append(sha)
        return self._git(args, f"revert {sha[:12]} failed")

    def restore_path(self, path: str) -> Result[str, GitError]:
        """Reset a tracked file to HEAD in both index and working tree."""
        return self._git(["checkout", "HEAD", "--", path], f"cannot restore {path}")

    def _git(self, args: list[str], fallback: str) -> Result[str, GitError]:
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_to_git_error(args, result.error, fallback))
        return Ok(result.value)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)
