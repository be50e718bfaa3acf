"""Narrow interfaces to the collaborators the release flow talks to.

Production implementations: ``relctl.git.Repository`` (VcsPort),
``GhPlatform`` (PlatformPort), ``DevContainer`` (ContainerPort) and
``TerminalEditor`` (EditorPort). Tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import Literal, Protocol

from relctl.core.result import Result
from relctl.git.repository import GitError, LogEntry
from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import PullRequest, WorkItem

PullRequestState = Literal["open", "all"]


class VcsPort(Protocol):
    # reads
    def has_uncommitted_changes(self) -> Result[bool, GitError]: ...

    def changed_paths(self) -> Result[frozenset[str], GitError]: ...

    def is_path_modified(self, path: str) -> Result[bool, GitError]: ...

    def current_branch(self) -> str | None: ...

    def ref_exists(self, ref: str) -> bool: ...

    def ahead_behind(self, local: str, upstream: str) -> Result[tuple[int, int], GitError]: ...

    def local_tag_exists(self, tag: str) -> Result[bool, GitError]: ...

    def remote_tag_exists(self, remote: str, tag: str) -> Result[bool, GitError]: ...

    def local_branch_exists(self, branch: str) -> Result[bool, GitError]: ...

    def remote_branch_exists(self, remote: str, branch: str) -> Result[bool, GitError]: ...

    def release_tags(self, pattern: str = "v*") -> Result[list[str], GitError]: ...

    def last_tag(self) -> Result[str | None, GitError]: ...

    def log(
        self, revision_range: str | None = None, *, max_count: int | None = None
    ) -> Result[list[LogEntry], GitError]: ...

    def grep_log(
        self, ref: str, pattern: str, *, max_count: int | None = None
    ) -> Result[list[LogEntry], GitError]: ...

    def is_merge_commit(self, sha: str) -> Result[bool, GitError]: ...

    # mutations
    def fetch(self, remote: str, branch: str | None = None) -> Result[str, GitError]: ...

    def checkout(self, branch: str) -> Result[str, GitError]: ...

    def create_branch(self, branch: str) -> Result[str, GitError]: ...

    def delete_local_branch(self, branch: str) -> Result[str, GitError]: ...

    def delete_remote_branch(self, remote: str, branch: str) -> Result[str, GitError]: ...

    def pull(self, remote: str, branch: str) -> Result[str, GitError]: ...

    def push(
        self, remote: str, branch: str, *, set_upstream: bool = False
    ) -> Result[str, GitError]: ...

    def add(self, paths: list[str]) -> Result[str, GitError]: ...

    def commit(self, message: str) -> Result[str, GitError]: ...

    def revert(self, sha: str, *, mainline: int | None = None) -> Result[str, GitError]: ...

    def restore_path(self, path: str) -> Result[str, GitError]: ...


class PlatformPort(Protocol):
    """Hosted platform (issues and pull requests). Deliberately has no
    operation that deletes tags or published releases."""

    def check_auth(self) -> Result[None, ReleaseError]: ...

    def list_closed_work_items(
        self, *, milestone: str | None, limit: int
    ) -> Result[list[WorkItem], ReleaseError]: ...

    def count_open_work_items(self, *, milestone: str) -> Result[int, ReleaseError]: ...

    def find_pull_request(
        self, *, head: str, base: str | None = None, state: PullRequestState = "all"
    ) -> Result[PullRequest | None, ReleaseError]: ...

    def create_pull_request(
        self, *, base: str, head: str, title: str, body: str
    ) -> Result[PullRequest, ReleaseError]: ...

    def add_label(self, *, number: int, label: str) -> Result[None, ReleaseError]: ...

    def close_pull_request(
        self, *, number: int, comment: str, delete_branch: bool
    ) -> Result[None, ReleaseError]: ...


class ContainerPort(Protocol):
    name: str

    def is_running(self) -> Result[bool, ReleaseError]: ...

    def start(self) -> Result[None, ReleaseError]: ...

    def lock(self) -> Result[None, ReleaseError]: ...

    def check_lock(self) -> Result[None, ReleaseError]: ...

    def preview_lock(self) -> Result[str, ReleaseError]: ...

    def lint_markdown(self, path: str) -> Result[None, ReleaseError]: ...


class EditorPort(Protocol):
    def edit(self, template: str) -> Result[str, ReleaseError]: ...
