"""In-memory collaborators for release service tests.

Each fake keeps just enough state to answer the queries the services make
and records every mutating call in ``calls`` so tests can assert on what
would have happened to the repository or the platform.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from relctl.core.project import Project
from relctl.core.result import Err, Ok, Result
from relctl.git.repository import GitError, LogEntry
from relctl.services.release.config import ReleaseSettings
from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import PullRequest, WorkItem
from relctl.services.release.ports import PullRequestState


def make_settings(root: Path, **overrides: object) -> ReleaseSettings:
    values: dict[str, object] = {
        "project": Project.API,
        "root": root,
        "repo_slug": None,
        "container": "acme-api-dev-app",
        "integration_branch": "development",
        "final_branch": "main",
        "remote": "origin",
        "release_label": "automated-release",
    }
    values.update(overrides)
    return ReleaseSettings(**values)  # type: ignore[arg-type]


def write_pyproject(root: Path, version: str = "1.2.3") -> Path:
    path = root / "pyproject.toml"
    path.write_text(
        "[project]\n"
        'name = "acme-api"\n'
        f'version = "{version}"\n'
        "\n"
        "[tool.uv]\n"
        'version = "0.0.0"\n',
        encoding="utf-8",
    )
    return path


@dataclass
class FakeVcs:
    branch: str | None = "development"
    dirty: bool = False
    changed: set[str] = field(default_factory=lambda: set[str]())
    modified: set[str] = field(default_factory=lambda: set[str]())
    refs: set[str] = field(default_factory=lambda: {"development", "origin/development"})
    counts: tuple[int, int] = (0, 0)
    local_tags: set[str] = field(default_factory=lambda: set[str]())
    remote_tags: set[str] = field(default_factory=lambda: set[str]())
    local_branches: set[str] = field(default_factory=lambda: {"development"})
    remote_branches: set[str] = field(default_factory=lambda: {"development"})
    tags: list[str] = field(default_factory=lambda: list[str]())
    entries: list[LogEntry] = field(default_factory=lambda: list[LogEntry]())
    grep: dict[str, list[LogEntry]] = field(default_factory=lambda: dict[str, list[LogEntry]]())
    bodies: dict[str, str] = field(default_factory=lambda: dict[str, str]())
    merges: set[str] = field(default_factory=lambda: set[str]())
    failures: dict[str, GitError] = field(default_factory=lambda: dict[str, GitError]())
    calls: list[tuple[str, ...]] = field(default_factory=lambda: list[tuple[str, ...]]())
    log_ranges: list[str | None] = field(default_factory=lambda: list[str | None]())

    def fail(self, method: str, message: str = "boom") -> None:
        self.failures[method] = GitError(command=method, message=message)

    def _failure(self, method: str) -> Err[GitError] | None:
        error = self.failures.get(method)
        return Err(error) if error is not None else None

    def _mutate(self, method: str, *args: str) -> Err[GitError] | None:
        self.calls.append((method, *args))
        return self._failure(method)

    @property
    def mutations(self) -> list[str]:
        return [call[0] for call in self.calls]

    # reads
    def has_uncommitted_changes(self) -> Result[bool, GitError]:
        return self._failure("has_uncommitted_changes") or Ok(self.dirty)

    def changed_paths(self) -> Result[frozenset[str], GitError]:
        return self._failure("changed_paths") or Ok(frozenset(self.changed))

    def is_path_modified(self, path: str) -> Result[bool, GitError]:
        return self._failure("is_path_modified") or Ok(path in self.modified)

    def current_branch(self) -> str | None:
        return self.branch

    def ref_exists(self, ref: str) -> bool:
        return ref in self.refs

    def ahead_behind(self, local: str, upstream: str) -> Result[tuple[int, int], GitError]:
        return self._failure("ahead_behind") or Ok(self.counts)

    def local_tag_exists(self, tag: str) -> Result[bool, GitError]:
        return self._failure("local_tag_exists") or Ok(tag in self.local_tags)

    def remote_tag_exists(self, remote: str, tag: str) -> Result[bool, GitError]:
        return self._failure("remote_tag_exists") or Ok(tag in self.remote_tags)

    def local_branch_exists(self, branch: str) -> Result[bool, GitError]:
        return self._failure("local_branch_exists") or Ok(branch in self.local_branches)

    def remote_branch_exists(self, remote: str, branch: str) -> Result[bool, GitError]:
        return self._failure("remote_branch_exists") or Ok(branch in self.remote_branches)

    def release_tags(self, pattern: str = "v*") -> Result[list[str], GitError]:
        return self._failure("release_tags") or Ok(list(self.tags))

    def last_tag(self) -> Result[str | None, GitError]:
        return self._failure("last_tag") or Ok(self.tags[0] if self.tags else None)

    def log(
        self, revision_range: str | None = None, *, max_count: int | None = None
    ) -> Result[list[LogEntry], GitError]:
        self.log_ranges.append(revision_range)
        failed = self._failure("log")
        if failed is not None:
            return failed
        entries = list(self.entries)
        return Ok(entries[:max_count] if max_count is not None else entries)

    def grep_log(
        self, ref: str, pattern: str, *, max_count: int | None = None
    ) -> Result[list[LogEntry], GitError]:
        failed = self._failure("grep_log")
        if failed is not None:
            return failed
        found = [
            entry
            for entry in self.grep.get(ref, [])
            if re.search(pattern, f"{entry.subject}\n{self.bodies.get(entry.sha, '')}")
        ]
        return Ok(found[:max_count] if max_count is not None else found)

    def is_merge_commit(self, sha: str) -> Result[bool, GitError]:
        return self._failure("is_merge_commit") or Ok(sha in self.merges)

    # mutations
    def fetch(self, remote: str, branch: str | None = None) -> Result[str, GitError]:
        return self._mutate("fetch", remote, branch or "") or Ok("")

    def checkout(self, branch: str) -> Result[str, GitError]:
        failed = self._mutate("checkout", branch)
        if failed is not None:
            return failed
        self.branch = branch
        return Ok("")

    def create_branch(self, branch: str) -> Result[str, GitError]:
        failed = self._mutate("create_branch", branch)
        if failed is not None:
            return failed
        self.local_branches.add(branch)
        self.branch = branch
        return Ok("")

    def delete_local_branch(self, branch: str) -> Result[str, GitError]:
        failed = self._mutate("delete_local_branch", branch)
        if failed is not None:
            return failed
        self.local_branches.discard(branch)
        return Ok("")

    def delete_remote_branch(self, remote: str, branch: str) -> Result[str, GitError]:
        failed = self._mutate("delete_remote_branch", remote, branch)
        if failed is not None:
            return failed
        self.remote_branches.discard(branch)
        return Ok("")

    def pull(self, remote: str, branch: str) -> Result[str, GitError]:
        return self._mutate("pull", remote, branch) or Ok("")

    def push(
        self, remote: str, branch: str, *, set_upstream: bool = False
    ) -> Result[str, GitError]:
        failed = self._mutate("push", remote, branch)
        if failed is not None:
            return failed
        self.remote_branches.add(branch)
        return Ok("")

    def add(self, paths: list[str]) -> Result[str, GitError]:
        return self._mutate("add", *paths) or Ok("")

    def commit(self, message: str) -> Result[str, GitError]:
        return self._mutate("commit", message) or Ok("")

    def revert(self, sha: str, *, mainline: int | None = None) -> Result[str, GitError]:
        """Record a revert commit on the current branch the way git words it."""
        args = (sha,) if mainline is None else (sha, f"-m{mainline}")
        failed = self._mutate("revert", *args)
        if failed is not None:
            return failed
        history = self.grep.setdefault(self.branch or "HEAD", [])
        subject = next((e.subject for e in history if e.sha == sha), sha)
        revert_sha = f"{len(self.calls):040x}"
        history.insert(0, LogEntry(revert_sha, f'Revert "{subject}"'))
        self.bodies[revert_sha] = f"This reverts commit {sha}."
        return Ok("")

    def restore_path(self, path: str) -> Result[str, GitError]:
        failed = self._mutate("restore_path", path)
        if failed is not None:
            return failed
        self.modified.discard(path)
        return Ok("")


@dataclass
class FakePlatform:
    authenticated: bool = True
    closed_items: list[WorkItem] = field(default_factory=lambda: list[WorkItem]())
    open_count: int = 0
    pull_requests: list[PullRequest] = field(default_factory=lambda: list[PullRequest]())
    failure: ReleaseError | None = None
    next_number: int = 101
    calls: list[tuple[object, ...]] = field(default_factory=lambda: list[tuple[object, ...]]())
    item_queries: list[tuple[str | None, int]] = field(
        default_factory=lambda: list[tuple[str | None, int]]()
    )

    def check_auth(self) -> Result[None, ReleaseError]:
        if not self.authenticated:
            return Err(ReleaseError(kind="dependency_missing", message="gh is not authenticated"))
        return Ok(None)

    def list_closed_work_items(
        self, *, milestone: str | None, limit: int
    ) -> Result[list[WorkItem], ReleaseError]:
        self.item_queries.append((milestone, limit))
        if self.failure is not None:
            return Err(self.failure)
        return Ok(list(self.closed_items[:limit]))

    def count_open_work_items(self, *, milestone: str) -> Result[int, ReleaseError]:
        if self.failure is not None:
            return Err(self.failure)
        return Ok(self.open_count)

    def find_pull_request(
        self, *, head: str, base: str | None = None, state: PullRequestState = "all"
    ) -> Result[PullRequest | None, ReleaseError]:
        if self.failure is not None:
            return Err(self.failure)
        for pr in self.pull_requests:
            if pr.head != head:
                continue
            if base is not None and pr.base != base:
                continue
            if state == "open" and pr.state != "OPEN":
                continue
            return Ok(pr)
        return Ok(None)

    def create_pull_request(
        self, *, base: str, head: str, title: str, body: str
    ) -> Result[PullRequest, ReleaseError]:
        self.calls.append(("create_pull_request", base, head, title, body))
        if self.failure is not None:
            return Err(self.failure)
        number = self.next_number
        pr = PullRequest(
            number=number,
            url=f"https://github.com/acme/api/pull/{number}",
            state="OPEN",
            head=head,
            base=base,
        )
        self.pull_requests.append(pr)
        return Ok(pr)

    def add_label(self, *, number: int, label: str) -> Result[None, ReleaseError]:
        self.calls.append(("add_label", number, label))
        return Ok(None)

    def close_pull_request(
        self, *, number: int, comment: str, delete_branch: bool
    ) -> Result[None, ReleaseError]:
        self.calls.append(("close_pull_request", number, comment, delete_branch))
        if self.failure is not None:
            return Err(self.failure)
        return Ok(None)

    @property
    def mutations(self) -> list[object]:
        return [call[0] for call in self.calls]


@dataclass
class FakeContainer:
    name: str = "acme-api-dev-app"
    running: bool = True
    starts: bool = True
    lock_error: ReleaseError | None = None
    check_error: ReleaseError | None = None
    lint_error: ReleaseError | None = None
    calls: list[str] = field(default_factory=lambda: list[str]())

    def is_running(self) -> Result[bool, ReleaseError]:
        return Ok(self.running)

    def start(self) -> Result[None, ReleaseError]:
        self.calls.append("start")
        self.running = self.starts
        return Ok(None)

    def lock(self) -> Result[None, ReleaseError]:
        self.calls.append("lock")
        return Err(self.lock_error) if self.lock_error else Ok(None)

    def check_lock(self) -> Result[None, ReleaseError]:
        self.calls.append("check_lock")
        return Err(self.check_error) if self.check_error else Ok(None)

    def preview_lock(self) -> Result[str, ReleaseError]:
        self.calls.append("preview_lock")
        return Ok("Would update acme-api v1.2.3 -> v1.3.0")

    def lint_markdown(self, path: str) -> Result[None, ReleaseError]:
        self.calls.append(f"lint:{path}")
        return Err(self.lint_error) if self.lint_error else Ok(None)


@dataclass
class FakeEditor:
    text: str = ""
    templates: list[str] = field(default_factory=lambda: list[str]())

    def edit(self, template: str) -> Result[str, ReleaseError]:
        self.templates.append(template)
        return Ok(self.text)
