from __future__ import annotations

import json
from pathlib import Path
from time import sleep

from relctl.core.result import Err, Ok, Result
from relctl.core.structured import as_obj_list, as_str_dict, get_int, get_str
from relctl.platform.process import ProcessError, format_command
from relctl.platform.process import run as run_process
from relctl.services.release.errors import ReleaseError, external_failure
from relctl.services.release.model import PullRequest, WorkItem
from relctl.services.release.ports import PullRequestState
from relctl.services.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

_ISSUE_FIELDS = "number,title,labels,closedAt"
_PR_FIELDS = "number,url,state,headRefName,baseRefName"


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    if error.returncode == -1 and "timed out" in text:
        return True
    return any(marker in text for marker in markers)


def run_gh_read(
    *,
    cwd: Path,
    cmd: list[str],
    message: str,
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ReleaseError]:
    """Run an idempotent gh query, retrying transient network failures."""
    attempts = max(1, retry_attempts)
    last: ProcessError | None = None
    for attempt in range(attempts):
        result = run_process(cmd, cwd=cwd, timeout=timeout)
        if isinstance(result, Ok):
            return result

        last = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(last):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue
        break

    return Err(
        external_failure(
            what=message,
            detail=last.detail if last is not None else "",
            inspect="gh auth status",
            rerun=format_command(cmd),
        )
    )


def _parse_json_list(payload: str, *, what: str) -> Result[list[dict[str, object]], ReleaseError]:
    try:
        obj: object = json.loads(payload or "[]")
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind="external_tool", message=f"invalid JSON from {what}: {e}"))

    raw = as_obj_list(obj)
    if raw is None:
        return Err(ReleaseError(kind="external_tool", message=f"unexpected payload from {what}"))

    out: list[dict[str, object]] = []
    for item in raw:
        d = as_str_dict(item)
        if d is not None:
            out.append(d)
    return Ok(out)


def _label_names(item: dict[str, object]) -> tuple[str, ...]:
    raw = as_obj_list(item.get("labels")) or []
    names: list[str] = []
    for label in raw:
        d = as_str_dict(label)
        name = get_str(d, "name") if d is not None else None
        if name is not None:
            names.append(name)
    return tuple(names)


def parse_work_items(payload: str) -> Result[list[WorkItem], ReleaseError]:
    parsed = _parse_json_list(payload, what="gh issue list")
    if isinstance(parsed, Err):
        return parsed

    items: list[WorkItem] = []
    for d in parsed.value:
        number = get_int(d, "number")
        title = get_str(d, "title")
        if number is None or title is None:
            continue
        items.append(
            WorkItem(
                number=number,
                title=title,
                labels=_label_names(d),
                closed_at=get_str(d, "closedAt"),
            )
        )
    return Ok(items)


def parse_pull_requests(payload: str) -> Result[list[PullRequest], ReleaseError]:
    parsed = _parse_json_list(payload, what="gh pr list")
    if isinstance(parsed, Err):
        return parsed

    prs: list[PullRequest] = []
    for d in parsed.value:
        number = get_int(d, "number")
        if number is None:
            continue
        prs.append(
            PullRequest(
                number=number,
                url=get_str(d, "url") or "",
                state=(get_str(d, "state") or "").upper(),
                head=get_str(d, "headRefName") or "",
                base=get_str(d, "baseRefName") or "",
            )
        )
    return Ok(prs)


class GhPlatform:
    """PlatformPort backed by the GitHub CLI, run from the project checkout."""

    def __init__(self, *, cwd: Path, repo_slug: str | None = None) -> None:
        self._cwd = cwd
        self._repo_args = ["--repo", repo_slug] if repo_slug else []

    def check_auth(self) -> Result[None, ReleaseError]:
        result = run_process(["gh", "auth", "status"], cwd=self._cwd, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="dependency_missing",
                    message="gh is not authenticated",
                    hint="Run: gh auth login",
                )
            )
        return Ok(None)

    def list_closed_work_items(
        self, *, milestone: str | None, limit: int
    ) -> Result[list[WorkItem], ReleaseError]:
        cmd = ["gh", "issue", "list", *self._repo_args, "--state", "closed"]
        if milestone:
            cmd.extend(["--milestone", milestone])
        cmd.extend(["--limit", str(limit), "--json", _ISSUE_FIELDS])

        result = run_gh_read(cwd=self._cwd, cmd=cmd, message="failed to list closed issues")
        if isinstance(result, Err):
            return result
        return parse_work_items(result.value)

    def count_open_work_items(self, *, milestone: str) -> Result[int, ReleaseError]:
        cmd = [
            "gh",
            "issue",
            "list",
            *self._repo_args,
            "--state",
            "open",
            "--milestone",
            milestone,
            "--limit",
            "1000",
            "--json",
            "number",
        ]
        result = run_gh_read(
            cwd=self._cwd, cmd=cmd, message=f"failed to list open issues in {milestone}"
        )
        if isinstance(result, Err):
            return result

        parsed = _parse_json_list(result.value, what="gh issue list")
        if isinstance(parsed, Err):
            return parsed
        return Ok(len(parsed.value))

    def find_pull_request(
        self, *, head: str, base: str | None = None, state: PullRequestState = "all"
    ) -> Result[PullRequest | None, ReleaseError]:
        cmd = ["gh", "pr", "list", *self._repo_args, "--state", state, "--head", head]
        if base:
            cmd.extend(["--base", base])
        cmd.extend(["--limit", "1", "--json", _PR_FIELDS])

        result = run_gh_read(cwd=self._cwd, cmd=cmd, message=f"failed to look up PR for {head}")
        if isinstance(result, Err):
            return result

        prs = parse_pull_requests(result.value)
        if isinstance(prs, Err):
            return prs
        return Ok(prs.value[0] if prs.value else None)

    def create_pull_request(
        self, *, base: str, head: str, title: str, body: str
    ) -> Result[PullRequest, ReleaseError]:
        cmd = [
            "gh",
            "pr",
            "create",
            *self._repo_args,
            "--base",
            base,
            "--head",
            head,
            "--title",
            title,
            "--body",
            body,
        ]
        result = run_process(cmd, cwd=self._cwd, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                external_failure(
                    what=f"failed to create PR {head} -> {base}",
                    detail=result.error.detail,
                    inspect=f"gh pr list --head {head}",
                )
            )

        url = result.value.strip().splitlines()[-1] if result.value.strip() else ""
        tail = url.rstrip("/").rsplit("/", 1)[-1]
        if not url.startswith("https://") or not tail.isdigit():
            return Err(
                ReleaseError(
                    kind="external_tool",
                    message="unexpected gh pr create output",
                    hint=result.value.strip() or None,
                )
            )
        return Ok(PullRequest(number=int(tail), url=url, state="OPEN", head=head, base=base))

    def add_label(self, *, number: int, label: str) -> Result[None, ReleaseError]:
        cmd = ["gh", "pr", "edit", str(number), *self._repo_args, "--add-label", label]
        result = run_process(cmd, cwd=self._cwd, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                external_failure(
                    what=f"failed to label PR #{number} with {label}",
                    detail=result.error.detail,
                    rerun=format_command(cmd),
                )
            )
        return Ok(None)

    def close_pull_request(
        self, *, number: int, comment: str, delete_branch: bool
    ) -> Result[None, ReleaseError]:
        cmd = ["gh", "pr", "close", str(number), *self._repo_args, "--comment", comment]
        if delete_branch:
            cmd.append("--delete-branch")
        result = run_process(cmd, cwd=self._cwd, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                external_failure(
                    what=f"failed to close PR #{number}",
                    detail=result.error.detail,
                    inspect=f"gh pr view {number}",
                    rerun=format_command(cmd),
                )
            )
        return Ok(None)
