from __future__ import annotations

from dataclasses import dataclass

from relctl.core.result import Err, Ok, Result
from relctl.git.repository import GitError
from relctl.services.release.config import ReleaseSettings
from relctl.services.release.errors import ReleaseError, external_failure
from relctl.services.release.model import ReleasePhase, ReleaseVersion
from relctl.services.release.ports import PlatformPort, VcsPort
from relctl.services.release.references import (
    is_revert_commit,
    revert_marker_pattern,
    version_grep_pattern,
)

# revert, revert of the revert, ...
_MAX_REVERT_CHAIN = 10


@dataclass(frozen=True, slots=True)
class PhaseReport:
    version: ReleaseVersion
    phase: ReleasePhase
    evidence: str
    reverted_by: str | None = None

    @property
    def description(self) -> str:
        return f"{self.version.tag}: phase {int(self.phase)} ({self.phase.label})"


def _git_failed(what: str, error: GitError) -> Err[ReleaseError]:
    return Err(
        external_failure(
            what=f"phase detection failed: {what}",
            detail=error.message,
            inspect=f"git {error.command}",
        )
    )


@dataclass(frozen=True, slots=True)
class ReleaseCommit:
    """Where the release landed on the integration branch.

    sha is the commit a rollback has to revert: the original release commit,
    or the latest commit that re-applied it. reverted_by is set when the
    release is currently reverted.
    """

    ref: str
    sha: str
    reverted_by: str | None = None


def find_release_commit(
    *, version: ReleaseVersion, vcs: VcsPort, settings: ReleaseSettings
) -> Result[ReleaseCommit | None, ReleaseError]:
    """Newest non-revert commit mentioning the version on the integration branch.

    Looks at the local branch first, then the remote-tracking ref. Revert
    commits quote the original subject, so they match the version too; they
    are skipped here and found through their "This reverts commit" marker.
    """
    pattern = version_grep_pattern(version)
    for ref in (settings.integration_branch, settings.upstream):
        if not vcs.ref_exists(ref):
            continue
        found = vcs.grep_log(ref, pattern)
        if isinstance(found, Err):
            return _git_failed(f"searching {ref}", found.error)
        release = next((e for e in found.value if not is_revert_commit(e.subject)), None)
        if release is not None:
            return _follow_reverts(vcs, ref, release.sha)
    return Ok(None)


def _follow_reverts(vcs: VcsPort, ref: str, sha: str) -> Result[ReleaseCommit, ReleaseError]:
    live = sha
    reverted_by: str | None = None
    for _ in range(_MAX_REVERT_CHAIN):
        found = vcs.grep_log(ref, revert_marker_pattern(reverted_by or live), max_count=1)
        if isinstance(found, Err):
            return _git_failed(f"searching reverts on {ref}", found.error)
        if not found.value:
            break
        if reverted_by is None:
            reverted_by = found.value[0].sha
        else:
            live, reverted_by = found.value[0].sha, None
    return Ok(ReleaseCommit(ref=ref, sha=live, reverted_by=reverted_by))


def detect_phase(
    *,
    version: ReleaseVersion,
    vcs: VcsPort,
    platform: PlatformPort,
    settings: ReleaseSettings,
) -> Result[PhaseReport, ReleaseError]:
    """Infer the release phase from repository and platform state.

    Checks run from the most advanced phase down and the first match wins,
    so a stale branch never hides a published tag. Nothing here fetches,
    checks out or writes.
    """
    tag = version.tag
    local_tag = vcs.local_tag_exists(tag)
    if isinstance(local_tag, Err):
        return _git_failed("tag lookup", local_tag.error)
    if local_tag.value:
        return Ok(PhaseReport(version, ReleasePhase.TAGGED_AND_RELEASED, f"local tag {tag}"))

    remote_tag = vcs.remote_tag_exists(settings.remote, tag)
    if isinstance(remote_tag, Err):
        return _git_failed("remote tag lookup", remote_tag.error)
    if remote_tag.value:
        return Ok(
            PhaseReport(
                version, ReleasePhase.TAGGED_AND_RELEASED, f"tag {tag} on {settings.remote}"
            )
        )

    commit = find_release_commit(version=version, vcs=vcs, settings=settings)
    if isinstance(commit, Err):
        return commit
    if commit.value is not None:
        landed = commit.value
        evidence = f"commit {landed.sha[:12]} on {landed.ref}"
        if landed.reverted_by is not None:
            evidence += f", reverted by {landed.reverted_by[:12]}"
        return Ok(
            PhaseReport(
                version,
                ReleasePhase.MERGED_TO_INTEGRATION,
                evidence,
                reverted_by=landed.reverted_by,
            )
        )

    pr = platform.find_pull_request(head=version.branch, state="all")
    if isinstance(pr, Err):
        return pr
    if pr.value is not None:
        evidence = f"PR #{pr.value.number} ({pr.value.state.lower()}) from {version.branch}"
        return Ok(PhaseReport(version, ReleasePhase.PULL_REQUEST_OPEN, evidence))

    local_branch = vcs.local_branch_exists(version.branch)
    if isinstance(local_branch, Err):
        return _git_failed("branch lookup", local_branch.error)
    if local_branch.value:
        return Ok(
            PhaseReport(version, ReleasePhase.BRANCH_CREATED, f"local branch {version.branch}")
        )

    remote_branch = vcs.remote_branch_exists(settings.remote, version.branch)
    if isinstance(remote_branch, Err):
        return _git_failed("remote branch lookup", remote_branch.error)
    if remote_branch.value:
        evidence = f"branch {version.branch} on {settings.remote}"
        return Ok(PhaseReport(version, ReleasePhase.BRANCH_CREATED, evidence))

    return Ok(PhaseReport(version, ReleasePhase.NOT_STARTED, "no trace of the release"))
