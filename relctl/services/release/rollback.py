from __future__ import annotations

from collections.abc import Callable

from relctl.core.result import Err, Ok, Result
from relctl.git.repository import GitError
from relctl.output.console import ConsoleProtocol, Style
from relctl.platform.process import format_command
from relctl.services.release.config import ReleaseSettings
from relctl.services.release.confirm import Confirmation
from relctl.services.release.errors import PhaseMismatch, ReleaseError, external_failure
from relctl.services.release.model import ReleasePhase, ReleaseVersion, RunOptions
from relctl.services.release.phase import PhaseReport, find_release_commit
from relctl.services.release.ports import PlatformPort, VcsPort

Action = Callable[[], Result[object, GitError] | Result[object, ReleaseError]]


class RollbackEngine:
    """Applies the one compensating action that is valid for a phase.

    Every destructive step is confirmed first; a declined confirmation stops
    the rollback with a "cancelled" error. In preview mode the commands are
    printed and nothing runs.
    """

    def __init__(
        self,
        *,
        settings: ReleaseSettings,
        vcs: VcsPort,
        platform: PlatformPort,
        console: ConsoleProtocol,
        confirm: Confirmation,
        options: RunOptions,
    ) -> None:
        self._settings = settings
        self._vcs = vcs
        self._platform = platform
        self._console = console
        self._confirm = confirm
        self._options = options

    def resolve_phase(
        self, report: PhaseReport, requested: ReleasePhase | None
    ) -> Result[ReleasePhase, ReleaseError]:
        if report.phase == ReleasePhase.NOT_STARTED:
            return Err(
                ReleaseError(
                    kind="not_found",
                    message=f"release {report.version.tag} not found in any phase",
                    hint="Check the version; nothing exists to roll back",
                )
            )
        if requested is None or requested == report.phase:
            return Ok(report.phase)

        mismatch = PhaseMismatch(detected=report.phase, requested=requested)
        self._console.warning(mismatch.message)
        self._console.print(f"detected evidence: {report.evidence}", Style.DIM)
        confirmed = self._confirm.require(
            f"Roll back as phase {int(requested)} ({requested.label}) anyway?"
        )
        if isinstance(confirmed, Err):
            return confirmed
        return Ok(requested)

    def rollback(self, version: ReleaseVersion, phase: ReleasePhase) -> Result[None, ReleaseError]:
        match phase:
            case ReleasePhase.BRANCH_CREATED:
                return self._rollback_branch(version)
            case ReleasePhase.PULL_REQUEST_OPEN:
                return self._rollback_pull_request(version)
            case ReleasePhase.MERGED_TO_INTEGRATION:
                return self._rollback_merge(version)
            case ReleasePhase.TAGGED_AND_RELEASED:
                return self._forward_fix_only(version)
            case ReleasePhase.NOT_STARTED:
                return Err(
                    ReleaseError(
                        kind="not_found",
                        message=f"release {version.tag} not found in any phase",
                    )
                )

    def _apply(self, cmd: list[str], action: Action, *, what: str) -> Result[None, ReleaseError]:
        command = format_command(cmd)
        self._console.print(command, Style.DIM)
        if self._options.dry_run:
            return Ok(None)

        result = action()
        if isinstance(result, Err):
            error = result.error
            if isinstance(error, ReleaseError):
                return Err(error)
            return Err(external_failure(what=what, detail=error.message, rerun=command))
        return Ok(None)

    def _exists(self, result: Result[bool, GitError], *, what: str) -> Result[bool, ReleaseError]:
        if isinstance(result, Err):
            return Err(external_failure(what=f"cannot check {what}", detail=result.error.message))
        return Ok(result.value)

    # ------------------------------------------------------------------
    # Phase 1: release branch exists
    # ------------------------------------------------------------------

    def _rollback_branch(self, version: ReleaseVersion) -> Result[None, ReleaseError]:
        branch = version.branch
        remote = self._settings.remote
        self._console.header(f"Rollback {version.tag}: remove release branch")

        local = self._exists(self._vcs.local_branch_exists(branch), what=f"branch {branch}")
        if isinstance(local, Err):
            return local
        if local.value:
            confirmed = self._confirm.require(f"Delete local branch {branch}?")
            if isinstance(confirmed, Err):
                return confirmed
            if self._vcs.current_branch() == branch:
                integration = self._settings.integration_branch
                moved = self._apply(
                    ["git", "checkout", integration],
                    lambda: self._vcs.checkout(integration),
                    what=f"cannot leave {branch}",
                )
                if isinstance(moved, Err):
                    return moved
            deleted = self._apply(
                ["git", "branch", "-D", branch],
                lambda: self._vcs.delete_local_branch(branch),
                what=f"cannot delete local branch {branch}",
            )
            if isinstance(deleted, Err):
                return deleted
        else:
            self._console.info(f"local branch {branch} not found, skipping")

        on_remote = self._exists(
            self._vcs.remote_branch_exists(remote, branch), what=f"{remote}/{branch}"
        )
        if isinstance(on_remote, Err):
            return on_remote
        if on_remote.value:
            confirmed = self._confirm.require(f"Delete remote branch {remote}/{branch}?")
            if isinstance(confirmed, Err):
                return confirmed
            deleted = self._apply(
                ["git", "push", remote, "--delete", branch],
                lambda: self._vcs.delete_remote_branch(remote, branch),
                what=f"cannot delete {remote}/{branch}",
            )
            if isinstance(deleted, Err):
                return deleted
        else:
            self._console.info(f"remote branch {remote}/{branch} not found, skipping")

        self._console.success(f"release branch {branch} cleaned up")
        return Ok(None)

    # ------------------------------------------------------------------
    # Phase 2: pull request open
    # ------------------------------------------------------------------

    def _rollback_pull_request(self, version: ReleaseVersion) -> Result[None, ReleaseError]:
        branch = version.branch
        self._console.header(f"Rollback {version.tag}: close release PR")

        found = self._platform.find_pull_request(head=branch, state="all")
        if isinstance(found, Err):
            return found
        pr = found.value
        if pr is None:
            self._console.info(f"no PR from {branch}; cleaning up the branch instead")
            return self._rollback_branch(version)

        if pr.state == "MERGED":
            return Err(
                ReleaseError(
                    kind="manual_required",
                    message=f"PR #{pr.number} was merged but no release commit was found "
                    f"on {self._settings.integration_branch}",
                    hint=f"Inspect {pr.url or f'PR #{pr.number}'} and re-run with --phase 3",
                )
            )

        if pr.state == "OPEN":
            confirmed = self._confirm.require(f"Close PR #{pr.number} and delete {branch}?")
            if isinstance(confirmed, Err):
                return confirmed
            number = pr.number
            comment = f"Rollback: Cancelling release {version.tag}"
            closed = self._apply(
                ["gh", "pr", "close", str(pr.number), "--comment", comment, "--delete-branch"],
                lambda: self._platform.close_pull_request(
                    number=number, comment=comment, delete_branch=True
                ),
                what=f"cannot close PR #{pr.number}",
            )
            if isinstance(closed, Err):
                return closed
            self._console.success(f"PR #{pr.number} closed")
        else:
            self._console.info(f"PR #{pr.number} is already {pr.state.lower()}")

        # Leftover local or remote copies of the branch.
        return self._rollback_branch(version)

    # ------------------------------------------------------------------
    # Phase 3: merged into the integration branch
    # ------------------------------------------------------------------

    def _rollback_merge(self, version: ReleaseVersion) -> Result[None, ReleaseError]:
        settings = self._settings
        integration = settings.integration_branch
        remote = settings.remote
        self._console.header(f"Rollback {version.tag}: revert on {integration}")

        found = find_release_commit(version=version, vcs=self._vcs, settings=settings)
        if isinstance(found, Err):
            return found
        if found.value is None:
            return Err(
                ReleaseError(
                    kind="not_found",
                    message=f"release commit for {version.tag} not found on {integration}",
                    hint=f"Inspect: git log {integration} --grep {version.tag}, "
                    "then revert manually",
                )
            )
        landed = found.value
        if landed.reverted_by is not None:
            self._console.info(
                f"{version.tag} already reverted on {integration} "
                f"by {landed.reverted_by[:12]}; nothing to revert"
            )
            return self._close_promotion_pr(version)
        sha = landed.sha

        merge = self._vcs.is_merge_commit(sha)
        if isinstance(merge, Err):
            return Err(
                external_failure(what=f"cannot inspect {sha[:12]}", detail=merge.error.message)
            )
        mainline = 1 if merge.value else None

        confirmed = self._confirm.require(f"Revert commit {sha[:12]} on {integration}?")
        if isinstance(confirmed, Err):
            return confirmed

        revert_cmd = ["git", "revert", "--no-edit", *(["-m", "1"] if mainline else []), sha]
        steps: list[tuple[list[str], Action, str]] = [
            (
                ["git", "checkout", integration],
                lambda: self._vcs.checkout(integration),
                f"cannot check out {integration}",
            ),
            (
                ["git", "pull", "--ff-only", remote, integration],
                lambda: self._vcs.pull(remote, integration),
                f"cannot update {integration}",
            ),
            (
                revert_cmd,
                lambda: self._vcs.revert(sha, mainline=mainline),
                f"revert of {sha[:12]} failed (resolve conflicts, then git revert --continue)",
            ),
        ]
        for cmd, action, what in steps:
            done = self._apply(cmd, action, what=what)
            if isinstance(done, Err):
                return done

        confirmed = self._confirm.require(f"Push the revert to {remote}/{integration}?")
        if isinstance(confirmed, Err):
            return confirmed
        pushed = self._apply(
            ["git", "push", remote, integration],
            lambda: self._vcs.push(remote, integration),
            what=f"cannot push {integration}",
        )
        if isinstance(pushed, Err):
            return pushed

        return self._close_promotion_pr(version)

    def _close_promotion_pr(self, version: ReleaseVersion) -> Result[None, ReleaseError]:
        integration = self._settings.integration_branch
        final = self._settings.final_branch
        found = self._platform.find_pull_request(head=integration, base=final, state="open")
        if isinstance(found, Err):
            return found
        pr = found.value
        if pr is None:
            self._console.info(f"no open PR {integration} -> {final}")
            self._console.success(f"{version.tag} reverted on {integration}")
            return Ok(None)

        confirmed = self._confirm.require(f"Close PR #{pr.number} ({integration} -> {final})?")
        if isinstance(confirmed, Err):
            return confirmed
        number = pr.number
        comment = f"Rollback: Release {version.tag} reverted on {integration}"
        closed = self._apply(
            ["gh", "pr", "close", str(pr.number), "--comment", comment],
            lambda: self._platform.close_pull_request(
                number=number, comment=comment, delete_branch=False
            ),
            what=f"cannot close PR #{pr.number}",
        )
        if isinstance(closed, Err):
            return closed
        self._console.success(f"{version.tag} reverted on {integration}; PR #{pr.number} closed")
        return Ok(None)

    # ------------------------------------------------------------------
    # Phase 4: tagged and released
    # ------------------------------------------------------------------

    def _forward_fix_only(self, version: ReleaseVersion) -> Result[None, ReleaseError]:
        final = self._settings.final_branch
        next_patch = version.bump("patch")
        self._console.header(f"{version.tag} is tagged and released")
        self._console.print("Published releases are never deleted. Fix forward instead:")
        self._console.print(
            f"  1. Land the fix on {self._settings.integration_branch}, then: "
            f"relctl release --version {next_patch}"
        )
        self._console.print(
            f"  2. Or revert the offending change on {final} and release a new version"
        )
        return Err(
            ReleaseError(
                kind="manual_required",
                message=f"{version.tag} is already published and cannot be rolled back",
                hint=f"Release {next_patch} with the fix",
            )
        )
