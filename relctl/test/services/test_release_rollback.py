from __future__ import annotations

from pathlib import Path

from relctl.core.result import Err, Ok
from relctl.git.repository import LogEntry
from relctl.output.console import MockConsole
from relctl.services.release.confirm import Confirmation
from relctl.services.release.model import PullRequest, ReleasePhase, ReleaseVersion, RunOptions
from relctl.services.release.phase import PhaseReport
from relctl.services.release.rollback import RollbackEngine

from ._fakes import FakePlatform, FakeVcs, make_settings

V = ReleaseVersion(1, 3, 0)
SHA = "e" * 40


def _engine(
    tmp_path: Path,
    vcs: FakeVcs,
    platform: FakePlatform,
    *,
    options: RunOptions | None = None,
    answers: list[bool] | None = None,
) -> tuple[RollbackEngine, MockConsole]:
    console = MockConsole()
    opts = options or RunOptions()
    pending = list(answers) if answers is not None else None
    prompt = (lambda _msg: pending.pop(0)) if pending is not None else None
    engine = RollbackEngine(
        settings=make_settings(tmp_path),
        vcs=vcs,
        platform=platform,
        console=console,
        confirm=Confirmation(console=console, options=opts, prompt=prompt),
        options=opts,
    )
    return engine, console


def _pr(state: str, *, head: str = "release/v1.3.0", base: str = "development") -> PullRequest:
    return PullRequest(
        number=12, url="https://github.com/acme/api/pull/12", state=state, head=head, base=base
    )


YES = RunOptions(assume_yes=True)


class TestResolvePhase:
    def test_not_started_is_not_found(self, tmp_path: Path) -> None:
        engine, _ = _engine(tmp_path, FakeVcs(), FakePlatform())
        report = PhaseReport(V, ReleasePhase.NOT_STARTED, "no trace of the release")
        result = engine.resolve_phase(report, None)
        assert isinstance(result, Err)
        assert result.error.kind == "not_found"

    def test_detected_phase_used(self, tmp_path: Path) -> None:
        engine, console = _engine(tmp_path, FakeVcs(), FakePlatform())
        report = PhaseReport(V, ReleasePhase.PULL_REQUEST_OPEN, "PR #12")
        assert engine.resolve_phase(report, None) == Ok(ReleasePhase.PULL_REQUEST_OPEN)
        assert not console.has_warning()

    def test_mismatch_warns_and_needs_consent(self, tmp_path: Path) -> None:
        engine, console = _engine(tmp_path, FakeVcs(), FakePlatform(), answers=[True])
        report = PhaseReport(V, ReleasePhase.BRANCH_CREATED, "local branch")
        result = engine.resolve_phase(report, ReleasePhase.MERGED_TO_INTEGRATION)
        assert result == Ok(ReleasePhase.MERGED_TO_INTEGRATION)
        assert console.find("but detected phase 1")

    def test_mismatch_declined(self, tmp_path: Path) -> None:
        engine, _ = _engine(tmp_path, FakeVcs(), FakePlatform(), answers=[False])
        report = PhaseReport(V, ReleasePhase.BRANCH_CREATED, "local branch")
        result = engine.resolve_phase(report, ReleasePhase.PULL_REQUEST_OPEN)
        assert isinstance(result, Err)
        assert result.error.kind == "cancelled"


class TestBranchRollback:
    def test_deletes_local_and_remote(self, tmp_path: Path) -> None:
        vcs = FakeVcs(
            branch="release/v1.3.0",
            local_branches={"development", "release/v1.3.0"},
            remote_branches={"development", "release/v1.3.0"},
        )
        engine, console = _engine(tmp_path, vcs, FakePlatform(), options=YES)

        assert engine.rollback(V, ReleasePhase.BRANCH_CREATED) == Ok(None)
        assert vcs.calls == [
            ("checkout", "development"),
            ("delete_local_branch", "release/v1.3.0"),
            ("delete_remote_branch", "origin", "release/v1.3.0"),
        ]
        assert console.has_success()

    def test_missing_branches_are_skipped(self, tmp_path: Path) -> None:
        vcs = FakeVcs()
        engine, console = _engine(tmp_path, vcs, FakePlatform(), options=YES)
        assert engine.rollback(V, ReleasePhase.BRANCH_CREATED) == Ok(None)
        assert vcs.calls == []
        assert console.find("not found, skipping")

    def test_declined_stops_before_deleting(self, tmp_path: Path) -> None:
        vcs = FakeVcs(local_branches={"development", "release/v1.3.0"})
        engine, _ = _engine(tmp_path, vcs, FakePlatform(), answers=[False])
        result = engine.rollback(V, ReleasePhase.BRANCH_CREATED)
        assert isinstance(result, Err)
        assert result.error.kind == "cancelled"
        assert vcs.calls == []

    def test_dry_run_prints_commands_only(self, tmp_path: Path) -> None:
        vcs = FakeVcs(
            local_branches={"development", "release/v1.3.0"},
            remote_branches={"development", "release/v1.3.0"},
        )
        engine, console = _engine(tmp_path, vcs, FakePlatform(), options=RunOptions(dry_run=True))
        assert engine.rollback(V, ReleasePhase.BRANCH_CREATED) == Ok(None)
        assert vcs.calls == []
        assert console.find("git branch -D release/v1.3.0")
        assert console.find("git push origin --delete release/v1.3.0")

    def test_delete_failure_is_external(self, tmp_path: Path) -> None:
        vcs = FakeVcs(local_branches={"development", "release/v1.3.0"})
        vcs.fail("delete_local_branch", "branch is checked out elsewhere")
        engine, _ = _engine(tmp_path, vcs, FakePlatform(), options=YES)
        result = engine.rollback(V, ReleasePhase.BRANCH_CREATED)
        assert isinstance(result, Err)
        assert result.error.kind == "external_tool"


class TestPullRequestRollback:
    def test_closes_open_pr_then_cleans_branch(self, tmp_path: Path) -> None:
        vcs = FakeVcs(local_branches={"development", "release/v1.3.0"})
        platform = FakePlatform(pull_requests=[_pr("OPEN")])
        engine, _ = _engine(tmp_path, vcs, platform, options=YES)

        assert engine.rollback(V, ReleasePhase.PULL_REQUEST_OPEN) == Ok(None)
        assert platform.calls == [
            ("close_pull_request", 12, "Rollback: Cancelling release v1.3.0", True)
        ]
        assert ("delete_local_branch", "release/v1.3.0") in vcs.calls

    def test_closed_pr_only_cleans_branch(self, tmp_path: Path) -> None:
        vcs = FakeVcs(remote_branches={"development", "release/v1.3.0"})
        platform = FakePlatform(pull_requests=[_pr("CLOSED")])
        engine, console = _engine(tmp_path, vcs, platform, options=YES)

        assert engine.rollback(V, ReleasePhase.PULL_REQUEST_OPEN) == Ok(None)
        assert platform.calls == []
        assert console.find("already closed")
        assert vcs.calls == [("delete_remote_branch", "origin", "release/v1.3.0")]

    def test_merged_pr_needs_manual_action(self, tmp_path: Path) -> None:
        platform = FakePlatform(pull_requests=[_pr("MERGED")])
        engine, _ = _engine(tmp_path, FakeVcs(), platform, options=YES)
        result = engine.rollback(V, ReleasePhase.PULL_REQUEST_OPEN)
        assert isinstance(result, Err)
        assert result.error.kind == "manual_required"
        assert "--phase 3" in (result.error.hint or "")

    def test_no_pr_falls_back_to_branch(self, tmp_path: Path) -> None:
        vcs = FakeVcs(local_branches={"development", "release/v1.3.0"})
        engine, _ = _engine(tmp_path, vcs, FakePlatform(), options=YES)
        assert engine.rollback(V, ReleasePhase.PULL_REQUEST_OPEN) == Ok(None)
        assert vcs.calls == [("delete_local_branch", "release/v1.3.0")]

    def test_dry_run_previews_close_and_branch_cleanup(self, tmp_path: Path) -> None:
        vcs = FakeVcs(local_branches={"development", "release/v1.3.0"})
        platform = FakePlatform(pull_requests=[_pr("OPEN")])
        engine, console = _engine(tmp_path, vcs, platform, options=RunOptions(dry_run=True))
        assert engine.rollback(V, ReleasePhase.PULL_REQUEST_OPEN) == Ok(None)
        assert platform.calls == []
        assert vcs.calls == []
        assert console.find("gh pr close 12")
        assert console.find("git branch -D release/v1.3.0")


class TestMergeRollback:
    def _vcs(self, *, merge: bool = False) -> FakeVcs:
        return FakeVcs(
            grep={"development": [LogEntry(SHA, "Merge pull request #12 (v1.3.0)")]},
            merges={SHA} if merge else set(),
        )

    def test_reverts_pushes_and_closes_promotion_pr(self, tmp_path: Path) -> None:
        vcs = self._vcs()
        promotion = _pr("OPEN", head="development", base="main")
        platform = FakePlatform(pull_requests=[promotion])
        engine, console = _engine(tmp_path, vcs, platform, options=YES)

        assert engine.rollback(V, ReleasePhase.MERGED_TO_INTEGRATION) == Ok(None)
        assert vcs.calls == [
            ("checkout", "development"),
            ("pull", "origin", "development"),
            ("revert", SHA),
            ("push", "origin", "development"),
        ]
        assert platform.calls == [
            (
                "close_pull_request",
                12,
                "Rollback: Release v1.3.0 reverted on development",
                False,
            )
        ]
        assert console.has_success()

    def test_merge_commit_reverted_with_mainline(self, tmp_path: Path) -> None:
        vcs = self._vcs(merge=True)
        engine, console = _engine(tmp_path, vcs, FakePlatform(), options=YES)
        assert engine.rollback(V, ReleasePhase.MERGED_TO_INTEGRATION) == Ok(None)
        assert ("revert", SHA, "-m1") in vcs.calls
        assert console.find(f"git revert --no-edit -m 1 {SHA}")

    def test_commit_not_found(self, tmp_path: Path) -> None:
        engine, _ = _engine(tmp_path, FakeVcs(), FakePlatform(), options=YES)
        result = engine.rollback(V, ReleasePhase.MERGED_TO_INTEGRATION)
        assert isinstance(result, Err)
        assert result.error.kind == "not_found"

    def test_conflicting_revert_stops_before_push(self, tmp_path: Path) -> None:
        vcs = self._vcs()
        vcs.fail("revert", "CONFLICT (content)")
        engine, _ = _engine(tmp_path, vcs, FakePlatform(), options=YES)
        result = engine.rollback(V, ReleasePhase.MERGED_TO_INTEGRATION)
        assert isinstance(result, Err)
        assert "git revert --continue" in result.error.message
        assert "push" not in vcs.mutations

    def test_second_rollback_leaves_the_revert_in_place(self, tmp_path: Path) -> None:
        vcs = self._vcs(merge=True)
        engine, console = _engine(tmp_path, vcs, FakePlatform(), options=YES)

        assert engine.rollback(V, ReleasePhase.MERGED_TO_INTEGRATION) == Ok(None)
        assert engine.rollback(V, ReleasePhase.MERGED_TO_INTEGRATION) == Ok(None)

        assert [c for c in vcs.calls if c[0] == "revert"] == [("revert", SHA, "-m1")]
        assert vcs.mutations.count("push") == 1
        assert console.find("v1.3.0 already reverted on development")

    def test_reapplied_release_reverts_the_reapplication(self, tmp_path: Path) -> None:
        first, second = "1" * 40, "2" * 40
        vcs = FakeVcs(
            grep={
                "development": [
                    LogEntry(second, 'Revert "Revert "Merge pull request #12 (v1.3.0)""'),
                    LogEntry(first, 'Revert "Merge pull request #12 (v1.3.0)"'),
                    LogEntry(SHA, "Merge pull request #12 (v1.3.0)"),
                ]
            },
            bodies={
                first: f"This reverts commit {SHA}.",
                second: f"This reverts commit {first}.",
            },
        )
        engine, _ = _engine(tmp_path, vcs, FakePlatform(), options=YES)

        assert engine.rollback(V, ReleasePhase.MERGED_TO_INTEGRATION) == Ok(None)
        assert ("revert", second) in vcs.calls

    def test_push_declined(self, tmp_path: Path) -> None:
        vcs = self._vcs()
        engine, _ = _engine(tmp_path, vcs, FakePlatform(), answers=[True, False])
        result = engine.rollback(V, ReleasePhase.MERGED_TO_INTEGRATION)
        assert isinstance(result, Err)
        assert result.error.kind == "cancelled"
        assert vcs.mutations == ["checkout", "pull", "revert"]


def test_tagged_release_is_forward_fix_only(tmp_path: Path) -> None:
    vcs = FakeVcs(local_tags={"v1.3.0"})
    platform = FakePlatform()
    engine, console = _engine(tmp_path, vcs, platform, options=YES)

    result = engine.rollback(V, ReleasePhase.TAGGED_AND_RELEASED)

    assert isinstance(result, Err)
    assert result.error.kind == "manual_required"
    assert "1.3.1" in (result.error.hint or "")
    assert console.find("relctl release --version 1.3.1")
    assert vcs.calls == []
    assert platform.calls == []
