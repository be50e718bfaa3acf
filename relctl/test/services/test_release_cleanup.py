from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from relctl.core.result import Err, Ok, Result
from relctl.git.repository import GitError
from relctl.output.console import MockConsole
from relctl.services.release.cleanup import CleanupAction, ReleaseRecovery, ReleaseRun
from relctl.services.release.model import ReleaseVersion, RunOptions

from ._fakes import FakeVcs, make_settings

V = ReleaseVersion(1, 3, 0)


def _recovery(
    tmp_path: Path, vcs: FakeVcs, *, options: RunOptions | None = None
) -> tuple[ReleaseRecovery, MockConsole]:
    console = MockConsole()
    recovery = ReleaseRecovery(
        settings=make_settings(tmp_path), vcs=vcs, console=console, options=options or RunOptions()
    )
    return recovery, console


def _run(**changes: object) -> ReleaseRun:
    base = ReleaseRun(version=V, entry="## [1.3.0] - 2026-10-18\n", mutation_started=True)
    return replace(base, **changes)  # type: ignore[arg-type]


def test_validation_failure_touches_nothing(tmp_path: Path) -> None:
    vcs = FakeVcs(modified={"pyproject.toml"})
    recovery, console = _recovery(tmp_path, vcs)

    recovery.recover(None)
    recovery.recover(_run(mutation_started=False))

    assert vcs.calls == []
    assert len(console.find("no files modified")) == 2


def test_dry_run_touches_nothing(tmp_path: Path) -> None:
    vcs = FakeVcs(modified={"pyproject.toml"})
    recovery, console = _recovery(tmp_path, vcs, options=RunOptions(dry_run=True))
    recovery.recover(_run())
    assert vcs.calls == []
    assert console.find("nothing to clean up")


def test_restores_modified_release_files(tmp_path: Path) -> None:
    vcs = FakeVcs(modified={"pyproject.toml", "uv.lock", "README.md"})
    recovery, console = _recovery(tmp_path, vcs)

    recovery.recover(_run(step="changelog"))

    assert vcs.calls == [("restore_path", "pyproject.toml"), ("restore_path", "uv.lock")]
    assert console.find("failure in step 'changelog'")


def test_pre_existing_changes_are_preserved(tmp_path: Path) -> None:
    vcs = FakeVcs(modified={"pyproject.toml", "uv.lock"})
    recovery, console = _recovery(tmp_path, vcs)

    recovery.recover(_run(pre_existing_changes=frozenset({"uv.lock"})))

    assert vcs.calls == [("restore_path", "pyproject.toml")]
    assert console.find("uv.lock had changes before the release")


def test_created_changelog_is_removed(tmp_path: Path) -> None:
    changelog = tmp_path / "CHANGELOG.md"
    changelog.write_text("# Changelog\n", encoding="utf-8")
    vcs = FakeVcs()
    recovery, _ = _recovery(tmp_path, vcs)

    recovery.recover(_run(created_files=("CHANGELOG.md",)))

    assert not changelog.exists()
    assert vcs.calls == []


def test_cleanup_actions_run_in_order_and_continue_past_failures(tmp_path: Path) -> None:
    order: list[str] = []

    def ok(name: str) -> CleanupAction:
        def action() -> Result[object, GitError]:
            order.append(name)
            return Ok("")

        return CleanupAction(name, action)

    def failing() -> CleanupAction:
        def action() -> Result[object, GitError]:
            order.append("delete")
            return Err(GitError(command="branch -D", message="not fully merged"))

        return CleanupAction("delete", action)

    vcs = FakeVcs(modified={"pyproject.toml"})
    recovery, console = _recovery(tmp_path, vcs)

    recovery.recover(_run(cleanup=(ok("checkout"), failing(), ok("push --delete"))))

    assert order == ["checkout", "delete", "push --delete"]
    assert console.find("cleanup step failed (delete): not fully merged")
    assert vcs.calls == [("restore_path", "pyproject.toml")]


def test_committed_run_skips_file_restore(tmp_path: Path) -> None:
    vcs = FakeVcs(modified={"pyproject.toml"})
    recovery, _ = _recovery(tmp_path, vcs)
    action = CleanupAction("git checkout development", lambda: vcs.checkout("development"))

    recovery.recover(_run(cleanup=(action,), committed=True))

    assert vcs.calls == [("checkout", "development")]


def test_restore_failure_prints_command(tmp_path: Path) -> None:
    vcs = FakeVcs(modified={"pyproject.toml"})
    vcs.fail("restore_path", "permission denied")
    recovery, console = _recovery(tmp_path, vcs)

    recovery.recover(_run())

    assert console.find("cannot restore pyproject.toml")
    assert console.find("git checkout HEAD -- pyproject.toml")
