from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from relctl.core.result import Err, Result
from relctl.git.repository import GitError
from relctl.output.console import ConsoleProtocol, Style
from relctl.services.release.config import RELEASE_FILES, ReleaseSettings
from relctl.services.release.model import PullRequest, ReleaseVersion, RunOptions
from relctl.services.release.ports import VcsPort


@dataclass(frozen=True, slots=True)
class CleanupAction:
    """Compensation for one completed irreversible step."""

    description: str
    run: Callable[[], Result[object, GitError]]


@dataclass(frozen=True, slots=True)
class ReleaseRun:
    """Forward-path state, replaced (never mutated) after every step."""

    version: ReleaseVersion
    entry: str
    step: str = "update_version"
    mutation_started: bool = False
    pre_existing_changes: frozenset[str] = frozenset()
    created_files: tuple[str, ...] = ()
    cleanup: tuple[CleanupAction, ...] = ()
    committed: bool = False
    pull_request: PullRequest | None = None


class ReleaseRecovery:
    """Undo what a failed or interrupted forward path left behind.

    Runs once per failure. Each compensation is best-effort: a failing one
    is reported and the rest still run.
    """

    def __init__(
        self,
        *,
        settings: ReleaseSettings,
        vcs: VcsPort,
        console: ConsoleProtocol,
        options: RunOptions,
    ) -> None:
        self._settings = settings
        self._vcs = vcs
        self._console = console
        self._options = options

    def recover(self, run: ReleaseRun | None) -> None:
        if self._options.dry_run:
            self._console.info("dry-run: nothing to clean up")
            return
        if run is None or not run.mutation_started:
            self._console.info("failed during validation; no files modified")
            return

        self._console.header("Cleanup")
        if run.cleanup:
            for action in run.cleanup:
                self._console.print(action.description, Style.DIM)
                result = action.run()
                if isinstance(result, Err):
                    self._console.warning(
                        f"cleanup step failed ({action.description}): {result.error.message}"
                    )
            if not run.committed:
                self.restore_release_files(run)
        else:
            self.restore_release_files(run)

        self._console.info(f"cleanup finished after failure in step '{run.step}'")

    def restore_release_files(self, run: ReleaseRun) -> None:
        root = self._settings.root
        for name in RELEASE_FILES:
            if name in run.pre_existing_changes:
                self._console.warning(f"{name} had changes before the release; left as is")
                continue

            if name in run.created_files:
                (root / name).unlink(missing_ok=True)
                self._console.print(f"removed {name}", Style.DIM)
                continue

            modified = self._vcs.is_path_modified(name)
            if isinstance(modified, Err):
                self._console.warning(f"cannot check {name}: {modified.error.message}")
                continue
            if not modified.value:
                continue

            restored = self._vcs.restore_path(name)
            if isinstance(restored, Err):
                self._console.warning(f"cannot restore {name}: {restored.error.message}")
                self._console.print(f"  re-run: git checkout HEAD -- {name}", Style.DIM)
                continue
            self._console.print(f"restored {name}", Style.DIM)
