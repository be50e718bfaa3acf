from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field

from relctl.core.result import Err, Ok, Result
from relctl.output.console import ConsoleProtocol, Style
from relctl.platform.process import is_available
from relctl.services.release.config import REQUIRED_TOOLS, ReleaseSettings
from relctl.services.release.confirm import Confirmation
from relctl.services.release.errors import ReleaseError, external_failure
from relctl.services.release.model import BumpKind, ReleaseVersion, RunOptions
from relctl.services.release.ports import ContainerPort, PlatformPort, VcsPort
from relctl.services.release.references import commit_kind
from relctl.services.release.semver import validate_new_version
from relctl.services.release.version_file import read_version

VersionChooser = Callable[[ReleaseVersion], str]

_BREAKDOWN_KINDS = ("feat", "fix", "docs")


def _empty_breakdown() -> dict[str, int]:
    return {}


@dataclass(frozen=True, slots=True)
class PreflightReport:
    current: ReleaseVersion
    new: ReleaseVersion
    bump: BumpKind
    last_tag: str | None
    commit_count: int
    breakdown: dict[str, int] = field(default_factory=_empty_breakdown)


def commit_breakdown(subjects: list[str]) -> dict[str, int]:
    """Count commits as feat / fix / docs / other."""
    counts: Counter[str] = Counter()
    for subject in subjects:
        kind = commit_kind(subject)
        counts[kind if kind in _BREAKDOWN_KINDS else "other"] += 1
    return {k: counts.get(k, 0) for k in (*_BREAKDOWN_KINDS, "other")}


class PreflightValidator:
    """Read-only checks that gate the forward path, in a fixed order.

    The first failing check aborts; nothing in here changes files, refs or
    branches (fetch only updates remote-tracking refs).
    """

    def __init__(
        self,
        *,
        settings: ReleaseSettings,
        vcs: VcsPort,
        platform: PlatformPort,
        container: ContainerPort,
        console: ConsoleProtocol,
        confirm: Confirmation,
        options: RunOptions,
        tool_available: Callable[[str], bool] = is_available,
    ) -> None:
        self._settings = settings
        self._vcs = vcs
        self._platform = platform
        self._container = container
        self._console = console
        self._confirm = confirm
        self._options = options
        self._tool_available = tool_available

    def run(
        self,
        *,
        requested_version: str | None,
        milestone: str | None,
        choose_version: VersionChooser | None = None,
    ) -> Result[PreflightReport, ReleaseError]:
        self._console.header("Preflight")

        deps = self.check_dependencies()
        if isinstance(deps, Err):
            return deps

        clean = self.check_clean_tree()
        if isinstance(clean, Err):
            return clean

        synced = self.check_branch_sync()
        if isinstance(synced, Err):
            return synced

        current = read_version(self._settings.root)
        if isinstance(current, Err):
            return current
        self._console.print(f"current version: {current.value}", Style.DIM)

        text = requested_version
        if text is None:
            if choose_version is None:
                return Err(
                    ReleaseError(
                        kind="invalid_input",
                        message="no version given",
                        hint="Pass --version X.Y.Z",
                    )
                )
            text = choose_version(current.value)

        version = self.check_version(text, current.value)
        if isinstance(version, Err):
            return version
        new, bump = version.value

        commits = self.check_commits()
        if isinstance(commits, Err):
            return commits
        last_tag, subjects = commits.value

        if milestone:
            ms = self.check_milestone(milestone)
            if isinstance(ms, Err):
                return ms

        return Ok(
            PreflightReport(
                current=current.value,
                new=new,
                bump=bump,
                last_tag=last_tag,
                commit_count=len(subjects),
                breakdown=commit_breakdown(subjects),
            )
        )

    def check_dependencies(self) -> Result[None, ReleaseError]:
        for tool, hint in REQUIRED_TOOLS:
            if not self._tool_available(tool):
                return Err(
                    ReleaseError(kind="dependency_missing", message=f"{tool}: missing", hint=hint)
                )

        auth = self._platform.check_auth()
        if isinstance(auth, Err):
            return auth

        running = self._container.is_running()
        if isinstance(running, Err):
            return running
        if not running.value:
            name = self._container.name
            if self._options.dry_run:
                self._console.warning(f"dev container {name} is not running")
                self._console.print("[dry-run] would run: make dev-up", Style.DIM)
            else:
                self._console.info(f"dev container {name} is not running; starting it")
                started = self._container.start()
                if isinstance(started, Err):
                    return started
                again = self._container.is_running()
                if isinstance(again, Err):
                    return again
                if not again.value:
                    return Err(
                        ReleaseError(
                            kind="dependency_missing",
                            message=f"dev container {name} did not start",
                            hint=f"Check: docker ps -a --filter name={name}",
                        )
                    )

        self._console.success("dependencies available")
        return Ok(None)

    def check_clean_tree(self) -> Result[None, ReleaseError]:
        dirty = self._vcs.has_uncommitted_changes()
        if isinstance(dirty, Err):
            return Err(external_failure(what="cannot read git status", detail=dirty.error.message))
        if dirty.value:
            return Err(
                ReleaseError(
                    kind="dirty_tree",
                    message="uncommitted changes detected",
                    hint="Commit or stash them first (git status)",
                )
            )
        self._console.success("working tree clean")
        return Ok(None)

    def check_branch_sync(self) -> Result[None, ReleaseError]:
        settings = self._settings
        integration = settings.integration_branch
        branch = self._vcs.current_branch()
        if branch != integration:
            return Err(
                ReleaseError(
                    kind="wrong_branch",
                    message=f"must be on {integration} (currently on {branch or 'detached HEAD'})",
                    hint=f"Run: git checkout {integration}",
                )
            )

        fetched = self._vcs.fetch(settings.remote, integration)
        if isinstance(fetched, Err):
            return Err(
                external_failure(
                    what=f"cannot fetch {settings.upstream}",
                    detail=fetched.error.message,
                    rerun=f"git fetch {settings.remote} {integration}",
                )
            )

        counts = self._vcs.ahead_behind(integration, settings.upstream)
        if isinstance(counts, Err):
            return Err(
                external_failure(
                    what=f"cannot compare with {settings.upstream}", detail=counts.error.message
                )
            )

        ahead, behind = counts.value
        if ahead and behind:
            return Err(
                ReleaseError(
                    kind="diverged",
                    message=f"{integration} has diverged from {settings.upstream} "
                    f"({ahead} ahead, {behind} behind)",
                    hint="Run: git pull --rebase",
                )
            )
        if ahead:
            return Err(
                ReleaseError(
                    kind="diverged",
                    message=f"{integration} is {ahead} commit(s) ahead of {settings.upstream}",
                    hint="Run: git push",
                )
            )
        if behind:
            return Err(
                ReleaseError(
                    kind="diverged",
                    message=f"{integration} is {behind} commit(s) behind {settings.upstream}",
                    hint="Run: git pull",
                )
            )

        self._console.success(f"{integration} is up to date with {settings.upstream}")
        return Ok(None)

    def check_version(
        self, text: str, current: ReleaseVersion
    ) -> Result[tuple[ReleaseVersion, BumpKind], ReleaseError]:
        validated = validate_new_version(text, current)
        if isinstance(validated, Err):
            return validated
        new, bump = validated.value

        local = self._vcs.local_tag_exists(new.tag)
        if isinstance(local, Err):
            return Err(external_failure(what="cannot list tags", detail=local.error.message))
        remote = self._vcs.remote_tag_exists(self._settings.remote, new.tag)
        if isinstance(remote, Err):
            return Err(
                external_failure(what="cannot list remote tags", detail=remote.error.message)
            )
        if local.value or remote.value:
            return Err(
                ReleaseError(
                    kind="tag_exists",
                    message=f"tag {new.tag} already exists",
                    hint="Pick the next unreleased version",
                )
            )

        self._console.success(f"version {current} -> {new} ({bump})")
        return Ok((new, bump))

    def check_commits(self) -> Result[tuple[str | None, list[str]], ReleaseError]:
        tags = self._vcs.release_tags()
        if isinstance(tags, Err):
            return Err(external_failure(what="cannot list tags", detail=tags.error.message))
        last_tag = tags.value[0] if tags.value else None

        log = self._vcs.log(f"{last_tag}..HEAD" if last_tag else None)
        if isinstance(log, Err):
            return Err(external_failure(what="cannot read git log", detail=log.error.message))
        subjects = [entry.subject for entry in log.value]

        since = last_tag or "the first commit"
        if not subjects:
            return Err(
                ReleaseError(
                    kind="nothing_to_release",
                    message=f"no commits since {since}",
                    hint="Nothing to release",
                )
            )

        breakdown = commit_breakdown(subjects)
        self._console.success(f"{len(subjects)} commit(s) since {since}")
        summary = ", ".join(f"{kind}: {count}" for kind, count in breakdown.items())
        self._console.print(f"  {summary}", Style.DIM)

        if not breakdown["feat"] and not breakdown["fix"]:
            self._console.warning("no feat or fix commits since the last release")
            confirmed = self._confirm.require("Continue with a release anyway?")
            if isinstance(confirmed, Err):
                return confirmed

        return Ok((last_tag, subjects))

    def check_milestone(self, milestone: str) -> Result[None, ReleaseError]:
        open_count = self._platform.count_open_work_items(milestone=milestone)
        if isinstance(open_count, Err):
            return open_count
        if open_count.value:
            self._console.warning(f"milestone '{milestone}' has {open_count.value} open issue(s)")
            confirmed = self._confirm.require("Release with open issues in the milestone?")
            if isinstance(confirmed, Err):
                return confirmed
        else:
            self._console.success(f"milestone '{milestone}' has no open issues")
        return Ok(None)
