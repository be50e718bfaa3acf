from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from relctl.core.result import Err, Ok, Result
from relctl.git.repository import GitError
from relctl.output.console import ConsoleProtocol, Style
from relctl.platform.files import atomic_write_text, read_text_if_exists
from relctl.platform.process import format_command
from relctl.services.release.changelog import ChangelogRequest, build_entry, render_entry
from relctl.services.release.changelog_doc import (
    check_entry_structure,
    extract_entry,
    has_version,
    insert_entry,
    new_document,
)
from relctl.services.release.cleanup import CleanupAction, ReleaseRecovery, ReleaseRun
from relctl.services.release.config import (
    CHANGELOG_FILE,
    LOCK_FILE,
    RELEASE_FILES,
    VERSION_FILE,
    ReleaseSettings,
)
from relctl.services.release.confirm import Confirmation
from relctl.services.release.errors import ReleaseError, as_mutation_error, external_failure
from relctl.services.release.model import ReleaseVersion, RunOptions
from relctl.services.release.ports import ContainerPort, EditorPort, PlatformPort, VcsPort
from relctl.services.release.preflight import PreflightReport
from relctl.services.release.steps import FINISH, Step, StepOutcome, advance, run_steps
from relctl.services.release.version_file import write_version

GitAction = Callable[[], Result[str, GitError]]


def commit_message(version: ReleaseVersion) -> str:
    return (
        f"chore(release): bump version to {version}\n"
        "\n"
        f"- Update {VERSION_FILE} version\n"
        f"- Update {LOCK_FILE}\n"
        f"- Add CHANGELOG entry for {version.tag}"
    )


def pull_request_title(version: ReleaseVersion) -> str:
    return f"chore(release): {version.tag}"


def pull_request_body(version: ReleaseVersion, entry: str, settings: ReleaseSettings) -> str:
    return (
        f"## Release {version.tag}\n"
        "\n"
        f"{entry.strip()}\n"
        "\n"
        "## Next steps\n"
        "\n"
        f"1. Review and merge this PR into `{settings.integration_branch}`\n"
        f"2. Promote `{settings.integration_branch}` to `{settings.final_branch}`\n"
        f"3. Tag `{version.tag}` on `{settings.final_branch}` and publish the release\n"
    )


class ReleaseOrchestrator:
    """Forward path: bump, lock, changelog, branch, commit, push, PR.

    Runs after preflight. Every failure or interruption after the first
    mutation hands the last saved ReleaseRun to ReleaseRecovery.
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
        recovery: ReleaseRecovery | None = None,
    ) -> None:
        self._settings = settings
        self._vcs = vcs
        self._platform = platform
        self._container = container
        self._console = console
        self._confirm = confirm
        self._options = options
        self._recovery = recovery or ReleaseRecovery(
            settings=settings, vcs=vcs, console=console, options=options
        )
        self._latest: ReleaseRun | None = None

    @property
    def latest(self) -> ReleaseRun | None:
        return self._latest

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def release(
        self,
        report: PreflightReport,
        request: ChangelogRequest,
        *,
        editor: EditorPort | None,
        now: datetime,
    ) -> Result[ReleaseRun, ReleaseError]:
        entry = self.prepare_entry(report.new, request, editor=editor, now=now)
        if isinstance(entry, Err):
            return entry

        self.show_summary(report, entry.value)
        confirmed = self._confirm.require(f"Proceed with release {report.new.tag}?")
        if isinstance(confirmed, Err):
            return confirmed

        pre_existing = self._vcs.changed_paths()
        if isinstance(pre_existing, Err):
            return Err(
                external_failure(what="cannot read git status", detail=pre_existing.error.message)
            )

        initial = ReleaseRun(
            version=report.new,
            entry=entry.value,
            mutation_started=True,
            pre_existing_changes=pre_existing.value,
        )
        self._latest = initial

        try:
            result = run_steps(
                initial_state=initial,
                steps=self._steps(),
                get_step=lambda run: run.step,
                save_state=self._save,
                on_enter=self._enter_step,
            )
        except BaseException:
            self._console.error("release interrupted")
            self._recovery.recover(self._latest)
            raise

        if isinstance(result, Err):
            failed = self._latest or initial
            self._recovery.recover(failed)
            return Err(as_mutation_error(result.error, step=failed.step))

        self._report_success(result.value)
        return result

    def prepare_entry(
        self,
        version: ReleaseVersion,
        request: ChangelogRequest,
        *,
        editor: EditorPort | None,
        now: datetime,
    ) -> Result[str, ReleaseError]:
        """Resolve and render the changelog entry before anything is touched."""
        existing = read_text_if_exists(self._settings.root / CHANGELOG_FILE)
        if existing is not None and has_version(existing, version):
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"{CHANGELOG_FILE} already has a section for {version}",
                    hint="Remove the existing section or release a different version",
                )
            )

        built = build_entry(
            request,
            version=version,
            date=now.date().isoformat(),
            vcs=self._vcs,
            platform=self._platform,
            editor=editor,
            console=self._console,
            now=now,
            verbose=self._options.verbose,
        )
        if isinstance(built, Err):
            return built

        text = render_entry(built.value)
        problems = check_entry_structure(text, strict_categories=built.value.body is None)
        if problems:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message="changelog entry is malformed",
                    hint="\n".join(problems),
                )
            )
        return Ok(text)

    def show_summary(self, report: PreflightReport, entry: str) -> None:
        settings = self._settings
        self._console.header(f"Release {report.new.tag} ({settings.project.value})")
        self._console.print(f"version:  {report.current} -> {report.new} ({report.bump})")
        self._console.print(f"branch:   {report.new.branch} -> {settings.integration_branch}")
        since = report.last_tag or "the first commit"
        self._console.print(f"commits:  {report.commit_count} since {since}")
        self._console.print(f"files:    {', '.join(RELEASE_FILES)}")
        self._console.block(f"{CHANGELOG_FILE} entry", entry)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _steps(self) -> list[Step[ReleaseRun]]:
        return [
            Step("update_version", self._update_version),
            Step("lock", self._lock),
            Step("changelog", self._changelog),
            Step("branch", self._branch),
            Step("commit", self._commit),
            Step("push", self._push),
            Step("pull_request", self._pull_request),
            Step("label", self._label),
        ]

    def _enter_step(self, name: str, position: int, total: int) -> None:
        if self._options.verbose:
            self._console.print(f"step {position}/{total}: {name}", Style.DIM)

    def _save(self, run: ReleaseRun) -> Result[ReleaseRun, ReleaseError]:
        self._latest = run
        return Ok(run)

    def _git(self, cmd: list[str], action: GitAction, *, what: str) -> Result[None, ReleaseError]:
        command = format_command(cmd)
        self._console.print(command, Style.DIM)
        if self._options.dry_run:
            return Ok(None)
        result = action()
        if isinstance(result, Err):
            return Err(external_failure(what=what, detail=result.error.message, rerun=command))
        return Ok(None)

    def _update_version(self, run: ReleaseRun) -> Result[StepOutcome[ReleaseRun], ReleaseError]:
        version = run.version
        self._console.header(f"Update {VERSION_FILE}")
        if self._options.dry_run:
            self._console.print(f"[dry-run] would set version = {version}", Style.DIM)
            return Ok(advance(replace(run, step="lock")))

        written = write_version(self._settings.root, version)
        if isinstance(written, Err):
            return written
        if written.value:
            self._console.success(f"version set to {version}")
        else:
            self._console.warning(f"{VERSION_FILE} already at {version}")
        return Ok(advance(replace(run, step="lock")))

    def _lock(self, run: ReleaseRun) -> Result[StepOutcome[ReleaseRun], ReleaseError]:
        self._console.header(f"Update {LOCK_FILE}")
        container = self._container
        if self._options.dry_run:
            preview = container.preview_lock()
            if isinstance(preview, Err):
                self._console.warning(f"lock preview failed: {preview.error.message}")
            elif self._options.verbose and preview.value.strip():
                self._console.print(preview.value.strip(), Style.DIM)
            self._console.print(f"[dry-run] would run uv lock in {container.name}", Style.DIM)
            return Ok(advance(replace(run, step="changelog")))

        locked = container.lock()
        if isinstance(locked, Err):
            return locked

        changed = self._vcs.is_path_modified(LOCK_FILE)
        if isinstance(changed, Ok) and not changed.value:
            self._console.warning(f"{LOCK_FILE} unchanged after uv lock")

        checked = container.check_lock()
        if isinstance(checked, Err):
            return checked
        self._console.success(f"{LOCK_FILE} regenerated and consistent")
        return Ok(advance(replace(run, step="changelog")))

    def _changelog(self, run: ReleaseRun) -> Result[StepOutcome[ReleaseRun], ReleaseError]:
        self._console.header(f"Update {CHANGELOG_FILE}")
        path = self._settings.root / CHANGELOG_FILE
        existing = read_text_if_exists(path)
        document = existing if existing is not None else new_document()

        updated = insert_entry(document, run.entry, run.version)
        if isinstance(updated, Err):
            return updated

        if self._options.dry_run:
            action = "create" if existing is None else "update"
            self._console.print(f"[dry-run] would {action} {CHANGELOG_FILE}", Style.DIM)
            return Ok(advance(replace(run, step="branch")))

        try:
            atomic_write_text(path, updated.value)
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="mutation",
                    message=f"failed to write {CHANGELOG_FILE}: {e}",
                    hint=str(path),
                )
            )

        created = run.created_files
        if existing is None:
            created = (*created, CHANGELOG_FILE)
            self._console.success(f"created {CHANGELOG_FILE} with entry for {run.version}")
        else:
            self._console.success(f"added entry for {run.version}")

        linted = self._container.lint_markdown(CHANGELOG_FILE)
        if isinstance(linted, Err):
            self._console.warning(f"markdown lint: {linted.error.message}")
            if linted.error.hint and self._options.verbose:
                self._console.print(linted.error.hint, Style.DIM)

        return Ok(advance(replace(run, step="branch", created_files=created)))

    def _branch(self, run: ReleaseRun) -> Result[StepOutcome[ReleaseRun], ReleaseError]:
        settings = self._settings
        branch = run.version.branch
        integration = settings.integration_branch
        remote = settings.remote
        self._console.header(f"Create {branch}")

        created = self._git(
            ["git", "checkout", "-b", branch],
            lambda: self._vcs.create_branch(branch),
            what=f"cannot create branch {branch}",
        )
        if isinstance(created, Err):
            return created

        cleanup = (
            *run.cleanup,
            CleanupAction(f"git checkout {integration}", lambda: self._vcs.checkout(integration)),
            CleanupAction(
                f"git branch -D {branch}", lambda: self._vcs.delete_local_branch(branch)
            ),
            CleanupAction(
                f"git push {remote} --delete {branch}",
                lambda: self._delete_remote_if_present(branch),
            ),
        )
        return Ok(advance(replace(run, step="commit", cleanup=cleanup)))

    def _delete_remote_if_present(self, branch: str) -> Result[str, GitError]:
        remote = self._settings.remote
        exists = self._vcs.remote_branch_exists(remote, branch)
        if isinstance(exists, Err):
            return exists
        if not exists.value:
            return Ok("")
        return self._vcs.delete_remote_branch(remote, branch)

    def _commit(self, run: ReleaseRun) -> Result[StepOutcome[ReleaseRun], ReleaseError]:
        self._console.header("Commit")
        root = self._settings.root
        files = [name for name in RELEASE_FILES if self._options.dry_run or (root / name).exists()]
        message = commit_message(run.version)

        added = self._git(
            ["git", "add", *files],
            lambda: self._vcs.add(files),
            what="cannot stage release files",
        )
        if isinstance(added, Err):
            return added

        committed = self._git(
            ["git", "commit", "-m", message.splitlines()[0]],
            lambda: self._vcs.commit(message),
            what="cannot create the release commit",
        )
        if isinstance(committed, Err):
            return committed
        return Ok(advance(replace(run, step="push", committed=not self._options.dry_run)))

    def _push(self, run: ReleaseRun) -> Result[StepOutcome[ReleaseRun], ReleaseError]:
        remote = self._settings.remote
        branch = run.version.branch
        self._console.header(f"Push {branch}")
        pushed = self._git(
            ["git", "push", "-u", remote, branch],
            lambda: self._vcs.push(remote, branch, set_upstream=True),
            what=f"cannot push {branch} to {remote}",
        )
        if isinstance(pushed, Err):
            return pushed
        return Ok(advance(replace(run, step="pull_request")))

    def _pull_request(self, run: ReleaseRun) -> Result[StepOutcome[ReleaseRun], ReleaseError]:
        settings = self._settings
        version = run.version
        self._console.header("Open pull request")

        document = read_text_if_exists(settings.root / CHANGELOG_FILE)
        excerpt = extract_entry(document, version) if document is not None else None
        title = pull_request_title(version)
        body = pull_request_body(version, excerpt or run.entry, settings)

        cmd = ["gh", "pr", "create", "--base", settings.integration_branch]
        cmd += ["--head", version.branch, "--title", title]
        self._console.print(format_command(cmd), Style.DIM)
        if self._options.dry_run:
            if self._options.verbose:
                self._console.block("PR body", body)
            return Ok(advance(replace(run, step="label")))

        created = self._platform.create_pull_request(
            base=settings.integration_branch,
            head=version.branch,
            title=title,
            body=body,
        )
        if isinstance(created, Err):
            return created
        self._console.success(f"PR #{created.value.number} opened")
        return Ok(advance(replace(run, step="label", pull_request=created.value)))

    def _label(self, run: ReleaseRun) -> Result[StepOutcome[ReleaseRun], ReleaseError]:
        label = self._settings.release_label
        pr = run.pull_request
        number = str(pr.number) if pr is not None else "<number>"
        cmd = ["gh", "pr", "edit", number, "--add-label", label]
        self._console.print(format_command(cmd), Style.DIM)
        if pr is None:
            return Ok(FINISH)

        labeled = self._platform.add_label(number=pr.number, label=label)
        if isinstance(labeled, Err):
            self._console.warning(f"could not label PR #{pr.number}: {labeled.error.message}")
        return Ok(FINISH)

    def _report_success(self, run: ReleaseRun) -> None:
        settings = self._settings
        tag = run.version.tag
        self._console.newline()
        if self._options.dry_run:
            self._console.success(f"dry-run complete for {tag}; nothing was changed")
            return

        self._console.success(f"release {tag} prepared")
        if run.pull_request is not None and run.pull_request.url:
            self._console.print(f"PR: {run.pull_request.url}")
        self._console.print("Next steps:")
        self._console.print(f"  1. Review and merge the PR into {settings.integration_branch}")
        self._console.print(
            f"  2. Promote {settings.integration_branch} to {settings.final_branch}"
        )
        self._console.print(f"  3. Tag {tag} and publish the release")
