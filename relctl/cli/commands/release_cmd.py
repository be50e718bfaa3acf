from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import typer

from relctl.cli.commands._helpers import (
    confirmation,
    exit_on_release_error,
    release_settings,
    resolve_project,
)
from relctl.cli.context import build_context
from relctl.git.repository import Repository
from relctl.services.release.changelog import ChangelogRequest
from relctl.services.release.cleanup import ReleaseRecovery
from relctl.services.release.container import DevContainer
from relctl.services.release.editor import TerminalEditor
from relctl.services.release.gh import GhPlatform
from relctl.services.release.model import ReleaseVersion, RunOptions
from relctl.services.release.orchestrator import ReleaseOrchestrator
from relctl.services.release.preflight import PreflightValidator
from relctl.services.release.semver import next_versions


def choose_version(current: ReleaseVersion) -> str:
    """Interactive major/minor/patch/custom selection."""
    major, minor, patch = next_versions(current)
    typer.echo(f"Current version: {current}")
    typer.echo(f"  1) patch   {patch}")
    typer.echo(f"  2) minor   {minor}")
    typer.echo(f"  3) major   {major}")
    typer.echo("  4) custom")
    choice = typer.prompt("Select release type", default="1").strip().lower()
    match choice:
        case "1" | "patch":
            return str(patch)
        case "2" | "minor":
            return str(minor)
        case "3" | "major":
            return str(major)
        case "4" | "custom":
            return typer.prompt("Version (X.Y.Z)").strip()
        case _:
            return choice


def release(
    project: str | None = typer.Option(None, "--project", "-p", help="api, terminal or jobs"),
    version: str | None = typer.Option(None, "--version", "-v", help="New version (X.Y.Z)"),
    milestone: str | None = typer.Option(
        None, "--milestone", "-m", help="Build the changelog from this milestone"
    ),
    changelog: str | None = typer.Option(None, "--changelog", help="Changelog entry text"),
    changelog_file: Path | None = typer.Option(
        None, "--changelog-file", help="Read the changelog entry from a file"
    ),
    changelog_editor: bool = typer.Option(
        False, "--changelog-editor", help="Write the changelog entry in $EDITOR"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without mutating"),
    verbose: bool = typer.Option(False, "--verbose", help="Show commands and generated content"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to every confirmation"),
) -> None:
    """Bump the version, update the changelog and open the release PR."""
    ctx = build_context()
    options = RunOptions(dry_run=dry_run, verbose=verbose, assume_yes=yes)
    settings = release_settings(ctx, resolve_project(ctx, project))
    if dry_run:
        ctx.console.warning("dry-run: no changes will be made")

    vcs = Repository(settings.root)
    platform = GhPlatform(cwd=settings.root, repo_slug=settings.repo_slug)
    container = DevContainer(name=settings.container, project_root=settings.root)
    confirm = confirmation(ctx, options)
    recovery = ReleaseRecovery(settings=settings, vcs=vcs, console=ctx.console, options=options)

    preflight = PreflightValidator(
        settings=settings,
        vcs=vcs,
        platform=platform,
        container=container,
        console=ctx.console,
        confirm=confirm,
        options=options,
    ).run(
        requested_version=version,
        milestone=milestone,
        choose_version=choose_version if sys.stdin.isatty() else None,
    )
    if preflight.is_err():
        recovery.recover(None)
    exit_on_release_error(preflight, ctx)
    report = preflight.unwrap()

    request = ChangelogRequest(
        inline=changelog,
        file=changelog_file,
        use_editor=changelog_editor,
        milestone=milestone,
    )
    editor = TerminalEditor(cwd=settings.root) if changelog_editor else None

    orchestrator = ReleaseOrchestrator(
        settings=settings,
        vcs=vcs,
        platform=platform,
        container=container,
        console=ctx.console,
        confirm=confirm,
        options=options,
        recovery=recovery,
    )
    result = orchestrator.release(report, request, editor=editor, now=datetime.now().astimezone())
    exit_on_release_error(result, ctx)
