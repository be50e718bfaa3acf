from __future__ import annotations

import typer

from relctl.cli.commands._helpers import (
    confirmation,
    exit_on_release_error,
    release_settings,
    resolve_project,
)
from relctl.cli.context import build_context
from relctl.git.repository import Repository
from relctl.output.console import Style
from relctl.services.release.gh import GhPlatform
from relctl.services.release.model import ReleasePhase, RunOptions
from relctl.services.release.phase import detect_phase
from relctl.services.release.rollback import RollbackEngine
from relctl.services.release.semver import parse_version


def rollback(
    version: str = typer.Option(..., "--version", "-v", help="Release to roll back (X.Y.Z)"),
    project: str | None = typer.Option(None, "--project", "-p", help="api, terminal or jobs"),
    phase: int | None = typer.Option(
        None, "--phase", min=1, max=4, help="Override the detected phase (1-4)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without mutating"),
    verbose: bool = typer.Option(False, "--verbose", help="Show detection details"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to every confirmation"),
) -> None:
    """Undo an in-flight release according to its detected phase."""
    ctx = build_context()
    options = RunOptions(dry_run=dry_run, verbose=verbose, assume_yes=yes)

    parsed = parse_version(version)
    exit_on_release_error(parsed, ctx)
    target = parsed.unwrap()

    settings = release_settings(ctx, resolve_project(ctx, project))
    if dry_run:
        ctx.console.warning("dry-run: no changes will be made")

    vcs = Repository(settings.root)
    platform = GhPlatform(cwd=settings.root, repo_slug=settings.repo_slug)

    detected = detect_phase(version=target, vcs=vcs, platform=platform, settings=settings)
    exit_on_release_error(detected, ctx)
    report = detected.unwrap()
    ctx.console.info(f"detected {report.description}")
    if verbose:
        ctx.console.print(f"evidence: {report.evidence}", Style.DIM)

    engine = RollbackEngine(
        settings=settings,
        vcs=vcs,
        platform=platform,
        console=ctx.console,
        confirm=confirmation(ctx, options),
        options=options,
    )
    requested = ReleasePhase(phase) if phase is not None else None
    resolved = engine.resolve_phase(report, requested)
    exit_on_release_error(resolved, ctx)

    result = engine.rollback(target, resolved.unwrap())
    exit_on_release_error(result, ctx)
    if dry_run:
        ctx.console.success(f"dry-run complete for {target.tag}; nothing was changed")
    else:
        ctx.console.success(f"rollback of {target.tag} complete")


def phase(
    version: str = typer.Option(..., "--version", "-v", help="Release to inspect (X.Y.Z)"),
    project: str | None = typer.Option(None, "--project", "-p", help="api, terminal or jobs"),
) -> None:
    """Show how far a release has progressed (read-only)."""
    ctx = build_context()

    parsed = parse_version(version)
    exit_on_release_error(parsed, ctx)
    target = parsed.unwrap()

    settings = release_settings(ctx, resolve_project(ctx, project))
    vcs = Repository(settings.root)
    platform = GhPlatform(cwd=settings.root, repo_slug=settings.repo_slug)

    detected = detect_phase(version=target, vcs=vcs, platform=platform, settings=settings)
    exit_on_release_error(detected, ctx)
    report = detected.unwrap()

    ctx.console.print(report.description, Style.BOLD)
    ctx.console.print(f"evidence: {report.evidence}", Style.DIM)
    if report.phase == ReleasePhase.NOT_STARTED:
        return
    if report.reverted_by is not None:
        ctx.console.print(
            f"rollback: already reverted on {settings.integration_branch}", Style.DIM
        )
        return
    if report.phase.reversible:
        ctx.console.print(f"rollback: relctl rollback --version {target}", Style.DIM)
    else:
        ctx.console.print("rollback: not possible; fix forward with a new version", Style.DIM)
