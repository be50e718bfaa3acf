from __future__ import annotations

from datetime import datetime
from pathlib import Path

import typer

from relctl.cli.commands._helpers import (
    exit_on_release_error,
    exit_with_code,
    release_settings,
    resolve_project,
)
from relctl.cli.context import build_context
from relctl.core.errors import ErrorCode
from relctl.core.result import Err
from relctl.git.repository import Repository
from relctl.output.console import Style
from relctl.platform.files import atomic_write_text, read_text_if_exists
from relctl.services.release.changelog import ChangelogRequest, build_entry, render_entry
from relctl.services.release.changelog_doc import (
    check_entry_structure,
    has_version,
    insert_entry,
    new_document,
)
from relctl.services.release.config import CHANGELOG_FILE
from relctl.services.release.container import DevContainer
from relctl.services.release.editor import TerminalEditor
from relctl.services.release.gh import GhPlatform
from relctl.services.release.semver import parse_version


def changelog(
    version: str = typer.Option(..., "--version", "-v", help="Version of the entry (X.Y.Z)"),
    project: str | None = typer.Option(None, "--project", "-p", help="api, terminal or jobs"),
    milestone: str | None = typer.Option(
        None, "--milestone", "-m", help="Generate from this milestone"
    ),
    text: str | None = typer.Option(None, "--changelog", help="Entry text"),
    file: Path | None = typer.Option(None, "--changelog-file", help="Read the entry from a file"),
    use_editor: bool = typer.Option(False, "--changelog-editor", help="Write the entry in $EDITOR"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview the entry without writing"),
    lint: bool = typer.Option(False, "--lint", help="Run markdownlint on CHANGELOG.md after"),
    verbose: bool = typer.Option(False, "--verbose", help="Show collected data"),
) -> None:
    """Generate a changelog entry and insert it into CHANGELOG.md."""
    ctx = build_context()

    sources = [text is not None, file is not None, use_editor]
    if sum(sources) > 1:
        ctx.console.error("--changelog, --changelog-file and --changelog-editor are exclusive")
        exit_with_code(int(ErrorCode.USER_ERROR))

    parsed = parse_version(version)
    exit_on_release_error(parsed, ctx)
    target = parsed.unwrap()

    settings = release_settings(ctx, resolve_project(ctx, project))
    path = settings.root / CHANGELOG_FILE
    existing = read_text_if_exists(path)
    if existing is not None and has_version(existing, target):
        ctx.console.error(f"{CHANGELOG_FILE} already has a section for {target}")
        exit_with_code(int(ErrorCode.USER_ERROR))

    now = datetime.now().astimezone()
    built = build_entry(
        ChangelogRequest(inline=text, file=file, use_editor=use_editor, milestone=milestone),
        version=target,
        date=now.date().isoformat(),
        vcs=Repository(settings.root),
        platform=GhPlatform(cwd=settings.root, repo_slug=settings.repo_slug),
        editor=TerminalEditor(cwd=settings.root) if use_editor else None,
        console=ctx.console,
        now=now,
        verbose=verbose,
    )
    exit_on_release_error(built, ctx)
    entry = built.unwrap()

    rendered = render_entry(entry)
    for problem in check_entry_structure(rendered, strict_categories=entry.body is None):
        ctx.console.warning(problem)

    if dry_run:
        ctx.console.block(f"{CHANGELOG_FILE} entry (preview)", rendered)
        return

    updated = insert_entry(existing if existing is not None else new_document(), rendered, target)
    exit_on_release_error(updated, ctx)
    try:
        atomic_write_text(path, updated.unwrap())
    except OSError as e:
        ctx.console.error(f"failed to write {path}: {e}")
        exit_with_code(int(ErrorCode.IO_ERROR))

    if verbose:
        ctx.console.block(f"{CHANGELOG_FILE} entry", rendered)
    ctx.console.success(f"{CHANGELOG_FILE} updated with {target}")

    if lint:
        container = DevContainer(name=settings.container, project_root=settings.root)
        linted = container.lint_markdown(CHANGELOG_FILE)
        if isinstance(linted, Err):
            ctx.console.warning(f"markdown lint: {linted.error.message}")
        else:
            ctx.console.print("markdownlint: clean", Style.DIM)
