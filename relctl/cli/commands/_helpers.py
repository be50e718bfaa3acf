"""Shared helpers for CLI commands."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, NoReturn

import typer

from relctl.core.errors import ErrorCode
from relctl.core.project import Project, detect_project, parse_project
from relctl.core.result import Err, Result
from relctl.git.repository import Repository
from relctl.output.console import Style
from relctl.services.release.config import ReleaseSettings, resolve_settings
from relctl.services.release.confirm import Confirmation
from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import RunOptions

if TYPE_CHECKING:
    from relctl.cli.context import CLIContext


def exit_on_error[T, E](
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.USER_ERROR,
) -> None:
    """Exit with error if result is Err, otherwise return.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(message)
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)


def release_error_code(error: ReleaseError) -> ErrorCode:
    match error.kind:
        case "dependency_missing":
            return ErrorCode.ENV_ERROR
        case "mutation":
            return ErrorCode.MUTATION_ERROR
        case "external_tool":
            return ErrorCode.NETWORK_ERROR
        case "manual_required":
            return ErrorCode.MANUAL_REQUIRED
        case _:
            return ErrorCode.USER_ERROR


def exit_on_release_error[T](result: Result[T, ReleaseError], ctx: CLIContext) -> None:
    if isinstance(result, Err):
        exit_on_error(result, ctx, release_error_code(result.error))


def resolve_project(ctx: CLIContext, name: str | None) -> Project:
    """--project if given, else the project the current directory belongs to."""
    result = parse_project(name) if name is not None else detect_project(ctx.cwd)
    if isinstance(result, Err):
        ctx.console.error(result.error)
        exit_with_code(int(ErrorCode.USER_ERROR))
    return result.value


def release_settings(ctx: CLIContext, project: Project) -> ReleaseSettings:
    settings = resolve_settings(config=ctx.config, project=project, cwd=ctx.cwd)
    if not Repository(settings.root).exists():
        ctx.console.error(f"not a git repository: {settings.root}")
        ctx.console.print("hint: set root in config.toml or RELCTL_ROOT", Style.DIM)
        exit_with_code(int(ErrorCode.ENV_ERROR))
    ctx.console.print(f"project: {project.value} ({settings.root})", Style.DIM)
    return settings


def _prompt(message: str) -> bool:
    return typer.confirm(message, default=False)


def confirmation(ctx: CLIContext, options: RunOptions) -> Confirmation:
    prompt = _prompt if sys.stdin.isatty() else None
    return Confirmation(console=ctx.console, options=options, prompt=prompt)
