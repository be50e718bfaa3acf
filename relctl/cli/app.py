from __future__ import annotations

import typer

from relctl import __version__
from relctl.cli.commands.changelog_cmd import changelog
from relctl.cli.commands.release_cmd import release
from relctl.cli.commands.rollback_cmd import phase, rollback

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(release)
app.command()(rollback)
app.command()(phase)
app.command()(changelog)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Release automation with phase-aware rollback."""


def main() -> None:
    app()
