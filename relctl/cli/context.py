from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from relctl.core.config import Config, config_path, load_config_or_default
from relctl.core.errors import ErrorCode
from relctl.core.result import Err
from relctl.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol
    cwd: Path


def build_context() -> CLIContext:
    path = config_path(os.environ)
    config_result = load_config_or_default(path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(
        config=config_result.value.with_env(os.environ),
        console=RichConsole(),
        cwd=Path.cwd(),
    )
