"""Releasable projects and how to find them on disk."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from .result import Err, Ok, Result

__all__ = ["Project", "detect_project", "parse_project"]


class Project(Enum):
    API = "api"
    TERMINAL = "terminal"
    JOBS = "jobs"

    def __str__(self) -> str:
        return self.value

    @property
    def container_service(self) -> str | None:
        """Dev-container service suffix (``<prefix>-<project>-dev-<service>``)."""
        match self:
            case Project.API:
                return "app"
            case Project.TERMINAL:
                return None
            case Project.JOBS:
                return "worker"

    def container_name(self, prefix: str) -> str:
        base = f"{prefix}-{self.value}-dev"
        service = self.container_service
        return f"{base}-{service}" if service else base


def parse_project(name: str) -> Result[Project, str]:
    try:
        return Ok(Project(name.strip().lower()))
    except ValueError:
        valid = ", ".join(p.value for p in Project)
        return Err(f"invalid project: {name} (valid: {valid})")


def detect_project(cwd: Path) -> Result[Project, str]:
    """Infer the project from the working directory.

    The directory itself named after a project wins; otherwise the nearest
    ancestor named after one (so ``~/src/acme/api/src/app`` is ``api``).
    """
    for part in (cwd, *cwd.parents):
        try:
            return Ok(Project(part.name))
        except ValueError:
            continue
    return Err("cannot detect project from current directory; pass --project api|terminal|jobs")
