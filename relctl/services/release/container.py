from __future__ import annotations

from pathlib import Path

from relctl.core.result import Err, Ok, Result
from relctl.platform.process import format_command, run_silent
from relctl.platform.process import run as run_process
from relctl.services.release.config import DEV_UP_TARGET, LINT_IMAGE
from relctl.services.release.errors import ReleaseError, external_failure
from relctl.services.release.timeouts import (
    DOCKER_TIMEOUT_SECONDS,
    LINT_TIMEOUT_SECONDS,
    LOCK_TIMEOUT_SECONDS,
)

# Project checkout mount point inside the dev containers.
_APP_DIR = "/app"


class DevContainer:
    """ContainerPort for the project's docker compose dev container."""

    def __init__(self, *, name: str, project_root: Path) -> None:
        self.name = name
        self._root = project_root

    def is_running(self) -> Result[bool, ReleaseError]:
        cmd = ["docker", "ps", "--filter", f"name=^/{self.name}$", "--format", "{{.Names}}"]
        result = run_process(cmd, cwd=self._root, timeout=DOCKER_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                external_failure(
                    what="cannot query docker containers",
                    detail=result.error.detail,
                    inspect="docker info",
                )
            )
        return Ok(self.name in result.value.split())

    def start(self) -> Result[None, ReleaseError]:
        cmd = ["make", DEV_UP_TARGET]
        result = run_silent(cmd, cwd=self._root)
        if isinstance(result, Err):
            return Err(
                external_failure(
                    what=f"failed to start dev container {self.name}",
                    detail=result.error.detail,
                    rerun=f"cd {self._root} && {format_command(cmd)}",
                )
            )
        return Ok(None)

    def _exec_uv(self, *uv_args: str) -> Result[str, ReleaseError]:
        script = f"cd {_APP_DIR} && uv {' '.join(uv_args)}"
        cmd = ["docker", "exec", self.name, "bash", "-c", script]
        result = run_process(cmd, cwd=self._root, timeout=LOCK_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                external_failure(
                    what=f"uv {' '.join(uv_args)} failed in {self.name}",
                    detail=result.error.detail,
                    inspect=f"docker logs {self.name}",
                    rerun=format_command(cmd),
                )
            )
        return Ok(result.value)

    def lock(self) -> Result[None, ReleaseError]:
        result = self._exec_uv("lock")
        if isinstance(result, Err):
            return result
        return Ok(None)

    def check_lock(self) -> Result[None, ReleaseError]:
        result = self._exec_uv("lock", "--check")
        if isinstance(result, Err):
            return result
        return Ok(None)

    def preview_lock(self) -> Result[str, ReleaseError]:
        return self._exec_uv("lock", "--dry-run")

    def lint_markdown(self, path: str) -> Result[None, ReleaseError]:
        cmd = [
            "docker",
            "run",
            "--rm",
            "-v",
            f"{self._root}:/workspace:ro",
            "-w",
            "/workspace",
            LINT_IMAGE,
            "npx",
            "--yes",
            "markdownlint-cli2",
            path,
        ]
        result = run_process(cmd, cwd=self._root, timeout=LINT_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="external_tool",
                    message=f"markdownlint reported problems in {path}",
                    hint=result.error.detail,
                )
            )
        return Ok(None)
