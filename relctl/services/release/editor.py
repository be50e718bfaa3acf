"""Operator-written changelog entries via ``$EDITOR``.

Template comment grammar: a line is a comment when it starts with a single
``#`` that is not followed by another ``#``. Markdown headings (``##``,
``###``) therefore survive. After stripping comments, bullets without text
and headings left with no content are dropped; if nothing remains the
session counts as empty and the caller falls back to generation.
"""

from __future__ import annotations

import os
import re
import shlex
import tempfile
from collections.abc import Mapping
from pathlib import Path

from relctl.core.result import Err, Ok, Result
from relctl.platform.process import run_silent
from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import ReleaseVersion

_COMMENT_RE = re.compile(r"^#(?!#)")
_EMPTY_BULLET_RE = re.compile(r"^\s*[-*]\s*$")
_HEADING_RE = re.compile(r"^#{2,6}\s")


def editor_template(version: ReleaseVersion) -> str:
    return (
        f"# CHANGELOG entry for {version.tag}\n"
        "# Lines starting with a single # are removed.\n"
        "# Save and exit to continue, or leave empty to auto-generate.\n"
        "\n"
        "### Added\n"
        "\n"
        "- \n"
        "\n"
        "### Changed\n"
        "\n"
        "- \n"
        "\n"
        "### Fixed\n"
        "\n"
        "- \n"
    )


def _collapse_blank_lines(lines: list[str]) -> list[str]:
    out: list[str] = []
    for line in lines:
        if not line.strip() and (not out or not out[-1].strip()):
            continue
        out.append(line)
    while out and not out[-1].strip():
        out.pop()
    return out


def strip_editor_comments(text: str) -> str:
    """Apply the template grammar; returns "" for an effectively empty session."""
    lines = [
        line.rstrip()
        for line in text.splitlines()
        if not _COMMENT_RE.match(line) and not _EMPTY_BULLET_RE.match(line)
    ]
    lines = _collapse_blank_lines(lines)

    # Drop headings whose section is empty (next non-blank line is a heading or EOF).
    kept: list[str] = []
    for i, line in enumerate(lines):
        if _HEADING_RE.match(line):
            following = [ln for ln in lines[i + 1 :] if ln.strip()]
            if not following or _HEADING_RE.match(following[0]):
                continue
        kept.append(line)

    return "\n".join(_collapse_blank_lines(kept)).strip("\n")


def editor_command(env: Mapping[str, str]) -> list[str]:
    raw = env.get("EDITOR") or env.get("VISUAL") or "vi"
    return shlex.split(raw)


class TerminalEditor:
    """EditorPort: opens the operator's editor on a temp file and reads it back."""

    def __init__(self, *, cwd: Path, env: Mapping[str, str] | None = None) -> None:
        self._cwd = cwd
        self._env = os.environ if env is None else env

    def edit(self, template: str) -> Result[str, ReleaseError]:
        fd, name = tempfile.mkstemp(prefix="relctl-changelog-", suffix=".md")
        path = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(template)

            cmd = [*editor_command(self._env), str(path)]
            result = run_silent(cmd, cwd=self._cwd)
            if isinstance(result, Err):
                return Err(
                    ReleaseError(
                        kind="external_tool",
                        message=f"editor exited with an error: {cmd[0]}",
                        hint="Set EDITOR to a blocking editor (e.g. EDITOR='code --wait')",
                    )
                )
            return Ok(path.read_text(encoding="utf-8"))
        except OSError as e:
            return Err(ReleaseError(kind="external_tool", message=f"editor session failed: {e}"))
        finally:
            path.unlink(missing_ok=True)
