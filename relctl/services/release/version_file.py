from __future__ import annotations

import re
from pathlib import Path

from relctl.core.result import Err, Ok, Result
from relctl.platform.files import atomic_write_text
from relctl.services.release.config import VERSION_FILE
from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import ReleaseVersion
from relctl.services.release.semver import parse_version

_SECTION_RE = re.compile(r"(?m)^\[project\]\s*$")
_NEXT_TABLE_RE = re.compile(r"(?m)^\[")
_VERSION_LINE_RE = re.compile(r'(?m)^(version\s*=\s*")([^"]+)("\s*)$')


def _project_table_span(text: str) -> tuple[int, int] | None:
    m = _SECTION_RE.search(text)
    if m is None:
        return None
    nxt = _NEXT_TABLE_RE.search(text, m.end())
    return (m.end(), nxt.start() if nxt else len(text))


def _read(path: Path) -> Result[str, ReleaseError]:
    try:
        return Ok(path.read_text(encoding="utf-8"))
    except OSError as e:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"failed to read {path.name}: {e}",
                hint=str(path),
            )
        )


def read_version(project_root: Path) -> Result[ReleaseVersion, ReleaseError]:
    path = project_root / VERSION_FILE
    text = _read(path)
    if isinstance(text, Err):
        return text

    span = _project_table_span(text.value)
    m = _VERSION_LINE_RE.search(text.value, *span) if span else None
    if m is None:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"missing [project] version in {VERSION_FILE}",
                hint=str(path),
            )
        )
    return parse_version(m.group(2))


def write_version(project_root: Path, version: ReleaseVersion) -> Result[bool, ReleaseError]:
    """Rewrite only the [project] version line; returns False if unchanged."""
    path = project_root / VERSION_FILE
    text = _read(path)
    if isinstance(text, Err):
        return text

    content = text.value
    span = _project_table_span(content)
    m = _VERSION_LINE_RE.search(content, *span) if span else None
    if m is None:
        return Err(
            ReleaseError(
                kind="mutation",
                message=f"missing [project] version in {VERSION_FILE}",
                hint=str(path),
            )
        )
    if m.group(2) == str(version):
        return Ok(False)

    updated = content[: m.start(2)] + str(version) + content[m.end(2) :]
    try:
        atomic_write_text(path, updated, encoding="utf-8")
    except OSError as e:
        return Err(
            ReleaseError(
                kind="mutation",
                message=f"failed to write {VERSION_FILE}: {e}",
                hint=str(path),
            )
        )
    return Ok(True)
