"""The cumulative CHANGELOG.md document (Keep a Changelog layout).

Document grammar, line oriented::

    document  := preamble [unreleased] version*
    unreleased:= "## [Unreleased]" line*        (up to the next "## " line)
    version   := "## [" X.Y.Z "] - " YYYY-MM-DD line*
    section   := "### " CATEGORY, blank, bullet+
    bullet    := "- " TEXT , sub-bullets "  - " TEXT

A new entry goes right after the [Unreleased] block, else before the first
version section, else at the end. Insertion leaves exactly one blank line
on each side of the entry.
"""

from __future__ import annotations

import re

from relctl.core.result import Err, Ok, Result
from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import Category, ReleaseVersion

DEFAULT_PREAMBLE = (
    "# Changelog\n"
    "\n"
    "All notable changes to this project will be documented in this file.\n"
    "\n"
    "The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.1.0/),\n"
    "and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).\n"
    "\n"
    "## [Unreleased]\n"
)

_UNRELEASED_RE = re.compile(r"^## \[unreleased\]", re.IGNORECASE)
_ANY_SECTION_RE = re.compile(r"^## ")
_VERSION_SECTION_RE = re.compile(r"^## \[[0-9]+\.[0-9]+\.[0-9]+\]")
_ENTRY_HEADER_RE = re.compile(r"^## \[([0-9]+\.[0-9]+\.[0-9]+)\] - [0-9]{4}-[0-9]{2}-[0-9]{2}$")
_CATEGORY_RE = re.compile(r"^### (.+?)\s*$")

_CATEGORY_ORDER = {c.value: i for i, c in enumerate(Category)}


def new_document() -> str:
    return DEFAULT_PREAMBLE


def _version_header_re(version: ReleaseVersion) -> re.Pattern[str]:
    return re.compile(rf"^## \[{re.escape(str(version))}\]")


def has_version(document: str, version: ReleaseVersion) -> bool:
    header = _version_header_re(version)
    return any(header.match(line) for line in document.splitlines())


def _insertion_index(lines: list[str]) -> int:
    for i, line in enumerate(lines):
        if _UNRELEASED_RE.match(line):
            for j in range(i + 1, len(lines)):
                if _ANY_SECTION_RE.match(lines[j]):
                    return j
            return len(lines)

    for i, line in enumerate(lines):
        if _VERSION_SECTION_RE.match(line):
            return i
    return len(lines)


def insert_entry(
    document: str, entry: str, version: ReleaseVersion
) -> Result[str, ReleaseError]:
    if has_version(document, version):
        return Err(
            ReleaseError(
                kind="mutation",
                message=f"CHANGELOG.md already has a section for {version}",
                hint="Remove the existing section or release a different version",
            )
        )

    lines = document.splitlines()
    idx = _insertion_index(lines)

    before = lines[:idx]
    while before and not before[-1].strip():
        before.pop()
    after = lines[idx:]
    while after and not after[0].strip():
        after.pop(0)

    entry_lines = entry.strip("\n").splitlines()
    out: list[str] = list(before)
    if out:
        out.append("")
    out.extend(entry_lines)
    if after:
        out.append("")
        out.extend(after)
    return Ok("\n".join(out) + "\n")


def extract_entry(document: str, version: ReleaseVersion) -> str | None:
    """The section for version, header included, without trailing blanks."""
    header = _version_header_re(version)
    lines = document.splitlines()
    for i, line in enumerate(lines):
        if not header.match(line):
            continue
        end = len(lines)
        for j in range(i + 1, len(lines)):
            if _ANY_SECTION_RE.match(lines[j]):
                end = j
                break
        body = lines[i:end]
        while body and not body[-1].strip():
            body.pop()
        return "\n".join(body)
    return None


def check_entry_structure(entry: str, *, strict_categories: bool = True) -> list[str]:
    """Problems with a rendered entry; empty when it is well formed.

    strict_categories: headings must be known categories in section order
    (generated entries). Operator-written entries only get the layout checks.
    """
    problems: list[str] = []
    lines = entry.strip("\n").splitlines()
    if not lines or _ENTRY_HEADER_RE.match(lines[0]) is None:
        problems.append("first line must be '## [X.Y.Z] - YYYY-MM-DD'")
    if len(lines) < 3 or lines[1].strip():
        problems.append("header must be followed by one blank line and content")

    for i in range(1, len(lines)):
        if not lines[i].strip() and not lines[i - 1].strip():
            problems.append(f"consecutive blank lines at line {i + 1}")
            break

    last_rank = -1
    seen: set[str] = set()
    for i, line in enumerate(lines):
        m = _CATEGORY_RE.match(line)
        if m is None:
            continue
        name = m.group(1)
        if i + 1 < len(lines) and lines[i + 1].strip():
            problems.append(f"heading '{name}' must be followed by a blank line")
        if not strict_categories:
            continue
        if name not in _CATEGORY_ORDER:
            problems.append(f"unknown category '{name}'")
            continue
        if name in seen:
            problems.append(f"duplicate category '{name}'")
        rank = _CATEGORY_ORDER[name]
        if rank < last_rank:
            problems.append(f"category '{name}' is out of order")
        last_rank = max(last_rank, rank)
        seen.add(name)

    return problems
