"""Parsers for the free text the release flow has to read.

Commit subjects and changelog/PR text are matched with small, documented
grammars instead of ad-hoc substring checks.

Work-item reference (in a commit subject)::

    reference := "#" NUMBER | "issue-" NUMBER
    NUMBER    := [0-9]+ , not followed by another digit

    "fix: crash on login (#42)"   -> 42
    "feat: issue-7 groundwork"    -> 7
    "docs: see #420"              -> references 420, not 42

Conventional commit kind::

    subject := TYPE [ "(" SCOPE ")" ] [ "!" ] ":" TEXT
    "feat(api)!: drop v1"         -> "feat"
    anything else                 -> "other"

Version mention (phase detection)::

    "v" MAJOR "." MINOR "." PATCH , not followed by a digit or "." digit
    "chore(release): v1.2.3"      -> mentions 1.2.3
    "chore(release): v1.2.30"     -> does not mention 1.2.3

Revert commit (as written by ``git revert``)::

    subject := 'Revert "' ORIGINAL_SUBJECT '"'
    body    := ... "This reverts commit " SHA ...
"""

from __future__ import annotations

import re

from relctl.services.release.model import ReleaseVersion

_ANY_REFERENCE_RE = re.compile(r"(?:#|issue-)([0-9]+)(?![0-9])")
_CONVENTIONAL_RE = re.compile(r"^([A-Za-z]+)(?:\([^)]*\))?!?:")
_MERGE_RE = re.compile(r"^Merge\b")
_RELEASE_CHORE_RE = re.compile(r"^chore(?:\(release\)|: sync)")
_REVERT_RE = re.compile(r'^Revert "')


def extract_references(subject: str) -> tuple[int, ...]:
    """All referenced work-item numbers, in order of first appearance."""
    seen: list[int] = []
    for m in _ANY_REFERENCE_RE.finditer(subject):
        n = int(m.group(1))
        if n not in seen:
            seen.append(n)
    return tuple(seen)


def _reference_re(number: int) -> re.Pattern[str]:
    return re.compile(rf"(?:#|issue-){number}(?![0-9])")


def references(subject: str, number: int) -> bool:
    return _reference_re(number).search(subject) is not None


def strip_reference(subject: str, number: int) -> str:
    """Drop the reference tokens for number N ("(#N)", "#N", "issue-N") and tidy whitespace."""
    text = re.sub(rf"\s*\((?:#|issue-){number}\)", "", subject)
    text = _reference_re(number).sub("", text)
    return re.sub(r"\s{2,}", " ", text).strip()


def has_any_reference(subject: str) -> bool:
    return _ANY_REFERENCE_RE.search(subject) is not None


def is_merge_commit(subject: str) -> bool:
    return _MERGE_RE.match(subject) is not None


def is_release_chore(subject: str) -> bool:
    """Version-bump and branch-sync commits made by the release tooling itself."""
    return _RELEASE_CHORE_RE.match(subject) is not None


def is_revert_commit(subject: str) -> bool:
    return _REVERT_RE.match(subject) is not None


def revert_marker_pattern(sha: str) -> str:
    """``git log --grep`` pattern for the commit that reverted sha."""
    return f"This reverts commit {sha}"


def commit_kind(subject: str) -> str:
    m = _CONVENTIONAL_RE.match(subject.strip())
    if m is None:
        return "other"
    return m.group(1).lower()


def version_grep_pattern(version: ReleaseVersion) -> str:
    """POSIX extended regex for ``git log --grep`` matching a version mention."""
    core = rf"v{version.major}\.{version.minor}\.{version.patch}"
    return rf"{core}($|[^0-9.]|\.($|[^0-9]))"
