from __future__ import annotations

import re
from typing import Literal

from relctl.core.result import Err, Ok, Result
from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import BumpKind, ReleaseVersion

# ASCII digits only: \d would also accept e.g. Arabic-Indic digits.
_VERSION_RE = re.compile(r"([0-9]+)\.([0-9]+)\.([0-9]+)")

Comparison = Literal["greater", "not_greater"]


def validate_format(text: str) -> bool:
    return _VERSION_RE.fullmatch(text) is not None


def parse_version(text: str) -> Result[ReleaseVersion, ReleaseError]:
    m = _VERSION_RE.fullmatch(text.strip())
    if m is None:
        return Err(
            ReleaseError(
                kind="version_invalid",
                message=f"invalid version format: {text!r}",
                hint="Expected MAJOR.MINOR.PATCH, e.g. 1.4.0",
            )
        )
    return Ok(ReleaseVersion(int(m.group(1)), int(m.group(2)), int(m.group(3))))


def compare(a: ReleaseVersion, b: ReleaseVersion) -> Comparison:
    """Lexical (major, minor, patch) order; equal versions are not greater."""
    return "greater" if a > b else "not_greater"


def next_versions(
    current: ReleaseVersion,
) -> tuple[ReleaseVersion, ReleaseVersion, ReleaseVersion]:
    """The three legal successors: (major, minor, patch)."""
    return (current.bump("major"), current.bump("minor"), current.bump("patch"))


def _legal_hint(current: ReleaseVersion) -> str:
    major, minor, patch = next_versions(current)
    return f"valid next versions: {major} (major), {minor} (minor), {patch} (patch)"


def _rejected(reason: str, *, new: ReleaseVersion, current: ReleaseVersion) -> Err[ReleaseError]:
    return Err(
        ReleaseError(
            kind="version_invalid",
            message=f"{current} -> {new} rejected: {reason}",
            hint=_legal_hint(current),
        )
    )


def validate_increment(
    new: ReleaseVersion, current: ReleaseVersion
) -> Result[BumpKind, ReleaseError]:
    """Accept new only if it is exactly one of next_versions(current).

    The failure names the violated segment and lists the legal versions.
    """
    if new.major != current.major:
        if new.major < current.major:
            return _rejected("major version cannot decrease", new=new, current=current)
        if new.minor != 0 or new.patch != 0:
            return _rejected(
                "major bump must reset minor and patch to 0", new=new, current=current
            )
        if new.major != current.major + 1:
            return _rejected(
                "major bump must increment major by exactly one", new=new, current=current
            )
        return Ok("major")

    if new.minor != current.minor:
        if new.minor < current.minor:
            return _rejected(
                "minor version cannot decrease when major is unchanged", new=new, current=current
            )
        if new.patch != 0:
            return _rejected("minor bump must reset patch to 0", new=new, current=current)
        if new.minor != current.minor + 1:
            return _rejected(
                "minor bump must increment minor by exactly one", new=new, current=current
            )
        return Ok("minor")

    if new.patch <= current.patch:
        return _rejected(
            "patch version must increase when major and minor are unchanged",
            new=new,
            current=current,
        )
    if new.patch != current.patch + 1:
        return _rejected("patch bump must increment patch by exactly one", new=new, current=current)
    return Ok("patch")


def validate_new_version(
    text: str, current: ReleaseVersion
) -> Result[tuple[ReleaseVersion, BumpKind], ReleaseError]:
    """Format, ordering and increment checks, in that order."""
    parsed = parse_version(text)
    if isinstance(parsed, Err):
        return parsed
    new = parsed.value

    if compare(new, current) != "greater":
        return Err(
            ReleaseError(
                kind="version_invalid",
                message=f"new version {new} must be greater than current version {current}",
                hint=_legal_hint(current),
            )
        )

    kind = validate_increment(new, current)
    if isinstance(kind, Err):
        return kind
    return Ok((new, kind.value))
