from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Literal

BumpKind = Literal["major", "minor", "patch"]


@dataclass(frozen=True, slots=True, order=True)
class ReleaseVersion:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @property
    def tag(self) -> str:
        return f"v{self}"

    @property
    def branch(self) -> str:
        return f"release/{self.tag}"

    def bump(self, kind: BumpKind) -> ReleaseVersion:
        match kind:
            case "major":
                return ReleaseVersion(self.major + 1, 0, 0)
            case "minor":
                return ReleaseVersion(self.major, self.minor + 1, 0)
            case "patch":
                return ReleaseVersion(self.major, self.minor, self.patch + 1)


class ReleasePhase(IntEnum):
    """How far a release has progressed, inferred from repository state."""

    NOT_STARTED = 0
    BRANCH_CREATED = 1
    PULL_REQUEST_OPEN = 2
    MERGED_TO_INTEGRATION = 3
    TAGGED_AND_RELEASED = 4

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def reversible(self) -> bool:
        return self in (
            ReleasePhase.BRANCH_CREATED,
            ReleasePhase.PULL_REQUEST_OPEN,
            ReleasePhase.MERGED_TO_INTEGRATION,
        )


@dataclass(frozen=True, slots=True)
class WorkItem:
    """A closed issue on the hosted platform."""

    number: int
    title: str
    labels: tuple[str, ...] = ()
    closed_at: str | None = None  # ISO 8601, UTC


@dataclass(frozen=True, slots=True)
class CommitRecord:
    sha: str
    subject: str
    references: tuple[int, ...] = ()

    @property
    def short_sha(self) -> str:
        return self.sha[:8]


class Category(Enum):
    """Changelog sections, declared in rendering order."""

    ADDED = "Added"
    FIXED = "Fixed"
    DOCUMENTATION = "Documentation"
    SECURITY = "Security"
    BREAKING = "Breaking Changes"
    CHANGED = "Changed"


@dataclass(frozen=True, slots=True)
class ChangelogBullet:
    text: str
    children: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ChangelogSection:
    category: Category
    bullets: tuple[ChangelogBullet, ...]


@dataclass(frozen=True, slots=True)
class ChangelogEntry:
    """One version's changelog section.

    Generated entries carry structured sections; operator-written content
    (inline, file, editor) is kept verbatim in ``body``.
    """

    version: ReleaseVersion
    date: str  # YYYY-MM-DD
    sections: tuple[ChangelogSection, ...] = ()
    body: str | None = None


@dataclass(frozen=True, slots=True)
class PullRequest:
    number: int
    url: str
    state: str  # OPEN, CLOSED, MERGED
    head: str
    base: str


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Per-invocation switches, passed explicitly to every component."""

    dry_run: bool = False
    verbose: bool = False
    assume_yes: bool = False
