from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from relctl.services.release.model import ReleasePhase

ReleaseErrorKind = Literal[
    # validation: nothing has been touched yet
    "invalid_input",
    "dependency_missing",
    "dirty_tree",
    "wrong_branch",
    "diverged",
    "version_invalid",
    "tag_exists",
    "nothing_to_release",
    "cancelled",
    # a step failed after the run started changing things
    "mutation",
    # git / gh / docker / editor failed
    "external_tool",
    # phase detection and rollback
    "not_found",
    "manual_required",
]

ErrorCategory = Literal["validation", "mutation", "external", "phase"]

_VALIDATION_KINDS: frozenset[str] = frozenset(
    {
        "invalid_input",
        "dependency_missing",
        "dirty_tree",
        "wrong_branch",
        "diverged",
        "version_invalid",
        "tag_exists",
        "nothing_to_release",
        "cancelled",
    }
)


@dataclass(frozen=True, slots=True)
class ReleaseError:
    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    @property
    def category(self) -> ErrorCategory:
        if self.kind in _VALIDATION_KINDS:
            return "validation"
        match self.kind:
            case "mutation":
                return "mutation"
            case "external_tool":
                return "external"
            case _:
                return "phase"


def external_failure(
    *,
    what: str,
    detail: str,
    inspect: str | None = None,
    rerun: str | None = None,
) -> ReleaseError:
    """Wrap a failed git/gh/docker call with what to look at and what to re-run."""
    recipe: list[str] = []
    if detail:
        recipe.append(detail)
    if inspect:
        recipe.append(f"inspect: {inspect}")
    if rerun:
        recipe.append(f"re-run: {rerun}")
    return ReleaseError(
        kind="external_tool",
        message=what,
        hint="\n".join(recipe) or None,
    )


def as_mutation_error(error: ReleaseError, *, step: str) -> ReleaseError:
    """Re-classify a failure that happened once the run started mutating state."""
    if error.kind in ("mutation", "cancelled"):
        return error
    return ReleaseError(
        kind="mutation",
        message=f"{step}: {error.message}",
        hint=error.hint,
    )


@dataclass(frozen=True, slots=True)
class PhaseMismatch:
    """Operator-requested phase differs from the detected one (a warning)."""

    detected: ReleasePhase
    requested: ReleasePhase

    @property
    def message(self) -> str:
        return (
            f"requested phase {int(self.requested)} ({self.requested.label}) "
            f"but detected phase {int(self.detected)} ({self.detected.label})"
        )
