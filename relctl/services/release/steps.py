"""Linear step runner for the release forward path.

Steps run in the order they are declared. A handler either advances the
state to the step right after it or finishes the run; skipping ahead or
going back is an error, so the registered cleanup always matches the steps
that actually ran. Every advanced state is saved before the next step
starts, which lets the caller recover from the furthest point reached.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from relctl.core.result import Err, Ok, Result
from relctl.services.release.errors import ReleaseError


@dataclass(frozen=True, slots=True)
class StepAdvance[S]:
    state: S


@dataclass(frozen=True, slots=True)
class StepFinish:
    pass


type StepOutcome[S] = StepAdvance[S] | StepFinish
type StepHandler[S] = Callable[[S], Result[StepOutcome[S], ReleaseError]]
type SaveState[S] = Callable[[S], Result[S, ReleaseError]]
type GetStep[S] = Callable[[S], str]
# (step name, 1-based position, number of steps)
type StepListener = Callable[[str, int, int], None]


FINISH = StepFinish()


def advance[S](state: S) -> StepAdvance[S]:
    return StepAdvance(state=state)


@dataclass(frozen=True, slots=True)
class Step[S]:
    name: str
    handler: StepHandler[S]


def _broken_sequence(message: str) -> Err[ReleaseError]:
    return Err(ReleaseError(kind="invalid_input", message=message))


def run_steps[S](
    *,
    initial_state: S,
    steps: Sequence[Step[S]],
    get_step: GetStep[S],
    save_state: SaveState[S],
    on_enter: StepListener | None = None,
) -> Result[S, ReleaseError]:
    """Run steps from the one the initial state points at; return the last saved state."""
    names = [step.name for step in steps]
    if len(set(names)) != len(names):
        return _broken_sequence(f"duplicate release step in {names}")
    position_of = {name: i for i, name in enumerate(names)}

    current = initial_state
    position = position_of.get(get_step(current))
    if position is None:
        return _broken_sequence(f"unknown release step: {get_step(current)}")

    while True:
        step = steps[position]
        if on_enter is not None:
            on_enter(step.name, position + 1, len(steps))

        outcome = step.handler(current)
        if isinstance(outcome, Err):
            return outcome
        if isinstance(outcome.value, StepFinish):
            return Ok(current)

        following = get_step(outcome.value.state)
        if position_of.get(following) != position + 1:
            expected = names[position + 1] if position + 1 < len(names) else "finish"
            return _broken_sequence(
                f"step {step.name} cannot continue with {following} (expected {expected})"
            )

        saved = save_state(outcome.value.state)
        if isinstance(saved, Err):
            return saved
        current = saved.value
        position += 1
