from __future__ import annotations

from relctl.core.result import Err, Ok
from relctl.output.console import MockConsole
from relctl.services.release.confirm import Confirmation
from relctl.services.release.model import RunOptions


def _confirm(
    console: MockConsole, *, answer: bool | None = None, **options: bool
) -> tuple[Confirmation, list[str]]:
    asked: list[str] = []

    def prompt(message: str) -> bool:
        asked.append(message)
        return bool(answer)

    return (
        Confirmation(
            console=console,
            options=RunOptions(**options),
            prompt=prompt if answer is not None else None,
        ),
        asked,
    )


def test_prompts_the_operator() -> None:
    console = MockConsole()
    confirm, asked = _confirm(console, answer=True)

    assert confirm.ask("Create release branch?") is True
    assert asked == ["Create release branch?"]


def test_dry_run_reports_the_prompt_without_asking() -> None:
    console = MockConsole()
    confirm, asked = _confirm(console, answer=False, dry_run=True)

    assert confirm.ask("Push?") is True
    assert asked == []
    assert console.find("[dry-run] would prompt: Push?")


def test_assume_yes_answers_and_says_so() -> None:
    console = MockConsole()
    confirm, asked = _confirm(console, answer=False, assume_yes=True)

    assert confirm.ask("Push?") is True
    assert asked == []
    assert console.find("auto-confirmed: Push?")


def test_no_terminal_declines() -> None:
    console = MockConsole()
    confirm, _ = _confirm(console)

    assert confirm.ask("Push?") is False
    assert console.has_warning()
    assert console.find("no terminal to confirm: Push? (use --yes)")


def test_require_maps_decline_to_cancelled() -> None:
    console = MockConsole()
    declined, _ = _confirm(console, answer=False)
    accepted, _ = _confirm(console, answer=True)

    result = declined.require("Proceed?")
    assert isinstance(result, Err)
    assert result.error.kind == "cancelled"
    assert accepted.require("Proceed?") == Ok(None)
