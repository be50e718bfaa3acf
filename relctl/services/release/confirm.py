from __future__ import annotations

from collections.abc import Callable

from relctl.core.result import Err, Ok, Result
from relctl.output.console import ConsoleProtocol, Style
from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import RunOptions

Prompt = Callable[[str], bool]


class Confirmation:
    """Single place where the release flow asks the operator for consent.

    Preview mode never blocks (it reports the prompt it would show), and
    auto-confirm answers yes and says so. Without a prompt function (no
    TTY) every question is answered no.
    """

    def __init__(
        self,
        *,
        console: ConsoleProtocol,
        options: RunOptions,
        prompt: Prompt | None = None,
    ) -> None:
        self._console = console
        self._options = options
        self._prompt = prompt

    def ask(self, message: str) -> bool:
        if self._options.dry_run:
            self._console.print(f"[dry-run] would prompt: {message}", Style.DIM)
            return True
        if self._options.assume_yes:
            self._console.info(f"auto-confirmed: {message}")
            return True
        if self._prompt is None:
            self._console.warning(f"no terminal to confirm: {message} (use --yes)")
            return False
        return self._prompt(message)

    def require(self, message: str) -> Result[None, ReleaseError]:
        if self.ask(message):
            return Ok(None)
        return Err(ReleaseError(kind="cancelled", message="operation cancelled"))
