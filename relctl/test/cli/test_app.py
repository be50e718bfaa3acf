from __future__ import annotations

import pytest
import typer
from typer.testing import CliRunner

from relctl import __version__
from relctl.cli.app import app
from relctl.cli.commands._helpers import release_error_code
from relctl.cli.commands.release_cmd import choose_version
from relctl.core.errors import ErrorCode
from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import ReleaseVersion


def test_version_flag() -> None:
    result = CliRunner().invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_commands_registered() -> None:
    result = CliRunner().invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("release", "rollback", "phase", "changelog"):
        assert name in result.output


@pytest.mark.parametrize(
    ("kind", "code"),
    [
        ("dependency_missing", ErrorCode.ENV_ERROR),
        ("mutation", ErrorCode.MUTATION_ERROR),
        ("external_tool", ErrorCode.NETWORK_ERROR),
        ("manual_required", ErrorCode.MANUAL_REQUIRED),
        ("dirty_tree", ErrorCode.USER_ERROR),
        ("cancelled", ErrorCode.USER_ERROR),
        ("not_found", ErrorCode.USER_ERROR),
    ],
)
def test_release_error_code(kind: str, code: ErrorCode) -> None:
    error = ReleaseError(kind=kind, message="x")  # type: ignore[arg-type]
    assert release_error_code(error) is code


class TestChooseVersion:
    def _choose(self, monkeypatch: pytest.MonkeyPatch, answers: list[str]) -> str:
        pending = list(answers)

        def fake_prompt(_text: str, default: str | None = None) -> str:
            return pending.pop(0)

        monkeypatch.setattr(typer, "prompt", fake_prompt)
        monkeypatch.setattr(typer, "echo", lambda *_a, **_k: None)
        return choose_version(ReleaseVersion(1, 2, 3))

    @pytest.mark.parametrize(
        ("answer", "expected"),
        [("1", "1.2.4"), ("minor", "1.3.0"), ("3", "2.0.0"), (" PATCH ", "1.2.4")],
    )
    def test_menu(self, monkeypatch: pytest.MonkeyPatch, answer: str, expected: str) -> None:
        assert self._choose(monkeypatch, [answer]) == expected

    def test_custom(self, monkeypatch: pytest.MonkeyPatch) -> None:
        assert self._choose(monkeypatch, ["4", " 1.5.0 "]) == "1.5.0"

    def test_raw_version_passes_through(self, monkeypatch: pytest.MonkeyPatch) -> None:
        assert self._choose(monkeypatch, ["1.2.10"]) == "1.2.10"
