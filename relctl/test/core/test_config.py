"""Tests for relctl.core.config module."""

import sys
from pathlib import Path

import pytest

from relctl.core.config import (
    DEFAULT_INTEGRATION_BRANCH,
    Config,
    ConfigError,
    config_path,
    load_config,
    load_config_or_default,
)
from relctl.core.result import Err, Ok
from relctl.platform.paths import clear_caches


class TestConfig:
    """Config defaults and construction from parsed TOML."""

    def test_defaults(self) -> None:
        config = Config()
        assert config.root is None
        assert config.owner is None
        assert config.integration_branch == DEFAULT_INTEGRATION_BRANCH
        assert config.final_branch == "main"
        assert config.remote == "origin"
        assert config.release_label == "automated-release"

    def test_frozen(self) -> None:
        with pytest.raises(AttributeError):
            Config().remote = "upstream"  # type: ignore[misc]

    def test_from_dict_empty(self) -> None:
        assert Config.from_dict({}) == Config()

    def test_from_dict_full(self) -> None:
        config = Config.from_dict(
            {
                "root": "~/src/acme",
                "owner": "acme",
                "repo_prefix": "acme-",
                "container_prefix": "shop",
                "integration_branch": "develop",
                "final_branch": "stable",
                "remote": "upstream",
                "release_label": "release",
            }
        )
        assert config.root == Path("~/src/acme").expanduser()
        assert config.owner == "acme"
        assert config.repo_prefix == "acme-"
        assert config.container_prefix == "shop"
        assert config.integration_branch == "develop"
        assert config.final_branch == "stable"
        assert config.remote == "upstream"
        assert config.release_label == "release"

    def test_blank_and_mistyped_values_fall_back(self) -> None:
        config = Config.from_dict({"remote": "  ", "final_branch": 3, "owner": ""})
        assert config.remote == "origin"
        assert config.final_branch == "main"
        assert config.owner is None


class TestWithEnv:
    def test_root_override(self, tmp_path: Path) -> None:
        config = Config(owner="acme").with_env({"RELCTL_ROOT": str(tmp_path)})
        assert config.root == tmp_path
        assert config.owner == "acme"

    def test_blank_override_ignored(self) -> None:
        config = Config(root=Path("/srv"))
        assert config.with_env({"RELCTL_ROOT": " "}) is config


class TestConfigPath:
    def test_env_override(self, tmp_path: Path) -> None:
        target = tmp_path / "relctl.toml"
        assert config_path({"RELCTL_CONFIG": str(target)}) == target

    @pytest.mark.skipif(sys.platform == "win32", reason="XDG layout")
    def test_default_location(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        clear_caches()
        try:
            assert config_path({}) == tmp_path / "relctl" / "config.toml"
        finally:
            clear_caches()


class TestLoadConfig:
    def test_valid(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text(
            '# release settings\nowner = "acme"\nintegration_branch = "develop"\n',
            encoding="utf-8",
        )
        result = load_config(path)
        assert isinstance(result, Ok)
        assert result.value.owner == "acme"
        assert result.value.integration_branch == "develop"

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "missing.toml")
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("owner = [unclosed\n", encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message
        assert result.error.path == path


class TestLoadConfigOrDefault:
    def test_missing_means_defaults(self, tmp_path: Path) -> None:
        assert load_config_or_default(tmp_path / "missing.toml") == Ok(Config())

    def test_invalid_is_still_an_error(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("not toml ===", encoding="utf-8")
        assert isinstance(load_config_or_default(path), Err)


def test_config_error_fields(tmp_path: Path) -> None:
    error = ConfigError("bad", path=tmp_path)
    assert error.message == "bad"
    assert error.path == tmp_path
