"""Typed configuration loading and access.

relctl reads an optional ``config.toml`` from the user config directory
(or ``$RELCTL_CONFIG``). Every key is optional; a missing file yields the
defaults below.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from relctl.platform.paths import user_config_dir

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str

__all__ = [
    "Config",
    "ConfigError",
    "DEFAULT_FINAL_BRANCH",
    "DEFAULT_INTEGRATION_BRANCH",
    "DEFAULT_RELEASE_LABEL",
    "DEFAULT_REMOTE",
    "config_path",
    "load_config",
    "load_config_or_default",
]

DEFAULT_INTEGRATION_BRANCH = "development"
DEFAULT_FINAL_BRANCH = "main"
DEFAULT_REMOTE = "origin"
DEFAULT_RELEASE_LABEL = "automated-release"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container.

    Attributes:
        root: Directory holding one checkout per project (``<root>/api`` ...).
            None means "derive from the current directory".
        owner: Hosted repository owner. None lets ``gh`` infer the repo
            from the checkout's remote.
        repo_prefix: Prefix of hosted repository names (``<prefix><project>``).
        container_prefix: Dev container prefix; defaults to the root dir name.
    """

    root: Path | None = None
    owner: str | None = None
    repo_prefix: str = ""
    container_prefix: str | None = None
    integration_branch: str = DEFAULT_INTEGRATION_BRANCH
    final_branch: str = DEFAULT_FINAL_BRANCH
    remote: str = DEFAULT_REMOTE
    release_label: str = DEFAULT_RELEASE_LABEL

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        root = get_str(data, "root")
        return cls(
            root=Path(root).expanduser() if root else None,
            owner=get_str(data, "owner"),
            repo_prefix=get_str(data, "repo_prefix") or "",
            container_prefix=get_str(data, "container_prefix"),
            integration_branch=get_str(data, "integration_branch")
            or DEFAULT_INTEGRATION_BRANCH,
            final_branch=get_str(data, "final_branch") or DEFAULT_FINAL_BRANCH,
            remote=get_str(data, "remote") or DEFAULT_REMOTE,
            release_label=get_str(data, "release_label") or DEFAULT_RELEASE_LABEL,
        )

    def with_env(self, env: Mapping[str, str]) -> Config:
        """Apply environment overrides (``RELCTL_ROOT``)."""
        root = env.get("RELCTL_ROOT", "").strip()
        if not root:
            return self
        return Config(
            root=Path(root).expanduser(),
            owner=self.owner,
            repo_prefix=self.repo_prefix,
            container_prefix=self.container_prefix,
            integration_branch=self.integration_branch,
            final_branch=self.final_branch,
            remote=self.remote,
            release_label=self.release_label,
        )


def config_path(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    override = env.get("RELCTL_CONFIG", "").strip()
    if override:
        return Path(override).expanduser()
    return user_config_dir() / "config.toml"


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to config.toml file

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like load_config, but a missing file means defaults.

    An existing file that fails to parse is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
