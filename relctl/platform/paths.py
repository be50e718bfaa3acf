"""User-level directory lookup."""

from __future__ import annotations

import os
import sys
from functools import lru_cache
from pathlib import Path

__all__ = [
    "home",
    "user_config_dir",
]

APP_NAME = "relctl"


@lru_cache(maxsize=1)
def home() -> Path:
    """Get user's home directory, preferring the environment (CI, containers)."""
    var = "USERPROFILE" if sys.platform == "win32" else "HOME"
    value = os.environ.get(var)
    if value:
        return Path(value)
    return Path.home()


@lru_cache(maxsize=1)
def user_config_dir() -> Path:
    """Get the user-level configuration directory.

    Location: ``$XDG_CONFIG_HOME/relctl`` or ``~/.config/relctl`` on Unix,
    ``%APPDATA%/relctl`` on Windows.
    """
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME
        return home() / "AppData" / "Roaming" / APP_NAME

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME
    return home() / ".config" / APP_NAME


def clear_caches() -> None:
    """Clear cached paths (tests change HOME / XDG_CONFIG_HOME)."""
    home.cache_clear()
    user_config_dir.cache_clear()
