"""Platform abstraction layer."""

from .files import atomic_write_text, read_text_if_exists
from .paths import home, user_config_dir
from .process import ProcessError, format_command, is_available, run, run_silent

__all__ = [
    # files
    "atomic_write_text",
    "read_text_if_exists",
    # paths
    "home",
    "user_config_dir",
    # process
    "ProcessError",
    "format_command",
    "is_available",
    "run",
    "run_silent",
]
