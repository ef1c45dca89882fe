"""Where streamshell looks for config.yaml.

Lowest to highest priority:

    system   /etc/streamshell/            %PROGRAMDATA%\\streamshell\\
    user     $XDG_CONFIG_HOME/streamshell/, ~/.config/streamshell/
             or ~/.streamshell/           %APPDATA%\\streamshell\\
    project  <root>/.streamshell/

None of the returned files need to exist.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "streamshell"
SHORT_NAME = ".streamshell"


def _windows_path(variable: str) -> Path | None:
    base = os.environ.get(variable)
    return Path(base) / APP_NAME / CONFIG_FILENAME if base else None


def get_system_config_path() -> Path | None:
    if sys.platform == "win32":
        return _windows_path("PROGRAMDATA")
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    if sys.platform == "win32":
        return _windows_path("APPDATA")

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    # ~/.config only when the user already has one
    dot_config = Path.home() / ".config"
    if dot_config.exists():
        return dot_config / APP_NAME / CONFIG_FILENAME
    return Path.home() / SHORT_NAME / CONFIG_FILENAME


def get_project_config_path(session_root: str) -> Path:
    return Path(session_root) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(session_root: str | None = None) -> list[Path]:
    """Candidate config files, lowest priority first.

    Args:
        session_root: Project directory, if any.
    """
    candidates = [get_system_config_path(), get_user_config_path()]
    if session_root:
        candidates.append(get_project_config_path(session_root))
    return [path for path in candidates if path is not None]
