"""Layered YAML configuration for streamshell.

System, user and project config.yaml files are merged in that order, then
SS_LOG / SS_PROMPT from the environment are applied on top:

    from streamshell.config import load_config

    config = load_config(session_root=".")
    session = Session(executor, config=config.shell)
"""

from streamshell.config.loader import (
    get_config,
    load_config,
    on_config_reload,
    reload_config,
    reset_config,
)
from streamshell.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from streamshell.config.schema import (
    Config,
    LoggingConfig,
    ProcessConfig,
    RequestConfig,
    ShellConfig,
)

__all__ = [
    "Config",
    "LoggingConfig",
    "ProcessConfig",
    "RequestConfig",
    "ShellConfig",
    "get_config",
    "get_config_paths",
    "get_project_config_path",
    "get_system_config_path",
    "get_user_config_path",
    "load_config",
    "on_config_reload",
    "reload_config",
    "reset_config",
]
