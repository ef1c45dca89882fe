"""Reading, layering and caching config.yaml files.

load_config() reads every candidate file from paths.get_config_paths(),
layers them with merge_configs(), applies SS_* environment overrides and
converts the result to a typed Config. The global (project-less) config is
cached; get_config() returns it and reload_config() refreshes it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from streamshell.config.merge import merge_configs
from streamshell.config.paths import get_config_paths
from streamshell.config.schema import (
    DEFAULT_PROMPT,
    Config,
    LoggingConfig,
    ProcessConfig,
    RequestConfig,
    ShellConfig,
)

# Not streamshell.logging: config is read before logging is set up
_log = logging.getLogger("streamshell.config")

_SECTIONS = ("shell", "process", "request", "logging")

# (environment variable, section, key)
_ENV_OVERRIDES = (
    ("SS_LOG", "logging", "file"),
    ("SS_PROMPT", "shell", "prompt"),
)

_cached_config: Config | None = None
_reload_callbacks: list[Callable[[Config], None]] = []


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Parse one config file. Missing, unreadable or invalid files count as empty."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        _log.warning("Cannot read %s: %s", path, e)
        return {}

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        _log.warning("Ignoring invalid YAML in %s: %s", path, e)
        return {}
    if data is not None and not isinstance(data, dict):
        _log.warning("Ignoring %s: top level is not a mapping", path)
        return {}
    return data or {}


def env_overrides() -> dict[str, Any]:
    """Config dict built from SS_LOG and SS_PROMPT."""
    overrides: dict[str, Any] = {}
    for variable, section, key in _ENV_OVERRIDES:
        value = os.environ.get(variable)
        if value:
            overrides.setdefault(section, {})[key] = value
    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    if value is not None and not isinstance(value, dict):
        _log.warning("Config section %r is not a mapping; using defaults", name)
    return value if isinstance(value, dict) else {}


def _int_option(section: dict[str, Any], name: str, key: str, default: int | None) -> int | None:
    value = section.get(key, default)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        _log.warning("Config %s.%s is not an integer (%r); using %r", name, key, value, default)
        return default


def dict_to_config(data: dict[str, Any]) -> Config:
    """Build a typed Config from a merged dict; unknown top-level keys go to ``extra``."""
    shell = _section(data, "shell")
    process = _section(data, "process")
    request = _section(data, "request")
    log = _section(data, "logging")

    env = process.get("env")
    headers = request.get("headers")

    return Config(
        shell=ShellConfig(
            prompt=str(shell.get("prompt", DEFAULT_PROMPT)),
            prompt_pattern=shell.get("prompt_pattern"),
            welcome=str(shell.get("welcome", "")),
            history_path=shell.get("history_path"),
        ),
        process=ProcessConfig(
            timeout_ms=_int_option(process, "process", "timeout_ms", None),
            cwd=process.get("cwd"),
            env={str(k): str(v) for k, v in env.items()} if isinstance(env, dict) else {},
        ),
        request=RequestConfig(
            curl=str(request.get("curl", "curl")),
            timeout=_int_option(request, "request", "timeout", 600),
            proxy=request.get("proxy"),
            headers=[h for h in headers if isinstance(h, str)] if isinstance(headers, list) else [],
        ),
        logging=LoggingConfig(
            level=log.get("level"),
            verbose=_int_option(log, "logging", "verbose", None),
            file=log.get("file"),
        ),
        extra={k: v for k, v in data.items() if k not in _SECTIONS},
    )


def load_config(
    session_root: str | None = None,
    reload: bool = False,
    config_file: Path | None = None,
) -> Config:
    """Load the layered config.

    Layers, lowest to highest: system, user, project (``session_root``),
    ``config_file`` (the CLI's --config), environment.

    Only the plain global config, with neither ``session_root`` nor
    ``config_file``, is cached; ``reload`` bypasses the cache.
    """
    global _cached_config

    is_global = session_root is None and config_file is None
    if is_global and _cached_config is not None and not reload:
        return _cached_config

    paths = get_config_paths(session_root)
    if config_file is not None:
        paths.append(config_file)

    layers = []
    for path in paths:
        data = load_yaml_file(path)
        if data:
            _log.debug("Loaded config from %s", path)
            layers.append(data)
    layers.append(env_overrides())

    config = dict_to_config(merge_configs(*layers))
    if is_global:
        _cached_config = config
    return config


def get_config() -> Config:
    """The cached global config, loaded on first use."""
    return _cached_config if _cached_config is not None else load_config()


def reset_config() -> None:
    """Forget the cached global config."""
    global _cached_config
    _cached_config = None


def reload_config(session_root: str | None = None) -> Config:
    """Re-read the config files and pass the result to every reload callback."""
    config = load_config(session_root=session_root, reload=True)
    for callback in list(_reload_callbacks):
        try:
            callback(config)
        except Exception as e:
            _log.warning("Config reload callback %r failed: %s", callback, e)
    return config


def on_config_reload(callback: Callable[[Config], None]) -> Callable[[], None]:
    """Register ``callback`` for reload_config(). Returns an unregister function."""
    _reload_callbacks.append(callback)

    def unregister() -> None:
        if callback in _reload_callbacks:
            _reload_callbacks.remove(callback)

    return unregister
