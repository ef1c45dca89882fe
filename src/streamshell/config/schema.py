"""Typed sections of config.yaml.

Every field has a default so a file may set any subset of keys; the
loader fills in the rest after merging the layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_PROMPT = "> "


@dataclass
class ShellConfig:
    """Interactive shell configuration.

    Example config.yaml:
        shell:
          prompt: "sh> "
          welcome: "Type a command. Ctrl-C interrupts."
          history_path: "~/.streamshell/transcript.txt"
    """

    prompt: str = DEFAULT_PROMPT
    prompt_pattern: str | None = None  # Regex; default derived from prompt
    welcome: str = ""  # Banner written on start()
    history_path: str | None = None  # Transcript file used by the CLI


@dataclass
class ProcessConfig:
    """External process defaults."""

    timeout_ms: int | None = None  # None means no timeout
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class RequestConfig:
    """curl-based request defaults.

    Example config.yaml:
        request:
          timeout: 120
          proxy: "http://proxy.local:3128"
          headers:
            - "Authorization: Bearer ${TOKEN}"
    """

    curl: str = "curl"  # curl executable
    timeout: int = 600  # Seconds, passed to curl -m
    proxy: str | None = None
    headers: list[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Log level and destination."""

    level: str | None = None  # debug, info, warning, error, or a custom level name
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Also settable through SS_LOG


@dataclass
class Config:
    """The merged config: one attribute per section."""

    shell: ShellConfig = field(default_factory=ShellConfig)
    process: ProcessConfig = field(default_factory=ProcessConfig)
    request: RequestConfig = field(default_factory=RequestConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Top-level keys that are not a known section
    extra: dict[str, Any] = field(default_factory=dict)
