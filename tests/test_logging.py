"""Tests for logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from streamshell.config.schema import LoggingConfig
from streamshell.logging import TRACE, VERBOSE, get_logger, reset_logging, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


class TestResolveLevel:
    def test_default_is_info(self):
        assert resolve_level(None) == logging.INFO
        assert resolve_level(LoggingConfig()) == logging.INFO

    def test_level_name(self):
        assert resolve_level(LoggingConfig(level="debug")) == logging.DEBUG
        assert resolve_level(LoggingConfig(level="bogus")) == logging.INFO

    @pytest.mark.parametrize(
        ("verbose", "level"),
        [(0, logging.ERROR), (1, logging.WARNING), (2, logging.INFO), (3, VERBOSE), (4, TRACE), (9, TRACE)],
    )
    def test_verbosity(self, verbose, level):
        assert resolve_level(LoggingConfig(verbose=verbose)) == level

    def test_verbosity_wins_over_level(self):
        assert resolve_level(LoggingConfig(level="error", verbose=4)) == TRACE


class TestSetupLogging:
    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "streamshell.log"
        setup_logging(LoggingConfig(level="debug", file=str(log_file)))

        get_logger("session").debug("dispatching %d", 7)
        for handler in get_logger().handlers:
            handler.flush()

        text = log_file.read_text(encoding="utf-8")
        assert "debug streamshell.session: dispatching 7" in text

    def test_env_log_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("SS_LOG", str(log_file))
        setup_logging(LoggingConfig())

        get_logger("process").warning("slow")
        for handler in get_logger().handlers:
            handler.flush()
        assert "warning streamshell.process: slow" in log_file.read_text(encoding="utf-8")

    def test_second_call_is_noop(self, tmp_path: Path):
        setup_logging(LoggingConfig(file=str(tmp_path / "a.log")))
        setup_logging(LoggingConfig(file=str(tmp_path / "b.log")))
        assert len(get_logger().handlers) == 1
        assert not (tmp_path / "b.log").exists()

    def test_child_logger_names(self):
        assert get_logger().name == "streamshell"
        assert get_logger("replay").name == "streamshell.replay"
