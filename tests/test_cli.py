"""Tests for the command-line shell."""

from __future__ import annotations

import io
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from rich.console import Console

from streamshell import cli
from streamshell.config import Config
from streamshell.executors import CommandExecutor, HttpExecutor
from streamshell.session import HistoryEntry, Session, serialize
from tests.utils import echo_executor


class FakePrompt:
    """Stands in for PromptSession: returns queued lines, then EOF."""

    def __init__(self, lines: list[str]) -> None:
        self.lines = list(lines)
        self.prompts: list[str] = []

    async def prompt_async(self, message: str) -> str:
        self.prompts.append(message)
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


@pytest.fixture
def output(monkeypatch: pytest.MonkeyPatch) -> io.StringIO:
    buffer = io.StringIO()
    monkeypatch.setattr(cli, "console", Console(file=buffer, width=120, color_system=None))
    return buffer


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


def _fake_prompt(monkeypatch: pytest.MonkeyPatch, lines: list[str]) -> FakePrompt:
    prompt = FakePrompt(lines)
    monkeypatch.setattr(cli, "PromptSession", lambda **kwargs: prompt)
    return prompt


class TestParser:
    def test_defaults(self):
        args = cli.create_parser().parse_args([])
        assert args.http is None
        assert args.transcript is None
        assert args.verbose is None

    def test_options(self):
        args = cli.create_parser().parse_args(
            ["--http", "http://localhost/chat", "--transcript", "t.txt", "-vv", "--config", "c.yaml"]
        )
        assert args.http == "http://localhost/chat"
        assert args.transcript == Path("t.txt")
        assert args.config == Path("c.yaml")
        assert args.verbose == 2


class TestBuildSession:
    def test_command_executor_by_default(self):
        session = cli.build_session(Config())
        assert isinstance(session.executor, CommandExecutor)

    def test_http_executor(self):
        session = cli.build_session(Config(), "http://localhost/chat")
        assert isinstance(session.executor, HttpExecutor)
        assert session.executor.url == "http://localhost/chat"


class TestShellCommands:
    @pytest.fixture
    def session(self) -> Session:
        return Session(echo_executor)

    def test_quit(self, session: Session, output: io.StringIO):
        assert cli.ShellCommands(session).handle("/quit") is False

    def test_unknown(self, session: Session, output: io.StringIO):
        assert cli.ShellCommands(session).handle("/bogus") is True
        assert "Unknown command: /bogus" in output.getvalue()

    def test_help(self, session: Session, output: io.StringIO):
        cli.ShellCommands(session).handle("/help")
        text = output.getvalue()
        for name in ("/save", "/restore", "/history", "/clear", "/quit"):
            assert name in text

    def test_history(self, session: Session, output: io.StringIO):
        session.submit("echo [bracketed]")
        session.submit("fail hidden")
        cli.ShellCommands(session).handle("/history")
        text = output.getvalue()
        assert "[bracketed]" in text
        assert "hidden" not in text

    def test_clear(self, session: Session, output: io.StringIO):
        session.submit("echo hi")
        cli.ShellCommands(session).handle("/clear")
        assert session.entries == []

    def test_save_and_restore(self, session: Session, output: io.StringIO, tmp_path: Path):
        path = tmp_path / "t.txt"
        commands = cli.ShellCommands(session)
        session.submit("echo hi")

        commands.handle(f"/save {path}")
        assert session.transcript_path == path

        session.clear()
        commands.handle(f"/restore {path}")
        assert session.get_history() == [HistoryEntry("echo hi", "hi")]
        assert "Restored 1 entries" in output.getvalue()

    def test_restore_error_reported(self, session: Session, output: io.StringIO, tmp_path: Path):
        assert cli.ShellCommands(session).handle(f"/restore {tmp_path / 'missing.txt'}") is True
        assert "Cannot read transcript" in output.getvalue()

    def test_usage(self, session: Session, output: io.StringIO):
        commands = cli.ShellCommands(session)
        commands.handle("/save")
        commands.handle("/restore")
        assert "Usage: /save <file>" in output.getvalue()
        assert "Usage: /restore <file>" in output.getvalue()


class TestRunShell:
    @pytest.mark.asyncio
    async def test_lines_submitted(self, monkeypatch: pytest.MonkeyPatch, output: io.StringIO):
        prompt = _fake_prompt(monkeypatch, ["echo one", "", "echo two", "/quit", "echo never"])
        session = Session(echo_executor, prompt="$ ")

        await cli.run_shell(session)

        assert session.entries == [HistoryEntry("echo one", "one"), HistoryEntry("echo two", "two")]
        assert prompt.prompts[0] == "$ "
        assert prompt.lines == ["echo never"]
        assert "one" in output.getvalue()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX commands")
    @pytest.mark.asyncio
    async def test_waits_for_streamed_command(self, monkeypatch: pytest.MonkeyPatch, output: io.StringIO):
        _fake_prompt(monkeypatch, ["sh -c 'sleep 0.1; echo done'"])
        session = Session(CommandExecutor())

        await cli.run_shell(session)

        assert session.entries == [HistoryEntry("sh -c 'sleep 0.1; echo done'", "done")]
        assert "done" in output.getvalue()


class TestRunCli:
    def test_creates_transcript(self, tmp_path: Path, output: io.StringIO):
        path = tmp_path / "t.txt"
        with patch.object(cli, "run_shell", new=AsyncMock()) as run_shell, patch.object(
            cli, "setup_logging"
        ):
            assert cli.run_cli(["--transcript", str(path)]) == 0

        session = run_shell.call_args.args[0]
        assert session.transcript_path == path
        assert path.exists()

    def test_restores_existing_transcript(self, tmp_path: Path, output: io.StringIO):
        path = tmp_path / "t.txt"
        path.write_text(serialize([HistoryEntry("a", "1")], "> "), encoding="utf-8")

        with patch.object(cli, "run_shell", new=AsyncMock()) as run_shell, patch.object(
            cli, "setup_logging"
        ):
            assert cli.run_cli(["--transcript", str(path)]) == 0

        session = run_shell.call_args.args[0]
        assert session.get_history() == [HistoryEntry("a", "1")]

    def test_unreadable_transcript(self, tmp_path: Path, output: io.StringIO):
        with patch.object(cli, "run_shell", new=AsyncMock()) as run_shell, patch.object(
            cli, "setup_logging"
        ):
            assert cli.run_cli(["--transcript", str(tmp_path)]) == 1
        run_shell.assert_not_called()

    def test_verbose_sets_logging(self, output: io.StringIO):
        with patch.object(cli, "run_shell", new=AsyncMock()), patch.object(
            cli, "setup_logging"
        ) as setup_logging:
            cli.run_cli(["-v"])
        assert setup_logging.call_args.args[0].verbose == 3
