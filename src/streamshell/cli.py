"""Command-line interface for streamshell.

Usage:
    streamshell                       # run each line as a command
    streamshell --http URL            # POST each line to URL via curl
    streamshell --transcript FILE     # restore FILE, keep appending to it
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import shlex
import signal
from collections.abc import Sequence
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import InMemoryHistory
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from streamshell import __version__
from streamshell.config import Config, load_config
from streamshell.errors import ShellError
from streamshell.executors import CommandExecutor, HttpExecutor
from streamshell.logging import get_logger, setup_logging
from streamshell.session import Session

log = get_logger("cli")

console = Console()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="streamshell",
        description="Interactive shell with streamed, replayable executors",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase log verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Extra config file layered over the standard locations",
    )
    parser.add_argument(
        "--transcript",
        type=Path,
        help="Transcript file to restore on start and append to",
    )
    parser.add_argument(
        "--http",
        metavar="URL",
        help="Send each input to URL through curl instead of running it",
    )
    return parser


class ShellCommands:
    """Slash commands available at the prompt."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def handle(self, line: str) -> bool:
        """Handle a slash command.

        Returns:
            False if the shell should exit.
        """
        try:
            parts = shlex.split(line)
        except ValueError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            return True
        if not parts:
            return True

        cmd, args = parts[0].lower(), parts[1:]
        if cmd == "/quit":
            return False

        handlers = {
            "/help": self._cmd_help,
            "/history": self._cmd_history,
            "/clear": self._cmd_clear,
            "/save": self._cmd_save,
            "/restore": self._cmd_restore,
        }
        handler = handlers.get(cmd)
        if handler is None:
            console.print(f"[red]Unknown command: {cmd}[/red]")
            console.print("Type [bold]/help[/bold] for available commands.")
            return True

        try:
            handler(args)
        except (ShellError, OSError) as e:
            console.print(f"[red]{escape(str(e))}[/red]")
        return True

    def _cmd_help(self, args: list[str]) -> None:
        table = Table(title="Available Commands")
        table.add_column("Command", style="bold")
        table.add_column("Description")
        for name, description in [
            ("/help", "Show this help message"),
            ("/history", "List history entries"),
            ("/clear", "Clear history and output"),
            ("/save <file>", "Save the transcript and keep appending to it"),
            ("/restore <file>", "Replay a saved transcript"),
            ("/quit", "Exit"),
        ]:
            table.add_row(name, description)
        console.print(table)

    def _cmd_history(self, args: list[str]) -> None:
        table = Table(title="History")
        table.add_column("#", justify="right")
        table.add_column("Input", style="bold")
        table.add_column("Output")
        for index, entry in enumerate(self.session.get_history(), 1):
            output = Text(entry.output or "")
            if entry.interrupted:
                output.append(" (interrupted)", style="yellow")
            table.add_row(str(index), Text(entry.input or ""), output)
        console.print(table)

    def _cmd_clear(self, args: list[str]) -> None:
        self.session.clear()
        console.clear()

    def _cmd_save(self, args: list[str]) -> None:
        if not args:
            console.print("[red]Usage: /save <file>[/red]")
            return
        self.session.save_transcript(Path(args[0]).expanduser())
        console.print(f"[dim]Saved to {args[0]}[/dim]")

    def _cmd_restore(self, args: list[str]) -> None:
        if not args:
            console.print("[red]Usage: /restore <file>[/red]")
            return
        history = self.session.restore_transcript(Path(args[0]).expanduser())
        console.print(f"[dim]Restored {len(history)} entries[/dim]")


async def _wait_for_request(session: Session, finished: asyncio.Event) -> None:
    """Wait for the live request, interrupting it on Ctrl-C."""
    loop = asyncio.get_running_loop()
    installed = False
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, session.interrupt)
        installed = True
    try:
        await finished.wait()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


async def run_shell(session: Session) -> None:
    """Run the interactive prompt loop until /quit or EOF."""
    prompt_session: PromptSession[str] = PromptSession(
        history=InMemoryHistory(),
        auto_suggest=AutoSuggestFromHistory(),
    )
    commands = ShellCommands(session)

    session.add_output_listener(
        lambda text: console.print(text, end="", markup=False, highlight=False)
    )
    session.start()
    console.print("Type [bold]/help[/bold] for commands, Ctrl-C interrupts.\n")

    while True:
        try:
            line = await prompt_session.prompt_async(session.prompt)
        except KeyboardInterrupt:
            continue
        except EOFError:
            break

        line = line.strip()
        if not line:
            continue
        if line.startswith("/"):
            if not commands.handle(line):
                break
            continue

        finished = asyncio.Event()
        unregister = session.add_finished_listener(lambda result: finished.set())
        try:
            if session.submit(line) and session.busy:
                await _wait_for_request(session, finished)
        finally:
            unregister()
        console.print()

    session.close()


def build_session(config: Config, http_url: str | None = None) -> Session:
    """Create a session with the executor selected on the command line."""
    if http_url:
        log.info("Sending input to %s", http_url)
        executor = HttpExecutor(http_url, config=config.request)
    else:
        executor = CommandExecutor(config=config.process)
    return Session(executor, config=config.shell)


def run_cli(args: Sequence[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    parsed = create_parser().parse_args(args)

    config = load_config(config_file=parsed.config)
    if parsed.verbose is not None:
        config.logging.verbose = min(parsed.verbose + 2, 4)
    setup_logging(config.logging)

    session = build_session(config, parsed.http)

    transcript = parsed.transcript or (
        Path(config.shell.history_path).expanduser() if config.shell.history_path else None
    )
    if transcript is not None:
        if transcript.exists():
            try:
                session.restore_transcript(transcript)
            except (ShellError, OSError) as e:
                console.print(f"[red]Could not restore {transcript}: {escape(str(e))}[/red]")
                return 1
        else:
            session.save_transcript(transcript)

    try:
        asyncio.run(run_shell(session))
    except KeyboardInterrupt:
        pass
    return 0


def main() -> None:
    raise SystemExit(run_cli())
