"""Shared test utilities for streamshell tests."""

from __future__ import annotations

import asyncio
import stat
from collections.abc import Callable
from pathlib import Path

from streamshell.session.session import ExecutorContext


def echo_executor(text: str, context: ExecutorContext) -> None:
    """Answer synchronously: 'echo X' prints X, 'fail X' fails with X."""
    command, _, rest = text.partition(" ")
    if command == "fail":
        context.write_output(rest)
        context.finish_output(False)
        return
    context.write_output(rest if command == "echo" else text)
    context.finish_output(True)


class ManualExecutor:
    """Executor that records each context and lets the test drive it."""

    def __init__(self) -> None:
        self.contexts: list[ExecutorContext] = []

    def __call__(self, text: str, context: ExecutorContext) -> None:
        self.contexts.append(context)

    @property
    def last(self) -> ExecutorContext:
        return self.contexts[-1]


def write_script(path: Path, body: str) -> Path:
    """Write an executable /bin/sh script.

    Args:
        path: Target file.
        body: Script body, without the shebang line.

    Returns:
        The path, for chaining.
    """
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Timed out waiting for condition")
        await asyncio.sleep(0.01)
