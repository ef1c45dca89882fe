"""Run external commands, synchronously or with streamed callbacks.

run_command() blocks until the process exits and filters its stdout once.
start_process() returns immediately with a ProcessHandle; stdout is fed
chunk by chunk through a StreamFilter and every emitted fragment goes to
``on_output`` as it arrives.
"""

from __future__ import annotations

import asyncio
import codecs
import os
import signal
import subprocess
import time
from collections.abc import Callable, Sequence
from typing import Any

from streamshell.errors import SpawnError
from streamshell.logging import get_logger
from streamshell.process.result import ProcessResult
from streamshell.stream.filters import FilterFn, StreamFilter

_log = get_logger("process")

READ_SIZE = 4096

OutputCallback = Callable[[str], None]
FinishedCallback = Callable[[ProcessResult], None]
LogCallback = Callable[..., None]


def _build_env(env: dict[str, str] | None) -> dict[str, str] | None:
    if not env:
        return None
    process_env = os.environ.copy()
    process_env.update(env)
    return process_env


def _spawn_error(command: Sequence[str], exc: OSError) -> SpawnError:
    """Map an OSError from process creation to a SpawnError."""
    name = command[0] if command else ""
    if isinstance(exc, FileNotFoundError):
        return SpawnError(f"Command not found: {name}", list(command), 127)
    if isinstance(exc, PermissionError):
        return SpawnError(f"Permission denied: {name}", list(command), 126)
    return SpawnError(f"OS error: {exc}", list(command), 1)


def _status_for(returncode: int, killed: bool = False) -> tuple[str, str | None]:
    """Return (status, signal name) for a process return code."""
    if returncode == 0:
        return "ok", None
    if returncode < 0:
        try:
            signal_name = signal.Signals(-returncode).name
        except ValueError:
            signal_name = None
        return "killed", signal_name
    if killed:
        return "killed", None
    return "error", None


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


def run_command(
    command: Sequence[str],
    *,
    filter: FilterFn | None = None,
    timeout_ms: int | None = None,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
) -> ProcessResult:
    """Run a command to completion.

    Stdout and stderr are captured separately. The filter is applied once
    to the full stdout text; if it yields nothing but whitespace, the
    trimmed stderr becomes the output instead.

    Args:
        command: The argv vector.
        filter: Optional stream filter (see streamshell.stream.filters).
        timeout_ms: Timeout in milliseconds. None for no timeout.
        cwd: Working directory.
        env: Additional environment variables.

    Returns:
        ProcessResult with exit status and output.
    """
    start_time = time.perf_counter()
    full_command = " ".join(command)

    if not command:
        return ProcessResult(full_command, 127, "Command not found: (empty)", "error")

    try:
        completed = subprocess.run(
            list(command),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=timeout_ms / 1000 if timeout_ms is not None else None,
            cwd=cwd,
            env=_build_env(env),
        )
    except subprocess.TimeoutExpired:
        return ProcessResult(
            command=full_command,
            exit_status=None,
            output=f"Command timed out after {timeout_ms}ms",
            status="timeout",
            signal="SIGKILL",
            duration_ms=_elapsed_ms(start_time),
        )
    except OSError as e:
        error = _spawn_error(command, e)
        _log.warning("Failed to start %s: %s", full_command, error)
        return ProcessResult(
            command=full_command,
            exit_status=error.exit_status,
            output=str(error),
            status="error",
            duration_ms=_elapsed_ms(start_time),
        )

    stdout = completed.stdout.decode("utf-8", errors="replace")
    stderr = completed.stderr.decode("utf-8", errors="replace")

    parts: list[str] = []
    pipeline = StreamFilter(filter, parts.append)
    pipeline.feed(stdout)
    pipeline.finish()
    output = "".join(parts)
    if not output.strip():
        output = stderr.strip()

    status, signal_name = _status_for(completed.returncode)
    return ProcessResult(
        command=full_command,
        exit_status=completed.returncode,
        output=output,
        status=status,
        signal=signal_name,
        duration_ms=_elapsed_ms(start_time),
    )


class ProcessHandle:
    """Handle to a process started by start_process().

    The handle is owned by whoever started it (usually a Session through
    ExecutorContext.attach_process) and is the only way to kill the process.
    """

    def __init__(
        self,
        command: Sequence[str],
        process: asyncio.subprocess.Process | None = None,
    ) -> None:
        self.command = list(command)
        self._process = process
        self._task: asyncio.Task[ProcessResult] | None = None
        self._result: ProcessResult | None = None
        self._killed = False

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def running(self) -> bool:
        return self._result is None and self._process is not None

    @property
    def killed(self) -> bool:
        return self._killed

    @property
    def result(self) -> ProcessResult | None:
        """The final result, once the process has exited."""
        return self._result

    def kill(self) -> bool:
        """Kill the process if it is still running.

        Returns:
            True if a kill signal was sent.
        """
        if self._process is None or self._process.returncode is not None:
            return False
        try:
            self._process.kill()
        except ProcessLookupError:
            return False
        self._killed = True
        return True

    async def wait(self) -> ProcessResult:
        """Wait for the process to exit and all callbacks to run."""
        if self._task is not None:
            return await asyncio.shield(self._task)
        assert self._result is not None
        return self._result

    def __repr__(self) -> str:
        state = "running" if self.running else "done"
        return f"<ProcessHandle pid={self.pid} {state} {' '.join(self.command)!r}>"


def _safe_call(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception as e:
        _log.warning("Process callback %r failed: %s", callback, e)


async def _read_stream(
    stream: asyncio.StreamReader,
    handle_text: Callable[[str], None],
) -> None:
    """Read a pipe to EOF, decoding UTF-8 incrementally."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        chunk = await stream.read(READ_SIZE)
        if not chunk:
            break
        text = decoder.decode(chunk)
        if text:
            handle_text(text)
    tail = decoder.decode(b"", final=True)
    if tail:
        handle_text(tail)


async def _monitor(
    handle: ProcessHandle,
    process: asyncio.subprocess.Process,
    *,
    filter: FilterFn | None,
    on_output: OutputCallback | None,
    on_finished: FinishedCallback | None,
    log_fn: LogCallback,
    timeout_ms: int | None,
    start_time: float,
) -> ProcessResult:
    full_command = " ".join(handle.command)
    collected: list[str] = []

    def deliver(fragment: str) -> None:
        collected.append(fragment)
        _safe_call(on_output, fragment)

    pipeline = StreamFilter(filter, deliver)

    def handle_stderr(text: str) -> None:
        text = text.strip()
        if text:
            deliver(text)

    assert process.stdout is not None and process.stderr is not None
    pumps = asyncio.gather(
        _read_stream(process.stdout, pipeline.feed),
        _read_stream(process.stderr, handle_stderr),
        process.wait(),
    )

    try:
        if timeout_ms is not None:
            await asyncio.wait_for(pumps, timeout=timeout_ms / 1000)
        else:
            await pumps
    except asyncio.TimeoutError:
        handle.kill()
        await process.wait()
        message = f"Command timed out after {timeout_ms}ms"
        deliver(message)
        result = ProcessResult(
            command=full_command,
            exit_status=None,
            output="".join(collected),
            status="timeout",
            signal="SIGKILL",
            duration_ms=_elapsed_ms(start_time),
        )
        handle._result = result
        _safe_call(on_finished, result)
        return result
    except asyncio.CancelledError:
        handle.kill()
        raise

    pipeline.finish()
    if pipeline.pending:
        log_fn("Discarding %d characters of unparsed output", len(pipeline.pending))

    returncode = process.returncode if process.returncode is not None else -1
    status, signal_name = _status_for(returncode, handle.killed)
    result = ProcessResult(
        command=full_command,
        exit_status=returncode,
        output="".join(collected),
        status=status,
        signal=signal_name,
        duration_ms=_elapsed_ms(start_time),
    )
    handle._result = result
    _safe_call(on_finished, result)
    return result


async def start_process(
    command: Sequence[str],
    *,
    filter: FilterFn | None = None,
    on_output: OutputCallback | None = None,
    on_finished: FinishedCallback | None = None,
    log: LogCallback | None = None,
    timeout_ms: int | None = None,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
) -> ProcessHandle:
    """Spawn a command and stream its output through callbacks.

    Stdout chunks go through the filter pipeline and each emitted fragment
    is passed to ``on_output``. Stderr chunks are trimmed and passed to
    ``on_output`` directly. Both are accumulated, and ``on_finished`` is
    called exactly once with the final ProcessResult.

    A command that cannot be started is reported through ``on_finished``
    (exit status 127/126/1) before this coroutine returns; it is never
    retried.

    Args:
        command: The argv vector.
        filter: Optional stream filter for stdout.
        on_output: Called with each emitted fragment, in stream order.
        on_finished: Called once with the ProcessResult.
        log: ``log(fmt, *args)`` for diagnostics; defaults to the module logger.
        timeout_ms: Kill the process after this many milliseconds.
        cwd: Working directory.
        env: Additional environment variables.

    Returns:
        ProcessHandle for the running (or already failed) process.
    """
    start_time = time.perf_counter()
    log_fn = log or _log.debug
    handle = ProcessHandle(command)

    try:
        if not command:
            raise FileNotFoundError("empty command")
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=_build_env(env),
        )
    except OSError as e:
        error = _spawn_error(command, e)
        log_fn("Failed to start %s: %s", " ".join(command), error)
        result = ProcessResult(
            command=" ".join(command),
            exit_status=error.exit_status,
            output=str(error),
            status="error",
            duration_ms=_elapsed_ms(start_time),
        )
        handle._result = result
        _safe_call(on_output, str(error))
        _safe_call(on_finished, result)
        return handle

    handle._process = process
    handle._task = asyncio.create_task(
        _monitor(
            handle,
            process,
            filter=filter,
            on_output=on_output,
            on_finished=on_finished,
            log_fn=log_fn,
            timeout_ms=timeout_ms,
            start_time=start_time,
        )
    )
    return handle
