"""Interactive session: dispatch, streaming output, history and transcripts.

A Session owns one executor, one in-flight request at most, the live output
text and the list of completed HistoryEntry values. Executors talk back to
it only through the ExecutorContext they are handed; every context call
first checks that its request is still the live one, so output from an
interrupted or superseded request is dropped without touching the session.

Session state is mutated on the event loop thread. The busy flag and the
request id are additionally guarded by the dispatcher's lock.
"""

from __future__ import annotations

import asyncio
import inspect
import os
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from streamshell.config.schema import ShellConfig
from streamshell.errors import (
    SessionBusyError,
    TranscriptCollisionError,
    TranscriptCorruptionError,
    ValidationError,
)
from streamshell.logging import get_logger
from streamshell.session.dispatcher import RequestDispatcher, SessionState
from streamshell.session.models import CompletionResult, HistoryEntry, Request
from streamshell.session.replay import ReplayEngine
from streamshell.session.transcript import (
    append_transcript,
    default_prompt_pattern,
    load_transcript,
    validate_entries,
    write_transcript,
)

if TYPE_CHECKING:
    from streamshell.process.runner import ProcessHandle
    from streamshell.session.protocols import Executor, Validator

log = get_logger("session")

OutputListener = Callable[[str], None]
FinishedListener = Callable[[CompletionResult], None]


class ExecutorContext:
    """The executor's view of the session for one request."""

    def __init__(
        self,
        session: Session,
        request: Request,
        history: tuple[HistoryEntry, ...],
    ) -> None:
        self._session = session
        self._request = request
        self._history = history
        self._finished = False

    @property
    def request_id(self) -> int:
        return self._request.id

    @property
    def input(self) -> str:
        return self._request.input

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        """Prior entries, as returned by Session.get_history() at dispatch."""
        return self._history

    @property
    def is_live(self) -> bool:
        return self._session._dispatcher.is_live(self._request.id)

    @property
    def finished(self) -> bool:
        return self._finished

    def write_output(self, fragment: str) -> None:
        """Append a fragment of the response. May be called any number of times."""
        self._session._handle_output(self._request, fragment)

    def finish_output(self, success: bool, *, interrupted: bool = False) -> None:
        """Complete the request. Must be called exactly once.

        Args:
            success: Whether the request succeeded.
            interrupted: The response was cut short by the executor itself.
        """
        if self._finished:
            log.warning("Request %d finished more than once", self._request.id)
            return
        self._finished = True
        self._session._handle_finished(self._request, success, interrupted)

    def log(self, fmt: str, *args: Any) -> None:
        log.debug("[request %d] " + fmt, self._request.id, *args)

    def attach_process(self, handle: ProcessHandle) -> None:
        """Register the request's process so interrupt() can kill it."""
        self._session._attach_process(self._request, handle)


class Session:
    """One live interactive context.

    Lifecycle operations: start, submit, interrupt, clear, close,
    save_transcript, restore_transcript, append_history, get_history.
    """

    def __init__(
        self,
        executor: Executor,
        *,
        validator: Validator | None = None,
        config: ShellConfig | None = None,
        prompt: str | None = None,
        prompt_pattern: str | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            executor: Produces responses (see streamshell.session.protocols).
            validator: Optional input check returning a rejection reason.
            config: Shell configuration (prompt, pattern, welcome banner).
            prompt: Overrides config.prompt.
            prompt_pattern: Overrides config.prompt_pattern.
        """
        config = config or ShellConfig()
        self.executor = executor
        self.validator = validator
        self.prompt = prompt if prompt is not None else config.prompt
        self.prompt_pattern = (
            prompt_pattern or config.prompt_pattern or default_prompt_pattern(self.prompt)
        )
        self.welcome = config.welcome

        self.entries: list[HistoryEntry] = []
        self.output = ""
        self.transcript_path: Path | None = None

        self._dispatcher = RequestDispatcher()
        self._request: Request | None = None
        self._process: ProcessHandle | None = None
        self._tasks: set[asyncio.Future[Any]] = set()
        self._output_listeners: list[OutputListener] = []
        self._finished_listeners: list[FinishedListener] = []
        self._started = False

    # State

    @property
    def busy(self) -> bool:
        return self._dispatcher.busy

    @property
    def request_id(self) -> int:
        return self._dispatcher.request_id

    @property
    def state(self) -> SessionState:
        return self._dispatcher.state

    @property
    def process(self) -> ProcessHandle | None:
        """The live request's process, if its executor attached one."""
        return self._process

    # Observers

    def add_output_listener(self, listener: OutputListener) -> Callable[[], None]:
        """Call ``listener`` with every fragment written to the output.

        Returns:
            A function to unregister the listener.
        """
        self._output_listeners.append(listener)

        def unregister() -> None:
            if listener in self._output_listeners:
                self._output_listeners.remove(listener)

        return unregister

    def add_finished_listener(self, listener: FinishedListener) -> Callable[[], None]:
        """Call ``listener`` with a CompletionResult after every request.

        Returns:
            A function to unregister the listener.
        """
        self._finished_listeners.append(listener)

        def unregister() -> None:
            if listener in self._finished_listeners:
                self._finished_listeners.remove(listener)

        return unregister

    def _notify(self, listeners: list[Callable[[Any], None]], value: Any) -> None:
        for listener in list(listeners):
            try:
                listener(value)
            except Exception as e:
                log.warning("Session listener %r failed: %s", listener, e)

    def _write(self, text: str) -> None:
        if not text:
            return
        self.output += text
        self._notify(self._output_listeners, text)

    # Lifecycle

    def start(self) -> None:
        """Write the welcome banner. Later calls do nothing."""
        if self._started:
            return
        self._started = True
        if self.welcome:
            self._write(self.welcome + "\n")
        log.info("Session started")

    def _validate(self, text: str) -> None:
        if not text or not text.strip():
            raise ValidationError("")
        if self.validator is not None:
            reason = self.validator(text)
            if reason:
                raise ValidationError(reason)

    def submit(self, text: str) -> bool:
        """Dispatch ``text`` to the executor.

        A submit while a request is in flight is ignored, not queued.
        Empty input and validator rejections are not dispatched; a
        rejection reason is written to the output.

        Returns:
            True if a request was dispatched.
        """
        if self._dispatcher.busy:
            log.debug("Ignoring submit while busy: %r", text)
            return False

        try:
            self._validate(text)
        except ValidationError as e:
            if str(e):
                self._write(f"{e}\n")
            log.debug("Rejected input %r: %s", text, e)
            return False

        request_id = self._dispatcher.begin()
        if request_id is None:
            return False

        request = Request(id=request_id, input=text.strip(), executor=self.executor)
        self._request = request
        context = ExecutorContext(self, request, tuple(self.get_history()))
        log.debug("Dispatching request %d: %r", request_id, request.input)

        try:
            pending = request.executor(request.input, context)
        except Exception as e:
            log.warning("Executor failed for request %d: %s", request_id, e)
            self._fail(context, e)
            return True

        if pending is not None and inspect.isawaitable(pending):
            try:
                self._schedule(context, pending)
            except RuntimeError as e:
                # No running event loop to drive the executor
                if inspect.iscoroutine(pending):
                    pending.close()
                self._fail(context, e)
        return True

    def _schedule(self, context: ExecutorContext, pending: Awaitable[Any]) -> None:
        """Run an executor's awaitable; it must finish the request before it ends."""
        task = asyncio.ensure_future(pending, loop=asyncio.get_running_loop())
        self._tasks.add(task)

        def done(future: asyncio.Future[Any]) -> None:
            self._tasks.discard(future)
            if future.cancelled():
                if not context.finished:
                    context.finish_output(False)
                return
            exc = future.exception()
            if exc is not None:
                log.warning("Executor failed for request %d: %s", context.request_id, exc)
                self._fail(context, exc)
            elif not context.finished:
                context.log("executor returned without finishing")
                context.finish_output(False)

        task.add_done_callback(done)

    def _fail(self, context: ExecutorContext, exc: BaseException) -> None:
        if context.finished:
            return
        context.write_output(f"{type(exc).__name__}: {exc}")
        context.finish_output(False)

    def _handle_output(self, request: Request, fragment: str) -> None:
        if not fragment:
            return
        if not self._dispatcher.mark_streaming(request.id):
            log.debug("Dropping stale output for request %d", request.id)
            return
        request.output_parts.append(fragment)
        self._write(fragment)

    def _handle_finished(self, request: Request, success: bool, interrupted: bool) -> None:
        if not self._dispatcher.complete(request.id):
            log.debug("Dropping stale completion for request %d", request.id)
            return
        entry = HistoryEntry(
            input=request.input,
            output=request.accumulated_output.strip() or None,
            failed=not success,
            interrupted=interrupted,
        )
        self._record(request, entry, success)

    def _attach_process(self, request: Request, handle: ProcessHandle) -> None:
        if not self._dispatcher.is_live(request.id):
            if handle.kill():
                log.debug("Killed process of stale request %d", request.id)
            return
        self._process = handle

    def _record(self, request: Request, entry: HistoryEntry, success: bool) -> None:
        request.finished = True
        if self._request is request:
            self._request = None
            self._process = None
        self.entries.append(entry)
        self._persist(entry)
        log.debug("Request %d finished (success=%s)", request.id, success)
        self._notify(
            self._finished_listeners,
            CompletionResult(input=request.input, output=entry.output, success=success),
        )

    def _persist(self, entry: HistoryEntry) -> None:
        if self.transcript_path is None:
            return
        try:
            append_transcript(self.transcript_path, entry, self.prompt)
        except (OSError, TranscriptCollisionError) as e:
            log.warning("Could not append to transcript %s: %s", self.transcript_path, e)

    def interrupt(self, treat_as_failure: bool = False) -> bool:
        """Cancel the in-flight request.

        The request id is advanced first, so any later callback from the
        cancelled request is stale. Its process, if attached, is killed.
        The partial response is recorded as interrupted, or as failed when
        ``treat_as_failure`` is set.

        Returns:
            True if a request was interrupted.
        """
        request = self._request
        previous = self._dispatcher.invalidate()
        if previous is None or request is None or request.id != previous:
            return False

        if self._process is not None:
            self._process.kill()

        entry = HistoryEntry(
            input=request.input,
            output=request.accumulated_output.strip() or None,
            failed=treat_as_failure,
            interrupted=not treat_as_failure,
        )
        self._write("\n[interrupted]\n")
        log.info("Interrupted request %d", request.id)
        self._record(request, entry, success=False)
        return True

    def clear(self) -> None:
        """Drop all entries and output, interrupting any live request."""
        if self.busy:
            self.interrupt()
        self.entries.clear()
        self.output = ""

    def close(self) -> None:
        """Interrupt any live request and cancel outstanding executor tasks."""
        if self.busy:
            self.interrupt(treat_as_failure=True)
        for task in list(self._tasks):
            task.cancel()

    # History and transcripts

    def get_history(self) -> list[HistoryEntry]:
        """Entries a reconstructed transcript would contain.

        Failed entries are left out unless they were also interrupted.
        """
        return [entry for entry in self.entries if entry.retained]

    def append_history(self, entries: Iterable[HistoryEntry]) -> None:
        """Add entries to the history without executing them.

        Each entry's output is written verbatim, as a replayed request
        would write it; inputs are not echoed.

        Raises:
            SessionBusyError: If a request is in flight.
            TranscriptCorruptionError: If an entry is malformed.
        """
        if self.busy:
            raise SessionBusyError("Cannot append history while a request is running")
        for entry in validate_entries(entries):
            if entry.output:
                self._write(entry.output)
            self.entries.append(entry)
            self._persist(entry)

    def save_transcript(self, path: str | os.PathLike[str]) -> None:
        """Write all entries to ``path`` and keep appending new ones there.

        Raises:
            TranscriptCollisionError: If an entry contains a reserved marker.
        """
        target = Path(path)
        write_transcript(target, self.entries, self.prompt)
        self.transcript_path = target
        log.info("Saved %d entries to %s", len(self.entries), target)

    def restore_transcript(
        self, source: str | os.PathLike[str] | Iterable[HistoryEntry]
    ) -> list[HistoryEntry]:
        """Rebuild the session from a transcript file or a list of entries.

        The session is cleared and every entry is replayed through the
        normal submit path. When restoring from a file, that file becomes
        the session's transcript once the replay succeeds.

        Returns:
            The resulting history.

        Raises:
            SessionBusyError: If a request is in flight.
            TranscriptCorruptionError: If an entry is malformed. Replay stops
                and the session's transcript file reference is cleared.
        """
        if self.busy:
            raise SessionBusyError("Cannot restore while a request is running")

        path: Path | None = None
        self.transcript_path = None
        try:
            if isinstance(source, (str, os.PathLike)):
                path = Path(source)
                entries = load_transcript(path, self.prompt_pattern)
            else:
                entries = list(source)
            self.clear()
            ReplayEngine(self).replay(entries)
        except TranscriptCorruptionError as e:
            self.transcript_path = None
            log.error("Transcript restore failed: %s", e)
            raise

        self.transcript_path = path
        return self.get_history()
