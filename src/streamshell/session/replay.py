"""Replay saved entries through a session's normal submit path."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING

from streamshell.errors import SessionBusyError, TranscriptCorruptionError
from streamshell.logging import get_logger
from streamshell.session.models import HistoryEntry
from streamshell.session.transcript import validate_entries

if TYPE_CHECKING:
    from streamshell.session.session import ExecutorContext, Session

log = get_logger("replay")


class ReplayEngine:
    """Rebuild a live session from a list of entries.

    While replaying, the session's executor is swapped for one that answers
    each submitted input with the saved output, and its validator is
    removed. Each entry's input then goes through Session.submit(), so the
    dispatcher, history and transcript bookkeeping all run exactly as for
    live input. Entries without input cannot be submitted and are appended
    to the history directly.

    The original executor and validator are always put back, including when
    a malformed entry stops the replay.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._queue: deque[HistoryEntry] = deque()

    def _answer(self, text: str, context: ExecutorContext) -> None:
        entry = self._queue.popleft()
        if entry.output:
            context.write_output(entry.output)
        context.finish_output(not entry.failed, interrupted=entry.interrupted)

    def replay(self, entries: Iterable[object]) -> int:
        """Replay ``entries`` in order.

        Returns:
            Number of entries replayed.

        Raises:
            SessionBusyError: If the session has a request in flight.
            TranscriptCorruptionError: On the first malformed entry; entries
                before it stay replayed, the rest are skipped.
        """
        session = self._session
        if session.busy:
            raise SessionBusyError("Cannot replay while a request is running")

        saved_executor, saved_validator = session.executor, session.validator
        session.executor = self._answer
        session.validator = None
        replayed = 0
        try:
            for index, item in enumerate(entries):
                try:
                    (entry,) = validate_entries([item])
                except TranscriptCorruptionError as e:
                    raise TranscriptCorruptionError(f"Entry {index}: {e}") from e

                if entry.input is None:
                    session.append_history([entry])
                else:
                    self._queue.append(entry)
                    if not session.submit(entry.input):
                        self._queue.clear()
                        raise TranscriptCorruptionError(
                            f"Entry {index} could not be replayed: {entry.input!r}"
                        )
                replayed += 1
        finally:
            self._queue.clear()
            session.executor = saved_executor
            session.validator = saved_validator

        log.debug("Replayed %d entries", replayed)
        return replayed
