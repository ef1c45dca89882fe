"""Session runtime: dispatch, history, transcripts and replay."""

from streamshell.session.dispatcher import RequestDispatcher, SessionState
from streamshell.session.models import CompletionResult, HistoryEntry, Request
from streamshell.session.replay import ReplayEngine
from streamshell.session.session import ExecutorContext, Session
from streamshell.session.transcript import (
    END_OF_PROMPT,
    FAILED_MARKER,
    INTERRUPTED_MARKER,
    default_prompt_pattern,
    extract,
    serialize,
)

__all__ = [
    "END_OF_PROMPT",
    "FAILED_MARKER",
    "INTERRUPTED_MARKER",
    "CompletionResult",
    "ExecutorContext",
    "HistoryEntry",
    "ReplayEngine",
    "Request",
    "RequestDispatcher",
    "Session",
    "SessionState",
    "default_prompt_pattern",
    "extract",
    "serialize",
]
