"""Exception hierarchy for streamshell.

Only a few of these ever cross the public API. Failures at the executor
boundary are turned into output text plus a failed completion, so callers
of Session.submit() never see them raised.
"""

from __future__ import annotations


class ShellError(Exception):
    """Base class for all streamshell errors."""


class ValidationError(ShellError):
    """Input was rejected before dispatch.

    Raised when:
    - The input is empty or whitespace only
    - A caller-supplied validator returned a rejection reason
    """


class SessionBusyError(ShellError):
    """An operation that needs an idle session was attempted mid-request."""


class SpawnError(ShellError):
    """An external command could not be started.

    Attributes:
        command: The argv that failed to start.
        exit_status: Shell-style status (127 not found, 126 permission denied).
    """

    def __init__(self, message: str, command: list[str], exit_status: int) -> None:
        super().__init__(message)
        self.command = command
        self.exit_status = exit_status


class StreamDecodeError(ShellError):
    """A stream fragment could not be decoded.

    Raised when a JSON value is malformed rather than merely truncated.

    Attributes:
        position: Offset of the bad value within the text that was read.
    """

    def __init__(self, message: str, position: int = 0) -> None:
        super().__init__(message)
        self.position = position


class FilterContractError(StreamDecodeError):
    """A stream filter returned a value of an unsupported shape."""


class TranscriptError(ShellError):
    """Base class for transcript format errors."""


class TranscriptCorruptionError(TranscriptError):
    """A restored entry is not a well-formed input/output pair."""


class TranscriptCollisionError(TranscriptError):
    """Entry text contains one of the reserved transcript markers."""
