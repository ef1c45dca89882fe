"""Session data model: history entries, requests and completion results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from streamshell.session.protocols import Executor


@dataclass(frozen=True)
class HistoryEntry:
    """One completed request/response pair.

    Either side may be None: an entry without input is output-only echo
    text, an entry without output is a command that produced nothing.

    Attributes:
        input: The submitted input, or None.
        output: The response text, or None.
        failed: The request completed unsuccessfully.
        interrupted: The request was cut short before completing.
    """

    input: str | None
    output: str | None
    failed: bool = False
    interrupted: bool = False

    @property
    def retained(self) -> bool:
        """Whether the entry belongs in a reconstructed history.

        Failed entries are dropped unless they were also interrupted.
        """
        return not self.failed or self.interrupted

    def as_pair(self) -> tuple[str | None, str | None]:
        return (self.input, self.output)


@dataclass
class Request:
    """A dispatched input awaiting its response.

    The request is live while its id equals the session's current request
    id; nothing else marks it cancelled.
    """

    id: int
    input: str
    executor: Executor
    output_parts: list[str] = field(default_factory=list)
    finished: bool = False

    @property
    def accumulated_output(self) -> str:
        return "".join(self.output_parts)


@dataclass(frozen=True)
class CompletionResult:
    """Passed to finished-listeners once per request."""

    input: str
    output: str | None
    success: bool
