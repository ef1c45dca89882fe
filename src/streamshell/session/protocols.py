"""Protocols for the pluggable parts of a session."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from streamshell.session.session import ExecutorContext


class Executor(Protocol):
    """Produces the response for one input.

    An executor writes output through ``context.write_output()`` zero or
    more times and must call ``context.finish_output(success)`` exactly
    once. It may do so before returning, or return an awaitable and finish
    later; the session schedules awaitables on the running event loop.

    Implementations:
    - CommandExecutor: runs the input as an external command
    - HttpExecutor: sends the input in a curl request
    - the Replay Engine's internal executor
    """

    def __call__(self, text: str, context: ExecutorContext) -> Awaitable[None] | None: ...


class Validator(Protocol):
    """Checks input before dispatch.

    Returns None to accept the input, or a human-readable rejection reason.
    """

    def __call__(self, text: str) -> str | None: ...
