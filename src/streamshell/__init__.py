"""streamshell - an interactive shell runtime with streaming executors.

Accepts a line of input, dispatches it to a pluggable executor (usually an
external process or an HTTP request made through curl), streams partial
output back as it arrives, and keeps a replayable transcript of every
request/response pair.

Example usage:
    import asyncio

    from streamshell import CommandExecutor, Session

    async def main() -> None:
        session = Session(CommandExecutor())
        session.start()
        done = asyncio.Event()
        session.add_finished_listener(lambda result: done.set())
        if session.submit("echo hi"):
            await done.wait()
        print(session.output)

    asyncio.run(main())
"""

from streamshell.executors import CommandExecutor, HttpExecutor
from streamshell.session import (
    CompletionResult,
    ExecutorContext,
    HistoryEntry,
    ReplayEngine,
    Session,
)

__version__ = "0.1.0"

__all__ = [
    "CommandExecutor",
    "CompletionResult",
    "ExecutorContext",
    "HistoryEntry",
    "HttpExecutor",
    "ReplayEngine",
    "Session",
    "__version__",
]
