"""Stock executors built on the process runner.

CommandExecutor runs each input as an external command; HttpExecutor sends
each input to a URL through curl. Both stream output into the session as it
arrives and attach their process so Session.interrupt() can kill it.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from streamshell.config.schema import ProcessConfig, RequestConfig
from streamshell.process.request import start_request
from streamshell.process.runner import start_process
from streamshell.stream.filters import FilterFn, make_sse_filter

if TYPE_CHECKING:
    from streamshell.process.result import ProcessResult
    from streamshell.session.session import ExecutorContext

CommandBuilder = Callable[[str, "ExecutorContext"], Sequence[str]]
BodyBuilder = Callable[[str, "ExecutorContext"], Any]


def _split_input(text: str, context: ExecutorContext) -> list[str]:
    return shlex.split(text)


class CommandExecutor:
    """Run each input as an external command.

    Example:
        >>> session = Session(CommandExecutor())
        >>> session.submit("ls -l")
    """

    def __init__(
        self,
        build_command: CommandBuilder | None = None,
        *,
        filter: FilterFn | None = None,
        config: ProcessConfig | None = None,
    ) -> None:
        """Initialize the command executor.

        Args:
            build_command: Maps input to an argv. Defaults to shlex.split().
            filter: Stream filter for stdout. Defaults to identity.
            config: Timeout, working directory and environment.
        """
        self._build_command = build_command or _split_input
        self._filter = filter
        self._config = config or ProcessConfig()

    async def __call__(self, text: str, context: ExecutorContext) -> None:
        try:
            argv = list(self._build_command(text, context))
        except ValueError as e:
            # shlex: unbalanced quotes and the like
            context.write_output(f"Cannot parse command: {e}")
            context.finish_output(False)
            return

        def finished(result: ProcessResult) -> None:
            context.log("exit %s (%s) in %.0fms", result.exit_status, result.status, result.duration_ms)
            context.finish_output(result.success)

        handle = await start_process(
            argv,
            filter=self._filter,
            on_output=context.write_output,
            on_finished=finished,
            log=context.log,
            timeout_ms=self._config.timeout_ms,
            cwd=self._config.cwd,
            env=self._config.env or None,
        )
        context.attach_process(handle)
        await handle.wait()


class HttpExecutor:
    """Send each input to a URL through curl and stream the response.

    Example:
        >>> executor = HttpExecutor(
        ...     "http://localhost:11434/api/generate",
        ...     build_body=lambda text, ctx: {"model": "llama3", "prompt": text},
        ...     filter=make_json_filter(lambda v: v.get("response")),
        ... )
    """

    def __init__(
        self,
        url: str,
        *,
        build_body: BodyBuilder | None = None,
        filter: FilterFn | None = None,
        headers: Sequence[str] = (),
        forms: Sequence[str] = (),
        config: RequestConfig | None = None,
    ) -> None:
        """Initialize the HTTP executor.

        Args:
            url: Request URL.
            build_body: Maps input to a JSON body. Defaults to {"input": text}.
            filter: Stream filter for the response. Defaults to an SSE filter.
            headers: Extra header lines, added after the configured ones.
            forms: Multipart form fields.
            config: curl executable, timeout, proxy and default headers.
        """
        self.url = url
        self._build_body = build_body or (lambda text, context: {"input": text})
        self._filter = filter or make_sse_filter()
        self._config = config or RequestConfig()
        self._headers = [*self._config.headers, *headers]
        self._forms = list(forms)

    async def __call__(self, text: str, context: ExecutorContext) -> None:
        body = self._build_body(text, context)

        def finished(result: ProcessResult) -> None:
            context.log("curl exit %s (%s)", result.exit_status, result.status)
            context.finish_output(result.success)

        handle = await start_request(
            self.url,
            data=body,
            headers=self._headers,
            forms=self._forms,
            timeout=self._config.timeout,
            proxy=self._config.proxy,
            filter=self._filter,
            on_output=context.write_output,
            on_finished=finished,
            log=context.log,
            curl=self._config.curl,
        )
        context.attach_process(handle)
        await handle.wait()
