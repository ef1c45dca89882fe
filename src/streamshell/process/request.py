"""HTTP requests through curl.

Requests go through the same process runner as every other command, so
their output streams through the same filter pipeline. A JSON body is
written to a temporary file and passed as ``-d @file``, which also makes
curl issue a POST; without a body the request is a GET.

``--fail-with-body`` makes curl exit non-zero on HTTP errors while still
printing the response body, which then serves as the failure diagnostic.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from streamshell.logging import get_logger
from streamshell.process.result import ProcessResult
from streamshell.process.runner import (
    FinishedCallback,
    LogCallback,
    OutputCallback,
    ProcessHandle,
    run_command,
    start_process,
)
from streamshell.stream.filters import FilterFn

_log = get_logger("request")

DEFAULT_TIMEOUT = 600  # seconds


@dataclass
class CurlCommand:
    """A curl invocation and the temporary body file it reads, if any."""

    argv: list[str]
    body_file: Path | None = None

    def cleanup(self) -> None:
        """Remove the temporary body file."""
        if self.body_file is not None:
            try:
                self.body_file.unlink()
            except FileNotFoundError:
                pass
            self.body_file = None


def build_curl_command(
    url: str,
    *,
    data: Any = None,
    headers: Sequence[str] = (),
    forms: Sequence[str] = (),
    timeout: int = DEFAULT_TIMEOUT,
    proxy: str | None = None,
    stream: bool = False,
    curl: str = "curl",
) -> CurlCommand:
    """Build the argv for a curl request.

    Args:
        url: Request URL.
        data: JSON-serializable body. Implies POST.
        headers: Raw header lines, e.g. "Content-Type: application/json".
        forms: Multipart form fields, e.g. "file=@photo.png".
        timeout: Maximum time in seconds (curl -m).
        proxy: Proxy URL.
        stream: Disable curl's output buffering so chunks arrive as sent.
        curl: curl executable.

    Returns:
        CurlCommand; call cleanup() once the request is done.
    """
    argv = [curl, url, "--fail-with-body", "--no-progress-meter", "-m", str(timeout)]
    if stream:
        argv.append("--no-buffer")
    if proxy:
        argv.extend(["--proxy", proxy])
    for header in headers:
        argv.extend(["-H", header])
    for form in forms:
        argv.extend(["-F", form])

    body_file: Path | None = None
    if data is not None:
        fd, name = tempfile.mkstemp(prefix="streamshell-", suffix=".json")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        body_file = Path(name)
        argv.extend(["-d", f"@{name}"])

    return CurlCommand(argv=argv, body_file=body_file)


def run_request(
    url: str,
    *,
    data: Any = None,
    headers: Sequence[str] = (),
    forms: Sequence[str] = (),
    timeout: int = DEFAULT_TIMEOUT,
    proxy: str | None = None,
    filter: FilterFn | None = None,
    curl: str = "curl",
) -> ProcessResult:
    """Make a request and block until it completes."""
    command = build_curl_command(
        url, data=data, headers=headers, forms=forms, timeout=timeout, proxy=proxy, curl=curl
    )
    try:
        result = run_command(command.argv, filter=filter)
    finally:
        command.cleanup()
    if not result.success:
        _log.debug("Request to %s failed (%s): %s", url, result.exit_status, result.output)
    return result


async def start_request(
    url: str,
    *,
    data: Any = None,
    headers: Sequence[str] = (),
    forms: Sequence[str] = (),
    timeout: int = DEFAULT_TIMEOUT,
    proxy: str | None = None,
    filter: FilterFn | None = None,
    on_output: OutputCallback | None = None,
    on_finished: FinishedCallback | None = None,
    log: LogCallback | None = None,
    curl: str = "curl",
) -> ProcessHandle:
    """Start a streaming request; callbacks as for start_process()."""
    command = build_curl_command(
        url,
        data=data,
        headers=headers,
        forms=forms,
        timeout=timeout,
        proxy=proxy,
        stream=True,
        curl=curl,
    )

    def finished(result: ProcessResult) -> None:
        command.cleanup()
        if on_finished is not None:
            on_finished(result)

    return await start_process(
        command.argv,
        filter=filter,
        on_output=on_output,
        on_finished=finished,
        log=log,
    )
