"""External process and curl request execution.

Provides run_command() for blocking execution and start_process() for
streamed execution with callbacks, plus curl helpers built on both.
"""

from streamshell.process.request import (
    CurlCommand,
    build_curl_command,
    run_request,
    start_request,
)
from streamshell.process.result import ProcessResult
from streamshell.process.runner import ProcessHandle, run_command, start_process

__all__ = [
    "CurlCommand",
    "ProcessHandle",
    "ProcessResult",
    "build_curl_command",
    "run_command",
    "run_request",
    "start_process",
    "start_request",
]
