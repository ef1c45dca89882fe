"""Tests for curl-based requests."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from streamshell.process.request import DEFAULT_TIMEOUT, build_curl_command, run_request, start_request
from streamshell.process.result import ProcessResult
from streamshell.stream.filters import make_sse_filter
from tests.utils import write_script

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell scripts")

# Prints the -d @file path on the first line and the file's contents after it
ECHO_BODY_CURL = """\
while [ $# -gt 0 ]; do
  if [ "$1" = "-d" ]; then
    body="${2#@}"
    echo "$body"
    cat "$body"
  fi
  shift
done
"""


@pytest.fixture
def echo_body_curl(tmp_path: Path) -> Path:
    return write_script(tmp_path / "curl", ECHO_BODY_CURL)


class TestBuildCurlCommand:
    def test_minimal_get(self):
        command = build_curl_command("http://localhost/x")
        assert command.argv == [
            "curl",
            "http://localhost/x",
            "--fail-with-body",
            "--no-progress-meter",
            "-m",
            str(DEFAULT_TIMEOUT),
        ]
        assert command.body_file is None

    def test_options(self):
        command = build_curl_command(
            "http://localhost/x",
            headers=["Accept: text/event-stream", "X-Key: 1"],
            forms=["file=@a.png"],
            timeout=30,
            proxy="http://proxy:3128",
            stream=True,
            curl="/opt/curl",
        )
        argv = command.argv
        assert argv[0] == "/opt/curl"
        assert argv[argv.index("-m") + 1] == "30"
        assert "--no-buffer" in argv
        assert argv[argv.index("--proxy") + 1] == "http://proxy:3128"
        assert argv.count("-H") == 2
        assert argv[argv.index("-F") + 1] == "file=@a.png"

    def test_body_written_to_temp_file(self):
        command = build_curl_command("http://localhost/x", data={"prompt": "héllo"})
        try:
            assert command.body_file is not None
            assert command.argv[-2:] == ["-d", f"@{command.body_file}"]
            assert json.loads(command.body_file.read_text(encoding="utf-8")) == {"prompt": "héllo"}
        finally:
            body_file = command.body_file
            command.cleanup()
        assert not body_file.exists()
        assert command.body_file is None

    def test_cleanup_is_idempotent(self):
        command = build_curl_command("http://localhost/x", data=[1])
        command.cleanup()
        command.cleanup()


class TestRunRequest:
    def test_body_sent_and_removed(self, echo_body_curl: Path):
        result = run_request("http://localhost/x", data={"input": "hi"}, curl=str(echo_body_curl))
        assert result.success
        path_line, body = result.output.split("\n", 1)
        assert json.loads(body) == {"input": "hi"}
        assert not Path(path_line).exists()

    def test_http_error_body_is_output(self, tmp_path: Path):
        curl = write_script(tmp_path / "curl", "echo '{\"error\": \"nope\"}'\nexit 22\n")
        result = run_request("http://localhost/x", curl=str(curl))
        assert result.exit_status == 22
        assert not result.success
        assert json.loads(result.output) == {"error": "nope"}

    def test_missing_curl(self, tmp_path: Path):
        result = run_request("http://localhost/x", curl=str(tmp_path / "no-curl"))
        assert result.exit_status == 127


class TestStartRequest:
    @pytest.mark.asyncio
    async def test_streams_sse(self, tmp_path: Path):
        curl = write_script(
            tmp_path / "curl",
            "printf 'data: {\"t\": \"Hel\"}\\n\\n'\n"
            "sleep 0.1\n"
            "printf 'data: {\"t\": \"lo\"}\\n\\ndata: [DONE]\\n\\n'\n",
        )
        outputs: list[str] = []
        finished: list[ProcessResult] = []
        handle = await start_request(
            "http://localhost/x",
            data={"input": "hi"},
            filter=make_sse_filter(lambda v: v["t"]),
            on_output=outputs.append,
            on_finished=finished.append,
            curl=str(curl),
        )
        result = await handle.wait()
        assert "".join(outputs) == "Hello"
        assert finished == [result]
        assert result.success
        assert "--no-buffer" in handle.command

    @pytest.mark.asyncio
    async def test_body_file_removed_when_finished(self, echo_body_curl: Path):
        outputs: list[str] = []
        handle = await start_request(
            "http://localhost/x",
            data={"input": "hi"},
            on_output=outputs.append,
            curl=str(echo_body_curl),
        )
        await handle.wait()
        path_line = "".join(outputs).split("\n", 1)[0]
        assert path_line
        assert not Path(path_line).exists()
