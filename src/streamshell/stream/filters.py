"""Streaming filter pipeline.

Executors deliver output in arbitrary pieces: one line, half a JSON object,
a single byte. A filter turns the text seen so far into what can be shown
now plus what must wait for the next chunk. StreamFilter keeps that
carry-over between calls and feeds emitted text to a sink.

A filter is any callable ``filter(text) -> result`` where result is one of:
- Emit(text): show text, keep nothing
- EmitPending(text, pending): show text, retry ``pending`` with the next chunk
- SKIP: ignore this chunk entirely

Plugin filters may also return the loose shapes ``str``, ``None`` or a dict
with ``filtered``/``pending`` keys; these are coerced to the types above.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from streamshell.errors import FilterContractError, StreamDecodeError
from streamshell.logging import get_logger
from streamshell.stream.chunks import split_chunk
from streamshell.stream.json_reader import DONE_TOKEN, read_json_stream

log = get_logger("stream")


@dataclass(frozen=True)
class Emit:
    """Emit text, retain nothing."""

    text: str


@dataclass(frozen=True)
class EmitPending:
    """Emit text (possibly empty) and retain a pending tail."""

    text: str = ""
    pending: str = ""


class Skip:
    """Ignore the chunk; drop any pending text."""

    _instance: Skip | None = None

    def __new__(cls) -> Skip:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SKIP"


SKIP = Skip()

FilterResult = Union[Emit, EmitPending, Skip]
FilterFn = Callable[[str], Any]
Sink = Callable[[str], None]

CONTRACT_MESSAGE = (
    "Stream filter returned {kind}. A filter must return one of: "
    "a string (emitted as-is), "
    "a mapping with 'filtered' and/or 'pending' keys (emit 'filtered', "
    "keep 'pending' for the next chunk), "
    "or None (ignore the chunk)."
)


def coerce_filter_result(value: Any) -> FilterResult:
    """Normalize a filter's return value.

    Raises:
        FilterContractError: If the value has none of the accepted shapes.
    """
    if isinstance(value, (Emit, EmitPending, Skip)):
        return value
    if value is None:
        return SKIP
    if isinstance(value, str):
        return Emit(value)
    if isinstance(value, Mapping) and ("filtered" in value or "pending" in value):
        filtered = value.get("filtered") or ""
        pending = value.get("pending") or ""
        if isinstance(filtered, str) and isinstance(pending, str):
            return EmitPending(filtered, pending)
    raise FilterContractError(CONTRACT_MESSAGE.format(kind=type(value).__name__))


@dataclass
class StreamState:
    """Per-request carry-over between chunks."""

    pending: str = ""
    output: str = ""


class StreamFilter:
    """Apply a filter chunk by chunk, carrying pending text forward.

    Every chunk is prefixed with the pending text left by the previous one
    before the filter sees it. Exceptions raised by the filter are turned
    into a diagnostic fragment on the sink; they never escape ``feed``.
    """

    def __init__(self, filter_fn: FilterFn | None, sink: Sink | None = None) -> None:
        self._filter = filter_fn or identity_filter
        self._sink = sink
        self.state = StreamState()

    @property
    def pending(self) -> str:
        return self.state.pending

    @property
    def output(self) -> str:
        return self.state.output

    def feed(self, chunk: str) -> str:
        """Filter one raw chunk.

        Args:
            chunk: Raw text as read from the process or network.

        Returns:
            The text emitted for this chunk (also sent to the sink).
        """
        text = self.state.pending + chunk
        try:
            result = coerce_filter_result(self._filter(text))
        except Exception as e:
            self.state.pending = ""
            log.warning("Stream filter failed: %s", e)
            self._emit(f"\n[filter error] {e}\n")
            return ""

        if isinstance(result, Skip):
            self.state.pending = ""
            return ""
        if isinstance(result, EmitPending):
            self.state.pending = result.pending
            emitted = result.text
        else:
            self.state.pending = ""
            emitted = result.text

        self.state.output += emitted
        self._emit(emitted)
        return emitted

    def finish(self) -> str:
        """Flush the pending text at end of stream.

        The pending text goes through the filter once more with a closing
        newline, which completes an unterminated last line or a bare number.
        Whatever the filter still holds back after that is left in
        ``pending`` for the caller to report.

        Returns:
            The text emitted by the flush.
        """
        if not self.state.pending:
            return ""
        return self.feed("\n")

    def _emit(self, text: str) -> None:
        if text and self._sink is not None:
            self._sink(text)


def apply_filter(filter_fn: FilterFn | None, text: str) -> str:
    """Run a filter once over complete text and return what it emits."""
    pipeline = StreamFilter(filter_fn)
    return pipeline.feed(text) + pipeline.finish()


# Stock filters


def identity_filter(text: str) -> FilterResult:
    """Emit everything unchanged."""
    return Emit(text)


def _render_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def make_json_filter(render: Callable[[Any], str | None] | None = None) -> FilterFn:
    """Build a filter for a stream of concatenated JSON values.

    Args:
        render: Turns one parsed value into display text. Values rendered to
            None are dropped. Defaults to compact JSON.
    """
    render = render or _render_json

    def json_filter(text: str) -> FilterResult:
        values, remainder = read_json_stream(text)
        parts = [part for part in (render(v) for v in values) if part]
        return EmitPending("".join(parts), remainder)

    return json_filter


def make_sse_filter(render: Callable[[Any], str | None] | None = None) -> FilterFn:
    """Build a filter for server-sent events.

    Only whole lines are processed; an unterminated last line is carried
    over. ``data:`` payloads are parsed as JSON and rendered; a payload
    that is not JSON (``data: hello``) is emitted as a line of text. ``[DONE]``
    and other SSE fields (``event:``, ``id:``) are skipped, and bare text
    lines pass through. Output that starts with ``{`` (an error body, say)
    is read as JSON directly.
    """
    render = render or _render_json

    def _render_all(values: list[Any]) -> str:
        return "".join(part for part in (render(v) for v in values) if part)

    def _render_payload(payload: str) -> str:
        try:
            values, leftover = read_json_stream(payload, final=True)
        except StreamDecodeError:
            values, leftover = [], payload
        if leftover:
            log.debug("Passing through non-JSON SSE payload: %r", payload)
            return payload + "\n"
        return _render_all(values)

    def sse_filter(text: str) -> FilterResult:
        if text.startswith("{"):
            values, remainder = read_json_stream(text)
            return EmitPending(_render_all(values), remainder)

        complete, newline, tail = text.rpartition("\n")
        if not newline:
            return EmitPending("", text)

        parts: list[str] = []
        for fragment in split_chunk(complete):
            if fragment.key == "data":
                if fragment.value == DONE_TOKEN:
                    continue
                parts.append(_render_payload(fragment.value))
            elif fragment.key is None:
                parts.append(fragment.value + "\n")
        return EmitPending("".join(parts), tail)

    return sse_filter
