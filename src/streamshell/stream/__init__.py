"""Chunk-oriented parsing of streamed executor output."""

from streamshell.stream.chunks import Fragment, split_chunk
from streamshell.stream.filters import (
    SKIP,
    Emit,
    EmitPending,
    FilterResult,
    Skip,
    StreamFilter,
    StreamState,
    apply_filter,
    coerce_filter_result,
    identity_filter,
    make_json_filter,
    make_sse_filter,
)
from streamshell.stream.json_reader import read_json_stream

__all__ = [
    "SKIP",
    "Emit",
    "EmitPending",
    "FilterResult",
    "Fragment",
    "Skip",
    "StreamFilter",
    "StreamState",
    "apply_filter",
    "coerce_filter_result",
    "identity_filter",
    "make_json_filter",
    "make_sse_filter",
    "read_json_stream",
    "split_chunk",
]
