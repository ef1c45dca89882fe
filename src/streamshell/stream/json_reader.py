"""Incremental JSON reader for streamed output.

Reads as many complete JSON values as a buffer holds and hands back the
unconsumed tail, so the caller can prepend it to the next chunk:

    values, rest = read_json_stream('{"a": 1}{"b": ')
    # values == [{"a": 1}], rest == '{"b": '
    values, rest = read_json_stream(rest + '2}')
    # values == [{"b": 2}], rest == ''

SSE ``data:`` tokens at the start of a line are blanked out with spaces
rather than removed, so offsets into the cleaned text are offsets into the
original text too and the remainder is always a slice of the input.
"""

from __future__ import annotations

import json
import re
from typing import Any

from streamshell.errors import StreamDecodeError

DATA_TOKEN = "data:"
DONE_TOKEN = "[DONE]"

_DATA_PREFIX = re.compile(r"^data:", re.MULTILINE)
_WHITESPACE = " \t\n\r"
_LITERALS = ("true", "false", "null")
_PARTIAL_NUMBER = re.compile(r"[-+.eE0-9]+")

_decoder = json.JSONDecoder()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _at_line_start(text: str, pos: int) -> bool:
    return pos == 0 or text[pos - 1] == "\n"


def _is_truncated(text: str, cleaned: str, pos: int, error: json.JSONDecodeError) -> bool:
    """Decide whether a decode failure is a cut-off value or garbage."""
    if _at_line_start(text, pos) and DATA_TOKEN.startswith(text[pos:]):
        return True
    if DONE_TOKEN.startswith(cleaned[pos:].rstrip()):
        return True
    if error.msg.startswith("Unterminated string"):
        return True
    if error.msg.startswith("Invalid \\uXXXX escape") and len(cleaned) - error.pos <= 6:
        return True

    rest = cleaned[error.pos :].strip()
    if not rest:
        return True
    if any(literal.startswith(rest) for literal in _LITERALS):
        return True
    return _PARTIAL_NUMBER.fullmatch(rest) is not None


def read_json_stream(text: str, *, final: bool = False) -> tuple[list[Any], str]:
    """Parse every complete JSON value in ``text``.

    Args:
        text: Zero or more concatenated JSON values, optionally prefixed by
            SSE ``data:`` tokens, possibly ending in a truncated value.
        final: No more text will follow, so a number that ends the buffer
            is complete.

    Returns:
        Tuple of (parsed values in order, unconsumed remainder). The
        remainder is empty when the text ends on a value boundary.

    Raises:
        StreamDecodeError: If a value is malformed rather than truncated.
    """
    cleaned = _DATA_PREFIX.sub(" " * len(DATA_TOKEN), text)
    end = len(cleaned)
    values: list[Any] = []
    pos = 0

    while True:
        while pos < end and cleaned[pos] in _WHITESPACE:
            pos += 1
        if pos >= end:
            return values, ""

        if cleaned.startswith(DONE_TOKEN, pos):
            pos += len(DONE_TOKEN)
            continue

        try:
            value, next_pos = _decoder.raw_decode(cleaned, pos)
        except json.JSONDecodeError as e:
            if _is_truncated(text, cleaned, pos, e):
                return values, text[pos:]
            raise StreamDecodeError(
                f"Malformed JSON at offset {e.pos}: {e.msg}", position=e.pos
            ) from e

        # A bare number may still be growing: "12" could become "123"
        if not final and _is_number(value) and (
            next_pos == end or _PARTIAL_NUMBER.fullmatch(cleaned[next_pos:]) is not None
        ):
            return values, text[pos:]

        values.append(value)
        pos = next_pos
