"""Split raw stream text into keyed fragments.

Handles SSE-style ``key: value`` lines interleaved with bare text lines:

    event: delta
    data: {"text": "hi"}
    plain output

becomes ``[("event", "delta"), ("data", '{"text": "hi"}'), (None, "plain output")]``.
Text that starts with ``{`` is a bare JSON blob and is returned whole, as a
single unkeyed fragment, for the JSON reader to deal with.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# token (no whitespace, no colon) followed by a colon
_KEYED_LINE = re.compile(r"^([^:\s]+):(.*)$")


@dataclass(frozen=True)
class Fragment:
    """One piece of a split chunk."""

    key: str | None
    value: str


def split_chunk(text: str) -> list[Fragment]:
    """Split a chunk of raw text into ordered fragments.

    Args:
        text: Raw text as delivered by a process or network read.

    Returns:
        Fragments in input order. Blank lines produce nothing.
    """
    if text.startswith("{"):
        return [Fragment(key=None, value=text)]

    fragments: list[Fragment] = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        match = _KEYED_LINE.match(line)
        if match:
            fragments.append(Fragment(key=match.group(1), value=match.group(2).strip()))
        else:
            fragments.append(Fragment(key=None, value=line.strip()))
    return fragments
