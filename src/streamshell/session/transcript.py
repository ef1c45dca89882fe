"""Flat-text transcript format.

Each entry is written as:

    <prompt><input><end-of-prompt marker>
    <output>
    [<failed marker>] [<interrupted marker>]
    <blank line>

Reading a transcript splits it on the prompt pattern, then splits each
segment once on the end-of-prompt marker. Text before the first prompt is
a banner and is ignored. Markers are reserved: entries containing them are
refused at write time.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from streamshell.errors import TranscriptCollisionError, TranscriptCorruptionError
from streamshell.session.models import HistoryEntry

END_OF_PROMPT = "<streamshell-end-of-prompt>"
FAILED_MARKER = "<streamshell-failed-command>"
INTERRUPTED_MARKER = "<streamshell-interrupted-command>"

RESERVED_MARKERS = (END_OF_PROMPT, FAILED_MARKER, INTERRUPTED_MARKER)


def default_prompt_pattern(prompt: str) -> str:
    """Regex for ``prompt`` at a line start, on a line that opens an entry.

    The lookahead requires the end-of-prompt marker before the next blank
    line, so output lines that merely start with the prompt text (a quoted
    "> " line, say) do not split the transcript.
    """
    return (
        "^"
        + re.escape(prompt)
        + r"(?=[^\n]*(?:\n[^\n]+)*?"
        + re.escape(END_OF_PROMPT)
        + ")"
    )


def _compile(prompt_pattern: str | re.Pattern[str]) -> re.Pattern[str]:
    if isinstance(prompt_pattern, re.Pattern):
        return prompt_pattern
    return re.compile(prompt_pattern, re.MULTILINE)


def _segments(text: str, pattern: re.Pattern[str]) -> list[str]:
    """Split on prompt matches, dropping the text before the first one."""
    matches = [m for m in pattern.finditer(text) if m.end() > m.start()]
    segments = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        segments.append(text[match.end() : end])
    return segments


def check_collisions(entry: HistoryEntry) -> None:
    """Refuse entries whose text contains a reserved marker.

    Raises:
        TranscriptCollisionError: If any field contains a marker.
    """
    for text in (entry.input, entry.output):
        if text is None:
            continue
        for marker in RESERVED_MARKERS:
            if marker in text:
                raise TranscriptCollisionError(
                    f"Entry text contains reserved marker {marker!r}: {text[:40]!r}"
                )


def serialize_entry(entry: HistoryEntry, prompt: str) -> str:
    """Render one entry in transcript form."""
    check_collisions(entry)
    lines = [f"{prompt}{entry.input or ''}{END_OF_PROMPT}"]
    if entry.output:
        lines.append(entry.output)
    if entry.failed:
        lines.append(FAILED_MARKER)
    if entry.interrupted:
        lines.append(INTERRUPTED_MARKER)
    return "\n".join(lines) + "\n\n"


def serialize(entries: Iterable[HistoryEntry], prompt: str) -> str:
    """Render entries as a transcript blob."""
    return "".join(serialize_entry(entry, prompt) for entry in entries)


def _strip_markers(text: str) -> str:
    for marker in (FAILED_MARKER, INTERRUPTED_MARKER):
        text = text.replace(marker, "")
    return text.strip()


def _parse_segment(segment: str) -> HistoryEntry | None:
    failed = FAILED_MARKER in segment
    interrupted = INTERRUPTED_MARKER in segment

    if END_OF_PROMPT in segment:
        raw_input, raw_output = segment.split(END_OF_PROMPT, 1)
    else:
        raw_input, raw_output = segment, ""

    text_in = _strip_markers(raw_input)
    text_out = _strip_markers(raw_output)
    if not text_in and not text_out:
        return None
    return HistoryEntry(
        input=text_in or None,
        output=text_out or None,
        failed=failed,
        interrupted=interrupted,
    )


def extract(
    text: str,
    prompt_pattern: str | re.Pattern[str],
    *,
    include_failed: bool = False,
) -> list[HistoryEntry]:
    """Recover the ordered entries of a transcript.

    Args:
        text: Transcript blob.
        prompt_pattern: Regex matching the prompt (compiled MULTILINE if a str).
        include_failed: Keep failed entries too (default drops failed
            entries that were not also interrupted).

    Returns:
        Entries in transcript order, trimmed and with markers removed.
    """
    entries: list[HistoryEntry] = []
    for segment in _segments(text, _compile(prompt_pattern)):
        entry = _parse_segment(segment)
        if entry is None:
            continue
        if entry.retained or include_failed:
            entries.append(entry)
    return entries


def validate_entries(entries: Iterable[object]) -> list[HistoryEntry]:
    """Check that every item is a well-formed HistoryEntry.

    Raises:
        TranscriptCorruptionError: On the first malformed item.
    """
    checked: list[HistoryEntry] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, HistoryEntry):
            raise TranscriptCorruptionError(
                f"Entry {index} is not a history entry: {entry!r}"
            )
        if not isinstance(entry.input, (str, type(None))) or not isinstance(
            entry.output, (str, type(None))
        ):
            raise TranscriptCorruptionError(f"Entry {index} has non-text fields: {entry!r}")
        if entry.input is None and entry.output is None:
            raise TranscriptCorruptionError(f"Entry {index} has neither input nor output")
        checked.append(entry)
    return checked


def load_transcript(
    path: str | Path,
    prompt_pattern: str | re.Pattern[str],
) -> list[HistoryEntry]:
    """Read and extract a transcript file.

    Raises:
        TranscriptCorruptionError: If the file cannot be read or decoded.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TranscriptCorruptionError(f"Cannot read transcript {path}: {e}") from e
    return extract(text, prompt_pattern)


def write_transcript(path: str | Path, entries: Iterable[HistoryEntry], prompt: str) -> None:
    """Write entries to a transcript file, replacing its contents."""
    Path(path).write_text(serialize(entries, prompt), encoding="utf-8")


def append_transcript(path: str | Path, entry: HistoryEntry, prompt: str) -> None:
    """Append one entry to a transcript file."""
    with open(path, "a", encoding="utf-8") as f:
        f.write(serialize_entry(entry, prompt))
