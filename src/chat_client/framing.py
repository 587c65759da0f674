"""Strip transport framing and split decoded text into candidate records.

The backend may answer with SSE-style ``data:`` lines, bare JSON lines or
plain prose, so extraction is permissive: after the framing tokens are
removed, every non-empty line is a record.
"""
from __future__ import annotations

import re
from typing import Iterator

DATA_PREFIX = re.compile(r"^data:[ \t]*", re.IGNORECASE)
DONE_SENTINEL = "[DONE]"
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def remove_sentinels(text: str) -> str:
    # dropping one sentinel can splice its neighbours into a new one
    while DONE_SENTINEL in text:
        text = text.replace(DONE_SENTINEL, "")
    return text


def strip_framing(text: str) -> str:
    """Remove every ``[DONE]`` sentinel and ``data:`` line prefixes."""
    lines = _LINE_BREAK.split(remove_sentinels(text))
    return "\n".join(DATA_PREFIX.sub("", line, count=1) for line in lines)


def extract_records(text: str) -> Iterator[str]:
    """Yield the non-blank records of one decoded chunk, in order.

    Records keep their surrounding spaces so plain-text replies split
    between reads join back up intact. Nothing is carried over between
    calls; a line cut by a chunk boundary comes out as two records.
    """
    for line in strip_framing(text).split("\n"):
        if line.strip():
            yield line
