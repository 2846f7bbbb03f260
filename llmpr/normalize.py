"""Cleanup of the model's final answer before it is written out."""

from __future__ import annotations

import re

CONTEXT_MARKER_RE = re.compile(r"\[NEED_CONTEXT:[^\]]+\]")
FENCE = "```"


def strip_context_markers(text: str) -> str:
    """Remove every leftover ``[NEED_CONTEXT:...]`` marker."""
    return CONTEXT_MARKER_RE.sub("", text)


def strip_enclosing_fence(text: str) -> str:
    """Unwrap `text` if the whole answer sits inside one fenced code block.

    The first line must open a fence.  If the last line is exactly a
    closing fence both are dropped; otherwise the first later line that is
    exactly a closing fence ends the block and anything after it is
    discarded.  Without a closing fence the text is returned as is.
    """
    if not text.startswith(FENCE) or "\n" not in text:
        return text
    lines = text.split("\n")
    if lines[-1] == FENCE:
        return "\n".join(lines[1:-1])
    for index in range(1, len(lines)):
        if lines[index] == FENCE:
            return "\n".join(lines[1:index])
    return text


def normalize_response(text: str) -> str:
    """Strip markers and an enclosing fence until nothing changes.

    Running to a fixed point makes the function idempotent even for
    nested fences or markers that only appear once another is removed.
    """
    while True:
        cleaned = strip_enclosing_fence(strip_context_markers(text))
        if cleaned == text:
            return cleaned
        text = cleaned
