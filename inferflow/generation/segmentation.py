"""Default answer segmentation: split raw answer text into selectable sections.

Tried in order: markdown headers, then step/numbered/bulleted lists, then
blank-line separated paragraphs. A non-empty answer always produces at least
one section; section ``index`` equals its position in the returned list.
"""

import re
from collections.abc import Callable

from inferflow.models import AnswerSection

Segmenter = Callable[[str], list[AnswerSection]]

_HEADER_RE = re.compile(r"^#{1,6}\s+.+$", re.MULTILINE)
_HEADER_MARKER_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_LIST_ITEM_RE = re.compile(r"^(?:step\s+\d+:|\d+\.\s+|[-*]\s+)", re.IGNORECASE)
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def segment_answer(answer: str) -> list[AnswerSection]:
    """Split an answer into sections. Empty or whitespace-only input gives []."""
    if not answer or not answer.strip():
        return []

    chunks = _split_on_headers(answer)
    if not chunks:
        chunks = _split_on_list_items(answer)
    if not chunks:
        chunks = [p.strip() for p in _PARAGRAPH_BREAK_RE.split(answer) if p.strip()]
    if not chunks:
        chunks = [answer.strip()]

    cleaned = [_HEADER_MARKER_RE.sub("", chunk).strip() for chunk in chunks]
    return [
        AnswerSection(id=f"section-{i}", text=text, index=i)
        for i, text in enumerate(t for t in cleaned if t)
    ]


def _split_on_headers(answer: str) -> list[str]:
    starts = [m.start() for m in _HEADER_RE.finditer(answer)]
    if not starts:
        return []
    chunks = []
    preamble = answer[: starts[0]].strip()
    if preamble:
        chunks.append(preamble)
    bounds = starts + [len(answer)]
    for start, end in zip(bounds, bounds[1:]):
        text = answer[start:end].strip()
        if text:
            chunks.append(text)
    return chunks


def _split_on_list_items(answer: str) -> list[str]:
    lines = answer.split("\n")
    if not any(_LIST_ITEM_RE.match(line.strip()) for line in lines):
        return []

    chunks: list[str] = []
    current: list[str] = []
    for line in lines:
        stripped = line.strip()
        if not stripped:
            if current:
                chunks.append("\n".join(current).strip())
                current = []
        elif _LIST_ITEM_RE.match(stripped):
            if current:
                chunks.append("\n".join(current).strip())
            current = [line]
        else:
            current.append(line)
    if current:
        chunks.append("\n".join(current).strip())
    return chunks
