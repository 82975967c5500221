"""Text helpers shared by extraction, chunking and answer synthesis."""

from __future__ import annotations

import re
from typing import Iterable, List

WHITESPACE_RE = re.compile(r"\s+")
# Newlines or a sentence end followed by whitespace.
LINE_SPLIT_RE = re.compile(r"\n|\r|\.\s+")
# A following front-matter label such as " Abstract: " or " Keywords: ".
NEXT_FIELD_RE = re.compile(
    r"\s+(?:abstract|abstrak|authors?|penulis|keywords|kata kunci|year|tahun|introduction)\s*:\s",
    re.IGNORECASE,
)


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and strip the ends."""
    return WHITESPACE_RE.sub(" ", text).strip()


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())


def split_lines(text: str) -> List[str]:
    """Split text into trimmed, non-empty lines or sentences."""
    return [part.strip() for part in LINE_SPLIT_RE.split(text) if part.strip()]


def cut_at_next_field(text: str) -> str:
    """Drop everything from the next front-matter label onwards.

    Collapsed chunk text can hold several "Label: value" fields on one line.
    """
    return NEXT_FIELD_RE.split(text, 1)[0]
