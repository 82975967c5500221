"""Bibliographic guesses (title, authors, year) for an indexed document."""

from __future__ import annotations

import re
from typing import Dict

from docrag.index.storage import SQLiteIndexStore
from docrag.utils.text import cut_at_next_field, split_lines

TITLE_LINE_RE = re.compile(r"^title\s*[:\-]", re.IGNORECASE)
TITLE_PREFIX_RE = re.compile(r"^title\s*[:\-]\s*", re.IGNORECASE)
# "penulis" is Indonesian for author.
AUTHOR_LINE_RE = re.compile(r"(authors?|penulis)\s*[:\-]", re.IGNORECASE)
NAME_LIST_RE = re.compile(r"[A-Za-z]{2,}\s+[A-Za-z]{2,}(;|,)")
YEAR_RE = re.compile(r"\b(20\d{2})\b")

HEAD_CHUNKS = 5


def extract_heuristics(store: SQLiteIndexStore, document_id: str) -> Dict[str, str]:
    """Guess ``title``, ``authors`` and ``year`` for a document.

    Embedded file metadata wins; otherwise the first chunks of the document
    are scanned for labelled lines.
    """
    out: Dict[str, str] = {}
    meta = store.get_document_meta(document_id) or {}
    if meta.get("title"):
        out["title"] = str(meta["title"])
    if meta.get("author"):
        out["authors"] = str(meta["author"])

    chunks = store.list_chunks(document_id)[:HEAD_CHUNKS]
    head_text = " \n ".join(chunk.text for chunk in chunks)
    lines = split_lines(head_text)

    if "title" not in out:
        candidate = next((line for line in lines if TITLE_LINE_RE.match(line)), None) or next(
            (line for line in lines if 8 < len(line) < 160), None
        )
        if candidate:
            out["title"] = cut_at_next_field(TITLE_PREFIX_RE.sub("", candidate))

    if "authors" not in out:
        candidate = next((line for line in lines if AUTHOR_LINE_RE.search(line)), None) or next(
            (line for line in lines if NAME_LIST_RE.search(line)), None
        )
        if candidate:
            label = AUTHOR_LINE_RE.search(candidate)
            if label:
                candidate = candidate[label.end() :].strip()
            out["authors"] = cut_at_next_field(candidate)

    year = YEAR_RE.search(head_text)
    if year:
        out["year"] = year.group(1)

    return out
