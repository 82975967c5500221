"""Core DocRAG data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


def chunk_id(document_id: str, start: int, end: int) -> str:
    """Derive the storage key of a chunk.

    Keys are prefixed with ``document_id + "-"`` so a document's records can be
    removed with a prefix-scoped delete.
    """
    return f"{document_id}-{start}-{end}"


@dataclass(slots=True)
class Chunk:
    """Contiguous slice of a document's normalized text."""

    id: str
    document_id: str
    start: int
    end: int
    text: str

    @classmethod
    def create(cls, document_id: str, start: int, end: int, text: str) -> "Chunk":
        return cls(
            id=chunk_id(document_id, start, end),
            document_id=document_id,
            start=start,
            end=end,
            text=text,
        )


@dataclass(slots=True)
class ExtractedText:
    """Text pulled out of an uploaded file.

    ``degraded`` is set when parsing failed part-way and the text is empty or
    partial. It is a normal result, not an error.
    """

    text: str
    meta: Optional[Dict[str, str]] = None
    degraded: bool = False


@dataclass(slots=True)
class ChunkingResult:
    chunks: List[Chunk]
    total: int
    truncated: bool = False


@dataclass(slots=True)
class Retrieved:
    chunk: Chunk
    score: float


@dataclass(slots=True)
class Source:
    document_id: str
    excerpt: str
    range: Tuple[int, int]


@dataclass(slots=True)
class Answer:
    answer: str
    sources: List[Source] = field(default_factory=list)


@dataclass(slots=True)
class BuildResult:
    """Outcome of indexing one document."""

    document_id: str
    chunk_count: int
    total_chunks: int
    truncated: bool = False
    meta: Optional[Dict[str, str]] = None
    degraded: bool = False
