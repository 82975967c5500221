"""Fixed-size overlapping chunker."""

from __future__ import annotations

import logging
from typing import Iterator, List, Tuple

from docrag.models import Chunk, ChunkingResult
from docrag.utils.text import collapse_whitespace

LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 800
DEFAULT_OVERLAP = 120
DEFAULT_MIN_LEN = 40
MAX_CHUNKS = 1200


def iter_windows(length: int, *, chunk_size: int, overlap: int) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` offsets covering ``length`` characters.

    Each window after the first starts ``overlap`` characters before the end of
    the previous one. The final window ends exactly at ``length``.
    """
    start = 0
    while start < length:
        end = min(length, start + chunk_size)
        yield start, end
        if end == length:
            return
        start = max(end - overlap, 0)


def chunk_text(
    document_id: str,
    text: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    min_len: int = DEFAULT_MIN_LEN,
    max_chunks: int | None = MAX_CHUNKS,
) -> ChunkingResult:
    """Split ``text`` into overlapping chunks owned by ``document_id``.

    Windows whose collapsed text is shorter than ``min_len`` are dropped. When
    more than ``max_chunks`` chunks are produced the sequence is cut to the
    first ``max_chunks``; the result reports the uncapped ``total``.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not 0 <= overlap < chunk_size:
        raise ValueError("overlap must satisfy 0 <= overlap < chunk_size")

    chunks: List[Chunk] = []
    for start, end in iter_windows(len(text), chunk_size=chunk_size, overlap=overlap):
        trimmed = collapse_whitespace(text[start:end])
        if len(trimmed) >= min_len:
            chunks.append(Chunk.create(document_id, start, end, trimmed))

    total = len(chunks)
    if max_chunks is not None and total > max_chunks:
        LOGGER.info(
            "Document %s produced %d chunks, keeping the first %d", document_id, total, max_chunks
        )
        return ChunkingResult(chunks=chunks[:max_chunks], total=total, truncated=True)
    return ChunkingResult(chunks=chunks, total=total)
