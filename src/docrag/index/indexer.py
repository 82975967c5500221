"""Document indexing pipeline: extract, chunk, embed, persist."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from docrag.embedding.encoder import Embedder
from docrag.index.storage import SQLiteIndexStore
from docrag.ingestion.chunker import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MIN_LEN,
    DEFAULT_OVERLAP,
    MAX_CHUNKS,
    chunk_text,
)
from docrag.ingestion.extractor import extract
from docrag.models import BuildResult

LOGGER = logging.getLogger(__name__)

# Called as on_progress(stage, info) with stage in parse/chunk/embed/persist.
ProgressCallback = Callable[[str, Optional[dict]], Any]


class Indexer:
    """Builds and removes the index records of individual documents.

    The caller must not build and delete the same document id concurrently.
    Different documents can be built concurrently since all keys are
    document-prefixed.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: SQLiteIndexStore,
        *,
        chunk_chars: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
        min_len: int = DEFAULT_MIN_LEN,
        max_chunks: int | None = MAX_CHUNKS,
        embed_batch: int = 4,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.chunk_chars = chunk_chars
        self.overlap = overlap
        self.min_len = min_len
        self.max_chunks = max_chunks
        self.embed_batch = max(1, embed_batch)

    async def build_document(
        self,
        document_id: str,
        data: bytes,
        filename: str,
        *,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
        replace: bool = False,
    ) -> BuildResult:
        """Index one uploaded file under ``document_id``.

        All vectors are computed before anything is written, so a failing
        model leaves the store untouched. With ``replace`` the previous records
        of the document are deleted in the persist step, after embedding.
        Raises ``ModelUnavailable`` or ``StorageFailure``; extraction problems
        only shrink the result.
        """

        def progress(stage: str, info: dict | None = None) -> None:
            if on_progress is not None:
                on_progress(stage, info)

        progress("parse")
        extracted = extract(data, filename, content_type)

        progress("chunk")
        chunking = chunk_text(
            document_id,
            extracted.text,
            chunk_size=self.chunk_chars,
            overlap=self.overlap,
            min_len=self.min_len,
            max_chunks=self.max_chunks,
        )
        chunks = chunking.chunks

        total = len(chunks)
        progress("embed", {"done": 0, "total": total})
        vectors = []
        if chunks:
            step = self.embed_batch
            for start in range(0, total, step):
                batch = chunks[start : start + step]
                vectors.extend(await self.embedder.embed([chunk.text for chunk in batch]))
                progress("embed", {"done": min(start + step, total), "total": total})

        progress("persist")
        if replace:
            self.delete_document(document_id)
        self.store.put_document(chunks, vectors)
        if extracted.meta:
            self.store.put_document_meta(document_id, extracted.meta)

        if not chunks:
            LOGGER.warning("No text indexed for %s (%s)", document_id, filename)
        else:
            LOGGER.info("Indexed %s (%s): %d chunks", document_id, filename, len(chunks))

        return BuildResult(
            document_id=document_id,
            chunk_count=len(chunks),
            total_chunks=chunking.total,
            truncated=chunking.truncated,
            meta=extracted.meta,
            degraded=extracted.degraded,
        )

    async def build_path(
        self,
        path: Path,
        document_id: str | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> BuildResult:
        return await self.build_document(
            document_id or path.stem,
            path.read_bytes(),
            path.name,
            on_progress=on_progress,
        )

    def delete_document(self, document_id: str) -> int:
        return self.store.delete_document(document_id)

    async def reindex_document(
        self,
        document_id: str,
        data: bytes,
        filename: str,
        *,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BuildResult:
        """Replace a document's index records once its new vectors are ready."""
        return await self.build_document(
            document_id,
            data,
            filename,
            content_type=content_type,
            on_progress=on_progress,
            replace=True,
        )
