"""High-level entry point composing indexing, retrieval and answering."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from docrag.answer import HeuristicSynthesizer, Synthesizer, extract_heuristics
from docrag.config import AppConfig
from docrag.embedding.encoder import Embedder
from docrag.index.indexer import Indexer, ProgressCallback
from docrag.index.search import Retriever
from docrag.index.storage import SQLiteIndexStore
from docrag.models import Answer, BuildResult, Retrieved

LOGGER = logging.getLogger(__name__)


class RagService:
    """Build, query and delete documents in one local index."""

    def __init__(
        self,
        store: SQLiteIndexStore,
        embedder: Embedder,
        *,
        synthesizer: Synthesizer | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.store = store
        self.embedder = embedder
        self.synthesizer = synthesizer or HeuristicSynthesizer(
            relevance_floor=self.config.relevance_floor
        )
        self.indexer = Indexer(
            embedder,
            store,
            chunk_chars=self.config.chunk_chars,
            overlap=self.config.overlap,
            min_len=self.config.min_len,
            max_chunks=self.config.max_chunks,
            embed_batch=self.config.batch_size,
        )
        self.retriever = Retriever(embedder, store, bucket_size=self.config.bucket_size)

    async def build_document(
        self,
        document_id: str,
        data: bytes,
        filename: str,
        *,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BuildResult:
        return await self.indexer.build_document(
            document_id, data, filename, content_type=content_type, on_progress=on_progress
        )

    async def build_path(self, path: Path, document_id: str | None = None) -> BuildResult:
        return await self.indexer.build_path(path, document_id)

    async def reindex_document(
        self, document_id: str, data: bytes, filename: str, *, content_type: str | None = None
    ) -> BuildResult:
        return await self.indexer.reindex_document(
            document_id, data, filename, content_type=content_type
        )

    def delete_document(self, document_id: str) -> int:
        return self.indexer.delete_document(document_id)

    async def retrieve(
        self, query: str, top_k: int | None = None, document_id: str | None = None
    ) -> List[Retrieved]:
        return await self.retriever.retrieve(
            query, top_k=top_k if top_k is not None else self.config.top_k, document_id=document_id
        )

    async def ask(
        self, query: str, top_k: int | None = None, document_id: str | None = None
    ) -> Answer:
        """Retrieve passages for ``query`` and turn them into an answer."""
        retrieved = await self.retrieve(query, top_k=top_k, document_id=document_id)
        answer = self.synthesizer.synthesize(query, retrieved)
        LOGGER.debug("Answered %r with %d sources", query, len(answer.sources))
        return answer

    def document_info(self, document_id: str) -> Dict[str, Any] | None:
        """Metadata and heuristic facts for a document, or ``None`` if unknown."""
        meta = self.store.get_document_meta(document_id)
        chunks = self.store.list_chunks(document_id)
        if meta is None and not chunks:
            return None
        return {
            "document_id": document_id,
            "chunk_count": len(chunks),
            "meta": meta or {},
            "heuristics": extract_heuristics(self.store, document_id),
        }
