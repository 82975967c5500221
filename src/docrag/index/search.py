"""Semantic retrieval over the local index."""

from __future__ import annotations

import logging
from typing import List, Sequence, Set, Tuple

import numpy as np

from docrag.embedding.encoder import Embedder
from docrag.index.storage import SQLiteIndexStore
from docrag.models import Retrieved

LOGGER = logging.getLogger(__name__)

DEFAULT_BUCKET_SIZE = 200


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine of the angle between two vectors; 0 when either has zero norm."""
    left = np.asarray(a, dtype="float64")
    right = np.asarray(b, dtype="float64")
    norm = float(np.linalg.norm(left)) * float(np.linalg.norm(right))
    if norm == 0.0:
        return 0.0
    return float(np.dot(left, right) / norm)


def deduplicate(
    ranked: Sequence[Retrieved], *, top_k: int, bucket_size: int = DEFAULT_BUCKET_SIZE
) -> List[Retrieved]:
    """Keep the best chunk per ``(document, start // bucket_size)`` bucket.

    ``ranked`` must already be in descending score order.
    """
    picked: List[Retrieved] = []
    seen: Set[Tuple[str, int]] = set()
    for item in ranked:
        key = (item.chunk.document_id, item.chunk.start // bucket_size)
        if key in seen:
            continue
        seen.add(key)
        picked.append(item)
        if len(picked) >= top_k:
            break
    return picked


class Retriever:
    """Top-K cosine retrieval with near-duplicate suppression.

    Every query scans the whole store, which is fine for a personal index. A
    larger corpus would swap ``store.scan_all`` for an approximate
    nearest-neighbour index behind the same ``retrieve`` call.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: SQLiteIndexStore,
        *,
        bucket_size: int = DEFAULT_BUCKET_SIZE,
    ) -> None:
        if bucket_size <= 0:
            raise ValueError("bucket_size must be positive")
        self.embedder = embedder
        self.store = store
        self.bucket_size = bucket_size

    async def retrieve(
        self, query: str, top_k: int = 6, document_id: str | None = None
    ) -> List[Retrieved]:
        """Return at most ``top_k`` chunks in descending score order.

        Equal scores keep the store's scan order.
        """
        if top_k <= 0:
            return []
        candidates = self.store.scan_all(document_id)
        if not candidates:
            return []

        query_vector = await self.embedder.embed_query(query)
        dimension = len(query_vector)
        scored: List[Retrieved] = []
        for chunk, vector in candidates:
            if len(vector) != dimension:
                LOGGER.warning(
                    "Skipping chunk %s: vector dimension %d does not match query dimension %d",
                    chunk.id,
                    len(vector),
                    dimension,
                )
                continue
            scored.append(Retrieved(chunk=chunk, score=cosine_similarity(query_vector, vector)))

        # sorted() is stable, so ties keep scan order.
        ranked = sorted(scored, key=lambda item: item.score, reverse=True)
        results = deduplicate(ranked, top_k=top_k, bucket_size=self.bucket_size)
        LOGGER.debug("Query %r matched %d of %d candidates", query, len(results), len(candidates))
        return results
