"""Embedding model management."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Protocol, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from docrag.errors import EmbeddingTimeout, ModelUnavailable

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

LOGGER = logging.getLogger(__name__)


class Embedder(Protocol):
    """Anything that maps texts to fixed-length vectors in one vector space."""

    @property
    def dimension(self) -> int | None: ...

    async def embed(self, texts: Sequence[str] | Iterable[str]) -> List[np.ndarray]: ...

    async def embed_query(self, text: str) -> np.ndarray: ...


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_MODEL
    batch_size: int = 4
    normalize: bool = True
    device: str | None = None
    timeout: float | None = 60.0


class EmbeddingModel:
    """Lazily loaded `SentenceTransformer` used for query and chunk embeddings.

    The model is loaded on the first call and reused for the lifetime of the
    instance. Loading and encoding run in a worker thread bounded by
    ``config.timeout``; between batches control is handed back to the event
    loop so long documents do not starve other tasks.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._model: SentenceTransformer | None = None
        self._dimension: int | None = None
        self._load_lock = asyncio.Lock()

    @property
    def dimension(self) -> int | None:
        return self._dimension

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def _load_model(self) -> SentenceTransformer:
        return SentenceTransformer(self.config.model_name, device=self.config.device)

    async def _run(self, func, *args):
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.config.timeout)
        except asyncio.TimeoutError as exc:
            raise EmbeddingTimeout(
                f"Embedding model {self.config.model_name} timed out after {self.config.timeout}s"
            ) from exc

    async def load(self) -> SentenceTransformer:
        """Load the model once; concurrent callers wait for the same load."""
        if self._model is not None:
            return self._model
        async with self._load_lock:
            if self._model is None:
                LOGGER.info("Loading embedding model %s", self.config.model_name)
                try:
                    model = await self._run(self._load_model)
                except ModelUnavailable:
                    raise
                except Exception as exc:
                    raise ModelUnavailable(
                        f"Failed to load embedding model {self.config.model_name}: {exc}"
                    ) from exc
                self._dimension = int(model.get_sentence_embedding_dimension())
                self._model = model
                LOGGER.info("Loaded %s (dimension %d)", self.config.model_name, self._dimension)
        return self._model

    def _encode(self, model: SentenceTransformer, batch: List[str]) -> np.ndarray:
        embeddings = model.encode(
            batch,
            batch_size=len(batch),
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
        return embeddings.astype("float32", copy=False)

    async def embed(self, texts: Sequence[str] | Iterable[str]) -> List[np.ndarray]:
        """Return one float32 vector per input text, in input order."""
        sentences = list(texts)
        if not sentences:
            return []
        model = await self.load()
        batch_size = max(1, self.config.batch_size)
        vectors: List[np.ndarray] = []
        for start in range(0, len(sentences), batch_size):
            batch = sentences[start : start + batch_size]
            try:
                embeddings = await self._run(self._encode, model, batch)
            except ModelUnavailable:
                raise
            except Exception as exc:
                raise ModelUnavailable(f"Embedding failed: {exc}") from exc
            if len(embeddings) != len(batch):
                raise ModelUnavailable(
                    f"Embedding model returned {len(embeddings)} vectors for {len(batch)} texts"
                )
            vectors.extend(embeddings)
            await asyncio.sleep(0)
        return vectors

    async def embed_query(self, text: str) -> np.ndarray:
        """Convenience wrapper for single-query embedding."""
        return (await self.embed([text]))[0]


_DEFAULT_EMBEDDERS: Dict[str, EmbeddingModel] = {}


def get_default_embedder(config: EmbeddingConfig | None = None) -> EmbeddingModel:
    """Return the process-wide embedder for ``config.model_name``.

    The instance is created on first request; its model loads on first use.
    """
    config = config or EmbeddingConfig()
    embedder = _DEFAULT_EMBEDDERS.get(config.model_name)
    if embedder is None:
        embedder = EmbeddingModel(config)
        _DEFAULT_EMBEDDERS[config.model_name] = embedder
    return embedder


def reset_default_embedders() -> None:
    _DEFAULT_EMBEDDERS.clear()
