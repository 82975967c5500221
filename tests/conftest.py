"""Shared fixtures for DocRAG tests."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Iterable, List, Sequence

import numpy as np
import pytest

from docrag.config import AppConfig
from docrag.embedding.encoder import reset_default_embedders
from docrag.index.storage import SQLiteIndexStore
from docrag.service import RagService

_TOKEN_RE = re.compile(r"\w+")


class FakeEmbedder:
    """Deterministic hashed bag-of-words embedder with unit-length output."""

    def __init__(self, dim: int = 256) -> None:
        self._dim = dim
        self.calls: List[List[str]] = []

    @property
    def dimension(self) -> int:
        return self._dim

    def vector(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dim, dtype="float32")
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            vector[int.from_bytes(digest, "big") % self._dim] += 1.0
        norm = np.linalg.norm(vector)
        return vector / norm if norm else vector

    async def embed(self, texts: Sequence[str] | Iterable[str]) -> List[np.ndarray]:
        batch = list(texts)
        self.calls.append(batch)
        return [self.vector(text) for text in batch]

    async def embed_query(self, text: str) -> np.ndarray:
        return (await self.embed([text]))[0]


class FixedQueryEmbedder(FakeEmbedder):
    """Returns the same query vector for every query."""

    def __init__(self, query_vector: Sequence[float]) -> None:
        super().__init__(dim=len(query_vector))
        self.query_vector = np.asarray(query_vector, dtype="float32")

    async def embed_query(self, text: str) -> np.ndarray:
        self.calls.append([text])
        return self.query_vector


@pytest.fixture(autouse=True)
def _reset_embedders():
    reset_default_embedders()
    yield
    reset_default_embedders()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def store(tmp_path: Path):
    """Create a temporary index for testing."""
    store = SQLiteIndexStore(tmp_path / "index.db")
    yield store
    store.close()


@pytest.fixture
def service(store: SQLiteIndexStore, fake_embedder: FakeEmbedder) -> RagService:
    return RagService(store, fake_embedder, config=AppConfig(db_path=store.db_path))


@pytest.fixture
def laptop_text() -> str:
    return (
        "Title: Laptop Recommender\n"
        "Abstract: A laptop recommender for students.\n"
    )
