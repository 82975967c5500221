"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from docrag.embedding.encoder import DEFAULT_MODEL, EmbeddingConfig


def _get_default_db_path() -> Path:
    """Prefer a project-local data/ index, else one under the user's Documents."""
    local_db = Path("data/docrag.db")
    if local_db.exists():
        return local_db
    return Path.home() / "Documents" / "DocRAG" / "docrag.db"


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    model_name: str = DEFAULT_MODEL
    chunk_chars: int = 800
    overlap: int = 120
    min_len: int = 40
    max_chunks: int = 1200
    batch_size: int = 4
    embed_timeout: float | None = 60.0
    top_k: int = 6
    bucket_size: int = 200
    relevance_floor: float = 0.1

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if not 0 <= self.overlap < self.chunk_chars:
            raise ValueError("overlap must satisfy 0 <= overlap < chunk_chars")

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path

    def embedding_config(self) -> EmbeddingConfig:
        return EmbeddingConfig(
            model_name=self.model_name,
            batch_size=self.batch_size,
            timeout=self.embed_timeout,
        )
