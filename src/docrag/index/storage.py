"""SQLite store for chunks, their vectors and document metadata."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from docrag.errors import StorageFailure
from docrag.models import Chunk

LOGGER = logging.getLogger(__name__)


def _key_prefix(document_id: str) -> str:
    return f"{document_id}-"


class SQLiteIndexStore:
    """Persistence layer for chunk records and embeddings.

    Three keyed tables: ``chunks[chunk_id]``, ``vectors[chunk_id]`` (raw
    float32 bytes) and ``doc_meta[document_id]``. Chunk and vector keys are
    prefixed with ``document_id + "-"``.

    Reads only see committed rows. ``delete_document`` runs in one transaction,
    so a scan sees either all of a document's records or none of them. A scan
    running while the same document is still being written may see a subset of
    its chunks; that read is eventually consistent.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        try:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
        except sqlite3.Error as exc:
            raise StorageFailure(f"Cannot open index database {self.db_path}: {exc}") from exc
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteIndexStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageFailure(str(exc)) from exc
        except Exception:
            self._conn.rollback()
            raise

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageFailure(str(exc)) from exc

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id TEXT PRIMARY KEY,
                    document_id TEXT NOT NULL,
                    start_offset INTEGER NOT NULL,
                    end_offset INTEGER NOT NULL,
                    text TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_chunks_document_id
                    ON chunks(document_id)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS vectors (
                    chunk_id TEXT PRIMARY KEY,
                    dimension INTEGER NOT NULL,
                    vector BLOB NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS doc_meta (
                    document_id TEXT PRIMARY KEY,
                    meta TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    # -- writes ---------------------------------------------------------

    @staticmethod
    def _write_chunk(conn: sqlite3.Connection, chunk: Chunk) -> None:
        conn.execute(
            """
            INSERT INTO chunks(id, document_id, start_offset, end_offset, text)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                document_id = excluded.document_id,
                start_offset = excluded.start_offset,
                end_offset = excluded.end_offset,
                text = excluded.text
            """,
            (chunk.id, chunk.document_id, chunk.start, chunk.end, chunk.text),
        )

    @staticmethod
    def _write_vector(conn: sqlite3.Connection, chunk_id: str, vector: np.ndarray) -> None:
        array = np.asarray(vector, dtype="float32").ravel()
        conn.execute(
            """
            INSERT INTO vectors(chunk_id, dimension, vector) VALUES (?, ?, ?)
            ON CONFLICT(chunk_id) DO UPDATE SET
                dimension = excluded.dimension,
                vector = excluded.vector
            """,
            (chunk_id, int(array.shape[0]), sqlite3.Binary(array.tobytes())),
        )

    def put_chunk(self, chunk: Chunk) -> None:
        with self.transaction() as conn:
            self._write_chunk(conn, chunk)

    def put_vector(self, chunk_id: str, vector: np.ndarray) -> None:
        with self.transaction() as conn:
            self._write_vector(conn, chunk_id, vector)

    def put_chunk_with_vector(self, chunk: Chunk, vector: np.ndarray) -> None:
        """Write a chunk and its vector in one transaction."""
        with self.transaction() as conn:
            self._write_chunk(conn, chunk)
            self._write_vector(conn, chunk.id, vector)

    def put_document(self, chunks: Sequence[Chunk], vectors: Sequence[np.ndarray]) -> None:
        """Persist already-computed chunk/vector pairs, one transaction per pair."""
        if len(chunks) != len(vectors):
            raise ValueError("Embeddings and chunks length mismatch")
        for chunk, vector in zip(chunks, vectors):
            self.put_chunk_with_vector(chunk, vector)

    def put_document_meta(self, document_id: str, meta: Dict[str, Any]) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO doc_meta(document_id, meta) VALUES (?, ?)
                ON CONFLICT(document_id) DO UPDATE SET
                    meta = excluded.meta,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (document_id, json.dumps(meta, ensure_ascii=True)),
            )

    def delete_document(self, document_id: str) -> int:
        """Remove every chunk, vector and metadata record of a document.

        Chunks owned by the document are deleted first, then every vector
        under the document's key prefix that no longer has a chunk. Records of
        another document whose id merely starts with the same characters are
        left alone. Returns the number of chunks removed; unknown ids are a
        no-op.
        """
        prefix = _key_prefix(document_id)
        with self.transaction() as conn:
            removed = conn.execute(
                "DELETE FROM chunks WHERE document_id = ? AND substr(id, 1, ?) = ?",
                (document_id, len(prefix), prefix),
            ).rowcount
            conn.execute(
                """
                DELETE FROM vectors
                WHERE substr(chunk_id, 1, ?) = ?
                  AND chunk_id NOT IN (SELECT id FROM chunks)
                """,
                (len(prefix), prefix),
            )
            conn.execute("DELETE FROM doc_meta WHERE document_id = ?", (document_id,))
        if removed:
            LOGGER.info("Deleted %d chunks of document %s", removed, document_id)
        return removed

    # -- reads ----------------------------------------------------------

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> Chunk:
        return Chunk(
            id=row["id"],
            document_id=row["document_id"],
            start=row["start_offset"],
            end=row["end_offset"],
            text=row["text"],
        )

    def get_document_meta(self, document_id: str) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT meta FROM doc_meta WHERE document_id = ?", (document_id,))
        if not rows:
            return None
        return json.loads(rows[0]["meta"])

    def list_chunks(self, document_id: str) -> List[Chunk]:
        rows = self._query(
            """
            SELECT id, document_id, start_offset, end_offset, text
            FROM chunks WHERE document_id = ?
            ORDER BY start_offset
            """,
            (document_id,),
        )
        return [self._row_to_chunk(row) for row in rows]

    def scan_all(self, document_id: str | None = None) -> List[Tuple[Chunk, np.ndarray]]:
        """Return every chunk that has a committed vector, in insertion order.

        Chunks without a vector and vectors without a chunk are skipped.
        """
        sql = """
            SELECT c.id, c.document_id, c.start_offset, c.end_offset, c.text,
                   v.dimension, v.vector
            FROM chunks c
            JOIN vectors v ON v.chunk_id = c.id
        """
        params: Tuple[Any, ...] = ()
        if document_id is not None:
            sql += " WHERE c.document_id = ?"
            params = (document_id,)
        sql += " ORDER BY c.rowid"

        pairs: List[Tuple[Chunk, np.ndarray]] = []
        for row in self._query(sql, params):
            blob = row["vector"]
            if len(blob) != row["dimension"] * 4:
                LOGGER.warning("Skipping malformed vector for chunk %s", row["id"])
                continue
            pairs.append((self._row_to_chunk(row), np.frombuffer(blob, dtype="float32")))
        return pairs

    def list_documents(self) -> List[Dict[str, Any]]:
        rows = self._query(
            """
            SELECT ids.document_id AS document_id,
                   (SELECT COUNT(*) FROM chunks c WHERE c.document_id = ids.document_id)
                       AS chunk_count,
                   EXISTS(SELECT 1 FROM doc_meta m WHERE m.document_id = ids.document_id)
                       AS has_meta
            FROM (
                SELECT document_id FROM chunks
                UNION
                SELECT document_id FROM doc_meta
            ) AS ids
            ORDER BY ids.document_id
            """
        )
        return [
            {
                "document_id": row["document_id"],
                "chunk_count": row["chunk_count"],
                "has_meta": bool(row["has_meta"]),
            }
            for row in rows
        ]

    def get_stats(self) -> Dict[str, int]:
        rows = self._query(
            """
            SELECT
                (SELECT COUNT(DISTINCT document_id) FROM chunks) AS document_count,
                (SELECT COUNT(*) FROM chunks) AS chunk_count,
                (SELECT COUNT(*) FROM vectors) AS vector_count
            """
        )
        row = rows[0]
        return {
            "document_count": row["document_count"],
            "chunk_count": row["chunk_count"],
            "vector_count": row["vector_count"],
        }
