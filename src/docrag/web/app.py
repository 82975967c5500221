"""FastAPI application exposing the DocRAG index over HTTP."""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import Any, AsyncIterator, List

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from docrag import __version__
from docrag.config import AppConfig
from docrag.embedding.encoder import get_default_embedder
from docrag.errors import ModelUnavailable, StorageFailure
from docrag.index.storage import SQLiteIndexStore
from docrag.service import RagService

LOGGER = logging.getLogger(__name__)

MAX_TOP_K = 50

app = FastAPI(title="DocRAG Web", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_CONFIG: AppConfig | None = None


def configure(config: AppConfig) -> None:
    """Set the configuration used by subsequent requests."""
    global _CONFIG
    _CONFIG = config


def get_config() -> AppConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = AppConfig()
    return _CONFIG


def _resolve_db_path(config: AppConfig) -> Path:
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


async def get_service(config: AppConfig = Depends(get_config)) -> AsyncIterator[RagService]:
    # Async so the connection is opened and used on the event loop thread.
    resolved_db = _resolve_db_path(config)
    _ensure_db_parent(resolved_db)
    store = SQLiteIndexStore(resolved_db)
    try:
        yield RagService(store, get_default_embedder(config.embedding_config()), config=config)
    finally:
        store.close()


class QueryPayload(BaseModel):
    query: str
    top_k: int | None = None
    document_id: str | None = None


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.exception_handler(ModelUnavailable)
async def model_unavailable_handler(request: Request, exc: ModelUnavailable) -> JSONResponse:
    LOGGER.error("Embedding model unavailable: %s", exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure) -> JSONResponse:
    LOGGER.error("Index storage failure: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def _clean_query(payload: QueryPayload, config: AppConfig) -> tuple[str, int]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")
    top_k = payload.top_k if payload.top_k is not None else config.top_k
    return query, max(1, min(top_k, MAX_TOP_K))


@app.post("/documents")
async def upload_document(
    file: UploadFile = File(...),
    document_id: str | None = Form(None),
    service: RagService = Depends(get_service),
) -> dict[str, Any]:
    """Index an uploaded file, replacing any previous index for its id."""
    data = await file.read()
    doc_id = (document_id or "").strip() or uuid.uuid4().hex
    result = await service.reindex_document(
        doc_id, data, file.filename or "upload", content_type=file.content_type
    )
    return {"status": "ok", "result": asdict(result)}


@app.get("/documents")
async def list_documents(service: RagService = Depends(get_service)) -> dict[str, Any]:
    return {"documents": service.store.list_documents(), "stats": service.store.get_stats()}


@app.delete("/documents/{document_id}")
async def delete_document(
    document_id: str, service: RagService = Depends(get_service)
) -> dict[str, Any]:
    removed = service.delete_document(document_id)
    return {"status": "ok", "deleted_id": document_id, "removed_chunks": removed}


@app.get("/documents/{document_id}/chunks")
async def list_chunks(
    document_id: str, service: RagService = Depends(get_service)
) -> dict[str, List[dict]]:
    return {"chunks": [asdict(chunk) for chunk in service.store.list_chunks(document_id)]}


@app.get("/documents/{document_id}/info")
async def document_info(
    document_id: str, service: RagService = Depends(get_service)
) -> dict[str, Any]:
    details = service.document_info(document_id)
    if details is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return details


@app.post("/search")
async def search(
    payload: QueryPayload,
    service: RagService = Depends(get_service),
    config: AppConfig = Depends(get_config),
) -> dict[str, List[dict]]:
    query, top_k = _clean_query(payload, config)
    results = await service.retrieve(query, top_k=top_k, document_id=payload.document_id)
    return {"results": [asdict(item) for item in results]}


@app.post("/ask")
async def ask(
    payload: QueryPayload,
    service: RagService = Depends(get_service),
    config: AppConfig = Depends(get_config),
) -> dict[str, Any]:
    query, top_k = _clean_query(payload, config)
    answer = await service.ask(query, top_k=top_k, document_id=payload.document_id)
    return asdict(answer)
