"""FastAPI application exposing ingestion and question answering as a REST API."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from georag.config import settings
from georag.container import Services, get_services
from georag.errors import GeoRAGError, ValidationError
from georag.ingestion.loader import load_text
from georag.ingestion.models import Document, DocumentResult
from georag.retrieval.models import MetadataFilter

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="GeoRAG API",
    version="0.1.0",
    description="Per-tenant document ingestion and grounded question answering.",
)


# ── Request / Response schemas ────────────────────────────────────────
class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentIn(_CamelModel):
    """One already-extracted document."""

    filename: str = Field(min_length=1)
    text: str


class IngestRequest(_CamelModel):
    """Documents to index for a tenant."""

    tenant_id: str = Field(min_length=1)
    documents: list[DocumentIn] = Field(min_length=1)


class IngestResponse(_CamelModel):
    """Per-document outcome of an ingestion call."""

    success: bool
    results: list[DocumentResult]
    total_files: int


class QueryRequest(_CamelModel):
    """Incoming question from the user."""

    query: str
    tenant_id: str = Field(min_length=1)
    max_results: int = Field(default=5, ge=1, le=50)
    include_metadata: bool = True
    filters: list[MetadataFilter] = Field(default_factory=list)


class SourceOut(_CamelModel):
    filename: str
    similarity: float
    preview: str
    chunk_id: str


class QueryMetadata(_CamelModel):
    tenant_id: str
    chunks_found: int
    max_similarity: float
    model: str
    embedding_model: str
    processing_time: str


class QueryResponse(_CamelModel):
    """Answer returned by the retrieval pipeline."""

    success: bool = True
    query: str
    answer: str
    sources: list[SourceOut] = []
    metadata: QueryMetadata


# ── Error handling ────────────────────────────────────────────────────
def _error_body(error: str, message: str, **extra: object) -> dict[str, object]:
    return {"success": False, "error": error, "message": message, **extra}


@app.exception_handler(GeoRAGError)
async def pipeline_error_handler(request: Request, exc: GeoRAGError) -> JSONResponse:
    """Render pipeline errors as ``{success: false, error, message}``."""
    if exc.http_status >= 500:
        logger.error("%s %s failed at %s: %s", request.method, request.url.path, exc.stage, exc)
    return JSONResponse(
        status_code=exc.http_status,
        content=_error_body(exc.error, str(exc), stage=exc.stage),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=422, content=_error_body("Invalid request", details))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Internal Server Error", str(exc)))


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/health/ready")
async def ready(services: Services = Depends(get_services)) -> JSONResponse:
    """Readiness probe — checks that the vector store is reachable."""
    ok = await asyncio.to_thread(services.store.health_check)
    return JSONResponse(
        status_code=200 if ok else 503,
        content={"status": "ok" if ok else "unavailable"},
    )


def _ingest_response(results: list[DocumentResult]) -> IngestResponse:
    return IngestResponse(
        success=all(r.status == "success" for r in results),
        results=results,
        total_files=len(results),
    )


@app.post("/api/upload", response_model=IngestResponse, response_model_exclude_none=True)
async def upload(
    request: IngestRequest, services: Services = Depends(get_services)
) -> IngestResponse:
    """Index already-extracted documents for a tenant."""
    documents = [
        Document(tenant_id=request.tenant_id, filename=d.filename, raw_text=d.text)
        for d in request.documents
    ]
    results = await services.ingestion.ingest(documents, request.tenant_id)
    return _ingest_response(results)


@app.post("/api/upload/files", response_model=IngestResponse, response_model_exclude_none=True)
async def upload_files(
    tenant_id: str = Form(..., alias="tenantId", min_length=1),
    files: list[UploadFile] = File(...),
    services: Services = Depends(get_services),
) -> IngestResponse:
    """Stage uploaded files, extract their text, and index them for a tenant."""
    staging_dir = Path(tempfile.mkdtemp(prefix="georag-upload-"))
    slots: list[Document | DocumentResult] = []
    try:
        for upload_file in files:
            filename = Path(upload_file.filename or "upload").name
            path = staging_dir / f"{uuid4().hex}-{filename}"
            path.write_bytes(await upload_file.read())
            try:
                text = await asyncio.to_thread(load_text, path, filename)
            except ValidationError as exc:
                path.unlink(missing_ok=True)
                slots.append(
                    DocumentResult(filename=filename, status="failed", error=str(exc), stage=exc.stage)
                )
                continue
            slots.append(
                Document(tenant_id=tenant_id, filename=filename, raw_text=text, staging_path=str(path))
            )

        documents = [s for s in slots if isinstance(s, Document)]
        ingested = iter(await services.ingestion.ingest(documents, tenant_id) if documents else [])
        results = [next(ingested) if isinstance(s, Document) else s for s in slots]
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)
    return _ingest_response(results)


@app.post("/api/query", response_model=QueryResponse)
async def query(
    request: QueryRequest, services: Services = Depends(get_services)
) -> QueryResponse:
    """Answer a question from the tenant's documents."""
    answer = await services.retriever.answer(
        request.query,
        request.tenant_id,
        request.max_results,
        filters=request.filters,
    )
    sources = [
        SourceOut(
            filename=s.filename,
            similarity=s.score,
            preview=s.preview,
            chunk_id=s.chunk_id,
        )
        for s in answer.sources
    ]
    return QueryResponse(
        query=request.query,
        answer=answer.text,
        sources=sources if request.include_metadata else [],
        metadata=QueryMetadata(
            tenant_id=request.tenant_id,
            chunks_found=len(answer.sources),
            max_similarity=answer.sources[0].score if answer.sources else 0.0,
            model=services.generator.model_name,
            embedding_model=services.embedder.model_name,
            processing_time=datetime.now(timezone.utc).isoformat(),
        ),
    )
