"""Ingestion orchestrator — clean → chunk → embed → upsert, one task per document.

Documents are processed concurrently and independently: a failure (or a
timeout) in one document is reported in that document's
:class:`~georag.ingestion.models.DocumentResult` and never aborts or rolls
back its siblings.  Within a document the steps run in order and upserts
go out in sequential batches; a failed batch stops the remaining batches
of that document only, leaving a ``partial`` result when earlier batches
were written.  A batch already handed to the store when the document
times out is awaited and counted before the result is reported.  Once
every batch is written, chunks left over from a longer earlier version of
the same document are deleted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from georag.config import settings
from georag.errors import ChunkingError, GeoRAGError, UpsertBatchFailure, ValidationError
from georag.ingestion.chunker import Chunker, clean_text
from georag.ingestion.models import Chunk, Document, DocumentResult
from georag.retrieval.models import IndexRecord, MetadataFilter, RecordMetadata

if TYPE_CHECKING:
    from georag.ingestion.embedder import Embedder
    from georag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


@dataclass
class _Progress:
    stage: str = "validation"
    chunks_created: int = 0
    vectors_uploaded: int = 0
    in_flight: asyncio.Future[int] | None = None


def release_staging(document: Document) -> None:
    """Delete the temporary file backing *document*, if any."""
    if not document.staging_path:
        return
    try:
        Path(document.staging_path).unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not remove staged file %s", document.staging_path, exc_info=True)


class IngestionPipeline:
    """Index documents for a tenant.

    Parameters
    ----------
    store:
        Vector store the records are written to.
    embedder:
        Shared embedding service; its semaphore caps embedding calls across
        all documents in flight.
    chunker:
        Chunker (and default chunking config) to split documents with.
    batch_size:
        Records per upsert call.
    document_timeout:
        Seconds one document may take before its task is cancelled.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        chunker: Chunker | None = None,
        *,
        batch_size: int = settings.upsert_batch_size,
        document_timeout: float | None = settings.document_timeout_seconds,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._chunker = chunker or Chunker()
        self.batch_size = min(batch_size, store.batch_size)
        self.document_timeout = document_timeout

    async def ingest(self, documents: list[Document], tenant_id: str) -> list[DocumentResult]:
        """Ingest *documents* concurrently and return one result per document, in order.

        Raises :class:`~georag.errors.IndexCreationFailure` when the index
        cannot be prepared; no document is processed in that case.
        """
        if not tenant_id:
            for document in documents:
                release_staging(document)
            raise ValidationError("tenantId is required")

        logger.info("Starting ingestion of %d document(s) for tenant %s", len(documents), tenant_id)
        try:
            await asyncio.to_thread(self._store.ensure_index)
        except GeoRAGError:
            for document in documents:
                release_staging(document)
            raise

        results = await asyncio.gather(*(self._run_one(d, tenant_id) for d in documents))
        failed = sum(r.status != "success" for r in results)
        logger.info(
            "Ingestion finished for tenant %s: %d ok, %d not ok",
            tenant_id,
            len(results) - failed,
            failed,
        )
        return list(results)

    # -- per-document task ----------------------------------------------------

    async def _run_one(self, document: Document, tenant_id: str) -> DocumentResult:
        progress = _Progress()
        try:
            await asyncio.wait_for(
                self._ingest_document(document, tenant_id, progress),
                timeout=self.document_timeout,
            )
        except asyncio.TimeoutError:
            await self._settle_upload(document, progress)
            logger.warning(
                "Ingestion of %s timed out after %ss during %s",
                document.filename,
                self.document_timeout,
                progress.stage,
            )
            return self._failure(
                document, progress, f"Timed out after {self.document_timeout}s", "timeout"
            )
        except GeoRAGError as exc:
            exc.with_context(filename=document.filename, stage=progress.stage)
            logger.error("Ingestion of %s failed: %s", document.filename, exc)
            return self._failure(document, progress, str(exc), progress.stage)
        except Exception as exc:
            logger.exception("Unexpected error ingesting %s", document.filename)
            return self._failure(document, progress, str(exc), progress.stage)
        finally:
            release_staging(document)

        return DocumentResult(
            filename=document.filename,
            chunks_created=progress.chunks_created,
            vectors_uploaded=progress.vectors_uploaded,
            status="success",
        )

    async def _ingest_document(self, document: Document, tenant_id: str, progress: _Progress) -> None:
        if document.tenant_id != tenant_id:
            raise ValidationError(
                "Document belongs to a different tenant", filename=document.filename
            )
        text = clean_text(document.raw_text)
        if not text:
            raise ValidationError("Document text is empty", filename=document.filename)
        logger.info("Extracted %d characters from %s", len(text), document.filename)

        progress.stage = "chunking"
        chunks = self._chunker.chunk(text, document_id=document.id, tenant_id=tenant_id)
        if not chunks:
            raise ChunkingError("No chunks produced", filename=document.filename)
        progress.chunks_created = len(chunks)
        logger.info("Created %d chunk(s) for %s", len(chunks), document.filename)

        progress.stage = "embedding"
        vectors = await self._embedder.embed_many([c.text for c in chunks])

        progress.stage = "upsert"
        records = self._build_records(document, chunks, vectors)
        total = (len(records) + self.batch_size - 1) // self.batch_size
        for number, start in enumerate(range(0, len(records), self.batch_size), 1):
            batch = records[start : start + self.batch_size]
            upload = asyncio.ensure_future(asyncio.to_thread(self._store.upsert, batch))
            progress.in_flight = upload
            try:
                written = await asyncio.shield(upload)
            except UpsertBatchFailure as exc:
                progress.in_flight = None
                exc.batch_number = number
                exc.with_context(batch=f"{number}/{total}")
                raise
            progress.in_flight = None
            progress.vectors_uploaded += written
            logger.info("Uploaded batch %d of %d for %s", number, total, document.filename)

        progress.stage = "cleanup"
        await asyncio.to_thread(self._prune_stale, document, {r.chunk_id for r in records})

    # -- helpers --------------------------------------------------------------

    @staticmethod
    async def _settle_upload(document: Document, progress: _Progress) -> None:
        """Wait for a batch whose caller timed out and count it if it landed."""
        upload, progress.in_flight = progress.in_flight, None
        if upload is None:
            return
        try:
            progress.vectors_uploaded += await upload
        except UpsertBatchFailure:
            logger.warning("In-flight batch for %s failed after the timeout", document.filename)

    def _prune_stale(self, document: Document, current: set[str]) -> None:
        """Delete chunks left over from a longer, earlier version of *document*."""
        prefix = f"{document.id}-"
        existing = self._store.record_ids(
            document.tenant_id, [MetadataFilter.equals("filename", document.filename)]
        )
        stale = [i for i in existing if i.startswith(prefix) and i not in current]
        if stale:
            self._store.delete(stale)
            logger.info("Removed %d stale chunk(s) of %s", len(stale), document.filename)

    def _build_records(
        self, document: Document, chunks: list[Chunk], vectors: list[list[float]]
    ) -> list[IndexRecord]:
        uploaded_at = datetime.now(timezone.utc).isoformat()
        config = self._chunker.config
        return [
            IndexRecord(
                chunk_id=chunk.id,
                vector=vector,
                metadata=RecordMetadata.with_overflow(
                    document.metadata,
                    tenant_id=chunk.tenant_id,
                    filename=document.filename,
                    text=chunk.text,
                    chunk_index=chunk.index,
                    chunk_id=chunk.id,
                    uploaded_at=uploaded_at,
                    chunk_size=config.target_size,
                    chunk_overlap=config.overlap,
                ),
            )
            for chunk, vector in zip(chunks, vectors)
        ]

    @staticmethod
    def _failure(document: Document, progress: _Progress, error: str, stage: str) -> DocumentResult:
        return DocumentResult(
            filename=document.filename,
            chunks_created=progress.chunks_created,
            vectors_uploaded=progress.vectors_uploaded,
            status="partial" if progress.vectors_uploaded else "failed",
            error=error,
            stage=stage,
        )
