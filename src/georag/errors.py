"""Exception taxonomy for the ingestion and retrieval pipelines.

Every error carries the pipeline ``stage`` it was raised in and the HTTP
status the serving layer should answer with.  Errors that cross a stage
boundary are re-raised through :meth:`GeoRAGError.with_context` so the
caller always knows which file and which step failed.
"""

from __future__ import annotations

from typing import Any


class GeoRAGError(Exception):
    """Base exception for all pipeline errors."""

    error = "Pipeline error"

    def __init__(
        self,
        message: str,
        stage: str = "pipeline",
        http_status: int = 500,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.stage = stage
        self.http_status = http_status
        self.context: dict[str, Any] = {
            k: v for k, v in (context or {}).items() if v is not None
        }
        super().__init__(message)

    def with_context(self, **context: Any) -> GeoRAGError:
        """Attach contextual metadata (filename, stage, …) and return ``self``."""
        self.context.update({k: v for k, v in context.items() if v is not None})
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({details})"


class ValidationError(GeoRAGError):
    """Input rejected before entering the pipeline (empty query, empty document)."""

    error = "Invalid request"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, "validation", 400, context)


class ChunkingError(GeoRAGError):
    """Splitting a document failed; fatal to that document only."""

    error = "Chunking failed"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, "chunking", 500, context)


class EmbeddingError(GeoRAGError):
    """The embedding model call failed or returned a malformed vector."""

    error = "Embedding failed"

    def __init__(self, cause: BaseException | str, text_length: int, **context: Any) -> None:
        self.cause = cause
        self.text_length = text_length
        super().__init__(
            f"Embedding failed for text of length {text_length}: {cause}",
            "embedding",
            502,
            context,
        )


class StoreError(GeoRAGError):
    """Base class for vector-store failures."""

    error = "Vector store error"

    def __init__(self, message: str, stage: str = "store", **context: Any) -> None:
        super().__init__(message, stage, 503, context)


class IndexCreationFailure(StoreError):
    """The target index could not be created or never became ready.

    Fatal to the whole ingestion call: without an index there is nowhere to
    write.
    """

    error = "Index unavailable"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, "index", **context)


class UpsertBatchFailure(StoreError):
    """One upsert batch failed; the remaining batches of the document are skipped."""

    error = "Upsert failed"

    def __init__(self, message: str, batch_number: int | None = None, **context: Any) -> None:
        self.batch_number = batch_number
        super().__init__(message, "upsert", batch=batch_number, **context)


class QueryFailure(StoreError):
    """The similarity search failed; fatal to the current retrieval call."""

    error = "Search failed"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, "query", **context)


class GenerationError(GeoRAGError):
    """The generation collaborator failed to produce an answer."""

    error = "Answer generation failed"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, "generation", 502, context)
