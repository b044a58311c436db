"""Domain models for documents, chunks, and per-document ingestion results."""

from __future__ import annotations

import hashlib
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

ChunkStrategy = Literal["fixed", "recursive", "semantic"]
IngestionStatus = Literal["success", "partial", "failed"]


def document_id_for(tenant_id: str, filename: str) -> str:
    """Deterministic document id so re-uploads overwrite instead of duplicating."""
    return hashlib.sha256(f"{tenant_id}:{filename}".encode()).hexdigest()[:16]


class Document(BaseModel):
    """A document handed to the ingestion pipeline.

    Attributes
    ----------
    id:
        Stable identifier derived from ``tenant_id`` + ``filename`` unless
        given explicitly.
    tenant_id:
        Isolation boundary the derived chunks are indexed under.
    filename:
        Human-readable name reported back in results and source attributions.
    raw_text:
        Extracted, not yet normalised, text.
    staging_path:
        Temporary file backing this document (multipart uploads).  Removed
        by the pipeline once the document has been processed.
    metadata:
        Caller-supplied fields outside the record schema; stored as JSON in
        the record's ``extra`` field.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = ""
    tenant_id: str
    filename: str
    raw_text: str
    staging_path: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _default_id(self) -> Document:
        if not self.id:
            self.id = document_id_for(self.tenant_id, self.filename)
        return self


class Chunk(BaseModel):
    """A bounded span of a document's text; immutable once created."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    document_id: str
    tenant_id: str
    text: str
    index: int
    char_count: int
    word_count: int
    quality_score: float


class ChunkingConfig(BaseModel):
    """Chunker configuration.

    ``separators`` are ordered highest to lowest priority; the empty string
    means character-level splitting and should stay last.
    """

    strategy: ChunkStrategy = "recursive"
    target_size: int = Field(default=500, gt=0)
    overlap: int = Field(default=50, ge=0)
    separators: list[str] = Field(default_factory=lambda: ["\n\n", "\n", ". ", " ", ""])
    min_words: int = Field(default=5, ge=0)
    max_punctuation_ratio: float = Field(default=0.3, gt=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_overlap(self) -> ChunkingConfig:
        if self.overlap >= self.target_size:
            raise ValueError(
                f"overlap ({self.overlap}) must be < target_size ({self.target_size})"
            )
        return self


class DocumentResult(BaseModel):
    """Outcome of ingesting one document, reported independently of its siblings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    filename: str
    chunks_created: int = 0
    vectors_uploaded: int = 0
    status: IngestionStatus = "success"
    error: str | None = None
    stage: str | None = None
